"""MapReduce master: hands out map tasks, then reduce tasks, and tracks progress.

Workers reach the master over a UNIX-domain socket. Each connection carries
one labgob-encoded ``(rpcname, args)`` tuple. The master answers with
``(True, reply)`` on success or ``(False, message)`` on failure.
"""

from __future__ import annotations

import contextlib
import io
import os
import queue
import socket
import threading
import time
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Callable, Optional, Sequence

from distlab import labgob

from .common import Task, TaskPhase
from .rpc import (
    RegisterArgs,
    RegisterReply,
    ReportTaskArgs,
    ReportTaskReply,
    TaskArgs,
    TaskReply,
    master_sock,
)

MAX_TASK_RUN_TIME = 10.0
SCHEDULE_INTERVAL = 0.5
_POLL_INTERVAL = 0.1

for _cls in (
    Task,
    TaskPhase,
    TaskArgs,
    TaskReply,
    ReportTaskArgs,
    ReportTaskReply,
    RegisterArgs,
    RegisterReply,
):
    labgob.register(_cls)


class TaskStatus(IntEnum):
    READY = 0
    QUEUE = 1
    RUNNING = 2
    FINISH = 3
    ERR = 4


@dataclass
class TaskStat:
    """Progress of one task in the current phase."""

    status: TaskStatus = TaskStatus.READY
    worker_id: int = 0
    start_time: float = 0.0


def _encode(value: Any) -> bytes:
    buffer = io.BytesIO()
    labgob.LabEncoder(buffer).encode(value)
    return buffer.getvalue()


def _decode(data: bytes) -> Any:
    return labgob.LabDecoder(io.BytesIO(data)).decode()


class Master:
    """Coordinates a MapReduce job over ``files`` with ``n_reduce`` reduce tasks.

    A task that has been running longer than ``max_task_run_time`` seconds
    is handed out again.
    """

    max_task_run_time = MAX_TASK_RUN_TIME

    def __init__(self, files: Sequence[str], n_reduce: int) -> None:
        if n_reduce < 1:
            raise ValueError(f"need at least one reduce task, got {n_reduce}")
        self.files = list(files)
        self.n_reduce = n_reduce
        self._lock = threading.Lock()
        self._done = False
        self._worker_index = 0
        self._tasks: queue.Queue = queue.Queue(maxsize=n_reduce)
        self._listener: Optional[socket.socket] = None
        self._closed = threading.Event()
        self._init_phase(TaskPhase.MAP)

    def __enter__(self) -> Master:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self._closed.set()
        if self._listener is not None:
            self._listener.close()
            self._listener = None

    def _init_phase(self, phase: TaskPhase) -> None:
        self._phase = phase
        count = len(self.files) if phase == TaskPhase.MAP else self.n_reduce
        self._stats = [TaskStat() for _ in range(count)]

    def _make_task(self, index: int) -> Task:
        return Task(
            phase=self._phase,
            filename=self.files[index] if self._phase == TaskPhase.MAP else "",
            n_map=len(self.files),
            n_reduce=self.n_reduce,
            index=index,
            valid=True,
        )

    def _reg_task(self, args: TaskArgs, task: Task) -> None:
        with self._lock:
            if task.phase != self._phase:
                raise RuntimeError("request task phase not equal")
            stat = self._stats[task.index]
            stat.status = TaskStatus.RUNNING
            stat.worker_id = args.worker_id
            stat.start_time = time.monotonic()

    def reg_worker(self, args: RegisterArgs) -> RegisterReply:
        """Hand out a fresh worker id."""
        with self._lock:
            self._worker_index += 1
            return RegisterReply(self._worker_index)

    def report_task(self, args: ReportTaskArgs) -> ReportTaskReply:
        """Record a worker's result; reports for stale tasks are ignored."""
        with self._lock:
            if args.phase != self._phase:
                return ReportTaskReply()
            if not 0 <= args.index < len(self._stats):
                raise IndexError(f"task index {args.index} out of range")
            stat = self._stats[args.index]
            if args.worker_id != stat.worker_id:
                return ReportTaskReply()
            stat.status = TaskStatus.FINISH if args.done else TaskStatus.ERR
        threading.Thread(target=self.schedule, daemon=True).start()
        return ReportTaskReply()

    def get_one_task(self, args: TaskArgs) -> TaskReply:
        """Wait for a task; once the job is done, return an invalid one."""
        while True:
            try:
                task = self._tasks.get(timeout=_POLL_INTERVAL)
            except queue.Empty:
                if self.done():
                    return TaskReply(Task(valid=False))
                continue
            if task.valid:
                self._reg_task(args, task)
            return TaskReply(task)

    def done(self) -> bool:
        """Tell whether the whole job has finished."""
        with self._lock:
            return self._done

    def schedule(self) -> None:
        """Queue tasks that need running and advance the phase when all finish."""
        with self._lock:
            if self._done:
                return
            all_finished = True
            for index, stat in enumerate(self._stats):
                if stat.status in (TaskStatus.READY, TaskStatus.ERR):
                    all_finished = False
                    stat.status = TaskStatus.QUEUE
                    self._tasks.put(self._make_task(index))
                elif stat.status == TaskStatus.QUEUE:
                    all_finished = False
                elif stat.status == TaskStatus.RUNNING:
                    all_finished = False
                    if time.monotonic() - stat.start_time > self.max_task_run_time:
                        stat.status = TaskStatus.QUEUE
                        self._tasks.put(self._make_task(index))
            if all_finished:
                if self._phase == TaskPhase.MAP:
                    self._init_phase(TaskPhase.REDUCE)
                else:
                    self._done = True

    def _tick(self) -> None:
        while not self.done() and not self._closed.is_set():
            self.schedule()
            self._closed.wait(SCHEDULE_INTERVAL)

    def serve(self, sockname: Optional[str] = None) -> None:
        """Listen for worker RPCs on a UNIX-domain socket in the background."""
        path = sockname or master_sock()
        with contextlib.suppress(FileNotFoundError):
            os.remove(path)
        listener = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            listener.bind(path)
            listener.listen()
        except OSError:
            listener.close()
            raise
        self._listener = listener
        threading.Thread(target=self._accept_loop, args=(listener,), daemon=True).start()

    def _accept_loop(self, listener: socket.socket) -> None:
        while True:
            try:
                conn, _ = listener.accept()
            except OSError:
                return
            threading.Thread(target=self._handle, args=(conn,), daemon=True).start()

    def _dispatch(self, rpcname: str, args: Any) -> Any:
        handlers: dict[str, Callable[[Any], Any]] = {
            "reg_worker": self.reg_worker,
            "report_task": self.report_task,
            "get_one_task": self.get_one_task,
        }
        service, _, method = rpcname.rpartition(".")
        handler = handlers.get(method)
        if service != "Master" or handler is None:
            raise LookupError(f"unknown method {rpcname}; expecting one of {sorted(handlers)}")
        return handler(args)

    def _handle(self, conn: socket.socket) -> None:
        with conn:
            try:
                data = b"".join(iter(lambda: conn.recv(65536), b""))
                rpcname, args = _decode(data)
                reply: Any = (True, self._dispatch(rpcname, args))
            except Exception as exc:  # reported back to the worker
                reply = (False, f"{type(exc).__name__}: {exc}")
            with contextlib.suppress(OSError):
                conn.sendall(_encode(reply))


def make_master(files: Sequence[str], n_reduce: int, sockname: Optional[str] = None) -> Master:
    """Create a master, start its scheduler and begin serving workers."""
    master = Master(files, n_reduce)
    threading.Thread(target=master._tick, daemon=True).start()
    master.serve(sockname)
    return master