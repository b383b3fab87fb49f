"""MapReduce worker: asks the master for tasks and runs them.

Requests travel over a UNIX-domain socket. The worker connects, sends one
labgob-encoded ``(rpcname, args)`` tuple and shuts down its write side; the
master answers with ``(True, reply)`` or ``(False, message)``.
"""

from __future__ import annotations

import io
import json
import logging
import os
import socket
from dataclasses import dataclass
from typing import Any, Callable, Optional

from distlab import labgob

from .common import Task, TaskPhase, after_map_filename, after_reduce_filename, dprintf
from .rpc import (
    RegisterArgs,
    RegisterReply,
    ReportTaskArgs,
    ReportTaskReply,
    TaskArgs,
    TaskReply,
    master_sock,
)

_log = logging.getLogger(__name__)


@dataclass
class KeyValue:
    """One key/value pair emitted by a map function."""

    key: str
    value: str


MapFunc = Callable[[str, str], list[KeyValue]]
ReduceFunc = Callable[[str, list[str]], str]

for _cls in (
    KeyValue,
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


def ihash(key: str) -> int:
    """FNV-1a hash of ``key``, masked to 31 bits; pick a reducer with ``% n_reduce``."""
    h = 0x811C9DC5
    for byte in key.encode("utf-8"):
        h ^= byte
        h = (h * 0x01000193) & 0xFFFFFFFF
    return h & 0x7FFFFFFF


def _encode(value: Any) -> bytes:
    buffer = io.BytesIO()
    labgob.LabEncoder(buffer).encode(value)
    return buffer.getvalue()


def _decode(data: bytes) -> Any:
    return labgob.LabDecoder(io.BytesIO(data)).decode()


def call(rpcname: str, args: Any, sockname: Optional[str] = None) -> Any:
    """Send an RPC to the master and return its reply.

    Raises ConnectionError when the master cannot be reached and
    RuntimeError when the master reports a failure.
    """
    path = sockname or master_sock()
    request = _encode((rpcname, args))
    try:
        with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as conn:
            conn.connect(path)
            conn.sendall(request)
            conn.shutdown(socket.SHUT_WR)
            data = b"".join(iter(lambda: conn.recv(65536), b""))
        ok, payload = _decode(data)
    except (OSError, EOFError) as exc:
        raise ConnectionError(f"dialing {path}: {exc}") from exc
    if not ok:
        dprintf("%s", payload)
        raise RuntimeError(f"{rpcname}: {payload}")
    return payload


class MapReduceWorker:
    """Runs map and reduce tasks handed out by the master."""

    def __init__(self, mapf: MapFunc, reducef: ReduceFunc, sockname: Optional[str] = None) -> None:
        self._mapf = mapf
        self._reducef = reducef
        self._sockname = sockname or master_sock()
        self.worker_id = 0

    def register(self) -> None:
        """Obtain a worker id from the master."""
        reply = call("Master.reg_worker", RegisterArgs(), self._sockname)
        self.worker_id = reply.worker_id

    def request_task(self) -> Task:
        reply = call("Master.get_one_task", TaskArgs(self.worker_id), self._sockname)
        if reply.task is None:
            raise RuntimeError("master replied without a task")
        return reply.task

    def report_task(self, task: Task, done: bool, err: Optional[BaseException]) -> None:
        """Tell the master whether ``task`` succeeded; failures to report are logged."""
        if err is not None:
            _log.warning("%s", err)
        args = ReportTaskArgs(done, task.index, task.phase, self.worker_id)
        try:
            call("Master.report_task", args, self._sockname)
        except (ConnectionError, RuntimeError):
            _log.warning("report task fail: %s", args)

    def do_map_task(self, task: Task) -> None:
        try:
            with open(task.filename, "rb") as source:
                contents = source.read().decode("utf-8", errors="replace")
        except OSError as exc:
            self.report_task(task, False, exc)
            return

        buckets: list[list[KeyValue]] = [[] for _ in range(task.n_reduce)]
        for kv in self._mapf(task.filename, contents):
            buckets[ihash(kv.key) % task.n_reduce].append(kv)

        for ridx, bucket in enumerate(buckets):
            try:
                with open(after_map_filename(task.index, ridx), "w", encoding="utf-8") as out:
                    for kv in bucket:
                        out.write(json.dumps({"Key": kv.key, "Value": kv.value}) + "\n")
            except (OSError, TypeError, ValueError) as exc:
                self.report_task(task, False, exc)
                return
        self.report_task(task, True, None)

    def do_reduce_task(self, task: Task) -> None:
        groups: dict[str, list[str]] = {}
        for map_idx in range(task.n_map):
            try:
                source = open(after_map_filename(map_idx, task.index), encoding="utf-8")
            except OSError as exc:
                self.report_task(task, False, exc)
                return
            with source:
                for line in source:
                    try:
                        record = json.loads(line)
                        key, value = record.get("Key", ""), record.get("Value", "")
                    except (ValueError, AttributeError):
                        break
                    groups.setdefault(key, []).append(value)

        output = "".join(f"{key} {self._reducef(key, values)}\n" for key, values in groups.items())
        try:
            fd = os.open(
                after_reduce_filename(task.index), os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600
            )
            with os.fdopen(fd, "w", encoding="utf-8") as out:
                out.write(output)
        except OSError as exc:
            self.report_task(task, False, exc)
            return
        self.report_task(task, True, None)

    def do_task(self, task: Task) -> None:
        if task.phase == TaskPhase.MAP:
            self.do_map_task(task)
        elif task.phase == TaskPhase.REDUCE:
            self.do_reduce_task(task)
        else:
            raise ValueError(f"task phase err: {task.phase}")

    def run(self) -> None:
        """Process tasks until the master hands out an invalid one."""
        while True:
            task = self.request_task()
            if not task.valid:
                return
            self.do_task(task)


def worker(mapf: MapFunc, reducef: ReduceFunc, sockname: Optional[str] = None) -> None:
    """Register with the master and run tasks until told to stop."""
    w = MapReduceWorker(mapf, reducef, sockname)
    w.register()
    w.run()