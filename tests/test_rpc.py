import io
import os

from distlab.labgob import LabDecoder, LabEncoder
from distlab.mr.common import Task, TaskPhase
from distlab.mr.rpc import (
    RegisterArgs,
    RegisterReply,
    ReportTaskArgs,
    ReportTaskReply,
    TaskArgs,
    TaskReply,
    master_sock,
)


def _round_trip(value):
    w = io.BytesIO()
    LabEncoder(w).encode(value)
    return LabDecoder(io.BytesIO(w.getvalue())).decode()


def test_master_sock_uses_uid(monkeypatch):
    monkeypatch.setattr(os, "getuid", lambda: 1234, raising=False)
    assert master_sock() == "/var/tmp/824-mr-1234"


def test_defaults():
    assert TaskArgs().worker_id == 0
    assert TaskReply().task is None
    assert RegisterReply().worker_id == 0
    args = ReportTaskArgs()
    assert (args.done, args.index, args.phase) == (False, 0, TaskPhase.MAP)


def test_report_args_round_trip():
    args = ReportTaskArgs(done=True, index=3, phase=TaskPhase.REDUCE, worker_id=7)
    decoded = _round_trip(args)
    assert decoded == args
    assert decoded.phase is TaskPhase.REDUCE


def test_task_reply_round_trip():
    reply = TaskReply(Task(TaskPhase.MAP, "a.txt", 2, 5, 1, True))
    assert _round_trip(reply) == reply


def test_empty_messages_round_trip():
    assert _round_trip(RegisterArgs()) == RegisterArgs()
    assert _round_trip(ReportTaskReply()) == ReportTaskReply()
    assert _round_trip(TaskArgs(worker_id=9)) == TaskArgs(worker_id=9)