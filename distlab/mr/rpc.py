"""Messages exchanged between MapReduce workers and the master."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from .common import Task, TaskPhase


@dataclass
class TaskArgs:
    worker_id: int = 0


@dataclass
class TaskReply:
    task: Optional[Task] = None


@dataclass
class ReportTaskArgs:
    done: bool = False
    index: int = 0
    phase: TaskPhase = TaskPhase.MAP
    worker_id: int = 0


@dataclass
class ReportTaskReply:
    pass


@dataclass
class RegisterArgs:
    pass


@dataclass
class RegisterReply:
    worker_id: int = 0


def master_sock() -> str:
    """A per-user UNIX-domain socket path for the master."""
    return "/var/tmp/824-mr-" + str(os.getuid())