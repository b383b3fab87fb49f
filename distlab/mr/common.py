"""Task descriptions and file naming shared by the MapReduce master and workers."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import IntEnum

DEBUG = False

_log = logging.getLogger(__name__)


class TaskPhase(IntEnum):
    MAP = 0
    REDUCE = 1


def dprintf(format: str, *args: object) -> None:
    """Log a %-style message when debugging is switched on."""
    if DEBUG:
        _log.info(format, *args)


@dataclass
class Task:
    """A unit of work; a worker exits when it receives an invalid task."""

    phase: TaskPhase = TaskPhase.MAP
    filename: str = ""
    n_map: int = 0
    n_reduce: int = 0
    index: int = 0
    valid: bool = False


def after_map_filename(map_idx: int, reduce_idx: int) -> str:
    """Name of the intermediate file map task ``map_idx`` writes for a reducer."""
    return f"mr-{map_idx}-{reduce_idx}"


def after_reduce_filename(reduce_idx: int) -> str:
    """Name of the output file of reduce task ``reduce_idx``."""
    return f"mr-out-{reduce_idx}"