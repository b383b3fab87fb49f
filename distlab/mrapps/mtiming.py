"""MapReduce application that checks whether map tasks run in parallel."""

from __future__ import annotations

import contextlib
import os
import re
import time

from distlab.mr.worker import KeyValue


def nparallel(phase: str) -> int:
    """Count live workers currently in ``phase``, this one included.

    Each worker leaves a marker file named after its process id for about a
    second; the count is the number of such markers whose process is alive.
    """
    pid = os.getpid()
    marker = f"mr-worker-{phase}-{pid}"
    with open(marker, "w") as out:
        out.write("x")

    pattern = re.compile(rf"mr-worker-{re.escape(phase)}-([+-]?\d+)")
    count = 0
    for name in os.listdir("."):
        match = pattern.match(name)
        if match is None:
            continue
        with contextlib.suppress(OSError):
            os.kill(int(match.group(1)), 0)
            count += 1

    time.sleep(1)
    os.remove(marker)
    return count


def map_func(filename: str, contents: str) -> list[KeyValue]:
    """Report this worker's start time and how many map workers ran with it."""
    ts = time.time()
    pid = os.getpid()
    n = nparallel("map")
    return [
        KeyValue(f"times-{pid}", f"{ts:.1f}"),
        KeyValue(f"parallel-{pid}", str(n)),
    ]


def reduce_func(key: str, values: list[str]) -> str:
    """Join the values in sorted order so the output is deterministic."""
    return " ".join(sorted(values))