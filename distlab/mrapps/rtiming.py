"""MapReduce application that checks whether reduce tasks run in parallel."""

from __future__ import annotations

from distlab.mr.worker import KeyValue

from .mtiming import nparallel


def map_func(filename: str, contents: str) -> list[KeyValue]:
    """Emit one pair for each of the keys "a" through "j"."""
    return [KeyValue(key, "1") for key in "abcdefghij"]


def reduce_func(key: str, values: list[str]) -> str:
    """Return how many reduce workers were running at the same time."""
    return str(nparallel("reduce"))