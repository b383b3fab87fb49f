import os
import time

import pytest

from distlab.mrapps import mtiming


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(time, "sleep", lambda _seconds: None)
    return tmp_path


def test_nparallel_counts_self_and_removes_marker(workdir):
    assert mtiming.nparallel("map") == 1
    assert list(workdir.iterdir()) == []


def test_map_func_reports_time_and_parallelism(workdir):
    before = time.time()
    kvs = mtiming.map_func("ignored", "ignored")
    after = time.time()
    pid = os.getpid()
    assert [kv.key for kv in kvs] == [f"times-{pid}", f"parallel-{pid}"]
    assert before - 0.1 <= float(kvs[0].value) <= after + 0.1
    assert kvs[1].value == "1"


def test_reduce_func_sorts_values():
    assert mtiming.reduce_func("k", ["3", "1", "2"]) == "1 2 3"