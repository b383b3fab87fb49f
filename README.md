# distlab

A small toolkit for experimenting with distributed systems in pure Python.
It needs nothing beyond the standard library. The MapReduce parts use
UNIX-domain sockets and so run on POSIX systems only.

## What is inside

- `distlab.porcupine`: a linearizability checker for concurrent histories.
  Describe a system as a `Model` (`init`, `step`, and optionally
  `partition`, `partition_event`, `equal`, `describe_operation`,
  `describe_state`), record a history of `Operation`s or `Event`s, and call
  `check_operations` or `check_events` from `distlab.porcupine.porcupine`,
  or their `_timeout` and `_verbose` variants. Timeouts are in seconds;
  0 or `None` means no limit. Results are `CheckResult.OK`,
  `CheckResult.ILLEGAL` or `CheckResult.UNKNOWN` (the check timed out).
  The `_verbose` variants also return a `LinearizationInfo` holding the
  longest partial linearizations found in each partition.
- `distlab.models.kv`: a model of a key/value store with get (`op=0`),
  put (`op=1`) and append (`op=2`), partitioned by key: `KvInput`,
  `KvOutput`, `partition`, `init`, `step`, `describe_operation`, and a
  ready-built `KV_MODEL`.
- `distlab.labgob`: `LabEncoder` and `LabDecoder` write and read values
  (numbers, strings, bytes, lists, tuples, dicts, sets, and registered
  dataclasses and enums) one per line as tagged JSON. Dataclass fields
  whose names start with an underscore are not sent, and draw a warning;
  `LabDecoder.decode_into` warns when its target already holds non-default
  values. `register` and `register_name` make a class decodable, and
  `error_count()` reports how many warnings have been issued.
- `distlab.labrpc`: a simulated network for testing fault-tolerant
  protocols in one process. A `Network` holds `ClientEnd`s and `Server`s;
  each `Server` bundles `Service`s, and a `Service` exposes the public
  one-argument methods of an object as handlers, named after its class.
  The network can be made unreliable (delays and dropped messages), can
  reorder replies, and can disconnect ends or delete servers.
  `ClientEnd.call("Service.method", args)` returns the reply or raises
  `RPCError`.
- `distlab.kvraft.client`: a `Clerk` with `get`, `put` and `append` that
  sends `KVServer.get` and `KVServer.put_append` requests over the
  simulated network, moving on to the next server when a request is lost
  or sent to a non-leader, and retrying until it succeeds.
- `distlab.mr`: a MapReduce `Master` that hands out map tasks, then reduce
  tasks, re-issuing any that fail or run longer than ten seconds, and
  `MapReduceWorker` / `worker` that run them. Map task `m` writes
  intermediate files `mr-<m>-<r>`; reduce task `r` writes `mr-out-<r>`,
  one `key value` line per key, in the working directory.
- `distlab.mrapps`: example applications, each with `map_func` and
  `reduce_func`: word count (`wc`), an inverted index (`indexer`), and
  `mtiming` and `rtiming`, which report how many map or reduce workers
  ran at the same time.

## Installing

```
pip install .
```

To run the test suite:

```
pip install ".[test]"
pytest
```

## Checking a history

```python
from distlab.models import kv
from distlab.porcupine.model import Operation
from distlab.porcupine.porcupine import check_operations

history = [
    Operation(input=kv.KvInput(op=1, key="x", value="a"), call_time=0,
              output=kv.KvOutput(), return_time=10, client_id=0),
    Operation(input=kv.KvInput(op=0, key="x"), call_time=20,
              output=kv.KvOutput(value="a"), return_time=30, client_id=1),
]

print(check_operations(kv.KV_MODEL, history))  # True
```

## Running a MapReduce job

Start a master, then run workers against the same socket. A worker keeps
taking tasks until the master reports that the job is done.

```python
import threading
import time

from distlab.mr.master import make_master
from distlab.mr.worker import worker
from distlab.mrapps import wc

sock = "/tmp/mr-demo.sock"
master = make_master(["a.txt", "b.txt"], 10, sock)

workers = [
    threading.Thread(target=worker, args=(wc.map_func, wc.reduce_func, sock))
    for _ in range(3)
]
for w in workers:
    w.start()

while not master.done():
    time.sleep(1)
```

Without a socket path, master and workers use `/var/tmp/824-mr-<uid>`.

## What it does not do

- There are no command-line programs: masters and workers are started from
  Python, as above, and there is no single-process sequential runner.
- `distlab.kvraft` holds only the client. There is no key/value server and
  no consensus layer; the `Clerk` needs servers that provide
  `KVServer.get` and `KVServer.put_append` handlers on a `labrpc` network.