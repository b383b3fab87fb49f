"""Client of the replicated key/value service."""

from __future__ import annotations

import secrets
import time
from dataclasses import dataclass
from enum import Enum
from typing import Sequence

from distlab import labgob
from distlab.labrpc import ClientEnd, RPCError

CHANGE_LEADER_INTERVAL = 0.02


class Err(str, Enum):
    OK = "OK"
    NO_KEY = "ErrNoKey"
    WRONG_LEADER = "ErrWrongLeader"
    TIME_OUT = "ErrTimeOut"


@dataclass
class PutAppendArgs:
    """A Put or Append request; ``op`` is "Put" or "Append"."""

    key: str
    value: str
    op: str
    msg_id: int = 0
    client_id: int = 0


@dataclass
class PutAppendReply:
    err: Err = Err.OK


@dataclass
class GetArgs:
    key: str
    msg_id: int = 0
    client_id: int = 0


@dataclass
class GetReply:
    err: Err = Err.OK
    value: str = ""


for _cls in (Err, PutAppendArgs, PutAppendReply, GetArgs, GetReply):
    labgob.register(_cls)


def nrand() -> int:
    """A random non-negative integer below 2**62."""
    return secrets.randbelow(1 << 62)


class Clerk:
    """Sends requests to the service, retrying until some server accepts them."""

    def __init__(self, servers: Sequence[ClientEnd]) -> None:
        self._servers = list(servers)
        if not self._servers:
            raise ValueError("a clerk needs at least one server")
        self.client_id = nrand()
        self.leader_id = 0

    def _next_leader(self, leader: int) -> int:
        time.sleep(CHANGE_LEADER_INTERVAL)
        return (leader + 1) % len(self._servers)

    def get(self, key: str) -> str:
        """Fetch the value of ``key``; return "" if it does not exist.

        Keeps trying through lost messages and leader changes.
        """
        args = GetArgs(key, nrand(), self.client_id)
        leader = self.leader_id
        while True:
            try:
                reply = self._servers[leader].call("KVServer.get", args)
            except RPCError:
                leader = self._next_leader(leader)
                continue
            if reply.err == Err.OK:
                self.leader_id = leader
                return reply.value
            if reply.err == Err.NO_KEY:
                self.leader_id = leader
                return ""
            if reply.err == Err.WRONG_LEADER:
                leader = self._next_leader(leader)
            elif reply.err != Err.TIME_OUT:
                raise RuntimeError(f"client err {reply.err}")

    def put_append(self, key: str, value: str, op: str) -> None:
        """Send a Put or Append; keeps trying until it is applied."""
        args = PutAppendArgs(key, value, op, nrand(), self.client_id)
        leader = self.leader_id
        while True:
            try:
                reply = self._servers[leader].call("KVServer.put_append", args)
            except RPCError:
                leader = self._next_leader(leader)
                continue
            if reply.err == Err.OK:
                return
            if reply.err == Err.WRONG_LEADER:
                leader = self._next_leader(leader)
            elif reply.err != Err.TIME_OUT:
                raise RuntimeError(f"client err {reply.err}")

    def put(self, key: str, value: str) -> None:
        self.put_append(key, value, "Put")

    def append(self, key: str, value: str) -> None:
        self.put_append(key, value, "Append")