"""Value serialization for RPC and persistence, with checks for common mistakes.

Values are written one per line as tagged JSON. Dataclass fields whose names
start with an underscore are private and are not transmitted; such fields
draw a one-time warning, since state kept in them silently goes missing.
Decoding into an object that already holds non-default values also warns.
"""

from __future__ import annotations

import base64
import dataclasses
import json
import threading
from enum import Enum
from typing import Any, BinaryIO

_lock = threading.Lock()
_error_count = 0
_checked: set[type] = set()
_name_of: dict[type, str] = {}
_class_of: dict[str, type] = {}
_explicit: dict[type, str] = {}
_explicit_names: dict[str, type] = {}


def error_count() -> int:
    """Number of warnings issued so far."""
    with _lock:
        return _error_count


def _bump_errors() -> int:
    global _error_count
    with _lock:
        previous = _error_count
        _error_count += 1
    return previous


def _default_name(cls: type) -> str:
    return f"{cls.__module__}.{cls.__qualname__}"


def _is_dataclass_instance(value: Any) -> bool:
    return dataclasses.is_dataclass(value) and not isinstance(value, type)


def _check_class(cls: type) -> None:
    with _lock:
        if cls in _checked:
            return
        _checked.add(cls)
    if not dataclasses.is_dataclass(cls):
        return
    for f in dataclasses.fields(cls):
        if f.name.startswith("_"):
            print(
                f"labgob error: private field {f.name} of {cls.__name__} "
                "in RPC or persist/snapshot will break your Raft"
            )
            _bump_errors()


def _name_for(cls: type) -> str:
    with _lock:
        name = _name_of.get(cls)
        if name is None:
            name = _default_name(cls)
            _name_of[cls] = name
        if name not in _explicit_names:
            _class_of[name] = cls
        return name


def _class_for(value: Any) -> type:
    cls = value if isinstance(value, type) else type(value)
    if not (dataclasses.is_dataclass(cls) or issubclass(cls, Enum)):
        raise TypeError(f"labgob: can only register dataclasses and enums, not {cls.__name__}")
    return cls


def register(value: Any) -> None:
    """Register a dataclass or enum (a class or an instance) under its default name."""
    register_name(_default_name(_class_for(value)), value)


def register_name(name: str, value: Any) -> None:
    """Register a dataclass or enum under ``name``; conflicting names raise ValueError."""
    cls = _class_for(value)
    _check_class(cls)
    with _lock:
        current = _explicit.get(cls)
        if current is not None and current != name:
            raise ValueError(f"labgob: registering duplicate types for {cls.__name__}")
        owner = _explicit_names.get(name)
        if owner is not None and owner is not cls:
            raise ValueError(f"labgob: registering duplicate names for {name!r}")
        _explicit[cls] = name
        _explicit_names[name] = cls
        _name_of[cls] = name
        _class_of[name] = cls


def _to_tree(value: Any) -> Any:
    if isinstance(value, Enum):
        cls = type(value)
        _check_class(cls)
        return {"e": _name_for(cls), "v": _to_tree(value.value)}
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (bytes, bytearray)):
        return {"b": base64.b64encode(bytes(value)).decode("ascii")}
    if _is_dataclass_instance(value):
        cls = type(value)
        _check_class(cls)
        return {
            "o": _name_for(cls),
            "f": {
                f.name: _to_tree(getattr(value, f.name))
                for f in dataclasses.fields(value)
                if not f.name.startswith("_")
            },
        }
    if isinstance(value, list):
        return {"l": [_to_tree(item) for item in value]}
    if isinstance(value, tuple):
        return {"t": [_to_tree(item) for item in value]}
    if isinstance(value, dict):
        return {"d": [[_to_tree(k), _to_tree(v)] for k, v in value.items()]}
    if isinstance(value, frozenset):
        return {"z": [_to_tree(item) for item in value]}
    if isinstance(value, set):
        return {"s": [_to_tree(item) for item in value]}
    raise TypeError(f"labgob: cannot encode value of type {type(value).__name__}")


def _lookup(name: str) -> type:
    with _lock:
        cls = _class_of.get(name)
    if cls is None:
        raise ValueError(f"labgob: type not registered: {name}")
    return cls


def _build_dataclass(cls: type, payload: dict) -> Any:
    obj = cls.__new__(cls)
    for f in dataclasses.fields(cls):
        if f.name in payload:
            value = _from_tree(payload[f.name])
        elif f.default is not dataclasses.MISSING:
            value = f.default
        elif f.default_factory is not dataclasses.MISSING:
            value = f.default_factory()
        else:
            continue
        object.__setattr__(obj, f.name, value)
    return obj


def _from_tree(node: Any) -> Any:
    if not isinstance(node, dict):
        return node
    if "o" in node:
        return _build_dataclass(_lookup(node["o"]), node["f"])
    if "e" in node:
        return _lookup(node["e"])(_from_tree(node["v"]))
    if len(node) != 1:
        raise ValueError("labgob: malformed value")
    (tag, payload), = node.items()
    if tag == "b":
        return base64.b64decode(payload)
    if tag == "l":
        return [_from_tree(item) for item in payload]
    if tag == "t":
        return tuple(_from_tree(item) for item in payload)
    if tag == "d":
        return {_from_tree(k): _from_tree(v) for k, v in payload}
    if tag == "s":
        return {_from_tree(item) for item in payload}
    if tag == "z":
        return frozenset(_from_tree(item) for item in payload)
    raise ValueError(f"labgob: unknown tag {tag!r}")


def _check_default(value: Any, depth: int = 1, name: str = "") -> None:
    if depth > 3:
        return
    if _is_dataclass_instance(value):
        for f in dataclasses.fields(value):
            field_name = f"{name}.{f.name}" if name else f.name
            _check_default(getattr(value, f.name, None), depth + 1, field_name)
        return
    kind = type(value)
    if kind in (bool, int, float, str, bytes) and value != kind():
        if _bump_errors() < 1:
            what = name or kind.__name__
            print(f"labgob warning: Decoding into a non-default variable/field {what} may not work")


class LabEncoder:
    """Writes values to a binary stream, one per line."""

    def __init__(self, stream: BinaryIO) -> None:
        self._stream = stream

    def encode(self, value: Any) -> None:
        tree = _to_tree(value)
        line = json.dumps(tree, separators=(",", ":")).encode("utf-8")
        self._stream.write(line + b"\n")


class LabDecoder:
    """Reads values written by :class:`LabEncoder`."""

    def __init__(self, stream: BinaryIO) -> None:
        self._stream = stream

    def decode(self) -> Any:
        """Return the next value; raise EOFError when the stream is exhausted."""
        line = self._stream.readline()
        if not line:
            raise EOFError("labgob: no more values")
        try:
            tree = json.loads(line)
        except ValueError as exc:
            raise ValueError(f"labgob: malformed data: {exc}") from exc
        return _from_tree(tree)

    def decode_into(self, target: Any) -> None:
        """Read the next value and copy its public fields into ``target``."""
        if not _is_dataclass_instance(target):
            raise TypeError("labgob: decode target must be a dataclass instance")
        _check_class(type(target))
        _check_default(target)
        value = self.decode()
        if type(value) is not type(target):
            raise TypeError(
                f"labgob: cannot decode {type(value).__name__} into {type(target).__name__}"
            )
        for f in dataclasses.fields(target):
            if not f.name.startswith("_"):
                object.__setattr__(target, f.name, getattr(value, f.name))