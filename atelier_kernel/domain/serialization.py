"""
Snapshot codec (``atelier_kernel.domain.serialization``).

Responsibility
--------------
Turns frozen domain records into JSON-safe payloads and back, so whole
collections can be written through the key-value persistence port.

Invariants enforced
-------------------
* ``to_payload`` output contains only dict, list, str, int, float, bool and
  None.  Enums become their values, datetimes ISO-8601 strings, tuples lists.
* ``from_payload(cls, to_payload(x)) == x`` for every kernel record type.
* Workflow rules carry a ``rule_type`` discriminator in their payload.

Failure modes
-------------
* ``SnapshotDecodeError`` when a stored payload is missing fields or holds
  values the target type rejects.
"""

from __future__ import annotations

import types
from dataclasses import fields, is_dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Union, get_args, get_origin, get_type_hints

from atelier_kernel.domain.values import WorkflowRuleType
from atelier_kernel.domain.workflow import WORKFLOW_RULE_CLASSES, WorkflowRule
from atelier_kernel.exceptions import SnapshotDecodeError

_HINT_CACHE: dict[type, dict[str, Any]] = {}


def to_payload(obj: Any) -> Any:
    """Encode a record (or any nesting of records) as JSON-safe data."""
    if is_dataclass(obj) and not isinstance(obj, type):
        data = {f.name: to_payload(getattr(obj, f.name)) for f in fields(obj)}
        rule_type = getattr(type(obj), "rule_type", None)
        if isinstance(rule_type, WorkflowRuleType):
            data["rule_type"] = rule_type.value
        return data
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, (list, tuple)):
        return [to_payload(item) for item in obj]
    if isinstance(obj, dict):
        return {str(k): to_payload(v) for k, v in obj.items()}
    return obj


def from_payload(cls: type, data: dict[str, Any]) -> Any:
    """Decode a payload produced by ``to_payload`` into an instance of ``cls``."""
    hints = _hints_for(cls)
    kwargs = {}
    for f in fields(cls):
        if f.name in data:
            kwargs[f.name] = _decode(hints[f.name], data[f.name])
    return cls(**kwargs)


def decode_workflow_rule(data: dict[str, Any]) -> WorkflowRule:
    """Decode a workflow rule, choosing the class from its ``rule_type``."""
    rule_cls = WORKFLOW_RULE_CLASSES[WorkflowRuleType(data["rule_type"])]
    return from_payload(rule_cls, data)


def decode_collection(cls: Any, key: str, items: list[dict[str, Any]]) -> list[Any]:
    """Decode a stored list of records, wrapping failures with the store key."""
    try:
        if cls is WorkflowRule:
            return [decode_workflow_rule(item) for item in items]
        return [from_payload(cls, item) for item in items]
    except (KeyError, TypeError, ValueError) as exc:
        raise SnapshotDecodeError(key, f"{type(exc).__name__}: {exc}") from exc


def _hints_for(cls: type) -> dict[str, Any]:
    hints = _HINT_CACHE.get(cls)
    if hints is None:
        hints = get_type_hints(cls)
        _HINT_CACHE[cls] = hints
    return hints


def _decode(tp: Any, value: Any) -> Any:
    if value is None:
        return None

    origin = get_origin(tp)
    if origin is Union or origin is types.UnionType:
        args = [a for a in get_args(tp) if a is not type(None)]
        if len(args) == 1:
            return _decode(args[0], value)
        return value
    if origin is tuple:
        item_type = get_args(tp)[0]
        return tuple(_decode(item_type, item) for item in value)
    if origin is list:
        item_type = get_args(tp)[0]
        return [_decode(item_type, item) for item in value]
    if isinstance(tp, type):
        if issubclass(tp, Enum):
            return tp(value)
        if tp is datetime:
            return datetime.fromisoformat(value)
        if is_dataclass(tp):
            return from_payload(tp, value)
    return value
