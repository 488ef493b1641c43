from __future__ import annotations

import math
import os
from datetime import datetime
from typing import List, Mapping, Optional, Set, Tuple

from .types import (
    ZsValue,
    ZsNull,
    ZsNumber,
    ZsString,
    ZsBool,
    ZsArray,
    ZsMap,
    ZsFn,
    ZsNative,
    ZsStruct,
    ZsInstance,
    ZsIterator,
    ZsDateTime,
)

_TRUTHY_ENV = {"1", "true", "yes", "on"}


def env_flag(name: str, environ: Optional[Mapping[str, str]] = None) -> bool:
    env = os.environ if environ is None else environ
    return env.get(name, "").strip().lower() in _TRUTHY_ENV


def debug_py_trace_enabled() -> bool:
    return env_flag("ZSCRIPT_DEBUG_PY_TRACE")


def values_equal(lhs: ZsValue, rhs: ZsValue, _active: Optional[Set[Tuple[int, int]]] = None) -> bool:
    """Structural equality; a pair already under comparison counts as equal."""
    match (lhs, rhs):
        case (ZsNull(), ZsNull()):
            return True
        case (ZsNumber(value=a), ZsNumber(value=b)):
            return a == b  # NaN != NaN
        case (ZsString(value=a), ZsString(value=b)):
            return a == b
        case (ZsBool(value=a), ZsBool(value=b)):
            return a == b
        case (ZsArray(items=a), ZsArray(items=b)):
            if a is b:
                return True
            if len(a) != len(b):
                return False
            active = _enter(_active, a, b)
            if active is None:
                return True
            return all(values_equal(x, y, active) for x, y in zip(a, b))
        case (ZsMap(entries=a), ZsMap(entries=b)):
            if a is b:
                return True
            if a.keys() != b.keys():
                return False
            active = _enter(_active, a, b)
            if active is None:
                return True
            return all(values_equal(a[k], b[k], active) for k in a)
        case (ZsInstance(), ZsInstance()):
            if lhs is rhs:
                return True
            if lhs.struct is not rhs.struct or lhs.fields.keys() != rhs.fields.keys():
                return False
            active = _enter(_active, lhs, rhs)
            if active is None:
                return True
            return all(values_equal(lhs.fields[k], rhs.fields[k], active) for k in lhs.fields)
        case (ZsDateTime(), ZsDateTime()):
            return lhs.kind == rhs.kind and lhs.moment == rhs.moment
        case _:
            # functions, natives, struct types and iterators compare by identity
            return lhs is rhs


def _enter(active: Optional[Set[Tuple[int, int]]], lhs: object, rhs: object) -> Optional[Set[Tuple[int, int]]]:
    # None means the pair is already being compared further up the stack
    key = (id(lhs), id(rhs))
    if active is None:
        return {key}
    if key in active:
        return None
    active.add(key)
    return active


def value_in_list(seq: List[ZsValue], value: ZsValue) -> bool:
    for existing in seq:
        if values_equal(existing, value):
            return True

    return False


def is_truthy(val: ZsValue) -> bool:
    match val:
        case ZsBool(value=b):
            return b
        case ZsNull():
            return False
        case _:
            return True


def render_number(num: float) -> str:
    """Canonical decimal form: integral values print without a fraction."""
    if math.isnan(num):
        return "nan"
    if math.isinf(num):
        return "inf" if num > 0 else "-inf"
    # repr switches to exponent form at 1e16, so every integral value below
    # that prints as digits and still reads back to the same float
    if num.is_integer() and abs(num) < 1e16:
        return str(int(num))
    return repr(num)


def render_value(value: ZsValue, _seen: Optional[Set[int]] = None) -> str:
    """Total conversion of any value to the text the host receives.

    A container that contains itself renders the inner reference as
    ``[...]``, ``{...}`` or ``<(struct Name) ...>``.
    """
    seen = set() if _seen is None else _seen
    match value:
        case ZsNull():
            return "null"
        case ZsBool(value=b):
            return "true" if b else "false"
        case ZsNumber(value=num):
            return render_number(num)
        case ZsString(value=s):
            return s
        case ZsArray(items=items):
            if id(items) in seen:
                return "[...]"
            seen.add(id(items))
            try:
                return "[" + ", ".join(render_value(x, seen) for x in items) + "]"
            finally:
                seen.discard(id(items))
        case ZsMap(entries=entries):
            if id(entries) in seen:
                return "{...}"
            seen.add(id(entries))
            try:
                return "{" + ", ".join(f"{k}: {render_value(v, seen)}" for k, v in entries.items()) + "}"
            finally:
                seen.discard(id(entries))
        case ZsInstance(struct=struct, fields=fields):
            if id(value) in seen:
                return f"<(struct {struct.name}) ...>"
            seen.add(id(value))
            try:
                body = ", ".join(f"{k}={render_value(v, seen)}" for k, v in fields.items())
            finally:
                seen.discard(id(value))
            return f"<(struct {struct.name}) {body}>" if body else f"<(struct {struct.name})>"
        case ZsStruct(name=name):
            return f"<struct {name}>"
        case ZsFn(name=name):
            return f"<fn {name}>"
        case ZsNative():
            return "<native fn>"
        case ZsIterator():
            return "<iterator>"
        case ZsDateTime(kind=kind, moment=moment):
            return f"<{kind} {render_moment(kind, moment)}>"
        case _:
            return str(value)


def as_index(num: float) -> Optional[int]:
    """Integral float to int, None when the number has a fraction."""
    if math.isnan(num) or math.isinf(num) or not num.is_integer():
        return None
    return int(num)


def render_moment(kind: str, moment: datetime) -> str:
    day = f"{moment.year:04d}-{moment.month:02d}-{moment.day:02d}"
    clock = f"{moment.hour:02d}:{moment.minute:02d}:{moment.second:02d}"
    if kind == "Date":
        return day
    if kind == "Time":
        return clock
    return f"{day} {clock}"
