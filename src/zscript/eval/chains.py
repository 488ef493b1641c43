from __future__ import annotations

from typing import Callable, Optional

from ..runtime import call_value
from ..tree import Call, GetField, Index, Node, Slice
from ..types import (
    Frame,
    ZsArray,
    ZsInstance,
    ZsMap,
    ZsNull,
    ZsNumber,
    ZsString,
    ZsValue,
    ZScriptIndexError,
    ZScriptKeyError,
    ZScriptRuntimeError,
    ZScriptTypeError,
    type_name,
)
from ..utils import as_index

EvalFunc = Callable[[Node, Frame], ZsValue]


def eval_call(n: Call, frame: Frame, eval_func: EvalFunc) -> ZsValue:
    callee = eval_func(n.callee, frame)
    args = [eval_func(arg, frame) for arg in n.args]
    return call_value(callee, args, frame)


# ---------------- Indexing ----------------

def _array_index(items_len: int, key: ZsValue, what: str) -> int:
    if not isinstance(key, ZsNumber):
        raise ZScriptTypeError(f"{what} index must be a number (got {type_name(key)}).")

    idx = as_index(key.value)
    if idx is None:
        raise ZScriptTypeError(f"{what} index must be an integer (got {key.value!r}).")
    if idx < 0 or idx >= items_len:
        raise ZScriptIndexError(f"{what} index {idx} out of bounds (length {items_len}).")
    return idx


def _map_key(key: ZsValue) -> str:
    if not isinstance(key, ZsString):
        raise ZScriptTypeError(f"Map key must be a string (got {type_name(key)}).")
    return key.value


def index_value(obj: ZsValue, key: ZsValue) -> ZsValue:
    match obj:
        case ZsArray(items=items):
            return items[_array_index(len(items), key, "Array")]
        case ZsString(value=s):
            return ZsString(s[_array_index(len(s), key, "String")])
        case ZsMap(entries=entries):
            name = _map_key(key)
            if name not in entries:
                raise ZScriptKeyError(name)
            return entries[name]
        case ZsInstance():
            return get_field_value(obj, _map_key(key))
        case _:
            raise ZScriptTypeError(f"Cannot index {type_name(obj)}.")


def set_index_value(obj: ZsValue, key: ZsValue, value: ZsValue) -> ZsValue:
    match obj:
        case ZsArray(items=items):
            items[_array_index(len(items), key, "Array")] = value
        case ZsMap(entries=entries):
            entries[_map_key(key)] = value
        case ZsInstance():
            set_field_value(obj, _map_key(key), value)
        case ZsString():
            raise ZScriptTypeError("Strings are immutable; cannot assign to an index.")
        case _:
            raise ZScriptTypeError(f"Cannot index {type_name(obj)}.")
    return value


def eval_index(n: Index, frame: Frame, eval_func: EvalFunc) -> ZsValue:
    obj = eval_func(n.obj, frame)
    key = eval_func(n.index, frame)
    return index_value(obj, key)


def _slice_bound(node: Optional[Node], frame: Frame, eval_func: EvalFunc, what: str) -> Optional[int]:
    if node is None:
        return None

    val = eval_func(node, frame)
    if isinstance(val, ZsNull):
        return None
    if not isinstance(val, ZsNumber) or as_index(val.value) is None:
        raise ZScriptTypeError(f"Slice {what} must be an integer (got {type_name(val)}).")
    return as_index(val.value)


def eval_slice(n: Slice, frame: Frame, eval_func: EvalFunc) -> ZsValue:
    """``a[i:j]`` with Python-style clamping; negative bounds count from the end."""
    obj = eval_func(n.obj, frame)
    start = _slice_bound(n.start, frame, eval_func, "start")
    stop = _slice_bound(n.stop, frame, eval_func, "end")

    match obj:
        case ZsArray(items=items):
            return ZsArray(items[start:stop])
        case ZsString(value=s):
            return ZsString(s[start:stop])
        case _:
            raise ZScriptTypeError(f"Expected array or string for slice operation (got {type_name(obj)}).")


# ---------------- Fields ----------------

def get_field_value(obj: ZsValue, name: str) -> ZsValue:
    match obj:
        case ZsInstance(fields=fields):
            if name not in fields:
                raise ZScriptRuntimeError(f"Property '{name}' does not exist on this instance.")
            return fields[name]
        case ZsArray(items=items) if name == "length":
            return ZsNumber(float(len(items)))
        case ZsString(value=s) if name == "length":
            return ZsNumber(float(len(s)))
        case ZsArray():
            raise ZScriptRuntimeError(f"Cannot access property '{name}' on array; only 'length' is supported.")
        case _:
            raise ZScriptTypeError(
                f"Cannot access property on {type_name(obj)}; only struct instances and arrays have properties."
            )


def set_field_value(obj: ZsValue, name: str, value: ZsValue) -> ZsValue:
    if not isinstance(obj, ZsInstance):
        raise ZScriptTypeError(f"Cannot set property on {type_name(obj)}; only struct instances have fields.")
    if name not in obj.fields:
        raise ZScriptRuntimeError(f"Property '{name}' does not exist on this instance.")

    obj.fields[name] = value
    return value


def eval_get_field(n: GetField, frame: Frame, eval_func: EvalFunc) -> ZsValue:
    return get_field_value(eval_func(n.obj, frame), n.name)
