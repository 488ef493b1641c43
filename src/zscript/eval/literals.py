from __future__ import annotations

from typing import Callable, Dict

from ..tree import ArrayLit, Literal, MapLit, Node
from ..types import (
    Frame,
    ZsArray,
    ZsBool,
    ZsMap,
    ZsNull,
    ZsNumber,
    ZsString,
    ZsValue,
    ZScriptTypeError,
    type_name,
)

EvalFunc = Callable[[Node, Frame], ZsValue]


def literal_value(value: object) -> ZsValue:
    match value:
        case None:
            return ZsNull()
        case bool():
            return ZsBool(value)
        case float() | int():
            return ZsNumber(float(value))
        case str():
            return ZsString(value)
        case _:
            raise ZScriptTypeError(f"Unsupported literal {value!r}")


def eval_literal(n: Literal, frame: Frame) -> ZsValue:
    return literal_value(n.value)


def eval_array(n: ArrayLit, frame: Frame, eval_func: EvalFunc) -> ZsValue:
    return ZsArray([eval_func(item, frame) for item in n.items])


def eval_map(n: MapLit, frame: Frame, eval_func: EvalFunc) -> ZsValue:
    entries: Dict[str, ZsValue] = {}

    for key_node, value_node in n.entries:
        key = eval_func(key_node, frame)
        if not isinstance(key, ZsString):
            raise ZScriptTypeError(f"Map key must be a string (got {type_name(key)}).")
        entries[key.value] = eval_func(value_node, frame)

    return ZsMap(entries)
