from __future__ import annotations

from typing import Callable, Dict

from ..tree import Node, StructDecl, StructLit
from ..types import (
    Frame,
    ZsArray,
    ZsInstance,
    ZsMap,
    ZsNull,
    ZsStruct,
    ZsValue,
    ZScriptRuntimeError,
    ZScriptTypeError,
    type_name,
)

EvalFunc = Callable[[Node, Frame], ZsValue]


def copy_default(value: ZsValue) -> ZsValue:
    """Containers in field defaults are copied so instances never share them."""
    match value:
        case ZsArray(items=items):
            return ZsArray(list(items))
        case ZsMap(entries=entries):
            return ZsMap(dict(entries))
        case _:
            return value


def eval_struct_def(n: StructDecl, frame: Frame, eval_func: EvalFunc) -> ZsValue:
    defaults: Dict[str, ZsValue] = {}

    for name, default in n.fields:
        defaults[name] = eval_func(default, frame)

    frame.define(n.name, ZsStruct(name=n.name, defaults=defaults))
    return ZsNull()


def eval_struct_literal(n: StructLit, frame: Frame, eval_func: EvalFunc) -> ZsValue:
    """
    ``Name{}`` / ``Name{f = v}`` start from the declared defaults and may only
    set declared fields; the force form ``Name!{...}`` may add new ones.
    """
    struct = eval_func(n.struct, frame)
    if not isinstance(struct, ZsStruct):
        raise ZScriptTypeError(f"Only structs can be instantiated (got {type_name(struct)}).")

    fields = {name: copy_default(val) for name, val in struct.defaults.items()}

    for name, value_node in n.fields:
        if name not in fields and not n.force:
            raise ZScriptRuntimeError(
                f"Struct '{struct.name}' has no field '{name}'; use {struct.name}!{{...}} to add fields."
            )
        fields[name] = eval_func(value_node, frame)

    return ZsInstance(struct, fields)
