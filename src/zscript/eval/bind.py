from __future__ import annotations

from typing import Callable

from ..tree import Assign, GetField, Index, Node, Target, Update, VarDecl, Variable
from ..types import Frame, ZsNull, ZsNumber, ZsValue, ZScriptTypeError, type_name
from .chains import get_field_value, index_value, set_field_value, set_index_value

EvalFunc = Callable[[Node, Frame], ZsValue]


def eval_var_decl(n: VarDecl, frame: Frame, eval_func: EvalFunc) -> ZsValue:
    value = eval_func(n.init, frame) if n.init is not None else ZsNull()
    frame.define(n.name, value)
    return ZsNull()


def eval_assign(n: Assign, frame: Frame, eval_func: EvalFunc) -> ZsValue:
    match n.target:
        case Variable(name=name):
            value = eval_func(n.value, frame)
            frame.assign(name, value)
            return value
        case GetField(obj=obj_node, name=name):
            obj = eval_func(obj_node, frame)
            return set_field_value(obj, name, eval_func(n.value, frame))
        case Index(obj=obj_node, index=key_node):
            obj = eval_func(obj_node, frame)
            key = eval_func(key_node, frame)
            return set_index_value(obj, key, eval_func(n.value, frame))
        case _:
            raise ZScriptTypeError(f"Invalid assignment target {type(n.target).__name__}")


def _read_write(target: Target, frame: Frame, eval_func: EvalFunc):
    """Resolve an assignable once; returns (current value, setter)."""
    match target:
        case Variable(name=name):
            return frame.get(name), lambda v: frame.assign(name, v)
        case GetField(obj=obj_node, name=name):
            obj = eval_func(obj_node, frame)
            return get_field_value(obj, name), lambda v: set_field_value(obj, name, v)
        case Index(obj=obj_node, index=key_node):
            obj = eval_func(obj_node, frame)
            key = eval_func(key_node, frame)
            return index_value(obj, key), lambda v: set_index_value(obj, key, v)
        case _:
            raise ZScriptTypeError(f"Invalid assignment target {type(target).__name__}")


def eval_update(n: Update, frame: Frame, eval_func: EvalFunc) -> ZsValue:
    """``x++`` yields the old value, ``++x`` the new one."""
    old, setter = _read_write(n.target, frame, eval_func)
    if not isinstance(old, ZsNumber):
        op = "++" if n.delta > 0 else "--"
        raise ZScriptTypeError(f"Operand of '{op}' must be a number (got {type_name(old)}).")

    new = ZsNumber(old.value + n.delta)
    setter(new)
    return new if n.prefix else old
