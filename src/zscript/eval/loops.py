from __future__ import annotations

from typing import Callable, List

from ..tree import For, If, Iter, Node, While
from ..types import (
    BreakSignal,
    ContinueSignal,
    Frame,
    ZsArray,
    ZsMap,
    ZsNull,
    ZsString,
    ZsValue,
    ZScriptTypeError,
    type_name,
)
from ..utils import is_truthy
from .blocks import exec_scoped

EvalFunc = Callable[[Node, Frame], ZsValue]


def eval_if_stmt(n: If, frame: Frame, eval_func: EvalFunc) -> ZsValue:
    for cond, body in n.arms:
        if is_truthy(eval_func(cond, frame)):
            exec_scoped(body, frame, eval_func)
            return ZsNull()

    if n.orelse is not None:
        exec_scoped(n.orelse, frame, eval_func)

    return ZsNull()


def eval_while_stmt(n: While, frame: Frame, eval_func: EvalFunc) -> ZsValue:
    while is_truthy(eval_func(n.cond, frame)):
        try:
            exec_scoped(n.body, frame, eval_func)
        except BreakSignal:
            break
        except ContinueSignal:
            continue

    return ZsNull()


def eval_for_stmt(n: For, frame: Frame, eval_func: EvalFunc) -> ZsValue:
    """C-style loop; the initializer lives in a scope wrapping every iteration."""
    loop_frame = Frame(parent=frame)

    if n.init is not None:
        eval_func(n.init, loop_frame)

    while n.cond is None or is_truthy(eval_func(n.cond, loop_frame)):
        try:
            exec_scoped(n.body, loop_frame, eval_func)
        except BreakSignal:
            break
        except ContinueSignal:
            pass

        if n.step is not None:
            eval_func(n.step, loop_frame)

    return ZsNull()


def iter_values(iterable: ZsValue) -> List[ZsValue]:
    """Snapshot of the items an ``iter`` loop visits."""
    match iterable:
        case ZsArray(items=items):
            return list(items)
        case ZsString(value=s):
            return [ZsString(ch) for ch in s]
        case ZsMap(entries=entries):
            return [ZsString(k) for k in entries]
        case _:
            raise ZScriptTypeError(f"Cannot iterate over {type_name(iterable)}.")


def eval_iter_stmt(n: Iter, frame: Frame, eval_func: EvalFunc) -> ZsValue:
    for item in iter_values(eval_func(n.iterable, frame)):
        body_frame = Frame(parent=frame)
        body_frame.define(n.name, item)
        try:
            exec_scoped(n.body, body_frame, eval_func)
        except BreakSignal:
            break
        except ContinueSignal:
            continue

    return ZsNull()
