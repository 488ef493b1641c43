from __future__ import annotations

from typing import Callable

from ..tree import FuncDecl, Node, Return
from ..types import Frame, ReturnSignal, ZsFn, ZsNull, ZsValue

EvalFunc = Callable[[Node, Frame], ZsValue]


def eval_fn_def(n: FuncDecl, frame: Frame) -> ZsValue:
    """Bind the function in the current scope; it closes over that scope."""
    fn = ZsFn(name=n.name, params=n.params, body=n.body, frame=frame)
    frame.define(n.name, fn)
    return ZsNull()


def eval_return_stmt(n: Return, frame: Frame, eval_func: EvalFunc) -> ZsValue:
    value = eval_func(n.value, frame) if n.value is not None else ZsNull()
    raise ReturnSignal(value)
