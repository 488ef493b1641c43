from __future__ import annotations

import sys
from typing import Callable

from ..tree import Block, ExprStmt, Node, Program, node_location
from ..types import Frame, ZsNull, ZsValue

EvalFunc = Callable[[Node, Frame], ZsValue]


def trace_stmt(stmt: Node, frame: Frame) -> None:
    """With tracing on, name each statement on stderr just before it runs."""
    if frame.context.trace:
        line, _ = node_location(stmt)
        print(f"[trace] line {line if line is not None else '?'}: {type(stmt).__name__}", file=sys.stderr)


def exec_block(block: Block, frame: Frame, eval_func: EvalFunc) -> None:
    """Run a suite directly in ``frame`` (function bodies already have their own scope)."""
    for stmt in block.body:
        trace_stmt(stmt, frame)
        eval_func(stmt, frame)


def exec_scoped(block: Block, frame: Frame, eval_func: EvalFunc) -> None:
    exec_block(block, Frame(parent=frame), eval_func)


def eval_block(n: Block, frame: Frame, eval_func: EvalFunc) -> ZsValue:
    exec_scoped(n, frame, eval_func)
    return ZsNull()


def eval_program(n: Program, frame: Frame, eval_func: EvalFunc) -> ZsValue:
    """Top-level statements share the global frame; result is the last expression statement's value."""
    result: ZsValue = ZsNull()

    for stmt in n.body:
        trace_stmt(stmt, frame)
        value = eval_func(stmt, frame)
        result = value if isinstance(stmt, ExprStmt) else ZsNull()

    return result
