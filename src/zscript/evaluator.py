from __future__ import annotations

from typing import Callable, Dict, Optional

from .runtime import install_stdlib
from .tree import (
    ArrayLit, Assign, Binary, Block, Break, Call, Continue, ExprStmt, For,
    FuncDecl, GetField, Grouping, If, Index, Iter, Literal, Logical, MapLit,
    Node, Pass, Program, Return, Slice, StructDecl, StructLit, Unary, Update,
    VarDecl, Variable, While, node_location,
)
from .types import (
    BreakSignal,
    ContinueSignal,
    Frame,
    ZsNull,
    ZsValue,
    ZScriptRuntimeError,
)

from .eval.bind import eval_assign, eval_update, eval_var_decl
from .eval.blocks import eval_block, eval_program
from .eval.chains import eval_call, eval_get_field, eval_index, eval_slice
from .eval.expr import eval_binary, eval_logical, eval_unary
from .eval.fn import eval_fn_def, eval_return_stmt
from .eval.literals import eval_array, eval_literal, eval_map
from .eval.loops import eval_for_stmt, eval_if_stmt, eval_iter_stmt, eval_while_stmt
from .eval.objects import eval_struct_def, eval_struct_literal

EvalFunc = Callable[[Node, Frame], ZsValue]


def _maybe_attach_location(exc: ZScriptRuntimeError, node: Node) -> None:
    line, column = node_location(node)
    if line is None:
        return

    if exc.line is None:
        exc.line = line
        exc.column = column

    if exc.current_line is None:
        exc.current_line = line

# ---------------- Public API ----------------

def eval_expr(ast: Node, frame: Optional[Frame]=None) -> ZsValue:
    """Evaluate a program or a single node; a fresh global frame gets the stdlib."""
    if frame is None:
        frame = Frame()
        install_stdlib(frame)

    return eval_node(ast, frame)

# ---------------- Core evaluator ----------------

def eval_node(n: Node, frame: Frame) -> ZsValue:
    try:
        return _eval_node_inner(n, frame)
    except ZScriptRuntimeError as e:
        _maybe_attach_location(e, n)
        raise


def _eval_node_inner(n: Node, frame: Frame) -> ZsValue:
    handler = _NODE_DISPATCH.get(type(n))
    if handler is not None:
        return handler(n, frame)

    match n:
        case Variable(name=name):
            return frame.get(name)
        case Grouping(expr=inner):
            return eval_node(inner, frame)
        case ExprStmt(expr=expr):
            return eval_node(expr, frame)
        case Break():
            raise BreakSignal()
        case Continue():
            raise ContinueSignal()
        case Pass():
            return ZsNull()
        case _:
            raise ZScriptRuntimeError(f"Unknown node: {type(n).__name__}")

# ---------------- Dispatch ----------------

_NODE_DISPATCH: Dict[type, EvalFunc] = {
    Program: lambda n, frame: eval_program(n, frame, eval_node),
    Block: lambda n, frame: eval_block(n, frame, eval_node),
    Literal: eval_literal,
    ArrayLit: lambda n, frame: eval_array(n, frame, eval_node),
    MapLit: lambda n, frame: eval_map(n, frame, eval_node),
    StructLit: lambda n, frame: eval_struct_literal(n, frame, eval_node),
    Unary: lambda n, frame: eval_unary(n, frame, eval_node),
    Binary: lambda n, frame: eval_binary(n, frame, eval_node),
    Logical: lambda n, frame: eval_logical(n, frame, eval_node),
    Assign: lambda n, frame: eval_assign(n, frame, eval_node),
    Update: lambda n, frame: eval_update(n, frame, eval_node),
    Call: lambda n, frame: eval_call(n, frame, eval_node),
    Index: lambda n, frame: eval_index(n, frame, eval_node),
    Slice: lambda n, frame: eval_slice(n, frame, eval_node),
    GetField: lambda n, frame: eval_get_field(n, frame, eval_node),
    VarDecl: lambda n, frame: eval_var_decl(n, frame, eval_node),
    FuncDecl: lambda n, frame: eval_fn_def(n, frame),
    StructDecl: lambda n, frame: eval_struct_def(n, frame, eval_node),
    If: lambda n, frame: eval_if_stmt(n, frame, eval_node),
    While: lambda n, frame: eval_while_stmt(n, frame, eval_node),
    For: lambda n, frame: eval_for_stmt(n, frame, eval_node),
    Iter: lambda n, frame: eval_iter_stmt(n, frame, eval_node),
    Return: lambda n, frame: eval_return_stmt(n, frame, eval_node),
}
