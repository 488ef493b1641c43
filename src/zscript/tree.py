"""Typed AST nodes produced by parser_rd and walked by the evaluator.

The node set is closed: the evaluator dispatches on these classes with
``match`` and anything else is an internal error.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Tuple, Union
from typing_extensions import TypeAlias


@dataclass(frozen=True)
class Node:
    line: int = field(default=0, kw_only=True, compare=False)
    column: int = field(default=0, kw_only=True, compare=False)


# ---------- Expressions ----------

@dataclass(frozen=True)
class Literal(Node):
    value: Union[float, str, bool, None]

@dataclass(frozen=True)
class Variable(Node):
    name: str

@dataclass(frozen=True)
class Grouping(Node):
    expr: Expr

@dataclass(frozen=True)
class Unary(Node):
    op: str
    operand: Expr

@dataclass(frozen=True)
class Binary(Node):
    left: Expr
    op: str
    right: Expr

@dataclass(frozen=True)
class Logical(Node):
    left: Expr
    op: str  # "and" | "or"
    right: Expr

@dataclass(frozen=True)
class Assign(Node):
    """Assignment to a name, a field or an index; target is already validated."""
    target: Target
    value: Expr

@dataclass(frozen=True)
class Update(Node):
    """++/-- in prefix or postfix position."""
    target: Target
    delta: int
    prefix: bool

@dataclass(frozen=True)
class Call(Node):
    callee: Expr
    args: Tuple[Expr, ...]

@dataclass(frozen=True)
class Index(Node):
    obj: Expr
    index: Expr

@dataclass(frozen=True)
class Slice(Node):
    obj: Expr
    start: Optional[Expr]
    stop: Optional[Expr]

@dataclass(frozen=True)
class GetField(Node):
    obj: Expr
    name: str

@dataclass(frozen=True)
class ArrayLit(Node):
    items: Tuple[Expr, ...]

@dataclass(frozen=True)
class MapLit(Node):
    entries: Tuple[Tuple[Expr, Expr], ...]

@dataclass(frozen=True)
class StructLit(Node):
    struct: Expr
    fields: Tuple[Tuple[str, Expr], ...]
    force: bool = False


# ---------- Statements ----------

@dataclass(frozen=True)
class ExprStmt(Node):
    expr: Expr

@dataclass(frozen=True)
class VarDecl(Node):
    name: str
    init: Optional[Expr]

@dataclass(frozen=True)
class Block(Node):
    body: Tuple[Stmt, ...]

@dataclass(frozen=True)
class FuncDecl(Node):
    name: str
    params: Tuple[str, ...]
    body: Block

@dataclass(frozen=True)
class StructDecl(Node):
    name: str
    fields: Tuple[Tuple[str, Expr], ...]

@dataclass(frozen=True)
class If(Node):
    """``if c: ... | c2: ... else: ...``; arms are tried in order."""
    arms: Tuple[Tuple[Expr, Block], ...]
    orelse: Optional[Block]

@dataclass(frozen=True)
class While(Node):
    cond: Expr
    body: Block

@dataclass(frozen=True)
class For(Node):
    init: Optional[Stmt]
    cond: Optional[Expr]
    step: Optional[Expr]
    body: Block

@dataclass(frozen=True)
class Iter(Node):
    name: str
    iterable: Expr
    body: Block

@dataclass(frozen=True)
class Return(Node):
    value: Optional[Expr]

@dataclass(frozen=True)
class Break(Node):
    pass

@dataclass(frozen=True)
class Continue(Node):
    pass

@dataclass(frozen=True)
class Pass(Node):
    pass

@dataclass(frozen=True)
class Program(Node):
    body: Tuple[Stmt, ...]


Target: TypeAlias = Union[Variable, GetField, Index]

Expr: TypeAlias = Union[
    Literal, Variable, Grouping, Unary, Binary, Logical, Assign, Update,
    Call, Index, Slice, GetField, ArrayLit, MapLit, StructLit,
]

Stmt: TypeAlias = Union[
    ExprStmt, VarDecl, FuncDecl, StructDecl, Block, If, While, For, Iter,
    Return, Break, Continue, Pass,
]


def node_location(node: object) -> Tuple[Optional[int], Optional[int]]:
    line = getattr(node, "line", 0) or None
    column = getattr(node, "column", 0) or None
    return line, column
