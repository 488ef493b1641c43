"""
Token Types for ZScript

Shared between lexer, parser and the REPL highlighter.
"""

from typing import Any
from dataclasses import dataclass
from enum import Enum, auto


class TT(Enum):
    """Token Types"""

    # Literals
    NUMBER = auto()
    STRING = auto()
    CHAR = auto()
    IDENT = auto()

    # Keywords
    VAR = auto()
    FUNC = auto()
    RETURN = auto()
    IF = auto()
    ELSE = auto()
    WHILE = auto()
    FOR = auto()
    ITER = auto()
    IN = auto()
    BREAK = auto()
    CONTINUE = auto()
    PASS = auto()
    STRUCT = auto()
    AND = auto()
    OR = auto()

    # Literals
    TRUE = auto()
    FALSE = auto()
    NULL = auto()

    # Operators
    PLUS = auto()
    MINUS = auto()
    STAR = auto()
    SLASH = auto()
    FLOORDIV = auto()  # /_
    MOD = auto()
    PERCENT = auto()  # %%
    POW = auto()
    INCR = auto()  # ++
    DECR = auto()  # --

    # Comparison
    EQ = auto()
    NEQ = auto()
    LT = auto()
    LTE = auto()
    GT = auto()
    GTE = auto()

    # Logical
    NEG = auto()  # !

    # Assignment
    ASSIGN = auto()

    # Punctuation
    LPAR = auto()
    RPAR = auto()
    LSQB = auto()
    RSQB = auto()
    LBRACE = auto()
    RBRACE = auto()
    DOT = auto()
    COMMA = auto()
    COLON = auto()
    SEMI = auto()
    PIPE = auto()  # | (else-if arm)

    # Special
    NEWLINE = auto()
    INDENT = auto()
    DEDENT = auto()
    ERROR = auto()
    EOF = auto()


@dataclass(frozen=True)
class Tok:
    """Token with position info"""

    type: TT
    value: Any
    line: int = 0
    column: int = 0
    offset: int = 0

    def __repr__(self):
        return f"Tok({self.type.name}, {self.value!r}, {self.line}:{self.column})"
