from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple
from typing_extensions import TypeAlias, TypeGuard

from .tree import Block

# ---------- Value Model ----------

@dataclass
class ZsNull:
    def __repr__(self) -> str:
        return "null"

@dataclass
class ZsNumber:
    value: float

@dataclass
class ZsString:
    value: str

@dataclass
class ZsBool:
    value: bool

@dataclass
class ZsArray:
    items: List['ZsValue']

@dataclass
class ZsMap:
    """String-keyed, insertion ordered."""
    entries: Dict[str, 'ZsValue']

@dataclass(eq=False)
class ZsFn:
    name: str
    params: Tuple[str, ...]
    body: Block
    frame: 'Frame'  # Closure frame
    def __repr__(self) -> str:
        return f"<fn {self.name}>"

NativeFn = Callable[['Frame', List['ZsValue']], 'ZsValue']

@dataclass(eq=False)
class ZsNative:
    name: str
    fn: NativeFn
    arity: Optional[int] = None  # None means variadic
    def __repr__(self) -> str:
        return "<native fn>"

@dataclass(eq=False)
class ZsStruct:
    name: str
    defaults: Dict[str, 'ZsValue']
    def __repr__(self) -> str:
        return f"<struct {self.name}>"

@dataclass(eq=False)
class ZsInstance:
    struct: ZsStruct
    fields: Dict[str, 'ZsValue']

@dataclass(eq=False)
class ZsIterator:
    """Cursor over a live array; sees pushes made after it was created."""
    items: List['ZsValue']
    index: int = 0

    @property
    def done(self) -> bool:
        return self.index >= len(self.items)

@dataclass(eq=False)
class ZsDateTime:
    """Date, Time or DateTime value. ``kind`` picks the fields that matter; all wrap a naive UTC moment."""
    kind: str
    moment: datetime

ZsValue: TypeAlias = (
    ZsNull
    | ZsNumber
    | ZsString
    | ZsBool
    | ZsArray
    | ZsMap
    | ZsFn
    | ZsNative
    | ZsStruct
    | ZsInstance
    | ZsIterator
    | ZsDateTime
)

_ZS_VALUE_TYPES: Tuple[type, ...] = (
    ZsNull,
    ZsNumber,
    ZsString,
    ZsBool,
    ZsArray,
    ZsMap,
    ZsFn,
    ZsNative,
    ZsStruct,
    ZsInstance,
    ZsIterator,
    ZsDateTime,
)

def is_zs_value(value: object) -> TypeGuard[ZsValue]:
    return isinstance(value, _ZS_VALUE_TYPES)

def type_name(value: ZsValue) -> str:
    """Kind name used in error messages and by type_of()."""
    match value:
        case ZsNull():
            return "null"
        case ZsNumber():
            return "number"
        case ZsString():
            return "string"
        case ZsBool():
            return "bool"
        case ZsArray():
            return "array"
        case ZsMap():
            return "map"
        case ZsFn() | ZsNative():
            return "function"
        case ZsStruct():
            return "struct"
        case ZsInstance(struct=struct):
            return struct.name
        case ZsIterator():
            return "iterator"
        case ZsDateTime(kind=kind):
            return kind
        case _:
            return type(value).__name__

# ---------- Evaluation context ----------

@dataclass
class EvalContext:
    """Per-handle execution settings shared by every frame under one global scope."""
    max_call_depth: int = 64
    depth: int = 0
    # toggled by enable_debug/enable_trace and friends
    debug: bool = False
    trace: bool = False

class Frame:
    def __init__(self, parent: Optional['Frame']=None, context: Optional[EvalContext]=None):
        self.parent = parent
        self.vars: Dict[str, ZsValue] = {}

        if context is not None:
            self.context = context
        elif parent is not None:
            self.context = parent.context
        else:
            self.context = EvalContext()

    def define(self, name: str, val: ZsValue) -> None:
        self.vars[name] = val

    def define_global(self, name: str, val: ZsValue) -> None:
        self.root().vars[name] = val

    def root(self) -> 'Frame':
        cur = self
        while cur.parent is not None:
            cur = cur.parent
        return cur

    def has(self, name: str) -> bool:
        cur: Optional[Frame] = self
        while cur is not None:
            if name in cur.vars:
                return True
            cur = cur.parent
        return False

    def get(self, name: str) -> ZsValue:
        cur: Optional[Frame] = self
        while cur is not None:
            if name in cur.vars:
                return cur.vars[name]
            cur = cur.parent

        raise UndefinedNameError(name)

    def assign(self, name: str, val: ZsValue) -> None:
        cur: Optional[Frame] = self
        while cur is not None:
            if name in cur.vars:
                cur.vars[name] = val
                return
            cur = cur.parent

        raise UndefinedNameError(name)

# ---------- Exceptions ----------

class ZScriptError(Exception):
    """Base of every error the engine reports."""

class CompileError(ZScriptError):
    """Source text could not be turned into a tree; nothing was executed."""

    def __init__(self, message: str, line: Optional[int] = None, column: Optional[int] = None, lexeme: Optional[str] = None):
        self.message = message
        self.line = line
        self.column = column
        self.lexeme = lexeme
        self.errors: List[CompileError] = [self]
        super().__init__(
            f"{message} at line {line}, col {column}" if line is not None else message
        )

    def describe(self) -> str:
        """One diagnostic line: ``[line N] Error at 'x': message``."""
        if self.lexeme is None:
            where = ""
        elif self.lexeme == "":
            where = " at end"
        else:
            where = f" at '{self.lexeme}'"

        return f"[line {self.line}] Error{where}: {self.message}"

class ZScriptRuntimeError(ZScriptError):
    """Raised while executing; carries the failing line and the call trace."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
        self.line: Optional[int] = None
        self.column: Optional[int] = None
        # (function name, line) pairs, innermost first; line of the frame still unwinding
        self.trace: List[Tuple[str, Optional[int]]] = []
        self.current_line: Optional[int] = None

    def __str__(self) -> str:
        if self.line is None:
            return self.message

        if self.column is None:
            return f"{self.message} (line {self.line})"

        return f"{self.message} (line {self.line}, col {self.column})"

    def leave_function(self, name: str) -> None:
        self.trace.append((name, self.current_line))
        self.current_line = None

    def frames(self) -> List[Tuple[Optional[str], Optional[int]]]:
        """Trace including the top-level script frame."""
        return [*self.trace, (None, self.current_line)]

class ZScriptTypeError(ZScriptRuntimeError):
    pass

class ZScriptArityError(ZScriptRuntimeError):
    pass

class ZScriptArithmeticError(ZScriptRuntimeError):
    pass

class UndefinedNameError(ZScriptRuntimeError):
    def __init__(self, name: str):
        super().__init__(f"Undefined variable '{name}'.")
        self.name = name

class ZScriptKeyError(ZScriptRuntimeError):
    def __init__(self, key: str):
        super().__init__(f"Key '{key}' not found.")
        self.key = key

class ZScriptIndexError(ZScriptRuntimeError):
    def __init__(self, message: str = "Index out of bounds."):
        super().__init__(message)

class ZScriptIOError(ZScriptRuntimeError):
    pass

class UsageError(ZScriptError):
    """The engine was driven outside its contract (state machine, ownership)."""

class ReturnSignal(Exception):
    """Internal control-flow exception used to implement `return`."""
    def __init__(self, value: ZsValue):
        self.value = value

class BreakSignal(Exception):
    """Internal control flow for `break`."""

class ContinueSignal(Exception):
    """Internal control flow for `continue`."""

# ---------- Built-in registry ----------

class Builtins:
    stdlib_functions: Dict[str, ZsNative] = {}
