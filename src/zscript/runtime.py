from __future__ import annotations

import importlib
from typing import Callable, List, Optional

from .types import (
    Builtins,
    Frame,
    NativeFn,
    ReturnSignal,
    ZsFn,
    ZsNative,
    ZsNull,
    ZsValue,
    ZScriptArityError,
    ZScriptRuntimeError,
    ZScriptTypeError,
    is_zs_value,
    type_name,
)

_STDLIB_INITIALIZED = False

def init_stdlib() -> None:
    """Load stdlib modules (idempotent) so register_stdlib hooks run."""
    global _STDLIB_INITIALIZED

    if _STDLIB_INITIALIZED:
        return

    importlib.import_module("zscript.stdlib")
    _STDLIB_INITIALIZED = True

def register_stdlib(name: str, *, arity: Optional[int] = None) -> Callable[[NativeFn], NativeFn]:
    def dec(fn: NativeFn) -> NativeFn:
        Builtins.stdlib_functions[name] = ZsNative(name=name, fn=fn, arity=arity)
        return fn

    return dec

def install_stdlib(frame: Frame) -> None:
    """Bind every registered built-in in the given (global) frame."""
    init_stdlib()

    for name, native in Builtins.stdlib_functions.items():
        frame.define(name, native)

def call_value(callee: ZsValue, args: List[ZsValue], frame: Frame) -> ZsValue:
    match callee:
        case ZsFn():
            return call_zsfn(callee, args)
        case ZsNative():
            return call_native(callee, args, frame)
        case _:
            raise ZScriptTypeError(f"Can only call functions (got {type_name(callee)}).")

def call_native(native: ZsNative, args: List[ZsValue], frame: Frame) -> ZsValue:
    if native.arity is not None and len(args) != native.arity:
        raise ZScriptArityError(f"'{native.name}' expects {native.arity} argument(s); got {len(args)}.")

    result = native.fn(frame, args)
    if not is_zs_value(result):
        raise ZScriptTypeError(f"'{native.name}' returned a non-value {type(result).__name__}.")
    return result

def call_zsfn(fn: ZsFn, args: List[ZsValue]) -> ZsValue:
    """
    Call a user function:
    - arity must match len(fn.params)
    - params are bound in a fresh frame chained to the closure frame
    - the value of `return`, or null when the body runs off the end
    """
    from .evaluator import eval_node  # local import to avoid cycle
    from .eval.blocks import exec_block

    if len(args) != len(fn.params):
        raise ZScriptArityError(f"Function '{fn.name}' expects {len(fn.params)} args; got {len(args)}.")

    ctx = fn.frame.context
    if ctx.depth >= ctx.max_call_depth:
        raise ZScriptRuntimeError("Stack overflow.")

    callee_frame = Frame(parent=fn.frame)
    for name, val in zip(fn.params, args):
        callee_frame.define(name, val)

    ctx.depth += 1
    try:
        try:
            exec_block(fn.body, callee_frame, eval_node)
        except RecursionError as exc:
            raise ZScriptRuntimeError("Stack overflow.") from exc
    except ReturnSignal as signal:
        return signal.value
    except ZScriptRuntimeError as exc:
        exc.leave_function(fn.name)
        raise
    finally:
        ctx.depth -= 1

    return ZsNull()
