from __future__ import annotations

import math
from typing import Callable, Dict, List

from ..tree import Binary, Logical, Node, Unary
from ..types import (
    Frame,
    ZsArray,
    ZsBool,
    ZsInstance,
    ZsMap,
    ZsNumber,
    ZsString,
    ZsValue,
    ZScriptArithmeticError,
    ZScriptTypeError,
    type_name,
)
from ..utils import is_truthy, value_in_list, values_equal

EvalFunc = Callable[[Node, Frame], ZsValue]

_COMPARE: Dict[str, Callable[[object, object], bool]] = {
    "<": lambda a, b: a < b,
    "<=": lambda a, b: a <= b,
    ">": lambda a, b: a > b,
    ">=": lambda a, b: a >= b,
}

_ELEMENTWISE = {"*", "/", "%"}


def eval_unary(n: Unary, frame: Frame, eval_func: EvalFunc) -> ZsValue:
    val = eval_func(n.operand, frame)

    match n.op, val:
        case "!", _:
            return ZsBool(not is_truthy(val))
        case "-", ZsNumber(value=num):
            return ZsNumber(-num)
        case "-", ZsArray(items=items):
            if not all(isinstance(x, ZsNumber) for x in items):
                raise ZScriptTypeError("Unary '-' requires a number or an array of numbers (got non-number element).")
            return ZsArray([ZsNumber(-x.value) for x in items])  # type: ignore[union-attr]
        case _:
            raise ZScriptTypeError(f"Unary '{n.op}' requires a number (got {type_name(val)}).")


def eval_binary(n: Binary, frame: Frame, eval_func: EvalFunc) -> ZsValue:
    lhs = eval_func(n.left, frame)
    rhs = eval_func(n.right, frame)
    return apply_binary(n.op, lhs, rhs)


def eval_logical(n: Logical, frame: Frame, eval_func: EvalFunc) -> ZsValue:
    """Short-circuit; yields the operand that decided the result."""
    lhs = eval_func(n.left, frame)

    if n.op == "or":
        return lhs if is_truthy(lhs) else eval_func(n.right, frame)

    return eval_func(n.right, frame) if is_truthy(lhs) else lhs


def apply_binary(op: str, lhs: ZsValue, rhs: ZsValue) -> ZsValue:
    match op:
        case "==":
            return ZsBool(values_equal(lhs, rhs))
        case "!=":
            return ZsBool(not values_equal(lhs, rhs))
        case "<" | "<=" | ">" | ">=":
            return _compare(op, lhs, rhs)
        case _:
            return _arith(op, lhs, rhs)


def _compare(op: str, lhs: ZsValue, rhs: ZsValue) -> ZsBool:
    match lhs, rhs:
        case ZsNumber(value=a), ZsNumber(value=b):
            return ZsBool(_COMPARE[op](a, b))
        case ZsString(value=a), ZsString(value=b):
            return ZsBool(_COMPARE[op](a, b))
        case _:
            raise ZScriptTypeError(
                f"Both operands for '{op}' must be numbers or strings (got {type_name(lhs)} and {type_name(rhs)})."
            )


def number_op(op: str, a: float, b: float) -> float:
    match op:
        case "+":
            return a + b
        case "-":
            return a - b
        case "*":
            return a * b
        case "/":
            if b == 0:
                raise ZScriptArithmeticError("Division by zero.")
            return a / b
        case "/_":
            if b == 0:
                raise ZScriptArithmeticError("Division by zero.")
            q = a / b
            # inf and nan pass through unfloored
            return float(math.floor(q)) if math.isfinite(q) else q
        case "%":
            if b == 0:
                raise ZScriptArithmeticError("Modulo by zero.")
            if math.isinf(a):
                return math.nan
            return math.fmod(a, b)
        case "%%":
            return a / 100 * b
        case "**":
            try:
                return math.pow(a, b)
            except (OverflowError, ValueError) as exc:
                raise ZScriptArithmeticError(f"Invalid power {a!r} ** {b!r}: {exc}.") from exc
        case _:
            raise ZScriptTypeError(f"Unknown operator '{op}'.")


def _arith(op: str, lhs: ZsValue, rhs: ZsValue) -> ZsValue:
    match op, lhs, rhs:
        case _, ZsNumber(value=a), ZsNumber(value=b):
            return ZsNumber(number_op(op, a, b))
        case "+", ZsString(value=a), ZsString(value=b):
            return ZsString(a + b)
        case "-", ZsString(value=a), ZsString(value=b):
            # crop the first occurrence
            return ZsString(a.replace(b, "", 1))
        case "+", ZsArray(items=a), ZsArray(items=b):
            return ZsArray([*a, *b])
        case "-", ZsArray(items=a), ZsArray(items=b):
            return ZsArray([x for x in a if not value_in_list(b, x)])
        case "+", ZsMap(entries=a), ZsMap(entries=b):
            return ZsMap({**a, **b})
        case "-", ZsMap(entries=a), ZsMap(entries=b):
            return ZsMap({k: v for k, v in a.items() if k not in b})
        case ("*" | "/" | "%"), ZsArray(items=a), ZsArray(items=b):
            return ZsArray(_elementwise(op, a, b))
        case ("+" | "-"), ZsInstance(), ZsInstance() if lhs.struct is rhs.struct:
            fields = {
                name: _arith(op, val, rhs.fields[name]) if name in rhs.fields else val
                for name, val in lhs.fields.items()
            }
            return ZsInstance(lhs.struct, fields)
        case _:
            raise ZScriptTypeError(
                f"Unsupported operand types for '{op}': {type_name(lhs)} and {type_name(rhs)}."
            )


def _elementwise(op: str, a: List[ZsValue], b: List[ZsValue]) -> List[ZsValue]:
    if len(a) != len(b):
        raise ZScriptTypeError(f"Operator '{op}' requires arrays of the same length (got {len(a)} and {len(b)}).")

    out: List[ZsValue] = []
    for x, y in zip(a, b):
        if not isinstance(x, ZsNumber) or not isinstance(y, ZsNumber):
            raise ZScriptTypeError(
                f"Operator '{op}' requires numbers or arrays of numbers (got {type_name(x)} and {type_name(y)})."
            )
        out.append(ZsNumber(number_op(op, x.value, y.value)))
    return out
