from __future__ import annotations

import sys
from pathlib import Path
from typing import List, Optional, Tuple

import pytest

BASE_DIR = Path(__file__).resolve().parent.parent.parent
SRC_DIR = (BASE_DIR / "src").resolve()

if str(BASE_DIR) not in sys.path:
    sys.path.append(str(BASE_DIR))
if str(SRC_DIR) not in sys.path:
    sys.path.append(str(SRC_DIR))

from zscript.lexer_rd import LexError, Lexer, tokenize
from zscript.parser_rd import ParseError, parse_source
from zscript.runner import run as run_program
from zscript.token_types import TT, Tok
from zscript.types import (
    CompileError,
    UndefinedNameError,
    UsageError,
    ZsArray,
    ZsBool,
    ZsInstance,
    ZsMap,
    ZsNull,
    ZsNumber,
    ZsString,
    ZsValue,
    ZScriptArithmeticError,
    ZScriptArityError,
    ZScriptIndexError,
    ZScriptIOError,
    ZScriptKeyError,
    ZScriptRuntimeError,
    ZScriptTypeError,
)
from zscript.utils import render_value

RuntimeExpectation = Optional[Tuple[str, object]]

KEYWORDS = Lexer.KEYWORDS


def plain(value: ZsValue) -> object:
    """Python view of a value for comparisons in expectations."""
    match value:
        case ZsNull():
            return None
        case ZsNumber(value=v) | ZsString(value=v) | ZsBool(value=v):
            return v
        case ZsArray(items=items):
            return [plain(x) for x in items]
        case ZsMap(entries=entries):
            return {k: plain(v) for k, v in entries.items()}
        case _:
            return value


def token_types(source: str, track_indentation: bool = True) -> List[TT]:
    return [tok.type for tok in tokenize(source, track_indentation=track_indentation)]


def verify_result(value: object, kind: str, expected: object) -> None:
    """Assert runtime result shape/value."""
    match kind:
        case "string":
            assert isinstance(
                value, ZsString
            ), f"expected ZsString, got {type(value).__name__}"
            assert (
                value.value == expected
            ), f"expected {expected!r}, got {value.value!r}"
            return
        case "number":
            assert isinstance(
                value, ZsNumber
            ), f"expected number, got {type(value).__name__}"
            assert (
                abs(value.value - float(expected)) <= 1e-9
            ), f"expected {expected}, got {value.value}"
            return
        case "bool":
            assert isinstance(
                value, ZsBool
            ), f"expected bool, got {type(value).__name__}"
            assert value.value is bool(
                expected
            ), f"expected {expected}, got {value.value}"
            return
        case "null":
            assert isinstance(
                value, ZsNull
            ), f"expected ZsNull, got {type(value).__name__}"
            return
        case "array":
            assert isinstance(
                value, ZsArray
            ), f"expected ZsArray, got {type(value).__name__}"
            actual = plain(value)
            assert actual == expected, f"expected {expected!r}, got {actual!r}"
            return
        case "map":
            assert isinstance(
                value, ZsMap
            ), f"expected ZsMap, got {type(value).__name__}"
            actual = plain(value)
            assert actual == expected, f"expected {expected!r}, got {actual!r}"
            return
        case "instance":
            assert isinstance(
                value, ZsInstance
            ), f"expected ZsInstance, got {type(value).__name__}"
            struct_name, fields = expected  # type: ignore[misc]
            assert value.struct.name == struct_name
            actual_fields = {k: plain(v) for k, v in value.fields.items()}
            assert actual_fields == fields, f"expected {fields!r}, got {actual_fields!r}"
            return
        case "render":
            rendered = render_value(value)  # type: ignore[arg-type]
            assert rendered == expected, f"expected {expected!r}, got {rendered!r}"
            return
        case _:
            raise AssertionError(f"unknown expectation kind {kind}")


def run_runtime_case(
    source: str,
    expectation: RuntimeExpectation,
    expected_exc: Optional[type],
) -> None:
    """Execute one runtime scenario with optional expected exception."""
    if expected_exc is not None:
        with pytest.raises(expected_exc):
            run_program(source)
        return

    result = run_program(source)
    if expectation is not None:
        verify_result(result, expectation[0], expectation[1])


__all__ = [
    "CompileError",
    "KEYWORDS",
    "LexError",
    "ParseError",
    "TT",
    "Tok",
    "UndefinedNameError",
    "UsageError",
    "ZScriptArithmeticError",
    "ZScriptArityError",
    "ZScriptIOError",
    "ZScriptIndexError",
    "ZScriptKeyError",
    "ZScriptRuntimeError",
    "ZScriptTypeError",
    "parse_source",
    "plain",
    "run_program",
    "run_runtime_case",
    "token_types",
    "verify_result",
]
