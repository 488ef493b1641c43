from __future__ import annotations

from textwrap import dedent

import pytest

from tests.support.harness import (
    UndefinedNameError,
    ZScriptArithmeticError,
    ZScriptTypeError,
    run_runtime_case,
)

SCENARIOS = [
    # arithmetic
    pytest.param("1 + 2 * 3;", ("number", 7), None, id="precedence"),
    pytest.param("(1 + 2) * 3;", ("number", 9), None, id="grouping"),
    pytest.param("7 / 2;", ("number", 3.5), None, id="true-division"),
    pytest.param("7 /_ 2;", ("number", 3), None, id="floor-division"),
    pytest.param("-7 /_ 2;", ("number", -4), None, id="floor-division-negative"),
    pytest.param("7 % 3;", ("number", 1), None, id="modulo"),
    pytest.param("-7 % 3;", ("number", -1), None, id="modulo-keeps-dividend-sign"),
    pytest.param("200 %% 10;", ("number", 20), None, id="percent-of"),
    pytest.param("2 ** 10;", ("number", 1024), None, id="power"),
    pytest.param("2 ** -1;", ("number", 0.5), None, id="power-negative-exponent"),
    pytest.param("2 ** 3 ** 2;", ("number", 512), None, id="power-right-assoc"),
    pytest.param("-2 ** 2;", ("number", -4), None, id="unary-minus-below-power"),
    pytest.param("0.1 + 0.2;", ("number", 0.30000000000000004), None, id="binary-float"),
    pytest.param("1 / 0;", None, ZScriptArithmeticError, id="division-by-zero"),
    pytest.param("1 /_ 0;", None, ZScriptArithmeticError, id="floor-division-by-zero"),
    # non-finite operands follow IEEE 754
    pytest.param('to_number("inf") /_ 2;', ("render", "inf"), None, id="floor-division-inf"),
    pytest.param('-to_number("inf") /_ 3;', ("render", "-inf"), None, id="floor-division-negative-inf"),
    pytest.param('to_number("nan") /_ 2;', ("render", "nan"), None, id="floor-division-nan"),
    pytest.param('7 /_ to_number("inf");', ("number", 0), None, id="floor-division-by-inf"),
    pytest.param('to_number("inf") % 2;', ("render", "nan"), None, id="modulo-inf-dividend"),
    pytest.param('5 % to_number("inf");', ("number", 5), None, id="modulo-inf-divisor"),
    pytest.param('to_number("nan") % 2;', ("render", "nan"), None, id="modulo-nan"),
    pytest.param('to_number("inf") % 0;', None, ZScriptArithmeticError, id="modulo-inf-by-zero"),
    pytest.param("1 % 0;", None, ZScriptArithmeticError, id="modulo-by-zero"),
    pytest.param("10 ** 400;", None, ZScriptArithmeticError, id="power-overflow"),
    pytest.param("true + 1;", None, ZScriptTypeError, id="bool-plus-number"),
    pytest.param('"a" + 1;', None, ZScriptTypeError, id="string-plus-number"),
    pytest.param("null * 2;", None, ZScriptTypeError, id="null-times-number"),
    pytest.param("-true;", None, ZScriptTypeError, id="negate-bool"),
    pytest.param('-"a";', None, ZScriptTypeError, id="negate-string"),
    # string and collection overloads
    pytest.param('"foo" + "bar";', ("string", "foobar"), None, id="string-concat"),
    pytest.param('"hello world" - "o";', ("string", "hell world"), None, id="string-crop-first"),
    pytest.param('"abc" - "z";', ("string", "abc"), None, id="string-crop-missing"),
    pytest.param("[1, 2] + [3];", ("array", [1, 2, 3]), None, id="array-concat"),
    pytest.param("[1, 2, 3, 2] - [2];", ("array", [1, 3]), None, id="array-difference"),
    pytest.param("[2, 4] * [3, 5];", ("array", [6, 20]), None, id="array-elementwise-mul"),
    pytest.param("[8, 9] / [2, 3];", ("array", [4, 3]), None, id="array-elementwise-div"),
    pytest.param("[8, 9] % [3, 4];", ("array", [2, 1]), None, id="array-elementwise-mod"),
    pytest.param("[1, 2] * [1];", None, ZScriptTypeError, id="array-elementwise-length-mismatch"),
    pytest.param('[1, "a"] * [1, 2];', None, ZScriptTypeError, id="array-elementwise-non-number"),
    pytest.param("[1] / [0];", None, ZScriptArithmeticError, id="array-elementwise-div-zero"),
    pytest.param("-[1, -2];", ("array", [-1, 2]), None, id="array-negate"),
    pytest.param('-[1, "a"];', None, ZScriptTypeError, id="array-negate-non-number"),
    pytest.param('{"a": 1} + {"b": 2};', ("map", {"a": 1, "b": 2}), None, id="map-merge"),
    pytest.param('{"a": 1} + {"a": 3};', ("map", {"a": 3}), None, id="map-merge-right-wins"),
    pytest.param('{"a": 1, "b": 2} - {"a": 0};', ("map", {"b": 2}), None, id="map-remove-keys"),
    pytest.param("[1] + {};", None, ZScriptTypeError, id="array-plus-map"),
    # comparison and equality
    pytest.param("1 < 2;", ("bool", True), None, id="less-than"),
    pytest.param("2 <= 2;", ("bool", True), None, id="less-equal"),
    pytest.param("1 > 2;", ("bool", False), None, id="greater-than"),
    pytest.param('"apple" < "banana";', ("bool", True), None, id="string-ordering"),
    pytest.param('1 < "a";', None, ZScriptTypeError, id="mixed-comparison"),
    pytest.param("null < 1;", None, ZScriptTypeError, id="null-comparison"),
    pytest.param("1 == 1.0;", ("bool", True), None, id="numeric-equality"),
    pytest.param('1 == "1";', ("bool", False), None, id="no-coercion"),
    pytest.param("null == null;", ("bool", True), None, id="null-equality"),
    pytest.param("null == false;", ("bool", False), None, id="null-not-false"),
    pytest.param("[1, [2]] == [1, [2]];", ("bool", True), None, id="deep-array-equality"),
    pytest.param('{"a": 1} != {"a": 2};', ("bool", True), None, id="map-inequality"),
    # logic and truthiness
    pytest.param("!null;", ("bool", True), None, id="not-null"),
    pytest.param("!0;", ("bool", False), None, id="zero-truthy"),
    pytest.param('!"";', ("bool", False), None, id="empty-string-truthy"),
    pytest.param("null or 5;", ("number", 5), None, id="or-yields-right"),
    pytest.param("0 or 3;", ("number", 0), None, id="or-yields-truthy-left"),
    pytest.param("1 and 2;", ("number", 2), None, id="and-yields-right"),
    pytest.param("false and undefined_name;", ("bool", False), None, id="and-short-circuits"),
    pytest.param("true or undefined_name;", ("bool", True), None, id="or-short-circuits"),
    pytest.param("false or undefined_name;", None, UndefinedNameError, id="or-evaluates-right"),
    # increment / decrement
    pytest.param("var i = 1\ni++;", ("number", 1), None, id="postfix-yields-old"),
    pytest.param("var i = 1\n++i;", ("number", 2), None, id="prefix-yields-new"),
    pytest.param("var i = 1\ni++\ni--\ni--\ni;", ("number", 0), None, id="incr-decr-updates"),
    pytest.param("var a = [1, 2]\na[1]++\na;", ("array", [1, 3]), None, id="incr-index"),
    pytest.param('var s = "a"\ns++;', None, ZScriptTypeError, id="incr-string"),
    pytest.param("missing++;", None, UndefinedNameError, id="incr-undefined"),
    pytest.param(
        dedent(
            """\
            var calls = 0
            func idx():
                calls++
                return 0
            var a = [5]
            a[idx()]++
            calls
            """
        ),
        ("number", 1),
        None,
        id="incr-target-evaluated-once",
    ),
]


@pytest.mark.parametrize("source, expectation, expected_exc", SCENARIOS)
def test_operators(source: str, expectation, expected_exc) -> None:
    run_runtime_case(source, expectation, expected_exc)
