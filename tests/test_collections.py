from __future__ import annotations

from textwrap import dedent

import pytest

from tests.support.harness import (
    ZScriptIndexError,
    ZScriptKeyError,
    ZScriptRuntimeError,
    ZScriptTypeError,
    run_runtime_case,
)

SCENARIOS = [
    # arrays
    pytest.param("[10, 20, 30][1];", ("number", 20), None, id="array-index"),
    pytest.param("[];", ("array", []), None, id="array-empty"),
    pytest.param("[1, [2, 3]][1][0];", ("number", 2), None, id="array-nested-index"),
    pytest.param("[1, 2][2];", None, ZScriptIndexError, id="array-index-past-end"),
    pytest.param("[1, 2][-1];", None, ZScriptIndexError, id="array-negative-index"),
    pytest.param("[1, 2][0.5];", None, ZScriptTypeError, id="array-fractional-index"),
    pytest.param('[1, 2]["0"];', None, ZScriptTypeError, id="array-string-index"),
    pytest.param("var a = [1, 2]\na[0] = 9\na;", ("array", [9, 2]), None, id="array-index-assign"),
    pytest.param("var a = [1]\na[3] = 9;", None, ZScriptIndexError, id="array-assign-past-end"),
    pytest.param("var a = [[0]]\na[0][0] = 5\na;", ("array", [[5]]), None, id="array-nested-assign"),
    pytest.param("var a = [1]\n(a[0] = 7) + 1;", ("number", 8), None, id="assignment-is-expression"),
    pytest.param("[1, 2, 3].length;", ("number", 3), None, id="array-length-property"),
    pytest.param("[1].size;", None, ZScriptRuntimeError, id="array-unknown-property"),
    pytest.param(
        "var a = [1]\nvar b = a\npush(b, 2)\na;",
        ("array", [1, 2]),
        None,
        id="arrays-are-shared",
    ),
    # slices
    pytest.param("[1, 2, 3, 4][1:3];", ("array", [2, 3]), None, id="slice"),
    pytest.param("[1, 2, 3][1:];", ("array", [2, 3]), None, id="slice-open-end"),
    pytest.param("[1, 2, 3][:2];", ("array", [1, 2]), None, id="slice-open-start"),
    pytest.param("[1, 2, 3][-2:];", ("array", [2, 3]), None, id="slice-negative-start"),
    pytest.param("[1, 2][5:];", ("array", []), None, id="slice-clamps"),
    pytest.param("[1, 2, 3][null:1];", ("array", [1]), None, id="slice-null-bound"),
    pytest.param('"hello"[1:3];', ("string", "el"), None, id="slice-string"),
    pytest.param("[1, 2][0.5:];", None, ZScriptTypeError, id="slice-fractional-bound"),
    pytest.param("5[0:1];", None, ZScriptTypeError, id="slice-number"),
    pytest.param(
        "var a = [1, 2]\nvar b = a[:]\npush(b, 3)\na;",
        ("array", [1, 2]),
        None,
        id="slice-copies",
    ),
    # maps
    pytest.param('{"a": 1, "b": 2}["b"];', ("number", 2), None, id="map-get"),
    pytest.param("{};", ("map", {}), None, id="map-empty"),
    pytest.param('var m = {"a": 1}\nm["c"] = 3\nm;', ("map", {"a": 1, "c": 3}), None, id="map-set-new-key"),
    pytest.param('var m = {"a": 1}\nm["a"] = 5\nm["a"];', ("number", 5), None, id="map-overwrite"),
    pytest.param('{"a": 1}["z"];', None, ZScriptKeyError, id="map-missing-key"),
    pytest.param('{"a": 1}[0];', None, ZScriptTypeError, id="map-number-key"),
    pytest.param("{1: 2};", None, ZScriptTypeError, id="map-literal-number-key"),
    pytest.param('var k = "dyn"\n{k: 1};', ("map", {"dyn": 1}), None, id="map-literal-computed-key"),
    pytest.param(
        '{"z": 1, "a": 2, "m": 3};',
        ("render", "{z: 1, a: 2, m: 3}"),
        None,
        id="map-keeps-insertion-order",
    ),
    pytest.param('{"a": 1}.a;', None, ZScriptTypeError, id="map-no-field-access"),
    pytest.param(
        dedent(
            """\
            var m = {
                "name": "zs",
                "tags": ["a", "b"],
            }
            m["tags"][1]
            """
        ),
        ("string", "b"),
        None,
        id="map-multiline-literal",
    ),
    # strings as sequences
    pytest.param('"abc"[2];', ("string", "c"), None, id="string-index"),
    pytest.param('"abc"[3];', None, ZScriptIndexError, id="string-index-past-end"),
    pytest.param('"abc".length;', ("number", 3), None, id="string-length-property"),
    pytest.param('var s = "abc"\ns[0] = "x";', None, ZScriptTypeError, id="strings-are-immutable"),
    pytest.param("5[0];", None, ZScriptTypeError, id="index-number"),
    pytest.param("null[0];", None, ZScriptTypeError, id="index-null"),
    pytest.param('[1, "two", null, true];', ("render", "[1, two, null, true]"), None, id="array-renders"),
]


@pytest.mark.parametrize("source, expectation, expected_exc", SCENARIOS)
def test_collections(source: str, expectation, expected_exc) -> None:
    run_runtime_case(source, expectation, expected_exc)
