from __future__ import annotations

import pytest

from tests.support.harness import (
    ZScriptArityError,
    ZScriptIndexError,
    ZScriptTypeError,
    run_runtime_case,
)

SCENARIOS = [
    pytest.param('"a\\tb\\n";', ("string", "a\tb\n"), None, id="escapes-decoded"),
    pytest.param('"say \\"hi\\"";', ("string", 'say "hi"'), None, id="escaped-quote"),
    pytest.param("'x' + 'y';", ("string", "xy"), None, id="char-literals-are-strings"),
    pytest.param('"héllo wörld".length;', ("number", 11), None, id="unicode-length"),
    pytest.param('"日本語"[1];', ("string", "本"), None, id="unicode-index"),
    pytest.param('str_length("abcd");', ("number", 4), None, id="str-length"),
    pytest.param("str_length(5);", None, ZScriptTypeError, id="str-length-non-string"),
    pytest.param('char_at("abc", 1);', ("string", "b"), None, id="char-at"),
    pytest.param('char_at("abc", 3);', None, ZScriptIndexError, id="char-at-out-of-range"),
    pytest.param('char_at("abc", 0.5);', None, ZScriptTypeError, id="char-at-fractional"),
    pytest.param('substring("hello", 1, 4);', ("string", "ell"), None, id="substring"),
    pytest.param('substring("hello", 3, 2);', None, ZScriptIndexError, id="substring-reversed"),
    pytest.param('substring("hello", 0, 9);', None, ZScriptIndexError, id="substring-past-end"),
    pytest.param('str_index_of("banana", "an");', ("number", 1), None, id="str-index-of"),
    pytest.param('str_index_of("banana", "x");', ("number", -1), None, id="str-index-of-missing"),
    pytest.param('str_last_index_of("banana", "an");', ("number", 3), None, id="str-last-index-of"),
    pytest.param('str_contains("banana", "nan");', ("bool", True), None, id="str-contains"),
    pytest.param('starts_with("zscript", "zs");', ("bool", True), None, id="starts-with"),
    pytest.param('ends_with("zscript", "zs");', ("bool", False), None, id="ends-with"),
    pytest.param('to_upper("MiXed");', ("string", "MIXED"), None, id="to-upper"),
    pytest.param('to_lower("MiXed");', ("string", "mixed"), None, id="to-lower"),
    pytest.param('trim("  pad \\t");', ("string", "pad"), None, id="trim"),
    pytest.param('split("a,b,,c", ",");', ("array", ["a", "b", "", "c"]), None, id="split"),
    pytest.param('split("abc", "");', ("array", ["a", "b", "c"]), None, id="split-empty-separator"),
    pytest.param('split("abc", 1);', None, ZScriptTypeError, id="split-non-string-separator"),
    pytest.param('replace("a-b-c", "-", "+");', ("string", "a+b+c"), None, id="replace-all"),
    pytest.param('to_chars("hey");', ("array", ["h", "e", "y"]), None, id="to-chars"),
    pytest.param('to_upper("a", "b");', None, ZScriptArityError, id="native-arity"),
    pytest.param('sprintf("%v + %d = %s", 1, 2, 3);', ("string", "1 + 2 = 3"), None, id="sprintf-verbs"),
    pytest.param('sprintf("%f|%g", 1.5, 2);', ("string", "1.5|2"), None, id="sprintf-float-verbs"),
    pytest.param('sprintf("100%%");', ("string", "100%"), None, id="sprintf-percent-escape"),
    pytest.param('sprintf("%v", [1, "a"]);', ("string", "[1, a]"), None, id="sprintf-array"),
    pytest.param('sprintf("%v and %v", 1);', None, ZScriptArityError, id="sprintf-missing-arg"),
    pytest.param("sprintf(5);", None, ZScriptTypeError, id="sprintf-non-string-format"),
    pytest.param("sprintf();", None, ZScriptArityError, id="sprintf-no-format"),
    pytest.param('errorf("bad value: %v", null);', ("string", "bad value: null"), None, id="errorf"),
    pytest.param("to_str(3.0) + to_str(true);", ("string", "3true"), None, id="to-str"),
    pytest.param('to_number(" 42 ");', ("number", 42), None, id="to-number"),
    pytest.param('to_number("1e3");', ("number", 1000), None, id="to-number-exponent"),
    pytest.param("to_number(7);", ("number", 7), None, id="to-number-identity"),
    pytest.param('to_number("abc");', None, ZScriptTypeError, id="to-number-invalid"),
]


@pytest.mark.parametrize("source, expectation, expected_exc", SCENARIOS)
def test_strings(source: str, expectation, expected_exc) -> None:
    run_runtime_case(source, expectation, expected_exc)
