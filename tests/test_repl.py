from __future__ import annotations

import pytest

from prompt_toolkit.document import Document

from zscript.repl import _compute_indent, _handle_slash, _is_block_header, _normalize, _fresh_handle
from zscript.repl_highlight import GROUP_STYLE, ZScriptLexer, _highlight_line
from zscript.utils import debug_py_trace_enabled


@pytest.mark.parametrize(
    "line, expected",
    [
        pytest.param("if x > 1:", True, id="if-header"),
        pytest.param("func f(a, b):", True, id="func-header"),
        pytest.param("for (var i = 0; i < 3; i++):", True, id="for-header"),
        pytest.param("struct P:", True, id="struct-header"),
        pytest.param("if x: x = 1", False, id="inline-body"),
        pytest.param("var s = a[1:", False, id="colon-inside-brackets"),
        pytest.param('var m = {"a":', False, id="colon-inside-map"),
        pytest.param('"unterminated:', False, id="lex-error"),
        pytest.param("", False, id="empty"),
    ],
)
def test_is_block_header(line: str, expected: bool) -> None:
    assert _is_block_header(line) is expected


def test_compute_indent() -> None:
    assert _compute_indent("if x:") == "    "
    assert _compute_indent("if x:\n    while y:") == "        "
    assert _compute_indent("if x:\n    y = 1") == "    "
    assert _compute_indent("if x:\n") == ""


def test_normalize_strips_invisible_characters() -> None:
    assert _normalize("\ufeffvar\u00a0x\u200b = 1\r") == "varx = 1"


def _styles(text: str) -> dict:
    return {frag: style for style, frag in _highlight_line(text)}


def test_highlight_covers_whole_line() -> None:
    text = 'func add(a, b): return a + "x" // sum'

    assert "".join(frag for _, frag in _highlight_line(text)) == text


def test_highlight_groups() -> None:
    styles = _styles('func add(a): return P{x = 1.5, s = "hi"} // note')

    assert styles["func"] == GROUP_STYLE["keyword"]
    assert styles["add"] == GROUP_STYLE["function"]
    assert styles["P"] == GROUP_STYLE["type"]
    assert styles["1.5"] == GROUP_STYLE["number"]
    assert styles['"hi"'] == GROUP_STYLE["string"]
    assert styles["// note"] == GROUP_STYLE["comment"]


def test_highlight_marks_error_to_end_of_line() -> None:
    fragments = _highlight_line('var s = "open')

    assert fragments[-1] == (GROUP_STYLE["error"], '"open')


def test_lexer_returns_line_callback() -> None:
    get_line = ZScriptLexer().lex_document(Document("var a = 1\nnull"))

    assert get_line(1) == [(GROUP_STYLE["constant"], "null")]
    assert get_line(5) == [("", "")]


def test_slash_py_traceback_toggle(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    monkeypatch.delenv("ZSCRIPT_DEBUG_PY_TRACE", raising=False)

    assert _handle_slash("/py-traceback on", [])
    assert debug_py_trace_enabled()
    assert _handle_slash("/py-traceback", [])
    assert not debug_py_trace_enabled()
    assert capsys.readouterr().out == "Python traceback: on\nPython traceback: off\n"


def test_slash_reset_swaps_handle(capsys: pytest.CaptureFixture[str]) -> None:
    old = _fresh_handle(["zscript"])
    old.interpret("var x = 1")
    box = [old]

    assert _handle_slash("/reset", box)

    assert not old.initialized
    assert box[0] is not old
    assert not box[0].globals.has("x")
    assert capsys.readouterr().out == "Environment reset.\n"
    box[0].free()


def test_slash_unknown_and_plain_input(capsys: pytest.CaptureFixture[str]) -> None:
    assert _handle_slash("/nope", [])
    assert "Unknown command: /nope" in capsys.readouterr().err
    assert not _handle_slash("1 + 1", [])
