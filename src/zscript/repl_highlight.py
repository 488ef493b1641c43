"""prompt_toolkit lexer for live ZScript syntax highlighting in the REPL."""

from __future__ import annotations

from typing import Callable

from prompt_toolkit.document import Document
from prompt_toolkit.formatted_text import StyleAndTextTuples
from prompt_toolkit.lexers import Lexer

from .lexer_rd import Lexer as ZsLexer
from .token_types import TT, Tok

# Map highlight groups → prompt_toolkit style strings.
GROUP_STYLE = {
    "keyword": "bold ansicyan",
    "boolean": "ansicyan",
    "constant": "ansicyan",
    "number": "ansimagenta",
    "string": "ansigreen",
    "identifier": "",
    "function": "bold ansiyellow",
    "type": "bold ansiblue",
    "operator": "",
    "punctuation": "",
    "comment": "italic ansigray",
    "error": "bold ansired",
}

_KEYWORDS = {
    TT.VAR, TT.FUNC, TT.RETURN, TT.IF, TT.ELSE, TT.WHILE, TT.FOR, TT.ITER,
    TT.IN, TT.BREAK, TT.CONTINUE, TT.PASS, TT.STRUCT, TT.AND, TT.OR,
}

_OPERATORS = {
    TT.PLUS, TT.MINUS, TT.STAR, TT.SLASH, TT.FLOORDIV, TT.MOD, TT.PERCENT,
    TT.POW, TT.INCR, TT.DECR, TT.EQ, TT.NEQ, TT.LT, TT.LTE, TT.GT, TT.GTE,
    TT.NEG, TT.ASSIGN, TT.PIPE,
}

_PUNCTUATION = {
    TT.LPAR, TT.RPAR, TT.LSQB, TT.RSQB, TT.LBRACE, TT.RBRACE, TT.DOT,
    TT.COMMA, TT.COLON, TT.SEMI,
}

# Token type → highlight group.
_TT_GROUP = {
    **{t: "keyword" for t in _KEYWORDS},
    **{t: "operator" for t in _OPERATORS},
    **{t: "punctuation" for t in _PUNCTUATION},
    TT.TRUE: "boolean",
    TT.FALSE: "boolean",
    TT.NULL: "constant",
    TT.NUMBER: "number",
    TT.STRING: "string",
    TT.CHAR: "string",
    TT.IDENT: "identifier",
    TT.ERROR: "error",
}

_LAYOUT = {TT.NEWLINE, TT.INDENT, TT.DEDENT, TT.EOF}


def _next_sig(tokens: list[Tok], idx: int) -> Tok | None:
    j = idx + 1
    while j < len(tokens):
        if tokens[j].type not in _LAYOUT:
            return tokens[j]
        j += 1
    return None


def _ident_group(tokens: list[Tok], idx: int) -> str:
    """Callee names read as functions, ``Name{`` as a struct type."""
    nxt = _next_sig(tokens, idx)
    if nxt is None:
        return "identifier"

    prev = tokens[idx - 1] if idx > 0 else None
    if prev is not None and prev.type in (TT.FUNC, TT.STRUCT):
        return "function" if prev.type == TT.FUNC else "type"
    if nxt.type == TT.LPAR:
        return "function"
    if nxt.type == TT.LBRACE:
        return "type"

    return "identifier"


def _gap_spans(gap: str) -> StyleAndTextTuples:
    """Text the lexer skipped: whitespace and comments."""
    for marker in ("//", "/*"):
        at = gap.find(marker)
        if at >= 0:
            spans: StyleAndTextTuples = []
            if at > 0:
                spans.append(("", gap[:at]))
            spans.append((GROUP_STYLE["comment"], gap[at:]))
            return spans

    return [("", gap)]


def _highlight_line(text: str) -> StyleAndTextTuples:
    """Tokenize a single line and return styled fragments."""
    if not text:
        return [("", "")]

    tokens = ZsLexer(text, track_indentation=False).tokenize()

    result: StyleAndTextTuples = []
    pos = 0

    for i, tok in enumerate(tokens):
        if tok.type in _LAYOUT:
            continue

        start = max(tok.offset, pos)
        if start > pos:
            result.extend(_gap_spans(text[pos:start]))

        if tok.type == TT.ERROR:
            # error tokens carry a message; mark the rest of the line
            result.append((GROUP_STYLE["error"], text[start:]))
            return result

        end = start + len(str(tok.value))

        group = _TT_GROUP.get(tok.type, "")
        if tok.type == TT.IDENT:
            group = _ident_group(tokens, i)
        result.append((GROUP_STYLE.get(group, ""), text[start:end]))
        pos = end

    # Trailing text (comments, whitespace).
    if pos < len(text):
        result.extend(_gap_spans(text[pos:]))

    return result if result else [("", text)]


class ZScriptLexer(Lexer):
    """prompt_toolkit Lexer that highlights ZScript source using the RD lexer."""

    def lex_document(self, document: Document) -> Callable[[int], StyleAndTextTuples]:
        lines = document.lines

        # Pre-compute highlights for all lines.
        cache: dict[int, StyleAndTextTuples] = {}

        def get_line(lineno: int) -> StyleAndTextTuples:
            if lineno not in cache:
                if lineno < len(lines):
                    cache[lineno] = _highlight_line(lines[lineno])
                else:
                    cache[lineno] = [("", "")]

            return cache[lineno]

        return get_line
