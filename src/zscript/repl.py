"""Interactive REPL for ZScript, powered by prompt_toolkit."""

from __future__ import annotations

import os
import re
import sys
import traceback
from typing import Optional, Sequence

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.history import InMemoryHistory
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.shortcuts import clear

from .handle import RuntimeHandle, format_runtime_error
from .lexer_rd import tokenize
from .repl_highlight import ZScriptLexer
from .runner import repl_eval
from .token_types import TT
from .types import CompileError, ZsNull, ZScriptRuntimeError
from .utils import debug_py_trace_enabled, render_value

# Zero-width and invisible characters to strip from input.
_INVISIBLE_RE = re.compile("[\u200b\u200c\u200d\ufeff\u00a0\r]")

# Slash commands: name => (description, argument_hint).
_SLASH_CMDS = {
    "/clear": ("Clear the terminal screen", ""),
    "/py-traceback": ("Toggle Python traceback on errors", "[on|off]"),
    "/reset": ("Reset the REPL environment", ""),
}

_DEPTH_OPEN = {TT.LPAR, TT.LSQB, TT.LBRACE}
_DEPTH_CLOSE = {TT.RPAR, TT.RSQB, TT.RBRACE}
_LAYOUT = {TT.NEWLINE, TT.INDENT, TT.DEDENT, TT.EOF}


def _is_block_header(line: str) -> bool:
    """Return True if *line* ends a block header (colon at depth 0)."""
    tokens = tokenize(line, track_indentation=False)
    if any(tok.type == TT.ERROR for tok in tokens):
        return False

    depth = 0
    last_sig = None

    for tok in tokens:
        t = tok.type
        if t in _LAYOUT or t == TT.SEMI:
            continue
        if t in _DEPTH_OPEN:
            depth += 1
        elif t in _DEPTH_CLOSE:
            depth = max(depth - 1, 0)
        if depth == 0:
            last_sig = t

    return depth == 0 and last_sig == TT.COLON


class _SlashCompleter(Completer):
    """Autocomplete slash commands on the primary prompt."""

    def get_completions(self, document, complete_event):
        text = document.text_before_cursor
        if not text.startswith("/"):
            return

        for cmd, (desc, hint) in _SLASH_CMDS.items():
            if cmd.startswith(text):
                yield Completion(
                    cmd,
                    start_position=-len(text),
                    display_meta=desc,
                )


def _fresh_handle(argv: Sequence[str]) -> RuntimeHandle:
    handle = RuntimeHandle()
    handle.init(argv)
    return handle


def _handle_slash(line: str, handle_box: list[RuntimeHandle]) -> bool:
    """Handle slash commands. Returns True if the line was a command."""
    stripped = line.strip()
    if not stripped.startswith("/"):
        return False

    parts = stripped.split(None, 1)
    cmd = parts[0]
    arg = parts[1] if len(parts) > 1 else ""

    if cmd == "/clear":
        clear()
        return True

    if cmd == "/py-traceback":
        if arg.lower() in ("on", "1", "true", "yes"):
            os.environ["ZSCRIPT_DEBUG_PY_TRACE"] = "1"
        elif arg.lower() in ("off", "0", "false", "no"):
            os.environ.pop("ZSCRIPT_DEBUG_PY_TRACE", None)
        elif arg == "":
            # Toggle.
            if debug_py_trace_enabled():
                os.environ.pop("ZSCRIPT_DEBUG_PY_TRACE", None)
            else:
                os.environ["ZSCRIPT_DEBUG_PY_TRACE"] = "1"
        else:
            print("Usage: /py-traceback [on|off]", file=sys.stderr)
            return True

        state = "on" if debug_py_trace_enabled() else "off"
        print(f"Python traceback: {state}")
        return True

    if cmd == "/reset":
        old = handle_box[0]
        argv = old.config.argv if old.config is not None else ()
        old.free()
        handle_box[0] = _fresh_handle(argv)
        print("Environment reset.")
        return True

    print(f"Unknown command: {cmd}", file=sys.stderr)
    return True


def _normalize(text: str) -> str:
    """Strip invisible characters from input."""
    return _INVISIBLE_RE.sub("", text)


def _compute_indent(text: str) -> str:
    """Compute the auto-indent prefix for the next continuation line."""
    lines = text.split("\n")
    last = lines[-1]

    if _is_block_header(last):
        existing = len(last) - len(last.lstrip())
        return " " * (existing + 4)

    # Preserve indent of the last line.
    if last.strip():
        return " " * (len(last) - len(last.lstrip()))

    return ""


def _report(exc: Exception) -> None:
    if isinstance(exc, CompileError):
        for err in exc.errors:
            print(err.describe(), file=sys.stderr)
        return

    assert isinstance(exc, ZScriptRuntimeError)
    for line in format_runtime_error(exc):
        print(line, file=sys.stderr)

    if debug_py_trace_enabled() and exc.__traceback__ is not None:
        print("\nPython traceback:", file=sys.stderr)
        print("".join(traceback.format_tb(exc.__traceback__)), file=sys.stderr, end="")


def repl(argv: Optional[Sequence[str]] = None) -> None:
    """Interactive read-eval-print loop with prompt_toolkit."""
    # Use a mutable box so /reset can swap the handle.
    handle_box: list[RuntimeHandle] = [_fresh_handle(argv or ())]

    history = InMemoryHistory()
    lexer = ZScriptLexer()

    bindings = KeyBindings()

    @bindings.add("backspace")
    def _backspace(event):
        buf = event.app.current_buffer
        buf.delete_before_cursor(1)
        if buf.text.startswith("/"):
            buf.start_completion()

    @bindings.add("enter")
    def _enter(event):
        buf = event.app.current_buffer
        text = buf.text

        # Single line that does not open a block => accept.
        if "\n" not in text:
            if _is_block_header(text):
                buf.insert_text("\n" + _compute_indent(text))
                return

            buf.validate_and_handle()
            return

        # Multiline: an empty last line submits.
        lines = text.split("\n")
        if lines[-1].strip() == "":
            buf.text = "\n".join(lines[:-1])
            buf.cursor_position = len(buf.text)
            buf.validate_and_handle()
            return

        buf.insert_text("\n" + _compute_indent(text))

    session: PromptSession[str] = PromptSession(
        history=history,
        lexer=lexer,
        completer=_SlashCompleter(),
        complete_while_typing=True,
        key_bindings=bindings,
        multiline=True,
        prompt_continuation="... ",
    )

    print("zscript repl. Ctrl-D to exit, / for commands")

    while True:
        try:
            text = session.prompt(">>> ")
        except EOFError:
            print()
            break
        except KeyboardInterrupt:
            print("KeyboardInterrupt")
            continue

        text = _normalize(text)
        if not text.strip():
            continue

        if _handle_slash(text, handle_box):
            continue

        globals_frame = handle_box[0].globals
        assert globals_frame is not None
        globals_frame.context.depth = 0

        try:
            result, stmt = repl_eval(text, globals_frame)
            echo = None if stmt or isinstance(result, ZsNull) else render_value(result)
        except (CompileError, ZScriptRuntimeError) as exc:
            _report(exc)
            continue
        except RecursionError:
            _report(ZScriptRuntimeError("Stack overflow."))
            continue

        if echo is not None:
            print(echo)

    handle_box[0].free()
