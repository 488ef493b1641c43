from __future__ import annotations

import sys
from typing import List, Optional, Sequence, Tuple

from .evaluator import eval_expr, eval_node
from .handle import (
    STATUS_COMPILE_ERROR,
    STATUS_IO_ERROR,
    STATUS_OK,
    STATUS_RUNTIME_ERROR,
    RuntimeHandle,
)
from .parser_rd import parse_source
from .runtime import init_stdlib
from .tree import ExprStmt
from .types import Frame, UsageError, ZsValue

__version__ = "0.1.0"

PROG = "zscript"

# sysexits-style codes used by the command line
EXIT_OK = 0
EXIT_USAGE = 64
EXIT_COMPILE = 65
EXIT_RUNTIME = 70
EXIT_IO = 74

_STATUS_TO_EXIT = {
    STATUS_OK: EXIT_OK,
    STATUS_COMPILE_ERROR: EXIT_COMPILE,
    STATUS_RUNTIME_ERROR: EXIT_RUNTIME,
    STATUS_IO_ERROR: EXIT_IO,
}

USAGE = f"""\
{PROG} - the ZScript interpreter

Usage: {PROG} [options] [script [args...]]

Options:
  -h, --help       Show this help message and exit
  -v, --version    Show version information and exit

With no script an interactive REPL starts.

Environment:
  ZSCRIPT_MAX_CALL_DEPTH   maximum nested function calls (default 64)
  ZSCRIPT_DEBUG_PY_TRACE   also print the Python traceback of runtime errors
  ZSCRIPT_QUIET            do not print diagnostics

Exit codes:
  0   success
  64  usage error
  65  compile error
  70  runtime error
  74  I/O error
"""

def run(src: str, frame: Optional[Frame]=None) -> ZsValue:
    """Parse and evaluate source, raising CompileError/ZScriptRuntimeError on failure."""
    init_stdlib()
    ast = parse_source(src)
    return eval_expr(ast, frame)

def repl_eval(src: str, frame: Frame) -> Tuple[ZsValue, bool]:
    """
    Evaluate one REPL entry against a persistent frame.
    Returns (value, is_statement); the REPL only echoes expression results.
    """
    ast = parse_source(src)
    value = eval_node(ast, frame)
    is_stmt = not ast.body or not isinstance(ast.body[-1], ExprStmt)
    return value, is_stmt

def _parse_args(argv: Sequence[str]) -> Tuple[Optional[str], Optional[str], List[str]]:
    """Returns (action, script, script_args); action is help/version or None."""
    it = iter(argv)

    for token in it:
        if token in ("-h", "--help"):
            return "help", None, []

        if token in ("-v", "--version"):
            return "version", None, []

        if token.startswith("-") and token != "-":
            raise UsageError(f"Unknown option: {token}")

        return None, token, list(it)

    return None, None, []

def main(argv: Optional[Sequence[str]]=None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)

    try:
        action, script, script_args = _parse_args(argv)
    except UsageError as exc:
        print(f"{PROG}: {exc}", file=sys.stderr)
        print(f"Try '{PROG} --help' for more information.", file=sys.stderr)
        return EXIT_USAGE

    if action == "help":
        print(USAGE, end="")
        return EXIT_OK

    if action == "version":
        print(f"{PROG} version {__version__}")
        return EXIT_OK

    if script is None:
        from .repl import repl  # prompt_toolkit is only needed interactively

        repl([PROG])
        return EXIT_OK

    handle = RuntimeHandle()
    try:
        handle.init([PROG, script, *script_args])
    except UsageError as exc:
        print(f"{PROG}: {exc}", file=sys.stderr)
        return EXIT_USAGE

    try:
        status = handle.run_file(script)
    finally:
        handle.free()

    return _STATUS_TO_EXIT.get(status, EXIT_RUNTIME)

if __name__ == "__main__":
    sys.exit(main())
