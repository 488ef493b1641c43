"""Runtime handle: one interpreter instance between init and teardown.

The handle owns the global frame (built-ins, ``args`` and every script
global) plus the allocator that tracks rendered results handed to the
caller. It is not thread safe; a host running several threads must serialize
access itself.
"""

from __future__ import annotations

import os
import sys
import traceback
from dataclasses import dataclass
from enum import Enum, auto
from pathlib import Path
from typing import List, Mapping, Optional, Sequence, TextIO, Tuple

from .evaluator import eval_node
from .parser_rd import parse_source
from .tree import Program
from .runtime import install_stdlib
from .types import (
    CompileError,
    EvalContext,
    Frame,
    UsageError,
    ZsInstance,
    ZsNull,
    ZsNumber,
    ZsString,
    ZsStruct,
    ZsValue,
    ZScriptRuntimeError,
)
from .utils import env_flag, render_value

STATUS_OK = 0
STATUS_COMPILE_ERROR = 1
STATUS_RUNTIME_ERROR = 2
STATUS_IO_ERROR = 74

DEFAULT_MAX_CALL_DEPTH = 64
# Python frames spent per script-level call stay well under this
MIN_RECURSION_LIMIT = 10000


class HandleState(Enum):
    UNINITIALIZED = auto()
    INITIALIZED = auto()
    TORN_DOWN = auto()


@dataclass(frozen=True)
class EngineConfig:
    argv: Tuple[str, ...] = ()
    max_call_depth: int = DEFAULT_MAX_CALL_DEPTH
    debug_py_trace: bool = False
    echo_diagnostics: bool = True

    @classmethod
    def from_args(cls, argv: Optional[Sequence[str]] = None, environ: Optional[Mapping[str, str]] = None) -> "EngineConfig":
        env = os.environ if environ is None else environ

        raw_depth = env.get("ZSCRIPT_MAX_CALL_DEPTH", "").strip()
        max_call_depth = DEFAULT_MAX_CALL_DEPTH
        if raw_depth:
            try:
                max_call_depth = int(raw_depth)
            except ValueError:
                raise UsageError(f"ZSCRIPT_MAX_CALL_DEPTH must be an integer (got {raw_depth!r})") from None
            if max_call_depth < 1:
                raise UsageError("ZSCRIPT_MAX_CALL_DEPTH must be at least 1")

        return cls(
            argv=tuple(argv or ()),
            max_call_depth=max_call_depth,
            debug_py_trace=env_flag("ZSCRIPT_DEBUG_PY_TRACE", env),
            echo_diagnostics=not env_flag("ZSCRIPT_QUIET", env),
        )


class RenderedResult:
    """Caller-owned text of one execution; released exactly once via its handle."""

    __slots__ = ("_text", "status", "_owner", "_released")

    def __init__(self, text: str, status: int, owner: "ResultAllocator"):
        self._text = text
        self.status = status
        self._owner = owner
        self._released = False

    @property
    def text(self) -> str:
        if self._released:
            raise UsageError("Rendered result was already released")
        return self._text

    @property
    def released(self) -> bool:
        return self._released

    def __str__(self) -> str:
        return self.text

    def __repr__(self) -> str:
        state = "released" if self._released else "live"
        return f"<RenderedResult status={self.status} {state}>"


class ResultAllocator:
    """Tracks rendered results that are live on the caller side."""

    def __init__(self) -> None:
        self._live = 0

    @property
    def live_count(self) -> int:
        return self._live

    def allocate(self, text: str, status: int) -> RenderedResult:
        self._live += 1
        return RenderedResult(text, status, self)

    def owns(self, rendered: RenderedResult) -> bool:
        return rendered._owner is self

    def release(self, rendered: RenderedResult) -> None:
        if not self.owns(rendered):
            raise UsageError("Rendered result was allocated by a different handle")
        if rendered._released:
            raise UsageError("Rendered result was already released")

        rendered._released = True
        rendered._text = ""
        self._live -= 1


@dataclass(frozen=True)
class ExecutionResult:
    status: int
    rendered: RenderedResult
    value: Optional[ZsValue] = None

    @property
    def ok(self) -> bool:
        return self.status == STATUS_OK


@dataclass(frozen=True)
class _Outcome:
    status: int
    value: Optional[ZsValue] = None
    message: str = ""


def make_args_instance(argv: Sequence[str]) -> ZsInstance:
    """Script-visible ``args``: ``args.length`` plus ``args._0``, ``args._1`` ..."""
    fields: dict = {"length": ZsNumber(float(len(argv)))}
    for i, arg in enumerate(argv):
        fields[f"_{i}"] = ZsString(arg)

    return ZsInstance(struct=ZsStruct(name="Args", defaults={}), fields=fields)


def format_runtime_error(exc: ZScriptRuntimeError) -> List[str]:
    lines = [f"Runtime Error: {exc.message}"]

    for name, line in exc.frames():
        where = f"[line {line}]" if line is not None else "[line ?]"
        if name is None:
            lines.append(f"  at {where} in top-level script")
        else:
            lines.append(f"  at {where} in function '{name}()'")

    return lines


class RuntimeHandle:
    def __init__(self, err: Optional[TextIO] = None):
        self.state = HandleState.UNINITIALIZED
        self.config: Optional[EngineConfig] = None
        self.globals: Optional[Frame] = None
        self.allocator = ResultAllocator()
        self._err = err

    # ---------------- lifecycle ----------------

    def init(self, argv: Optional[Sequence[str]] = None, environ: Optional[Mapping[str, str]] = None, config: Optional[EngineConfig] = None) -> None:
        if self.state is HandleState.INITIALIZED:
            raise UsageError("Runtime handle is already initialized")
        if self.state is HandleState.TORN_DOWN:
            raise UsageError("Runtime handle was freed; create a new one")

        self.config = config if config is not None else EngineConfig.from_args(argv, environ)

        frame = Frame(context=EvalContext(max_call_depth=self.config.max_call_depth))
        install_stdlib(frame)
        frame.define("args", make_args_instance(self.config.argv))
        self.globals = frame

        if sys.getrecursionlimit() < MIN_RECURSION_LIMIT:
            sys.setrecursionlimit(MIN_RECURSION_LIMIT)

        self.state = HandleState.INITIALIZED

    def free(self) -> None:
        self._require_initialized("free")
        self.globals = None
        self.state = HandleState.TORN_DOWN

    @property
    def initialized(self) -> bool:
        return self.state is HandleState.INITIALIZED

    # ---------------- execution ----------------

    def interpret(self, source: str, source_name: str = "<script>") -> int:
        self._require_initialized("interpret")
        return self._execute(source, source_name).status

    def interpret_with_result(self, source: str, source_name: str = "<script>") -> ExecutionResult:
        self._require_initialized("interpret_with_result")
        return self._allocate(self._execute(source, source_name))

    def run_file(self, path: str) -> int:
        self._require_initialized("run_file")
        return self._run_path(path).status

    def run_file_with_result(self, path: str) -> ExecutionResult:
        self._require_initialized("run_file_with_result")
        return self._allocate(self._run_path(path))

    def release(self, rendered: RenderedResult) -> None:
        self._require_initialized("release")
        self.allocator.release(rendered)

    # ---------------- internals ----------------

    def _require_initialized(self, op: str) -> None:
        if self.state is not HandleState.INITIALIZED:
            state = self.state.name.lower().replace("_", " ")
            raise UsageError(f"Cannot {op}: runtime handle is {state}")

    def _allocate(self, outcome: _Outcome) -> ExecutionResult:
        if outcome.status == STATUS_OK:
            try:
                text = render_value(outcome.value if outcome.value is not None else ZsNull())
            except RecursionError:
                overflow = ZScriptRuntimeError("Value nested too deeply to render.")
                self._report(format_runtime_error(overflow))
                outcome = _Outcome(STATUS_RUNTIME_ERROR, message=overflow.message)
                text = outcome.message
        else:
            text = outcome.message

        rendered = self.allocator.allocate(text, outcome.status)
        return ExecutionResult(status=outcome.status, rendered=rendered, value=outcome.value)

    def _run_path(self, path: str) -> _Outcome:
        try:
            source = Path(path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            reason = exc.strerror if isinstance(exc, OSError) and exc.strerror else str(exc)
            message = f"Could not open file '{path}': {reason}."
            self._report([message])
            return _Outcome(STATUS_IO_ERROR, message=message)

        return self._execute(source, path)

    def _execute(self, source: str, source_name: str) -> _Outcome:
        assert self.globals is not None

        try:
            program = parse_source(source)
        except CompileError as exc:
            self._report([f"{source_name}: {err.describe()}" for err in exc.errors])
            return _Outcome(STATUS_COMPILE_ERROR, message=exc.errors[0].describe())

        ctx = self.globals.context
        if ctx.debug:
            self._dump(program, source_name)

        ctx.depth = 0
        try:
            value = eval_node(program, self.globals)
        except ZScriptRuntimeError as exc:
            self._report(format_runtime_error(exc), exc if self.config and self.config.debug_py_trace else None)
            return _Outcome(STATUS_RUNTIME_ERROR, message=str(exc))
        except RecursionError as exc:
            overflow = ZScriptRuntimeError("Stack overflow.")
            self._report(format_runtime_error(overflow), exc if self.config and self.config.debug_py_trace else None)
            return _Outcome(STATUS_RUNTIME_ERROR, message=overflow.message)
        finally:
            ctx.depth = 0

        return _Outcome(STATUS_OK, value=value)

    def _dump(self, program: Program, source_name: str) -> None:
        """Print the parsed statements, one per line (enabled by enable_debug())."""
        err = self._err if self._err is not None else sys.stderr
        print(f"== {source_name} ==", file=err)
        for stmt in program.body:
            print(f"[line {stmt.line}] {stmt!r}", file=err)

    def _report(self, lines: List[str], py_exc: Optional[BaseException] = None) -> None:
        if self.config is not None and not self.config.echo_diagnostics:
            return

        err = self._err if self._err is not None else sys.stderr
        for line in lines:
            print(line, file=err)

        if py_exc is not None:
            print("Python traceback:", file=err)
            traceback.print_exception(type(py_exc), py_exc, py_exc.__traceback__, file=err)
