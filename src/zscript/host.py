"""Process-wide entry points for embedding hosts.

A thin layer over a single RuntimeHandle: ``init`` creates it, ``free``
tears it down, and a later ``init`` starts over with a fresh one.
"""

from __future__ import annotations

from typing import Mapping, Optional, Sequence

from .handle import ExecutionResult, RenderedResult, RuntimeHandle
from .types import UsageError

_HANDLE: Optional[RuntimeHandle] = None


def current_handle() -> RuntimeHandle:
    if _HANDLE is None:
        raise UsageError("ZScript is not initialized; call init() first")
    return _HANDLE


def init(argv: Optional[Sequence[str]] = None, environ: Optional[Mapping[str, str]] = None) -> RuntimeHandle:
    global _HANDLE

    if _HANDLE is not None and _HANDLE.initialized:
        raise UsageError("ZScript is already initialized; call free() first")

    handle = RuntimeHandle()
    handle.init(argv, environ)
    _HANDLE = handle
    return handle


def run_file(path: str) -> int:
    return current_handle().run_file(path)


def run_file_with_result(path: str) -> ExecutionResult:
    return current_handle().run_file_with_result(path)


def interpret(source: str, source_name: str = "<script>") -> int:
    return current_handle().interpret(source, source_name)


def interpret_with_result(source: str, source_name: str = "<script>") -> ExecutionResult:
    return current_handle().interpret_with_result(source, source_name)


def release(rendered: RenderedResult) -> None:
    current_handle().release(rendered)


def free() -> None:
    current_handle().free()
