from __future__ import annotations

import sys
from pathlib import Path
from typing import Dict, Iterator, List

import pytest

BASE_DIR = Path(__file__).resolve().parent.parent
SRC_DIR = (BASE_DIR / "src").resolve()

if str(BASE_DIR) not in sys.path:
    sys.path.append(str(BASE_DIR))
if str(SRC_DIR) not in sys.path:
    sys.path.append(str(SRC_DIR))


def pytest_collection_modifyitems(
    session: pytest.Session,
    config: pytest.Config,
    items: List[pytest.Item],
) -> None:
    """Fail fast if pytest ever generates duplicate node IDs."""
    del session
    del config

    seen: Dict[str, int] = {}
    duplicates: List[str] = []
    for item in items:
        nodeid = item.nodeid
        if nodeid in seen:
            duplicates.append(nodeid)
            continue
        seen[nodeid] = 1

    if not duplicates:
        return

    lines = "\n".join(f"- {nodeid}" for nodeid in sorted(set(duplicates)))
    raise pytest.UsageError(
        "Duplicate pytest nodeids detected during collection:\n" f"{lines}"
    )


@pytest.fixture(autouse=True)
def _quiet_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Engine settings from the developer's shell must not leak into tests."""
    for name in ("ZSCRIPT_DEBUG_PY_TRACE", "ZSCRIPT_QUIET", "ZSCRIPT_MAX_CALL_DEPTH"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def handle() -> Iterator[object]:
    from zscript.handle import RuntimeHandle

    h = RuntimeHandle()
    h.init(["zscript", "test.zs"])
    yield h
    if h.initialized:
        h.free()


@pytest.fixture
def host_module() -> Iterator[object]:
    """The process-wide host layer, torn down again after each test."""
    from zscript import host

    yield host
    if host._HANDLE is not None and host._HANDLE.initialized:
        host._HANDLE.free()
    host._HANDLE = None
