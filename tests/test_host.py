from __future__ import annotations

import pytest

from tests.support.harness import UsageError
from zscript.handle import STATUS_IO_ERROR, STATUS_OK, STATUS_RUNTIME_ERROR


def test_calls_before_init_fail(host_module) -> None:
    with pytest.raises(UsageError, match="not initialized"):
        host_module.interpret("1;")
    with pytest.raises(UsageError, match="not initialized"):
        host_module.free()


def test_init_interpret_free(host_module) -> None:
    host_module.init(["zscript"], {"ZSCRIPT_QUIET": "1"})

    assert host_module.interpret("var n = 20") == STATUS_OK
    result = host_module.interpret_with_result("n * 2 + 2;")
    assert result.rendered.text == "42"
    host_module.release(result.rendered)

    assert host_module.interpret("n / 0;") == STATUS_RUNTIME_ERROR
    host_module.free()

    with pytest.raises(UsageError, match="torn down"):
        host_module.interpret("1;")


def test_double_init_fails(host_module) -> None:
    host_module.init(["zscript"], {})

    with pytest.raises(UsageError, match="already initialized"):
        host_module.init(["zscript"], {})


def test_reinit_after_free_starts_fresh(host_module) -> None:
    first = host_module.init(["zscript"], {"ZSCRIPT_QUIET": "1"})
    host_module.interpret("var gone = 1")
    host_module.free()

    second = host_module.init(["zscript"], {"ZSCRIPT_QUIET": "1"})

    assert second is not first
    assert host_module.current_handle() is second
    assert host_module.interpret("gone;") == STATUS_RUNTIME_ERROR


def test_result_from_previous_handle_rejected(host_module) -> None:
    host_module.init(["zscript"], {})
    stale = host_module.interpret_with_result("1;")
    host_module.free()
    host_module.init(["zscript"], {})

    with pytest.raises(UsageError, match="different handle"):
        host_module.release(stale.rendered)


def test_run_file_through_host(host_module, tmp_path) -> None:
    script = tmp_path / "args.zs"
    script.write_text("args._1 + \":\" + to_str(args.length)\n", encoding="utf-8")
    host_module.init(["zscript", "args.zs", "extra"], {"ZSCRIPT_QUIET": "1"})

    assert host_module.run_file(str(script)) == STATUS_OK
    result = host_module.run_file_with_result(str(script))
    assert result.rendered.text == "args.zs:3"
    host_module.release(result.rendered)

    assert host_module.run_file(str(tmp_path / "none.zs")) == STATUS_IO_ERROR
