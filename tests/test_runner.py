from __future__ import annotations

import pytest

from tests.support.harness import CompileError, ParseError, run_program
from zscript.runner import (
    EXIT_COMPILE,
    EXIT_IO,
    EXIT_OK,
    EXIT_RUNTIME,
    EXIT_USAGE,
    __version__,
    main,
    repl_eval,
)
from zscript.runtime import install_stdlib
from zscript.types import Frame, ZsNull, ZsNumber


def write_script(tmp_path, text: str, name: str = "prog.zs") -> str:
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return str(path)


def test_help(capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["--help"]) == EXIT_OK

    out = capsys.readouterr().out
    assert out.startswith("zscript - the ZScript interpreter")
    assert "ZSCRIPT_MAX_CALL_DEPTH" in out


def test_version(capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["-v"]) == EXIT_OK
    assert capsys.readouterr().out == f"zscript version {__version__}\n"


def test_unknown_option(capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["--fast", "x.zs"]) == EXIT_USAGE

    err = capsys.readouterr().err
    assert "zscript: Unknown option: --fast" in err
    assert "Try 'zscript --help'" in err


def test_script_success(tmp_path, capsys: pytest.CaptureFixture[str]) -> None:
    path = write_script(tmp_path, 'println("hello " + to_str(1 + 1))\n')

    assert main([path]) == EXIT_OK
    assert capsys.readouterr().out == "hello 2\n"


def test_script_receives_args(tmp_path, capsys: pytest.CaptureFixture[str]) -> None:
    path = write_script(
        tmp_path,
        "for (var i = 2; i < args.length; i++):\n    println(args[\"_\" + to_str(i)])\n",
    )

    assert main([path, "one", "-two"]) == EXIT_OK
    assert capsys.readouterr().out == "one\n-two\n"


def test_script_compile_error(tmp_path, capsys: pytest.CaptureFixture[str]) -> None:
    path = write_script(tmp_path, "var x = (1 + ;\n")

    assert main([path]) == EXIT_COMPILE
    assert f"{path}: [line 1] Error" in capsys.readouterr().err


def test_script_runtime_error(tmp_path, capsys: pytest.CaptureFixture[str]) -> None:
    path = write_script(tmp_path, 'println("before")\nvar m = {}\nm["missing"];\n')

    assert main([path]) == EXIT_RUNTIME
    captured = capsys.readouterr()
    assert captured.out == "before\n"
    assert "Runtime Error: Key 'missing' not found." in captured.err
    assert "  at [line 3] in top-level script" in captured.err


def test_script_missing(tmp_path, capsys: pytest.CaptureFixture[str]) -> None:
    missing = str(tmp_path / "absent.zs")

    assert main([missing]) == EXIT_IO
    assert f"Could not open file '{missing}'" in capsys.readouterr().err


def test_bad_environment_is_usage_error(tmp_path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    path = write_script(tmp_path, "1;\n")
    monkeypatch.setenv("ZSCRIPT_MAX_CALL_DEPTH", "lots")

    assert main([path]) == EXIT_USAGE
    assert "ZSCRIPT_MAX_CALL_DEPTH" in capsys.readouterr().err


def test_run_raises_compile_errors_with_all_diagnostics() -> None:
    with pytest.raises(CompileError) as exc_info:
        run_program("var = 1\nvar ok = 2\nvar = 3\n")

    err = exc_info.value
    assert isinstance(err, ParseError)
    assert [e.line for e in err.errors] == [1, 3]


def test_repl_eval_reports_statement_kind() -> None:
    frame = Frame()
    install_stdlib(frame)

    value, is_stmt = repl_eval("var x = 4", frame)
    assert isinstance(value, ZsNull)
    assert is_stmt

    value, is_stmt = repl_eval("x * 2", frame)
    assert value == ZsNumber(8.0)
    assert not is_stmt

    _, is_stmt = repl_eval("", frame)
    assert is_stmt
