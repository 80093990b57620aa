import io
import os
import subprocess

import pytest

from procflow.core.configuration import RunConfig
from procflow.core.errors import ExitError, LaunchError, NoneSucceededError
from procflow.core.shortcuts import (
    cmd, echo, getenv, join_path, must, must_bytes, must_run, must_string,
    output_bytes, output_string, printf, run,
)


def test_cmd_binds_config():
    cfg = RunConfig(env={"X": "1"})
    c = cmd("echo", "hi", config=cfg)
    assert c.argv == ["echo", "hi"]
    assert c.config is cfg


def test_run_returns_error_value():
    assert run("true") is None
    assert isinstance(run("false"), ExitError)
    assert isinstance(run("/nonexistent/procflow-missing"), LaunchError)


def test_output_helpers():
    assert output_bytes("printf", "abc") == (b"abc", None)
    assert output_string("printf", "abc") == ("abc", None)


def test_output_kept_on_failure():
    data, err = output_bytes("sh", "-c", "printf partial; exit 1")
    assert data == b"partial"
    assert isinstance(err, ExitError)


def test_must_passes_through_success():
    must(None)
    must_run("true")
    assert must_bytes("printf", "ok") == b"ok"
    assert must_string("printf", "ok") == "ok"


def test_must_exits_on_error():
    errs = io.StringIO()
    cfg = RunConfig(stderr=errs)
    with pytest.raises(SystemExit) as exc:
        must_run("sh", "-c", "exit 9", config=cfg)
    assert exc.value.code == 1
    assert "exit status 9" in errs.getvalue()


def test_echo_and_printf_write_to_config_stdout():
    text = io.StringIO()
    cfg = RunConfig(stdout=text)
    echo("a", 1, config=cfg)
    printf("%s=%d\n", "n", 2, config=cfg)
    assert text.getvalue() == "a 1\nn=2\n"

    raw = io.BytesIO()
    echo("bytes", end="", config=RunConfig(stdout=raw))
    assert raw.getvalue() == b"bytes"


def test_getenv(monkeypatch):
    monkeypatch.setenv("PROCFLOW_G", "inherited")
    monkeypatch.delenv("PROCFLOW_MISSING", raising=False)
    assert getenv("PROCFLOW_G") == "inherited"
    assert getenv("PROCFLOW_G", config=RunConfig(env={"PROCFLOW_G": "overlay"})) == "overlay"
    assert getenv("PROCFLOW_MISSING", "dflt") == "dflt"
    # empty counts as unset
    assert getenv("PROCFLOW_G", "dflt", config=RunConfig(env={"PROCFLOW_G": ""})) == "dflt"


def test_join_path():
    assert join_path("a", "b", "c") == os.path.join("a", "b", "c")
    assert join_path() == ""


def test_echo_and_printf_discard_into_devnull():
    cfg = RunConfig(stdout=subprocess.DEVNULL)
    echo("hi", config=cfg)
    printf("%s\n", "hi", config=cfg)


def test_stdout_constant_routes_to_config_stdout():
    text = io.StringIO()
    cfg = RunConfig(stdout=text, stderr=subprocess.STDOUT)
    with pytest.raises(SystemExit) as exc:
        must(NoneSucceededError(), config=cfg)
    assert exc.value.code == 1
    assert text.getvalue() == "none succeeded\n"


def test_must_still_exits_when_stderr_is_devnull():
    with pytest.raises(SystemExit) as exc:
        must(NoneSucceededError(), config=RunConfig(stderr=subprocess.DEVNULL))
    assert exc.value.code == 1


def test_write_to_raw_fd(tmp_path):
    target = tmp_path / "fd.txt"
    fd = os.open(target, os.O_WRONLY | os.O_CREAT)
    try:
        echo("raw", config=RunConfig(stdout=fd))
    finally:
        os.close(fd)
    assert target.read_text() == "raw\n"
