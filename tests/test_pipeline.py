import io
import os
import subprocess
import threading
import time

import pytest

from procflow.core.command import Command
from procflow.core.configuration import RunConfig
from procflow.core.errors import ExitError, LaunchError
from procflow.core.pipeline import Pipeline, run_pipeline


def _engine_threads():
    return [t for t in threading.enumerate() if t.name.startswith(("stage-", "pump-"))]


@pytest.mark.parametrize("n", [0, 1, 2, 5])
def test_success_only_stages_succeed_without_leaking_threads(n):
    cfg = RunConfig(stdin=subprocess.DEVNULL, stdout=io.BytesIO())
    commands = [Command("true", config=cfg) for _ in range(n)]
    pipeline = Pipeline(commands)
    assert pipeline.run() is None
    assert len(pipeline.statuses) == n
    assert sorted(s.index for s in pipeline.statuses) == list(range(n))
    assert _engine_threads() == []


def test_empty_pipeline_starts_nothing():
    pipeline = Pipeline([])
    assert pipeline.run() is None
    assert pipeline.statuses == []
    assert run_pipeline() is None


def test_byte_exact_relay():
    out = io.BytesIO()
    err = run_pipeline(Command("printf", "abc"), Command("tr", "a-z", "A-Z").redirect(stdout=out))
    assert err is None
    assert out.getvalue() == b"ABC"


def test_middle_failure_is_discarded():
    out = io.BytesIO()
    pipeline = Pipeline([
        Command("printf", "abc"),
        Command("sh", "-c", "cat >/dev/null; exit 3"),
        Command("cat").redirect(stdout=out),
    ])
    assert pipeline.run() is None
    assert out.getvalue() == b""
    middle = [s for s in pipeline.statuses if s.index == 1][0]
    assert isinstance(middle.error, ExitError)
    assert middle.error.returncode == 3


def test_terminal_failure_is_reported():
    err = run_pipeline(
        Command("printf", "abc"),
        Command("cat"),
        Command("sh", "-c", "cat >/dev/null; exit 4"),
    )
    assert isinstance(err, ExitError)
    assert err.returncode == 4


def test_single_stage_behaves_like_plain_run():
    out = io.BytesIO()
    assert run_pipeline(Command("printf", "solo").redirect(stdout=out)) is None
    assert out.getvalue() == b"solo"
    err = run_pipeline(Command("false"))
    assert isinstance(err, ExitError)


def test_upstream_launch_failure_gives_downstream_eof():
    out = io.BytesIO()
    pipeline = Pipeline([Command("/nonexistent/procflow-missing"), Command("cat").redirect(stdout=out)])
    assert pipeline.run() is None
    first = [s for s in pipeline.statuses if s.index == 0][0]
    assert isinstance(first.error, LaunchError)
    assert out.getvalue() == b""


def test_terminal_launch_failure_is_reported():
    err = run_pipeline(Command("printf", "abc"), Command("/nonexistent/procflow-missing"))
    assert isinstance(err, LaunchError)
    assert _engine_threads() == []


def test_downstream_exiting_early_does_not_hang():
    out = io.BytesIO()
    err = run_pipeline(Command("yes"), Command("head", "-n", "1").redirect(stdout=out))
    assert err is None
    assert out.getvalue() == b"y\n"


def test_large_stream_is_relayed_fully():
    out = io.BytesIO()
    err = run_pipeline(
        Command("head", "-c", "1000000", "/dev/zero"),
        Command("cat"),
        Command("wc", "-c").redirect(stdout=out),
    )
    assert err is None
    assert out.getvalue().strip() == b"1000000"


def test_first_stage_keeps_its_stdin_and_last_keeps_stderr():
    out = io.BytesIO()
    errs = io.BytesIO()
    err = run_pipeline(
        Command("cat").redirect(stdin=io.BytesIO(b"from caller")),
        Command("sh", "-c", "cat; echo oops >&2").redirect(stdout=out, stderr=errs),
    )
    assert err is None
    assert out.getvalue() == b"from caller"
    assert errs.getvalue() == b"oops\n"


def test_environment_overlay_is_per_pipeline(monkeypatch):
    monkeypatch.setenv("PROCFLOW_FOO", "inherited")
    out_a = io.BytesIO()
    out_b = io.BytesIO()
    cfg_a = RunConfig(env={"PROCFLOW_FOO": "overlay"})
    cfg_b = RunConfig()
    script = 'printf %s "$PROCFLOW_FOO"'
    assert run_pipeline(Command("sh", "-c", script, config=cfg_a), Command("cat").redirect(stdout=out_a)) is None
    assert run_pipeline(Command("sh", "-c", script, config=cfg_b), Command("cat").redirect(stdout=out_b)) is None
    assert out_a.getvalue() == b"overlay"
    assert out_b.getvalue() == b"inherited"
    assert os.environ["PROCFLOW_FOO"] == "inherited"


def test_terminate_stops_running_stages():
    pipeline = Pipeline([Command("sleep", "30"), Command("cat").redirect(stdout=io.BytesIO())])
    result = {}
    t = threading.Thread(target=lambda: result.setdefault("err", pipeline.run()))
    t.start()
    # wait until the first stage has a live process
    for _ in range(500):
        workers = pipeline._workers
        if workers and workers[0].process is not None and workers[0].process.pid:
            break
        time.sleep(0.01)
    pipeline.terminate()
    t.join(timeout=10)
    assert not t.is_alive()
    # cat saw EOF and exited cleanly; the terminated sleep is upstream
    assert result["err"] is None
    first = [s for s in pipeline.statuses if s.index == 0][0]
    assert isinstance(first.error, ExitError)
    assert first.error.signal == "SIGTERM"


def test_rejects_non_command_stages():
    with pytest.raises(TypeError):
        Pipeline(["echo hi"])
