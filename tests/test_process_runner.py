from pathlib import Path

from sitepub.engine.process import ProcessRunner


def test_successful_command_reports_ok(tmp_path: Path) -> None:
    runner = ProcessRunner(verbose=False, default_timeout=10)

    result = runner.run("true", cwd=tmp_path)

    assert result.ok
    assert result.returncode == 0
    assert not result.timed_out


def test_failing_command_reports_exit_status() -> None:
    runner = ProcessRunner(verbose=False, default_timeout=10)

    result = runner.run("false")

    assert not result.ok
    assert result.returncode == 1
    assert result.describe() == "exit status 1"


def test_hung_command_is_killed_at_deadline() -> None:
    runner = ProcessRunner(verbose=False, default_timeout=10, kill_timeout=5)

    result = runner.run("sleep", ["30"], timeout=0.3)

    assert result.timed_out
    assert not result.ok
    assert result.duration < 10
    assert "deadline" in result.describe()


def test_missing_command_does_not_raise() -> None:
    runner = ProcessRunner(verbose=False)

    result = runner.run("sitepub-no-such-binary-xyz")

    assert not result.ok
    assert result.error is not None
    assert result.returncode is None
