import subprocess
import sys
import time

import pytest
from rich.console import Console

from appforge.errors import ExternalOperationError, OperationCancelled
from appforge.services.supervisor import ProcessSupervisor


class DummyLogger:
    def debug(self, *_args, **_kwargs):
        return None

    def info(self, *_args, **_kwargs):
        return None

    def warning(self, *_args, **_kwargs):
        return None

    def error(self, *_args, **_kwargs):
        return None


def python_script(*lines):
    return ["-c", "\n".join(lines)]


def build_supervisor(**kwargs):
    return ProcessSupervisor(logger=DummyLogger(), console=Console(quiet=True), **kwargs)


def test_noise_and_post_marker_lines_are_not_surfaced():
    supervisor = build_supervisor()

    result = supervisor.run(
        sys.executable,
        python_script(
            "print('npm warn deprecated left-pad@1.0.0')",
            "print('added 120 packages')",
            "print('')",
            "print('> postinstall: linking')",
            "print('chatter after marker')",
        ),
        marker="postinstall",
    )

    assert result.ok
    assert result.returncode == 0
    assert result.last_status == "> postinstall: linking"
    assert result.tail == [
        "npm warn deprecated left-pad@1.0.0",
        "added 120 packages",
        "> postinstall: linking",
        "chatter after marker",
    ]


def test_is_noise_patterns():
    supervisor = build_supervisor()

    assert supervisor.is_noise("npm notice New minor version available")
    assert supervisor.is_noise("[#####.....] 50%")
    assert supervisor.is_noise("  |  ")
    assert not supervisor.is_noise("webpack compiled successfully")


def test_non_zero_exit_raises_with_recent_output():
    supervisor = build_supervisor()

    with pytest.raises(ExternalOperationError, match="exit code 3") as excinfo:
        supervisor.run(
            sys.executable,
            python_script("print('fatal: cannot find module')", "import sys; sys.exit(3)"),
        )

    assert "fatal: cannot find module" in str(excinfo.value)


def test_non_zero_exit_is_reported_when_check_disabled():
    supervisor = build_supervisor()

    result = supervisor.run(
        sys.executable,
        python_script("import sys; sys.exit(2)"),
        check=False,
    )

    assert not result.ok
    assert result.status == "failed"
    assert result.returncode == 2


def test_timeout_stops_the_child():
    supervisor = build_supervisor()

    result = supervisor.run(
        sys.executable,
        python_script(
            "import time",
            "for i in range(200):",
            "    print('tick', i, flush=True)",
            "    time.sleep(0.05)",
        ),
        timeout=0.3,
        check=False,
    )

    assert result.status == "failed"
    assert len(result.tail) < 200


def test_timeout_stops_a_silent_child():
    supervisor = build_supervisor()

    start = time.monotonic()
    result = supervisor.run(
        sys.executable,
        python_script("import time", "time.sleep(5)"),
        timeout=0.5,
        check=False,
    )
    elapsed = time.monotonic() - start

    assert elapsed < 3
    assert result.status == "failed"
    assert not result.ok


def test_timeout_fails_the_call_when_checked():
    supervisor = build_supervisor()

    with pytest.raises(ExternalOperationError, match="timed out"):
        supervisor.run(
            sys.executable,
            python_script("import time", "time.sleep(5)"),
            timeout=0.5,
        )


def test_missing_command_is_reported():
    supervisor = build_supervisor()

    with pytest.raises(ExternalOperationError, match="Required command not found"):
        supervisor.run("appforge-no-such-binary")


class InterruptedProcess:
    def __init__(self):
        self.terminated = False
        self.returncode = None
        self.stdout = self._lines()

    def _lines(self):
        yield "compiling...\n"
        raise KeyboardInterrupt

    def poll(self):
        return self.returncode

    def terminate(self):
        self.terminated = True

    def wait(self, timeout=None):
        self.returncode = -15
        return self.returncode


class FakeSubprocessModule:
    PIPE = subprocess.PIPE
    STDOUT = subprocess.STDOUT

    def __init__(self):
        self.process = InterruptedProcess()

    def Popen(self, *_args, **_kwargs):
        return self.process


def test_keyboard_interrupt_terminates_child():
    fake_subprocess = FakeSubprocessModule()
    supervisor = build_supervisor(subprocess_module=fake_subprocess)

    with pytest.raises(OperationCancelled):
        supervisor.run("npm", ["run", "local"])

    assert fake_subprocess.process.terminated is True
