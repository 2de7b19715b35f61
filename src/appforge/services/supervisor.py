"""Supervision of long-running child processes behind a single status line."""

import re
import subprocess
import threading
import time
from collections import deque
from typing import Deque, Iterable, List, Optional, Sequence

from rich.markup import escape
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from appforge.errors import ExternalOperationError, OperationCancelled
from appforge.errors_catalog import actionable_error
from appforge.models import ProcessResult


class ProcessSupervisor:
    """Runs one child process, collapsing its output into one status line.

    Lines matching a noise pattern never reach the status line. Once the
    optional marker substring shows up, later lines stop being surfaced too;
    everything is still kept in the diagnostic tail and the debug log.
    """

    NOISE_PATTERNS = (
        r"^npm (warn|notice)\b",
        r"^npm timing\b",
        r"^\s*[\[\(]?[#=>\-.\s]*[\]\)]?\s*\d{0,3}%?\s*$",
        r"^\s*[|/\\-]\s*$",
        r"\bdeprecated\b",
    )
    TAIL_SIZE = 40
    GRACE_SECONDS = 10

    def __init__(
        self,
        logger,
        console,
        subprocess_module=subprocess,
        noise_patterns: Optional[Iterable[str]] = None,
    ):
        self.logger = logger
        self.console = console
        self.subprocess = subprocess_module
        patterns = self.NOISE_PATTERNS if noise_patterns is None else tuple(noise_patterns)
        self.noise = [re.compile(pattern, re.IGNORECASE) for pattern in patterns]

    def is_noise(self, line: str) -> bool:
        return any(pattern.search(line) for pattern in self.noise)

    def _terminate(self, process):
        if process.poll() is not None:
            return
        process.terminate()
        try:
            process.wait(timeout=self.GRACE_SECONDS)
        except subprocess.TimeoutExpired:
            process.kill()
            process.wait()

    def run(
        self,
        command: str,
        args: Sequence[str] = (),
        cwd: Optional[str] = None,
        description: str = "Running",
        marker: Optional[str] = None,
        check: bool = True,
        timeout: Optional[float] = None,
        env: Optional[dict] = None,
    ) -> ProcessResult:
        cmd: List[str] = [command, *args]
        cmd_str = " ".join(cmd)
        self.logger.debug("Supervising: %s (cwd=%s)", cmd_str, cwd or ".")

        try:
            process = self.subprocess.Popen(
                cmd,
                stdout=self.subprocess.PIPE,
                stderr=self.subprocess.STDOUT,
                text=True,
                bufsize=1,
                cwd=cwd,
                env=env,
            )
        except FileNotFoundError as exc:
            raise ExternalOperationError(actionable_error("tool_not_found", command=command)) from exc
        except OSError as exc:
            raise ExternalOperationError(f"Failed to start {cmd_str}: {exc}") from exc

        if not process.stdout:
            raise ExternalOperationError(f"{cmd_str} did not expose output. Aborting.")

        tail: Deque[str] = deque(maxlen=self.TAIL_SIZE)
        last_status: Optional[str] = None
        marker_seen = False
        timed_out = threading.Event()

        def expire():
            if process.poll() is None:
                timed_out.set()
                self._terminate(process)

        watchdog = threading.Timer(timeout, expire) if timeout else None

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            TimeElapsedColumn(),
            console=self.console,
            transient=True,
        ) as progress:
            task = progress.add_task(f"[bold magenta]{escape(description)}...", total=None)
            start = time.monotonic()
            if watchdog:
                watchdog.daemon = True
                watchdog.start()
            try:
                for line in process.stdout:
                    cleaned = line.rstrip()
                    if not cleaned:
                        continue
                    tail.append(cleaned)
                    self.logger.debug(cleaned)

                    if marker_seen or self.is_noise(cleaned):
                        continue
                    if marker and marker in cleaned:
                        marker_seen = True

                    last_status = cleaned
                    progress.update(
                        task,
                        description=f"[bold magenta]{escape(description)}:[/bold magenta] {escape(cleaned)}",
                    )
                process.wait()
                if timeout and (time.monotonic() - start) > timeout:
                    timed_out.set()
            except KeyboardInterrupt:
                self._terminate(process)
                self.logger.warning("Cancelled by operator: %s", cmd_str)
                raise OperationCancelled(f"Operation cancelled by user: {cmd_str}") from None
            finally:
                if watchdog:
                    watchdog.cancel()

        returncode = process.returncode
        if timed_out.is_set():
            self.logger.error("%s exceeded timeout of %.1f seconds.", cmd_str, timeout)
            status = "failed"
        else:
            status = "success" if returncode == 0 else "failed"

        result = ProcessResult(
            command=cmd,
            returncode=returncode,
            status=status,
            last_status=last_status,
            tail=list(tail),
        )

        if result.ok:
            self.logger.info("%s finished.", cmd_str)
            return result

        self.logger.error("%s failed with exit code %s", cmd_str, returncode)
        if tail:
            self.logger.error("Recent output:\n%s", "\n".join(tail))
        if check:
            reason = "timed out" if timed_out.is_set() else f"exit code {returncode}"
            excerpt = "\n".join(list(tail)[-10:])
            message = f"Command failed ({reason}): {cmd_str}"
            raise ExternalOperationError(f"{message}\n{excerpt}" if excerpt else message)
        return result
