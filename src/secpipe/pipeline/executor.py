"""Step executor: runs one external command under an environment scope."""

from __future__ import annotations

import os
import re
import shlex
import signal
import subprocess
import threading
import time
from pathlib import Path
from typing import IO, List, Mapping, Optional, Tuple, Union

from secpipe.core.cancellation import CancellationToken
from secpipe.core.credentials import CredentialVault
from secpipe.core.environment import expand_vars
from secpipe.core.errors import StepExecutionError
from secpipe.core.logging import get_logger
from secpipe.core.models import StepDefinition, StepResult, StepStatus
from secpipe.core.streaming import NullStreamHandler, StreamEvent, StreamHandler, StreamType

LOGGER = get_logger(__name__)

DEFAULT_POLL_INTERVAL = 0.1
DEFAULT_KILL_GRACE = 5.0

_UNSAFE_NAME = re.compile(r"[^A-Za-z0-9._-]+")


def safe_name(name: str) -> str:
    """Filesystem-safe form of a stage or step name."""
    return _UNSAFE_NAME.sub("_", name).strip("_") or "unnamed"


class StepExecutor:
    """Runs a StepDefinition as a subprocess.

    Output (stdout and stderr merged) is masked through the credential vault
    line by line, written to ``<log_dir>/<stage>/<step>.log`` whatever the
    outcome, and optionally streamed live.

    Policy:
    - continue-on-error: a failure is recorded on the StepResult and returned.
    - fail-fast: a failure raises StepExecutionError carrying the StepResult.
    A timeout counts as a failure under the same policy.
    """

    def __init__(
        self,
        vault: CredentialVault,
        log_dir: Path,
        workspace: Optional[Path] = None,
        stream_handler: Optional[StreamHandler] = None,
        cancel_token: Optional[CancellationToken] = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        kill_grace: float = DEFAULT_KILL_GRACE,
    ) -> None:
        self._vault = vault
        self._log_dir = Path(log_dir)
        self._workspace = Path(workspace) if workspace else Path.cwd()
        self._stream = stream_handler or NullStreamHandler()
        self._cancel = cancel_token or CancellationToken()
        self._poll_interval = poll_interval
        self._kill_grace = kill_grace

    @property
    def vault(self) -> CredentialVault:
        return self._vault

    @property
    def cancel_token(self) -> CancellationToken:
        return self._cancel

    def log_path(self, stage_name: str, step_name: str) -> Path:
        return self._log_dir / safe_name(stage_name or "pipeline") / f"{safe_name(step_name)}.log"

    def run(
        self,
        step: StepDefinition,
        env: Mapping[str, str],
        stage_name: str = "",
    ) -> StepResult:
        """Execute ``step`` with the effective environment ``env``.

        Returns:
            StepResult for the step.

        Raises:
            StepExecutionError: If a fail-fast step fails or times out.
            CredentialError: If a required credential cannot be bound.
        """
        if self._cancel.cancelled:
            return StepResult.skipped(step.name, "cancelled")

        log_path = self.log_path(stage_name, step.name)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        start = time.monotonic()

        with self._vault.bind(step.credentials) as binding:
            self._stream.start_step(step.name)
            process_env = dict(env)
            process_env.update(binding)
            cwd = self._resolve_cwd(step)

            LOGGER.info(f"Running step '{step.name}'")
            LOGGER.debug(f"Command template: {self._describe(step)} (cwd={cwd})")

            try:
                command = self._build_command(step, process_env)
            except ValueError as e:
                message = self._vault.mask(f"Cannot parse command of step '{step.name}': {e}")
                self._record_start_failure(step.name, log_path, message)
                exit_code, timed_out, cancelled, error = None, False, False, message
            else:
                exit_code, timed_out, cancelled, error = self._spawn(
                    step, command, cwd, process_env, log_path
                )

        duration = round(time.monotonic() - start, 3)

        ok = (
            error is None
            and not timed_out
            and not cancelled
            and exit_code in step.success_codes
        )
        if cancelled:
            error = "cancelled"
        elif timed_out:
            error = f"timed out after {step.timeout}s"
        elif not ok and error is None:
            error = f"exited with code {exit_code}"

        result = StepResult(
            name=step.name,
            status=StepStatus.OK if ok else StepStatus.FAILED,
            exit_code=exit_code,
            output_path=log_path,
            duration_seconds=duration,
            timed_out=timed_out,
            error=None if ok else error,
        )
        self._stream.end_step(step.name, ok)

        if ok:
            LOGGER.info(f"Step '{step.name}' succeeded in {duration}s")
            return result

        if cancelled:
            return result

        if step.continue_on_error:
            LOGGER.warning(
                f"Step '{step.name}' failed ({error}); continuing per continue-on-error policy"
            )
            return result

        LOGGER.error(f"Step '{step.name}' failed ({error}); fail-fast policy aborts")
        raise StepExecutionError(result)

    def _build_command(
        self, step: StepDefinition, values: Mapping[str, str]
    ) -> Union[str, List[str]]:
        if step.shell:
            # The shell performs its own variable expansion.
            if isinstance(step.command, str):
                return step.command
            return " ".join(shlex.quote(part) for part in step.command)

        parts = shlex.split(step.command) if isinstance(step.command, str) else list(step.command)
        return [expand_vars(part, values) for part in parts]

    def _resolve_cwd(self, step: StepDefinition) -> Path:
        if step.working_dir is None:
            return self._workspace
        if step.working_dir.is_absolute():
            return step.working_dir
        return self._workspace / step.working_dir

    @staticmethod
    def _describe(step: StepDefinition) -> str:
        if isinstance(step.command, str):
            return step.command
        return " ".join(step.command)

    def _spawn(
        self,
        step: StepDefinition,
        command: Union[str, List[str]],
        cwd: Path,
        process_env: Mapping[str, str],
        log_path: Path,
    ) -> Tuple[Optional[int], bool, bool, Optional[str]]:
        """Run the process to completion, timeout or cancellation.

        Returns:
            (exit_code, timed_out, cancelled, error)
        """
        timed_out = False
        cancelled = False

        with open(log_path, "w", encoding="utf-8") as log_file:
            try:
                process = subprocess.Popen(
                    command,
                    cwd=cwd,
                    env=dict(process_env),
                    shell=step.shell,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.STDOUT,
                    stdin=subprocess.DEVNULL,
                    text=True,
                    errors="replace",
                    start_new_session=(os.name == "posix"),
                )
            except OSError as e:
                message = self._vault.mask(f"Failed to start step '{step.name}': {e}")
                log_file.write(message + "\n")
                LOGGER.error(message)
                self._status(step.name, message)
                return None, False, False, message

            reader = threading.Thread(
                target=self._pump,
                args=(process.stdout, log_file, step.name),
                name=f"secpipe-output-{step.name}",
                daemon=True,
            )
            reader.start()

            deadline = time.monotonic() + step.timeout if step.timeout else None
            while True:
                try:
                    process.wait(timeout=self._poll_interval)
                    break
                except subprocess.TimeoutExpired:
                    pass
                if self._cancel.cancelled:
                    cancelled = True
                    LOGGER.warning(f"Stopping step '{step.name}': {self._cancel.reason}")
                    self._status(step.name, "Cancelled, stopping")
                    self._terminate(process)
                    break
                if deadline is not None and time.monotonic() >= deadline:
                    timed_out = True
                    LOGGER.warning(f"Step '{step.name}' exceeded timeout of {step.timeout}s")
                    self._status(step.name, f"Timed out after {step.timeout:g}s, stopping")
                    self._terminate(process)
                    break

            reader.join(timeout=self._kill_grace)
            if timed_out:
                log_file.write(f"[secpipe] step timed out after {step.timeout}s\n")
            elif cancelled:
                log_file.write("[secpipe] step cancelled\n")

        return process.returncode, timed_out, cancelled, None

    def _record_start_failure(self, step_name: str, log_path: Path, message: str) -> None:
        message = self._vault.mask(message)
        with open(log_path, "w", encoding="utf-8") as log_file:
            log_file.write(f"[secpipe] {message}\n")
        LOGGER.error(message)
        self._status(step_name, message)

    def _status(self, step_name: str, message: str) -> None:
        self._stream.emit(
            StreamEvent(
                step_name=step_name,
                stream_type=StreamType.STATUS,
                content=self._vault.mask(message),
            )
        )

    def _pump(self, stream: Optional[IO[str]], log_file: IO[str], step_name: str) -> None:
        if stream is None:
            return
        line_number = 0
        try:
            for raw_line in iter(stream.readline, ""):
                line_number += 1
                line = self._vault.mask(raw_line.rstrip("\n"))
                log_file.write(line + "\n")
                self._stream.emit(
                    StreamEvent(
                        step_name=step_name,
                        stream_type=StreamType.OUTPUT,
                        content=line,
                        line_number=line_number,
                    )
                )
        except ValueError:
            # Stream closed underneath us after a kill.
            LOGGER.debug(f"Output stream for '{step_name}' closed")
        finally:
            stream.close()

    def _terminate(self, process: "subprocess.Popen[str]") -> None:
        """Terminate, then kill after the grace period."""
        self._signal(process, signal.SIGTERM)
        try:
            process.wait(timeout=self._kill_grace)
        except subprocess.TimeoutExpired:
            self._signal(process, signal.SIGKILL if os.name == "posix" else signal.SIGTERM)
            process.wait()

    @staticmethod
    def _signal(process: "subprocess.Popen[str]", signum: int) -> None:
        try:
            if os.name == "posix":
                os.killpg(process.pid, signum)
            elif signum == signal.SIGTERM:
                process.terminate()
            else:
                process.kill()
        except ProcessLookupError:
            pass
