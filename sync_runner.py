import logging
import signal
import subprocess
import time
from typing import Optional, Sequence

from models.sync_result import SyncResult
from utils import sanitize_output

logger = logging.getLogger(__name__)

DEFAULT_SYNC_COMMAND = ("git", "pull", "--prune", "--quiet")

# Reported when the command produced no exit code of its own: it could not be
# started, or it was killed by a signal.
FAILURE_EXIT_CODE = -1


def _signal_name(signum: int) -> str:
    # strsignal gives "Killed", "Terminated" and so on
    try:
        description = signal.strsignal(signum)
    except ValueError:
        description = None
    return description.lower() if description else str(signum)


class SyncRunner:
    """
    Runs the synchronization command in the working directory.

    The argument list is fixed when the runner is built and nothing from a
    webhook payload ever reaches it. There is no timeout: a slow pull blocks
    its caller until git gives up on its own.
    """

    def __init__(self, command: Sequence[str] = DEFAULT_SYNC_COMMAND, cwd: Optional[str] = None):
        if not command:
            raise ValueError("Sync command must not be empty.")
        self.command = tuple(command)
        self.cwd = cwd

    @property
    def command_line(self) -> str:
        return " ".join(self.command)

    def execute(self) -> SyncResult:
        """
        Run the command once and capture its combined stdout/stderr.

        Failures to launch or non-zero exits are returned as data, never
        raised.
        """
        logger.info(f"- {self.command_line}")
        start = time.perf_counter_ns()
        try:
            completed = subprocess.run(
                list(self.command),
                cwd=self.cwd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
            )
        except (OSError, ValueError, subprocess.SubprocessError) as e:
            duration = time.perf_counter_ns() - start
            logger.debug(f"Could not start '{self.command_line}': {e}")
            return self._result(FAILURE_EXIT_CODE, duration, f"<failure>\n{e}\n".encode())

        duration = time.perf_counter_ns() - start
        output = completed.stdout or b""
        exit_code = completed.returncode
        if exit_code < 0:
            error = f"signal: {_signal_name(-exit_code)}"
            exit_code = FAILURE_EXIT_CODE
        else:
            error = f"exit status {exit_code}"
        if exit_code != 0 and not output:
            output = f"<failure>\n{error}\n".encode()
        return self._result(exit_code, duration, output)

    def _result(self, exit_code: int, duration_ns: int, output: bytes) -> SyncResult:
        return SyncResult(
            command=self.command_line,
            exit_code=exit_code,
            duration_ns=duration_ns,
            output=sanitize_output(output),
            success=exit_code == 0,
        )
