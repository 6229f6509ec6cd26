import logging
import os
import signal
import subprocess
from dataclasses import dataclass
from typing import Optional

from .errors import ExecError, ExecErrorKind
from .parser import ExtractedCommand

# Configure logging
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of running a command. Output went straight to the terminal."""

    command: str
    exit_code: int

    @property
    def success(self) -> bool:
        return self.exit_code == 0


def user_shell() -> str:
    """The user's login shell, falling back to /bin/sh."""
    return os.environ.get("SHELL") or "/bin/sh"


class CommandExecutor:
    """Runs a command in the user's shell with the terminal attached."""

    def __init__(self, shell: Optional[str] = None):
        self.shell = shell or user_shell()

    def run(self, command: ExtractedCommand) -> ExecutionResult:
        """
        Execute a command and wait for it to finish.

        stdin, stdout and stderr are inherited so output streams live and
        interactive programs keep working. A non-zero exit is a normal
        result, not an error.

        Args:
            command: The command to run.

        Returns:
            The command's exit status. A process killed by signal N reports
            128 + N, as the shell would.

        Raises:
            ExecError: If the shell itself cannot be started.
        """
        logger.info(f"Executing command with {self.shell}: {command.text}")

        try:
            process = subprocess.Popen([self.shell, "-c", command.text])
        except OSError as e:
            logger.error(f"Could not start {self.shell}: {e}")
            raise ExecError(ExecErrorKind.SPAWN_FAILED, command.text, str(e)) from e

        returncode = self._wait(process)
        result = ExecutionResult(command=command.text, exit_code=128 - returncode if returncode < 0 else returncode)

        if result.success:
            logger.info(f"Command executed successfully: {command.text}")
        else:
            logger.warning(f"Command exited with code {result.exit_code}: {command.text}")
        return result

    def _wait(self, process: subprocess.Popen) -> int:
        """Wait for the child, handing Ctrl-C to it instead of abandoning it."""
        while True:
            try:
                return process.wait()
            except KeyboardInterrupt:
                if process.poll() is None:
                    logger.info("Interrupt received, forwarding SIGINT to command")
                    process.send_signal(signal.SIGINT)

