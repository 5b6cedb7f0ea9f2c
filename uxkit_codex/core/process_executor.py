"""Process Executor - Spawns external commands with a deadline and captures their output.

Each call owns its buffers and its deadline, so any number of independent
calls may run concurrently on the same event loop. A call settles exactly
once: either the child exits inside the deadline, or the deadline expires
and the child is terminated.
"""

import asyncio
import logging
import os
import time
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

# Constants
DEFAULT_TIMEOUT_MS = 30000
PROBE_TIMEOUT_MS = 5000
TERMINATE_GRACE_SECONDS = 2.0
READ_CHUNK_SIZE = 4096
MAX_PREVIEW_LENGTH = 120
VERSION_FLAG = "--version"

# Exit statuses for results that were not produced by the child itself
TIMEOUT_EXIT_CODE = 124
NOT_EXECUTABLE_EXIT_CODE = 126
NOT_FOUND_EXIT_CODE = 127
SPAWN_FAILED_EXIT_CODE = 1


@dataclass(frozen=True)
class ExecutionRequest:
    """A single command invocation.

    Attributes:
        command: Executable name or path
        args: Arguments passed to the executable, in order
        working_directory: Directory to run in (current directory if None)
        environment: Extra variables layered over the current environment
        timeout_ms: Deadline in milliseconds, must be positive
        capture_output: Collect stdout when True, discard it otherwise
        capture_error: Collect stderr when True, discard it otherwise
    """

    command: str
    args: Tuple[str, ...] = ()
    working_directory: Optional[str] = None
    environment: Optional[Dict[str, str]] = None
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    capture_output: bool = True
    capture_error: bool = True

    def __post_init__(self) -> None:
        if not self.command:
            raise ValueError("command cannot be empty")
        if (
            isinstance(self.timeout_ms, bool)
            or not isinstance(self.timeout_ms, int)
            or self.timeout_ms <= 0
        ):
            raise ValueError(
                f"timeout_ms must be a positive integer, got {self.timeout_ms!r}"
            )
        object.__setattr__(self, "args", tuple(self.args))


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of one command invocation."""

    exit_code: int
    stdout: str
    stderr: str
    duration_ms: int
    timed_out: bool = False

    @property
    def success(self) -> bool:
        """True only for a zero exit status reached before the deadline."""
        return self.exit_code == 0 and not self.timed_out


class ProcessExecutor:
    """Runs external commands under a deadline."""

    def __init__(self, terminate_grace_seconds: float = TERMINATE_GRACE_SECONDS) -> None:
        """Initialize process executor.

        Args:
            terminate_grace_seconds: How long a timed-out child may take to exit
                after SIGTERM before it is killed
        """
        self.terminate_grace_seconds = terminate_grace_seconds
        self.logger = logger

    async def execute(self, request: ExecutionRequest) -> ExecutionResult:
        """Run a command and wait for it to exit or for its deadline.

        Spawn failures are reported as results with a synthetic exit status
        (127 not found, 126 not executable, 1 otherwise) instead of raising.
        If the calling task is cancelled, the child is terminated and the
        cancellation propagates.

        Args:
            request: The invocation to run

        Returns:
            ExecutionResult for the invocation
        """
        start_time = time.monotonic()
        self._log_command_preview(request)

        try:
            process = await self._spawn(request)
        except FileNotFoundError as e:
            return self._create_spawn_failure_result(e, NOT_FOUND_EXIT_CODE, start_time)
        except PermissionError as e:
            return self._create_spawn_failure_result(
                e, NOT_EXECUTABLE_EXIT_CODE, start_time
            )
        except OSError as e:
            return self._create_spawn_failure_result(
                e, SPAWN_FAILED_EXIT_CODE, start_time
            )

        stdout_chunks: List[bytes] = []
        stderr_chunks: List[bytes] = []

        try:
            await asyncio.wait_for(
                self._collect(process, stdout_chunks, stderr_chunks),
                timeout=request.timeout_ms / 1000,
            )
        except asyncio.TimeoutError:
            await self._terminate(process)
            return self._create_timeout_result(
                request, stdout_chunks, stderr_chunks, start_time
            )
        except asyncio.CancelledError:
            await self._terminate(process)
            raise

        result = ExecutionResult(
            exit_code=process.returncode,
            stdout=_decode(stdout_chunks),
            stderr=_decode(stderr_chunks),
            duration_ms=self._elapsed_ms(start_time),
        )
        self.logger.debug(
            f"Command '{request.command}' exited with {result.exit_code} "
            f"({result.duration_ms}ms)"
        )
        return result

    async def execute_command(
        self,
        command: str,
        args: Sequence[str] = (),
        *,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        working_directory: Optional[str] = None,
        environment: Optional[Dict[str, str]] = None,
        capture_output: bool = True,
        capture_error: bool = True,
    ) -> ExecutionResult:
        """Build an ExecutionRequest from arguments and run it."""
        request = ExecutionRequest(
            command=command,
            args=tuple(args),
            working_directory=working_directory,
            environment=environment,
            timeout_ms=timeout_ms,
            capture_output=capture_output,
            capture_error=capture_error,
        )
        return await self.execute(request)

    async def execute_command_with_timeout(
        self, command: str, args: Sequence[str], timeout_ms: int
    ) -> ExecutionResult:
        """Run a command with an explicit deadline and default capture flags."""
        return await self.execute_command(command, args, timeout_ms=timeout_ms)

    async def is_command_available(self, command: str) -> bool:
        """Check whether a command can be run.

        Tries `<command> --version` first and falls back to the platform
        lookup command (which/where), which must print a non-empty path.

        Args:
            command: Executable name or path

        Returns:
            True if the command responds or can be located on PATH
        """
        probe = await self.execute_command(
            command, [VERSION_FLAG], timeout_ms=PROBE_TIMEOUT_MS
        )
        if probe.success:
            return True

        lookup = await self.execute_command(
            self.lookup_command(), [command], timeout_ms=PROBE_TIMEOUT_MS
        )
        return lookup.success and bool(lookup.stdout.strip())

    async def get_command_version(self, command: str) -> Optional[str]:
        """Return the trimmed output of `<command> --version`, or None on failure."""
        result = await self.execute_command(
            command, [VERSION_FLAG], timeout_ms=PROBE_TIMEOUT_MS
        )
        if not result.success:
            return None
        version_text = result.stdout.strip()
        return version_text or None

    @staticmethod
    def lookup_command() -> str:
        """Name of the platform command that locates executables on PATH."""
        return "where" if os.name == "nt" else "which"

    async def _spawn(self, request: ExecutionRequest) -> asyncio.subprocess.Process:
        """Start the child process described by the request.

        Raises:
            OSError: If the executable cannot be started
        """
        return await asyncio.create_subprocess_exec(
            request.command,
            *request.args,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=(
                asyncio.subprocess.PIPE
                if request.capture_output
                else asyncio.subprocess.DEVNULL
            ),
            stderr=(
                asyncio.subprocess.PIPE
                if request.capture_error
                else asyncio.subprocess.DEVNULL
            ),
            cwd=request.working_directory,
            env=self._build_environment(request.environment),
        )

    async def _collect(
        self,
        process: asyncio.subprocess.Process,
        stdout_chunks: List[bytes],
        stderr_chunks: List[bytes],
    ) -> None:
        """Drain both output streams while waiting for the child to exit."""
        await asyncio.gather(
            _drain(process.stdout, stdout_chunks),
            _drain(process.stderr, stderr_chunks),
            process.wait(),
        )

    async def _terminate(self, process: asyncio.subprocess.Process) -> None:
        """Send SIGTERM, then SIGKILL if the child outlives the grace period."""
        if process.returncode is not None:
            return

        try:
            process.terminate()
            try:
                await asyncio.wait_for(
                    process.wait(), timeout=self.terminate_grace_seconds
                )
            except asyncio.TimeoutError:
                self.logger.warning(
                    f"Process {process.pid} ignored SIGTERM, killing it"
                )
                process.kill()
                await process.wait()
        except ProcessLookupError:
            # Exited between the deadline and the signal
            pass

    def _build_environment(
        self, environment: Optional[Dict[str, str]]
    ) -> Optional[Dict[str, str]]:
        """Layer request variables over the current environment.

        Args:
            environment: Variables to add or override (None keeps the parent's)

        Returns:
            Environment mapping for the child, or None to inherit unchanged
        """
        if environment is None:
            return None
        env = os.environ.copy()
        env.update(environment)
        return env

    def _create_timeout_result(
        self,
        request: ExecutionRequest,
        stdout_chunks: List[bytes],
        stderr_chunks: List[bytes],
        start_time: float,
    ) -> ExecutionResult:
        """Create an ExecutionResult for a child that missed its deadline."""
        timeout_message = f"Command timed out after {request.timeout_ms}ms"
        partial_stderr = _decode(stderr_chunks)
        stderr = f"{partial_stderr}\n{timeout_message}" if partial_stderr else timeout_message

        self.logger.warning(f"⏱️  '{request.command}' {timeout_message.lower()}")
        return ExecutionResult(
            exit_code=TIMEOUT_EXIT_CODE,
            stdout=_decode(stdout_chunks),
            stderr=stderr,
            duration_ms=self._elapsed_ms(start_time),
            timed_out=True,
        )

    def _create_spawn_failure_result(
        self, error: OSError, exit_code: int, start_time: float
    ) -> ExecutionResult:
        """Create an ExecutionResult for a child that could not be started."""
        self.logger.debug(f"Failed to start process: {error}")
        return ExecutionResult(
            exit_code=exit_code,
            stdout="",
            stderr=str(error),
            duration_ms=self._elapsed_ms(start_time),
        )

    def _log_command_preview(self, request: ExecutionRequest) -> None:
        """Log a shortened form of the command line."""
        command_line = " ".join((request.command,) + request.args)
        if len(command_line) > MAX_PREVIEW_LENGTH:
            command_line = command_line[:MAX_PREVIEW_LENGTH] + "..."
        self.logger.debug(
            f"Running: {command_line} (timeout={request.timeout_ms}ms)"
        )

    @staticmethod
    def _elapsed_ms(start_time: float) -> int:
        return max(0, int((time.monotonic() - start_time) * 1000))


async def _drain(stream: Optional[asyncio.StreamReader], chunks: List[bytes]) -> None:
    """Read a stream to EOF, appending every chunk as it arrives."""
    if stream is None:
        return
    while True:
        chunk = await stream.read(READ_CHUNK_SIZE)
        if not chunk:
            break
        chunks.append(chunk)


def _decode(chunks: List[bytes]) -> str:
    return b"".join(chunks).decode("utf-8", errors="replace")
