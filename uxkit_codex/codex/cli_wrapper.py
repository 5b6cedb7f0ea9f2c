"""Codex CLI Wrapper - Runs Codex CLI commands and reports classified failures."""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from uxkit_codex.config.config_loader import IntegrationConfig
from uxkit_codex.core.error_classifier import (
    CLASSIFICATION_TABLES,
    ClassifiedError,
    ErrorClassifier,
    ErrorDomain,
    match_rule,
)
from uxkit_codex.core.process_executor import (
    NOT_EXECUTABLE_EXIT_CODE,
    NOT_FOUND_EXIT_CODE,
    ExecutionResult,
    ProcessExecutor,
)
from uxkit_codex.core.tool_validator import ToolValidator

logger = logging.getLogger(__name__)


@dataclass
class CodexResponse:
    """Response from a Codex CLI invocation."""

    success: bool
    output: str
    error: str
    command: str
    duration_ms: int = 0
    suggestions: Tuple[str, ...] = ()
    classified: Optional[ClassifiedError] = field(default=None, compare=False)


class CodexWrapper:
    """Wraps Codex CLI invocations."""

    # Constants
    EXEC_SUBCOMMAND = "exec"
    MAX_PREVIEW_LENGTH = 300

    def __init__(
        self,
        executor: Optional[ProcessExecutor] = None,
        config: Optional[IntegrationConfig] = None,
        mock_mode: bool = False,
        classifier: Optional[ErrorClassifier] = None,
    ) -> None:
        """Initialize Codex wrapper.

        Args:
            executor: Process executor (creates default if None)
            config: Integration settings (defaults if None)
            mock_mode: If True, returns mock responses without calling Codex
            classifier: Error classifier (creates default if None)
        """
        self.executor = executor or ProcessExecutor()
        self.config = config or IntegrationConfig()
        self.mock_mode = mock_mode
        self.classifier = classifier or ErrorClassifier()
        self.logger = logger

    async def execute(
        self, args: Sequence[str], timeout_ms: Optional[int] = None
    ) -> CodexResponse:
        """Run the configured Codex executable with arguments.

        Args:
            args: Arguments after the executable name
            timeout_ms: Deadline (config.timeout_ms if None)

        Returns:
            CodexResponse; failures carry a ClassifiedError
        """
        command_line = self._command_line(args)

        if self.mock_mode:
            return self._create_mock_response(command_line)

        self.logger.info(f"🤖 Calling {command_line[: self.MAX_PREVIEW_LENGTH]}")
        result = await self.executor.execute_command(
            self.config.executable,
            args,
            timeout_ms=timeout_ms or self.config.timeout_ms,
        )
        return self._process_result(result, command_line)

    async def generate(
        self, prompt: str, timeout_ms: Optional[int] = None
    ) -> CodexResponse:
        """Send a prompt to Codex non-interactively (`codex exec <prompt>`)."""
        return await self.execute([self.EXEC_SUBCOMMAND, prompt], timeout_ms=timeout_ms)

    async def execute_concurrent(
        self, commands: Sequence[Sequence[str]], timeout_ms: Optional[int] = None
    ) -> List[CodexResponse]:
        """Run several argument lists at once; responses keep the input order."""
        return list(
            await asyncio.gather(
                *(self.execute(args, timeout_ms=timeout_ms) for args in commands)
            )
        )

    async def validate_installation(self) -> CodexResponse:
        """Validate the Codex installation and report it as a response."""
        command_line = f"{self.config.executable} validation"
        if self.mock_mode:
            return self._create_mock_response(command_line)

        start_time = time.monotonic()
        validator = ToolValidator.from_config(self.config, executor=self.executor)
        outcome = await validator.validate_tool()
        duration_ms = int((time.monotonic() - start_time) * 1000)

        if outcome.success:
            return CodexResponse(
                success=True,
                output=f"Codex CLI validated successfully. Version: {outcome.version or 'Unknown'}",
                error="",
                command=command_line,
                duration_ms=duration_ms,
            )

        return CodexResponse(
            success=False,
            output="",
            error=outcome.message or "Codex CLI validation failed",
            command=command_line,
            duration_ms=duration_ms,
            suggestions=outcome.suggestions,
        )

    def _process_result(self, result: ExecutionResult, command_line: str) -> CodexResponse:
        """Convert an execution result, classifying it if it failed."""
        if result.success:
            self.logger.info(f"✅ Codex finished ({result.duration_ms}ms)")
            return CodexResponse(
                success=True,
                output=result.stdout,
                error="",
                command=command_line,
                duration_ms=result.duration_ms,
            )

        classified = self._classify_failure(result, command_line)
        self.logger.warning(
            f"❌ Codex failed ({classified.error_type}, exit code {result.exit_code})"
        )
        return CodexResponse(
            success=False,
            output=result.stdout,
            error=self.classifier.create_user_friendly_message(classified),
            command=command_line,
            duration_ms=result.duration_ms,
            suggestions=classified.suggestions,
            classified=classified,
        )

    def _classify_failure(self, result: ExecutionResult, command_line: str) -> ClassifiedError:
        """Classify a failed run.

        A timed-out run is classified from the timeout notice alone; partial
        stderr is ignored. A run that started and reported a service error
        (rate limit, authentication, ...) is classified in the codex-api
        domain. Everything else is a CLI execution failure.
        """
        if result.timed_out:
            notices = [
                line for line in result.stderr.splitlines() if "timed out" in line.lower()
            ]
            timeout_text = notices[-1] if notices else "Command timed out"
            return self.classifier.classify(
                timeout_text, ErrorDomain.CLI_EXECUTION, command_line
            )

        failure_text = result.stderr.strip() or (
            f"Command failed with exit code {result.exit_code}"
        )
        started = result.exit_code not in (NOT_FOUND_EXIT_CODE, NOT_EXECUTABLE_EXIT_CODE)
        if started and match_rule(CLASSIFICATION_TABLES[ErrorDomain.CODEX_API], failure_text):
            return self.classifier.classify(failure_text, ErrorDomain.CODEX_API, command_line)
        return self.classifier.classify(failure_text, ErrorDomain.CLI_EXECUTION, command_line)

    def _create_mock_response(self, command_line: str) -> CodexResponse:
        """Generate a mock response for testing."""
        self.logger.warning("⚠️  MOCK MODE: Returning simulated response")
        return CodexResponse(
            success=True,
            output=f"Mock response for: {command_line[:50]}",
            error="",
            command=command_line,
        )

    def _command_line(self, args: Sequence[str]) -> str:
        return " ".join([self.config.executable, *args])
