"""Tool Validator - Decides whether the external AI CLI is installed and usable.

The validator is stateless: it probes the tool through a ProcessExecutor on
every call and classifies what it sees into a ValidationOutcome.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Tuple, TYPE_CHECKING

from uxkit_codex.core.process_executor import (
    ExecutionResult,
    ProcessExecutor,
    TIMEOUT_EXIT_CODE,
    VERSION_FLAG,
)

if TYPE_CHECKING:
    from uxkit_codex.config.config_loader import IntegrationConfig

logger = logging.getLogger(__name__)

DEFAULT_TOOL = "codex"
DEFAULT_TIMEOUT_MS = 10000
PERMISSION_DENIED_EXIT_CODE = 13

# Patterns for robust stderr parsing
TIMEOUT_PATTERN = re.compile(r"timeout|timed out", re.IGNORECASE)
PERMISSION_DENIED_PATTERN = re.compile(r"permission denied", re.IGNORECASE)
VERSION_PATTERN = re.compile(r"\d+\.\d+\.\d+")

NOT_FOUND_SUGGESTIONS = (
    "Install the tool",
    "Add the tool to PATH",
    "Restart your terminal/IDE",
)
TIMEOUT_SUGGESTIONS = (
    "Increase the timeout",
    "Check system load",
    "Run the tool manually to verify it responds",
)
PERMISSION_DENIED_SUGGESTIONS = (
    "Check file permissions",
    "Run with elevated privileges",
    "Verify user permissions",
)
INVALID_SUGGESTIONS = (
    "Check installation",
    "Verify configuration",
    "Try reinstalling",
)
UNKNOWN_ERROR_SUGGESTIONS = (
    "Check system configuration",
    "Verify the tool installation",
    "Try running the command manually",
)


class ValidationResult(Enum):
    """Classified result of a tool validation."""

    SUCCESS = "success"
    TOOL_NOT_FOUND = "tool_not_found"
    TOOL_INVALID = "tool_invalid"
    PERMISSION_DENIED = "permission_denied"
    TIMEOUT = "timeout"
    UNKNOWN_ERROR = "unknown_error"


@dataclass(frozen=True)
class ValidationOutcome:
    """Result of one validate_tool() call. Never mutated after creation."""

    result: ValidationResult
    tool_path: Optional[str] = None
    version: Optional[str] = None
    message: Optional[str] = None
    suggestions: Tuple[str, ...] = ()
    timestamp: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc), compare=False
    )

    @property
    def success(self) -> bool:
        return self.result is ValidationResult.SUCCESS


class ToolValidator:
    """Checks availability, location and version of the external tool."""

    def __init__(
        self,
        executor: Optional[ProcessExecutor] = None,
        tool: str = DEFAULT_TOOL,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ) -> None:
        """Initialize tool validator.

        Args:
            executor: Process executor (creates default if None)
            tool: Executable name or path of the tool
            timeout_ms: Deadline for the version probe
        """
        self.executor = executor or ProcessExecutor()
        self.tool = tool
        self.timeout_ms = timeout_ms

    @classmethod
    def from_config(
        cls, config: "IntegrationConfig", executor: Optional[ProcessExecutor] = None
    ) -> "ToolValidator":
        """Create a validator for the tool and timeout named in a configuration."""
        return cls(executor=executor, tool=config.executable, timeout_ms=config.timeout_ms)

    async def validate_tool(self) -> ValidationOutcome:
        """Validate the tool installation.

        Returns:
            ValidationOutcome; exceptions raised while probing are reported
            as UNKNOWN_ERROR rather than propagated
        """
        try:
            if not await self.executor.is_command_available(self.tool):
                logger.info(f"'{self.tool}' was not found")
                return ValidationOutcome(
                    result=ValidationResult.TOOL_NOT_FOUND,
                    message=f"'{self.tool}' is not installed or not available in PATH",
                    suggestions=NOT_FOUND_SUGGESTIONS,
                )

            probe = await self.executor.execute_command(
                self.tool, [VERSION_FLAG], timeout_ms=self.timeout_ms
            )
            if probe.success:
                return ValidationOutcome(
                    result=ValidationResult.SUCCESS,
                    tool_path=await self.get_tool_path(),
                    version=await self.get_tool_version(),
                )

            return await self._classify_failed_probe(probe)

        except Exception as e:
            logger.warning(f"Unexpected error while validating '{self.tool}': {e}")
            return ValidationOutcome(
                result=ValidationResult.UNKNOWN_ERROR,
                message=f"Unexpected error during validation: {e}",
                suggestions=UNKNOWN_ERROR_SUGGESTIONS,
            )

    async def get_tool_path(self) -> Optional[str]:
        """Locate the tool with which/where.

        Returns:
            First path printed by the lookup command, or None
        """
        try:
            result = await self.executor.execute_command(
                self.executor.lookup_command(), [self.tool], timeout_ms=self.timeout_ms
            )
        except Exception as e:
            logger.debug(f"Tool path lookup failed: {e}")
            return None

        if not result.success:
            return None
        for line in result.stdout.splitlines():
            if line.strip():
                return line.strip()
        return None

    async def get_tool_version(self) -> Optional[str]:
        """Extract a major.minor.patch version from the tool's --version output."""
        try:
            version_text = await self.executor.get_command_version(self.tool)
        except Exception as e:
            logger.debug(f"Tool version lookup failed: {e}")
            return None

        if not version_text:
            return None
        match = VERSION_PATTERN.search(version_text)
        return match.group(0) if match else None

    async def is_tool_available(self) -> bool:
        """Quick availability check; errors count as unavailable."""
        try:
            return await self.executor.is_command_available(self.tool)
        except Exception as e:
            logger.debug(f"Availability check for '{self.tool}' failed: {e}")
            return False

    async def _classify_failed_probe(self, probe: ExecutionResult) -> ValidationOutcome:
        """Turn a failed version probe into an outcome.

        Args:
            probe: Result of `<tool> --version` that did not succeed

        Returns:
            TIMEOUT, PERMISSION_DENIED or TOOL_INVALID outcome
        """
        tool_path = await self.get_tool_path()
        stderr = probe.stderr.strip()

        if (
            probe.timed_out
            or probe.exit_code == TIMEOUT_EXIT_CODE
            or TIMEOUT_PATTERN.search(stderr)
        ):
            return ValidationOutcome(
                result=ValidationResult.TIMEOUT,
                tool_path=tool_path,
                message=f"'{self.tool}' validation timed out: {stderr}",
                suggestions=TIMEOUT_SUGGESTIONS,
            )

        if (
            probe.exit_code == PERMISSION_DENIED_EXIT_CODE
            or PERMISSION_DENIED_PATTERN.search(stderr)
        ):
            return ValidationOutcome(
                result=ValidationResult.PERMISSION_DENIED,
                tool_path=tool_path,
                message=f"Permission denied when accessing '{self.tool}'",
                suggestions=PERMISSION_DENIED_SUGGESTIONS,
            )

        return ValidationOutcome(
            result=ValidationResult.TOOL_INVALID,
            tool_path=tool_path,
            message=f"'{self.tool}' is not working properly: {stderr}",
            suggestions=INVALID_SUGGESTIONS,
        )
