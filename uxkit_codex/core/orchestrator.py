"""Integration Orchestrator - Drives the Codex integration lifecycle.

States:
    NOT_INITIALIZED --initialize--> INITIALIZING --> INITIALIZED | ERROR
    INITIALIZED     --validate-->   VALIDATING   --> VALIDATED   | ERROR
    any             --reset-->      NOT_INITIALIZED

An invalid configuration is rejected before INITIALIZING and leaves the
state untouched.

The orchestrator owns its state exclusively and takes no locks; lifecycle
calls on one instance must be made one at a time.
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Protocol

from uxkit_codex.config.config_loader import IntegrationConfig, validate_config
from uxkit_codex.core.error_classifier import (
    ClassifiedError,
    ErrorClassifier,
    ErrorDomain,
)
from uxkit_codex.core.tool_validator import ToolValidator, ValidationOutcome
from uxkit_codex.utils.logging import log_lifecycle_transition

logger = logging.getLogger(__name__)


class IntegrationStatus(Enum):
    """Lifecycle states of an integration."""

    NOT_INITIALIZED = "not_initialized"
    INITIALIZING = "initializing"
    INITIALIZED = "initialized"
    VALIDATING = "validating"
    VALIDATED = "validated"
    ERROR = "error"


@dataclass(frozen=True)
class IntegrationState:
    """Snapshot of an orchestrator's status fields."""

    status: IntegrationStatus = IntegrationStatus.NOT_INITIALIZED
    is_initialized: bool = False
    is_configured: bool = False
    tool_available: bool = False
    templates_generated: bool = False
    error_count: int = 0
    last_validation: Optional[datetime] = None
    configuration: Optional[IntegrationConfig] = None


class TemplateGenerator(Protocol):
    """Writes command templates for a configuration."""

    async def generate_templates(self, config: IntegrationConfig) -> None: ...


class IntegrationError(Exception):
    """A lifecycle operation failed.

    Attributes:
        classified: Taxonomy-tagged description with suggestions
    """

    def __init__(self, classified: ClassifiedError):
        self.classified = classified
        super().__init__(classified.message)


class PreconditionError(IntegrationError):
    """A lifecycle operation was called in a state that does not allow it."""


class IntegrationOrchestrator:
    """Sequences initialize, validate, template generation and reset."""

    def __init__(
        self,
        validator: ToolValidator,
        template_generator: TemplateGenerator,
        classifier: Optional[ErrorClassifier] = None,
    ):
        """Initialize orchestrator.

        Args:
            validator: Checks the external tool
            template_generator: Writes command templates
            classifier: Error classifier (creates default if None)
        """
        self.validator = validator
        self.template_generator = template_generator
        self.classifier = classifier or ErrorClassifier()
        self._state = IntegrationState()

    async def initialize(self, config: IntegrationConfig) -> None:
        """Configure the integration and generate command templates.

        A failed availability check is counted but does not stop
        initialization; a failed template generation does.

        Args:
            config: Integration settings

        Raises:
            IntegrationError: If the configuration is invalid (state is left
                unchanged) or template generation fails (state is recorded first)
        """
        schema_errors = validate_config(config)
        if schema_errors:
            raise IntegrationError(
                self.classifier.classify(
                    "Invalid configuration: " + "; ".join(schema_errors),
                    ErrorDomain.CONFIGURATION,
                    config,
                )
            )

        self._update(
            configuration=config,
            is_configured=True,
            status=IntegrationStatus.INITIALIZING,
        )

        if config.validation_enabled:
            try:
                tool_available = await self.validator.is_tool_available()
            except Exception as e:
                logger.warning(f"Tool availability check failed: {e}")
                self._update(error_count=self._state.error_count + 1)
                tool_available = False
        else:
            # Templates do not depend on the tool being installed
            tool_available = False
        self._update(tool_available=tool_available)

        try:
            await self.template_generator.generate_templates(config)
        except Exception as e:
            self._update(
                error_count=self._state.error_count + 1,
                templates_generated=False,
                is_initialized=True,
                status=IntegrationStatus.ERROR,
            )
            classified = self.classifier.classify(
                e, ErrorDomain.FILE_SYSTEM, "template generation", recoverable=False
            )
            logger.error(f"Template generation failed: {e}")
            raise IntegrationError(classified) from e

        final_status = (
            IntegrationStatus.ERROR
            if self._state.error_count > 0
            else IntegrationStatus.INITIALIZED
        )
        self._update(
            templates_generated=True,
            is_initialized=True,
            status=final_status,
        )
        logger.info(
            f"Integration initialized (tool available: {tool_available}, "
            f"errors: {self._state.error_count})"
        )

    async def validate(self) -> ValidationOutcome:
        """Run a full tool validation.

        Returns:
            ValidationOutcome from the validator

        Raises:
            PreconditionError: If initialize() has not been called
            IntegrationError: If the validator raises
        """
        if not self._state.is_initialized:
            raise self._precondition_error("validate", "Integration not initialized")

        self._update(status=IntegrationStatus.VALIDATING)
        try:
            outcome = await self.validator.validate_tool()
        except Exception as e:
            self._record_failure()
            raise IntegrationError(
                self.classifier.classify(e, ErrorDomain.VALIDATION, "tool validation")
            ) from e

        self._update(
            last_validation=datetime.now(timezone.utc),
            tool_available=outcome.success,
            status=IntegrationStatus.VALIDATED,
        )
        return outcome

    async def generate_command_templates(self) -> None:
        """Regenerate command templates from the stored configuration.

        Raises:
            PreconditionError: If not initialized or no configuration is stored
            IntegrationError: If template generation fails
        """
        if not self._state.is_initialized:
            raise self._precondition_error(
                "generate_command_templates", "Integration not initialized"
            )
        if self._state.configuration is None:
            raise self._precondition_error(
                "generate_command_templates", "No configuration available"
            )

        try:
            await self.template_generator.generate_templates(self._state.configuration)
        except Exception as e:
            self._update(error_count=self._state.error_count + 1)
            raise IntegrationError(
                self.classifier.classify(
                    e, ErrorDomain.FILE_SYSTEM, "template generation"
                )
            ) from e

        self._update(templates_generated=True)

    async def get_status(self) -> IntegrationState:
        """Return an immutable snapshot of the current state."""
        return self._state

    async def reset(self) -> None:
        """Return every field to its NOT_INITIALIZED default."""
        previous = self._state.status
        self._state = IntegrationState()
        if previous is not IntegrationStatus.NOT_INITIALIZED:
            log_lifecycle_transition(previous.value, self._state.status.value)

    def _record_failure(self) -> None:
        self._update(
            error_count=self._state.error_count + 1,
            status=IntegrationStatus.ERROR,
        )

    def _precondition_error(self, operation: str, reason: str) -> PreconditionError:
        classified = self.classifier.classify(
            f"Validation failed: {reason}",
            ErrorDomain.VALIDATION,
            f"{operation} precondition",
        )
        return PreconditionError(
            replace(
                classified,
                message=reason,
                suggestions=(
                    f"Run initialize() before calling {operation}()",
                    "Check the integration status",
                ),
            )
        )

    def _update(self, **changes) -> None:
        """Replace the state record, logging status transitions."""
        previous = self._state.status
        self._state = replace(self._state, **changes)
        if self._state.status is not previous:
            log_lifecycle_transition(previous.value, self._state.status.value)
