"""Behavioral tests for IntegrationOrchestrator lifecycle."""

import asyncio
import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from uxkit_codex.config.config_loader import IntegrationConfig
from uxkit_codex.core.error_classifier import ErrorDomain
from uxkit_codex.core.orchestrator import (
    IntegrationError,
    IntegrationOrchestrator,
    IntegrationState,
    IntegrationStatus,
    PreconditionError,
)
from uxkit_codex.core.template_generator import CommandTemplateGenerator
from uxkit_codex.core.tool_validator import (
    ToolValidator,
    ValidationOutcome,
    ValidationResult,
)


def _validator(available=True, outcome=None) -> MagicMock:
    validator = MagicMock(spec=ToolValidator)
    validator.is_tool_available = AsyncMock(return_value=available)
    validator.validate_tool = AsyncMock(
        return_value=outcome or ValidationOutcome(result=ValidationResult.SUCCESS, version="1.0.0")
    )
    return validator


def _generator(side_effect=None) -> MagicMock:
    generator = MagicMock()
    generator.generate_templates = AsyncMock(side_effect=side_effect)
    return generator


def _orchestrator(validator=None, generator=None) -> IntegrationOrchestrator:
    return IntegrationOrchestrator(
        validator=validator or _validator(),
        template_generator=generator or _generator(),
    )


def _status(orchestrator) -> IntegrationState:
    return asyncio.run(orchestrator.get_status())


class TestInitialState:
    """Tests for a fresh orchestrator."""

    def test_defaults(self):
        state = _status(_orchestrator())

        assert state == IntegrationState()
        assert state.status is IntegrationStatus.NOT_INITIALIZED
        assert state.is_initialized is False
        assert state.is_configured is False
        assert state.tool_available is False
        assert state.templates_generated is False
        assert state.error_count == 0
        assert state.last_validation is None
        assert state.configuration is None


class TestInitialize:
    """Tests for initialize()."""

    def test_success(self):
        generator = _generator()
        orchestrator = _orchestrator(generator=generator)
        config = IntegrationConfig()

        asyncio.run(orchestrator.initialize(config))
        state = _status(orchestrator)

        assert state.status is IntegrationStatus.INITIALIZED
        assert state.is_initialized is True
        assert state.is_configured is True
        assert state.tool_available is True
        assert state.templates_generated is True
        assert state.error_count == 0
        assert state.configuration is config
        generator.generate_templates.assert_awaited_once_with(config)

    def test_tool_unavailable_is_not_an_error(self):
        orchestrator = _orchestrator(validator=_validator(available=False))
        asyncio.run(orchestrator.initialize(IntegrationConfig()))
        state = _status(orchestrator)

        assert state.status is IntegrationStatus.INITIALIZED
        assert state.tool_available is False
        assert state.error_count == 0

    def test_validator_exception_counted_but_not_fatal(self):
        validator = _validator()
        validator.is_tool_available = AsyncMock(side_effect=RuntimeError("availability check crashed"))
        generator = _generator()
        orchestrator = _orchestrator(validator=validator, generator=generator)

        asyncio.run(orchestrator.initialize(IntegrationConfig(validation_enabled=True)))
        state = _status(orchestrator)

        assert state.status is IntegrationStatus.ERROR
        assert state.error_count >= 1
        assert state.is_initialized is True
        assert state.tool_available is False
        assert state.templates_generated is True
        generator.generate_templates.assert_awaited_once()

    def test_validation_disabled_skips_probe(self):
        validator = _validator(available=True)
        orchestrator = _orchestrator(validator=validator)

        asyncio.run(orchestrator.initialize(IntegrationConfig(validation_enabled=False)))
        state = _status(orchestrator)

        validator.is_tool_available.assert_not_awaited()
        assert state.tool_available is False
        assert state.templates_generated is True
        assert state.status is IntegrationStatus.INITIALIZED

    def test_template_failure_records_state_and_raises(self):
        failure = OSError(13, "Permission denied")
        orchestrator = _orchestrator(generator=_generator(side_effect=failure))

        with pytest.raises(IntegrationError) as exc_info:
            asyncio.run(orchestrator.initialize(IntegrationConfig()))

        state = _status(orchestrator)
        assert state.status is IntegrationStatus.ERROR
        assert state.error_count == 1
        assert state.templates_generated is False
        assert state.is_initialized is True

        error = exc_info.value
        assert error.__cause__ is failure
        assert error.classified.domain is ErrorDomain.FILE_SYSTEM
        assert error.classified.error_type == "EACCES"
        assert error.classified.recoverable is False

    def test_invalid_configuration_rejected(self):
        generator = _generator()
        orchestrator = _orchestrator(generator=generator)

        with pytest.raises(IntegrationError) as exc_info:
            asyncio.run(orchestrator.initialize(IntegrationConfig(timeout_ms=0)))

        assert exc_info.value.classified.domain is ErrorDomain.CONFIGURATION
        assert "timeout_ms" in exc_info.value.classified.message
        assert _status(orchestrator) == IntegrationState()
        generator.generate_templates.assert_not_awaited()

    def test_invalid_configuration_keeps_previous_state(self):
        orchestrator = _orchestrator()
        asyncio.run(orchestrator.initialize(IntegrationConfig()))
        before = _status(orchestrator)

        with pytest.raises(IntegrationError):
            asyncio.run(orchestrator.initialize(IntegrationConfig(timeout_ms=0)))

        after = _status(orchestrator)
        assert after == before
        assert after.status is IntegrationStatus.INITIALIZED
        assert after.is_initialized is True


class TestValidate:
    """Tests for validate()."""

    def test_requires_initialize(self):
        orchestrator = _orchestrator()

        with pytest.raises(PreconditionError) as exc_info:
            asyncio.run(orchestrator.validate())

        assert "not initialized" in str(exc_info.value)
        assert _status(orchestrator) == IntegrationState()

    def test_success(self):
        outcome = ValidationOutcome(result=ValidationResult.SUCCESS, version="0.42.1")
        orchestrator = _orchestrator(validator=_validator(outcome=outcome))
        asyncio.run(orchestrator.initialize(IntegrationConfig()))

        returned = asyncio.run(orchestrator.validate())
        state = _status(orchestrator)

        assert returned is outcome
        assert state.status is IntegrationStatus.VALIDATED
        assert state.last_validation is not None
        assert state.tool_available is True

    def test_unsuccessful_outcome_marks_tool_unavailable(self):
        outcome = ValidationOutcome(result=ValidationResult.TOOL_NOT_FOUND)
        orchestrator = _orchestrator(validator=_validator(outcome=outcome))
        asyncio.run(orchestrator.initialize(IntegrationConfig()))

        asyncio.run(orchestrator.validate())
        state = _status(orchestrator)

        assert state.status is IntegrationStatus.VALIDATED
        assert state.tool_available is False

    def test_validator_exception_recorded_and_raised(self):
        validator = _validator()
        validator.validate_tool = AsyncMock(side_effect=RuntimeError("invalid state"))
        orchestrator = _orchestrator(validator=validator)
        asyncio.run(orchestrator.initialize(IntegrationConfig()))

        with pytest.raises(IntegrationError) as exc_info:
            asyncio.run(orchestrator.validate())

        state = _status(orchestrator)
        assert state.status is IntegrationStatus.ERROR
        assert state.error_count == 1
        assert state.last_validation is None
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert exc_info.value.classified.domain is ErrorDomain.VALIDATION


class TestGenerateCommandTemplates:
    """Tests for generate_command_templates()."""

    def test_requires_initialize_and_mutates_nothing(self):
        generator = _generator()
        orchestrator = _orchestrator(generator=generator)

        with pytest.raises(PreconditionError) as exc_info:
            asyncio.run(orchestrator.generate_command_templates())

        assert _status(orchestrator) == IntegrationState()
        generator.generate_templates.assert_not_awaited()
        assert exc_info.value.classified.suggestions[0] == (
            "Run initialize() before calling generate_command_templates()"
        )

    def test_regenerates_with_stored_configuration(self):
        generator = _generator()
        orchestrator = _orchestrator(generator=generator)
        config = IntegrationConfig(template_path="research")
        asyncio.run(orchestrator.initialize(config))

        asyncio.run(orchestrator.generate_command_templates())

        assert generator.generate_templates.await_count == 2
        generator.generate_templates.assert_awaited_with(config)
        assert _status(orchestrator).templates_generated is True

    def test_failure_counted_and_raised(self):
        generator = _generator()
        orchestrator = _orchestrator(generator=generator)
        asyncio.run(orchestrator.initialize(IntegrationConfig()))
        generator.generate_templates.side_effect = OSError(28, "No space left on device")

        with pytest.raises(IntegrationError) as exc_info:
            asyncio.run(orchestrator.generate_command_templates())

        assert _status(orchestrator).error_count == 1
        assert exc_info.value.classified.error_type == "ENOSPC"


class TestReset:
    """Tests for reset()."""

    def test_reset_after_error(self):
        orchestrator = _orchestrator(generator=_generator(side_effect=OSError("disk gone")))
        with pytest.raises(IntegrationError):
            asyncio.run(orchestrator.initialize(IntegrationConfig()))
        assert _status(orchestrator).status is IntegrationStatus.ERROR

        asyncio.run(orchestrator.reset())

        assert _status(orchestrator) == IntegrationState()

    def test_reset_after_validation(self):
        orchestrator = _orchestrator()
        asyncio.run(orchestrator.initialize(IntegrationConfig()))
        asyncio.run(orchestrator.validate())

        asyncio.run(orchestrator.reset())
        state = _status(orchestrator)

        assert state == IntegrationState()
        assert state.configuration is None
        assert state.last_validation is None

    def test_reset_on_fresh_orchestrator(self):
        orchestrator = _orchestrator()
        asyncio.run(orchestrator.reset())
        assert _status(orchestrator) == IntegrationState()

    def test_initialize_again_after_reset(self):
        orchestrator = _orchestrator()
        asyncio.run(orchestrator.initialize(IntegrationConfig()))
        asyncio.run(orchestrator.reset())
        asyncio.run(orchestrator.initialize(IntegrationConfig()))

        assert _status(orchestrator).status is IntegrationStatus.INITIALIZED


class TestStatusSnapshot:
    """Tests for get_status() immutability."""

    def test_snapshot_is_not_live(self):
        orchestrator = _orchestrator()
        before = _status(orchestrator)
        asyncio.run(orchestrator.initialize(IntegrationConfig()))

        assert before.status is IntegrationStatus.NOT_INITIALIZED
        assert _status(orchestrator).status is IntegrationStatus.INITIALIZED

    def test_snapshot_is_frozen(self):
        state = _status(_orchestrator())
        with pytest.raises(Exception):
            state.error_count = 5


class TestWithRealTemplateGenerator:
    """Tests wiring the real template generator."""

    def test_initialize_writes_templates(self, tmp_path):
        orchestrator = IntegrationOrchestrator(
            validator=_validator(),
            template_generator=CommandTemplateGenerator(),
        )

        asyncio.run(orchestrator.initialize(IntegrationConfig(template_path=str(tmp_path))))

        assert (tmp_path / "codex.md").exists()
        assert (tmp_path / ".codex" / "prompts").is_dir()
        assert _status(orchestrator).templates_generated is True
