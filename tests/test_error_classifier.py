"""Behavioral tests for ErrorClassifier and its rule tables."""

import errno
import sys
from pathlib import Path
from unittest.mock import patch

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from uxkit_codex.core.error_classifier import (
    CLASSIFICATION_TABLES,
    DEFAULT_SUGGESTIONS,
    ESCALATION_CLOSING,
    FALLBACK_SUGGESTIONS,
    RECOVERABLE_CLOSING,
    ClassifiedError,
    ErrorClassifier,
    ErrorDomain,
    match_rule,
)


@pytest.fixture
def classifier():
    return ErrorClassifier()


class TestRuleTables:
    """Tests for the classification policy on its own."""

    def test_every_domain_has_rules_and_defaults(self):
        for domain in ErrorDomain:
            assert CLASSIFICATION_TABLES[domain]
            assert DEFAULT_SUGGESTIONS[domain]

    def test_tag_sets(self):
        tags = {
            domain: [rule.tag for rule in rules]
            for domain, rules in CLASSIFICATION_TABLES.items()
        }
        assert tags[ErrorDomain.FILE_SYSTEM] == [
            "ENOENT", "EACCES", "ENOSPC", "EISDIR", "ENOTDIR", "EEXIST"
        ]
        assert tags[ErrorDomain.CLI_EXECUTION] == [
            "COMMAND_NOT_FOUND", "TIMEOUT", "EXECUTION_FAILED", "PERMISSION_DENIED"
        ]
        assert tags[ErrorDomain.VALIDATION] == ["VALIDATION_FAILED"]
        assert tags[ErrorDomain.CONFIGURATION] == [
            "PARSE_ERROR", "SAVE_ERROR", "LOAD_ERROR", "VALIDATION_ERROR"
        ]
        assert tags[ErrorDomain.CODEX_API] == [
            "RATE_LIMIT_EXCEEDED",
            "AUTHENTICATION_ERROR",
            "CONNECTION_ERROR",
            "RESOURCE_NOT_FOUND",
            "PERMISSION_DENIED",
            "INVALID_REQUEST",
        ]

    def test_first_matching_rule_wins(self):
        rules = CLASSIFICATION_TABLES[ErrorDomain.CLI_EXECUTION]
        # "not found" and "failed" both match; COMMAND_NOT_FOUND comes first
        rule = match_rule(rules, "Execution failed: codex not found")
        assert rule.tag == "COMMAND_NOT_FOUND"

    def test_matching_is_case_insensitive(self):
        rule = match_rule(CLASSIFICATION_TABLES[ErrorDomain.FILE_SYSTEM], "NO SPACE LEFT on device")
        assert rule.tag == "ENOSPC"

    def test_no_match_returns_none(self):
        assert match_rule(CLASSIFICATION_TABLES[ErrorDomain.FILE_SYSTEM], "weird") is None


class TestFileSystemDomain:
    """Tests for file-system classification."""

    def test_enoent_message(self, classifier):
        error = Exception("ENOENT: no such file or directory")
        classified = classifier.classify(error, "file-system", "read config")

        assert classified.code == "FILESYSTEM_ERROR"
        assert classified.error_type == "ENOENT"
        assert classified.details["error_type"] == "ENOENT"
        assert classified.details["operation"] == "read config"
        assert "Check if the file path is correct" in classified.suggestions
        assert classified.message == "File system error occurred during read config"
        assert classified.recoverable is True

    def test_os_error_uses_errno_name(self, classifier):
        error = OSError(errno.EEXIST, "Something odd")
        classified = classifier.classify(error, ErrorDomain.FILE_SYSTEM, "mkdir")
        assert classified.error_type == "EEXIST"

    def test_python_permission_error(self, classifier):
        error = PermissionError(errno.EACCES, "Permission denied", "/etc/codex.md")
        classified = classifier.classify(error, ErrorDomain.FILE_SYSTEM, "write template")
        assert classified.error_type == "EACCES"

    def test_unmatched_uses_default_suggestions(self, classifier):
        classified = classifier.classify(
            Exception("disk on fire"), ErrorDomain.FILE_SYSTEM, "write"
        )
        assert classified.error_type == "UNKNOWN"
        assert classified.suggestions == DEFAULT_SUGGESTIONS[ErrorDomain.FILE_SYSTEM]


class TestCliExecutionDomain:
    """Tests for cli-execution classification."""

    @pytest.mark.parametrize(
        "message, tag",
        [
            ("codex: command not found", "COMMAND_NOT_FOUND"),
            ("Command timed out after 5000ms", "TIMEOUT"),
            ("Command failed with exit code 2", "EXECUTION_FAILED"),
            ("Permission denied", "PERMISSION_DENIED"),
            ("segmentation fault", "UNKNOWN"),
        ],
    )
    def test_tags(self, classifier, message, tag):
        classified = classifier.classify(message, ErrorDomain.CLI_EXECUTION, "codex exec hi")

        assert classified.code == "CLI_EXECUTION_ERROR"
        assert classified.error_type == tag
        assert classified.details["command"] == "codex exec hi"
        assert classified.message == "CLI execution error occurred for command: codex exec hi"


class TestValidationDomain:
    """Tests for validation classification and subtypes."""

    @pytest.mark.parametrize(
        "context, message, subtype",
        [
            ("configuration check", "Validation failed", "configuration"),
            ("template check", "invalid value", "template"),
            ("study", "path contains invalid characters", "path"),
            ("study", "required field 'name' is missing", "required-field"),
            ("study", "Validation failed", "general"),
        ],
    )
    def test_subtypes(self, classifier, context, message, subtype):
        classified = classifier.classify(message, ErrorDomain.VALIDATION, context)

        assert classified.code == "VALIDATION_ERROR"
        assert classified.error_type == "VALIDATION_FAILED"
        assert classified.details["subtype"] == subtype
        assert classified.suggestions

    def test_context_checked_before_message(self, classifier):
        classified = classifier.classify(
            "template path invalid", ErrorDomain.VALIDATION, "config load"
        )
        assert classified.details["subtype"] == "configuration"

    def test_unmatched_validation_error(self, classifier):
        classified = classifier.classify("odd", ErrorDomain.VALIDATION, "check")
        assert classified.error_type == "UNKNOWN"
        assert "subtype" not in classified.details


class TestConfigurationDomain:
    """Tests for configuration classification."""

    @pytest.mark.parametrize(
        "message, tag",
        [
            ("Failed to parse TOML", "PARSE_ERROR"),
            ("could not save settings", "SAVE_ERROR"),
            ("config file not found", "LOAD_ERROR"),
            ("Invalid configuration: timeout_ms must be a positive integer", "VALIDATION_ERROR"),
            ("weird", "UNKNOWN"),
        ],
    )
    def test_tags(self, classifier, message, tag):
        classified = classifier.classify(message, "configuration", {"timeout_ms": 0})

        assert classified.code == "CONFIGURATION_ERROR"
        assert classified.error_type == tag
        assert classified.details["config"] == {"timeout_ms": 0}
        assert classified.message == f"Configuration error occurred: {message}"


class TestCodexApiDomain:
    """Tests for errors reported by the Codex service."""

    @pytest.mark.parametrize(
        "message, tag",
        [
            ("stream error: 429 Too Many Requests", "RATE_LIMIT_EXCEEDED"),
            ("Rate limit reached for model", "RATE_LIMIT_EXCEEDED"),
            ("401 Unauthorized: invalid api key", "AUTHENTICATION_ERROR"),
            ("connection reset by peer", "CONNECTION_ERROR"),
            ("model gpt-x not found", "RESOURCE_NOT_FOUND"),
            ("403 Forbidden", "PERMISSION_DENIED"),
            ("400 Bad Request", "INVALID_REQUEST"),
            ("upstream returned 500", "UNKNOWN_API_ERROR"),
        ],
    )
    def test_tags(self, classifier, message, tag):
        classified = classifier.classify(message, ErrorDomain.CODEX_API, "codex exec")

        assert classified.code == "CODEX_API_ERROR"
        assert classified.domain is ErrorDomain.CODEX_API
        assert classified.error_type == tag
        assert classified.details["context"] == "codex exec"
        assert classified.message == "Codex API error occurred during codex exec"
        assert classified.recoverable is True

    def test_string_domain_value(self, classifier):
        classified = classifier.classify("rate limit", "codex-api", "generate")
        assert classified.error_type == "RATE_LIMIT_EXCEEDED"
        assert classified.suggestions[0] == "Wait before retrying the request"

    def test_unmatched_uses_default_suggestions(self, classifier):
        classified = classifier.classify("something odd", ErrorDomain.CODEX_API, "generate")
        assert classified.suggestions == DEFAULT_SUGGESTIONS[ErrorDomain.CODEX_API]

    def test_rate_limit_checked_before_authentication(self, classifier):
        classified = classifier.classify(
            "rate limit exceeded while refreshing authentication",
            ErrorDomain.CODEX_API,
            "generate",
        )
        assert classified.error_type == "RATE_LIMIT_EXCEEDED"


class TestClassifyContract:
    """Tests for purity, fallbacks and rendering."""

    def test_identical_inputs_give_identical_records(self, classifier):
        first = classifier.classify("ENOENT: missing", ErrorDomain.FILE_SYSTEM, "read")
        second = classifier.classify("ENOENT: missing", ErrorDomain.FILE_SYSTEM, "read")

        assert first == second
        assert first.suggestions == second.suggestions

    def test_classified_error_is_immutable(self, classifier):
        classified = classifier.classify("x", ErrorDomain.FILE_SYSTEM, "read")
        with pytest.raises(Exception):
            classified.code = "OTHER"
        with pytest.raises(TypeError):
            classified.details["error_type"] = "OTHER"

    def test_unknown_domain(self, classifier):
        classified = classifier.classify("boom", "network", "sync")

        assert classified.code == "UNKNOWN_ERROR"
        assert classified.domain is None
        assert classified.message == "Unknown error occurred during sync"
        assert classified.suggestions == FALLBACK_SUGGESTIONS

    def test_never_raises(self, classifier):
        with patch(
            "uxkit_codex.core.error_classifier.match_rule",
            side_effect=RuntimeError("table corrupted"),
        ):
            classified = classifier.classify("boom", ErrorDomain.FILE_SYSTEM, "read")

        assert isinstance(classified, ClassifiedError)
        assert classified.code == "UNKNOWN_ERROR"
        assert classified.details["handling_error"] == "table corrupted"

    def test_recoverable_flag_passed_through(self, classifier):
        classified = classifier.classify(
            "boom", ErrorDomain.FILE_SYSTEM, "template generation", recoverable=False
        )
        assert classified.recoverable is False


class TestUserFriendlyMessage:
    """Tests for terminal rendering."""

    def test_recoverable_rendering(self, classifier):
        classified = classifier.classify(
            "ENOENT: no such file or directory", ErrorDomain.FILE_SYSTEM, "read config"
        )
        text = classifier.create_user_friendly_message(classified)

        lines = text.splitlines()
        assert lines[0] == "File system error occurred during read config"
        assert "Suggestions:" in lines
        assert "1. Check if the file path is correct" in lines
        assert lines[-1] == RECOVERABLE_CLOSING

    def test_escalation_rendering(self, classifier):
        classified = classifier.classify(
            "boom", ErrorDomain.FILE_SYSTEM, "write", recoverable=False
        )
        assert classifier.create_user_friendly_message(classified).endswith(
            ESCALATION_CLOSING
        )

    def test_empty_suggestions_omit_list(self, classifier):
        classified = ClassifiedError(
            code="X", message="Nothing to do", domain=None, details={}, suggestions=()
        )
        text = classifier.create_user_friendly_message(classified)

        assert "Suggestions:" not in text
        assert text == f"Nothing to do\n\n{RECOVERABLE_CLOSING}"
