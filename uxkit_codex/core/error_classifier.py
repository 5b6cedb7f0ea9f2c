"""Error Classifier - Maps raw exceptions onto a fixed, user-facing error taxonomy.

Classification is driven by ordered rule tables, one per error domain. Each
rule pairs a taxonomy tag with keywords searched for in the lower-cased error
text; the first matching rule wins. Keeping the policy in data means the
tables can be tested independently of the dispatch code.
"""

import errno
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple, Union

logger = logging.getLogger(__name__)


class ErrorDomain(Enum):
    """Where an error originated."""

    FILE_SYSTEM = "file-system"
    CLI_EXECUTION = "cli-execution"
    VALIDATION = "validation"
    CONFIGURATION = "configuration"
    CODEX_API = "codex-api"


UNKNOWN_TAG = "UNKNOWN"
UNKNOWN_ERROR_CODE = "UNKNOWN_ERROR"

RECOVERABLE_CLOSING = "This error can be resolved by following the suggestions above."
ESCALATION_CLOSING = (
    "This error requires manual intervention. "
    "Please contact support if the issue persists."
)

FALLBACK_SUGGESTIONS: Tuple[str, ...] = (
    "Check system logs for more details",
    "Try the operation again",
    "Contact support if issue persists",
    "Check system resources",
)


@dataclass(frozen=True)
class ClassificationRule:
    """One row of a classification table."""

    tag: str
    keywords: Tuple[str, ...]
    suggestions: Tuple[str, ...] = ()

    def matches(self, text: str) -> bool:
        return any(keyword in text for keyword in self.keywords)


@dataclass(frozen=True)
class ClassifiedError:
    """Structured, taxonomy-tagged representation of a raw exception.

    Attributes:
        code: Domain-level code (e.g. FILESYSTEM_ERROR)
        message: Human-readable summary
        domain: Domain the error was classified in (None if unsupported)
        details: original_error, error_type and the domain's context entry
        suggestions: Ordered remediation steps, possibly empty
        recoverable: True if the suggestions should let the user fix it
        timestamp: When the classification happened (UTC)
    """

    code: str
    message: str
    domain: Optional[ErrorDomain]
    details: Mapping[str, Any]
    suggestions: Tuple[str, ...]
    recoverable: bool = True
    timestamp: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc), compare=False
    )

    @property
    def error_type(self) -> str:
        """The taxonomy tag, e.g. ENOENT or TIMEOUT."""
        return self.details.get("error_type", UNKNOWN_TAG)


# File system

_FILE_SYSTEM_RULES: Tuple[ClassificationRule, ...] = (
    ClassificationRule(
        "ENOENT",
        ("enoent", "no such file or directory"),
        (
            "Check if the file path is correct",
            "Verify file permissions",
            "Ensure the directory exists",
            "Create the file if it should exist",
        ),
    ),
    ClassificationRule(
        "EACCES",
        ("eacces", "permission denied"),
        (
            "Check file permissions",
            "Run with appropriate privileges",
            "Verify write access to the directory",
            "Check if file is locked by another process",
        ),
    ),
    ClassificationRule(
        "ENOSPC",
        ("enospc", "no space left"),
        (
            "Free up disk space",
            "Check available storage",
            "Try a different location",
            "Clean up temporary files",
        ),
    ),
    ClassificationRule(
        "EISDIR",
        ("eisdir", "is a directory"),
        (
            "Check that the path points to a file",
            "Remove the directory or choose another file name",
        ),
    ),
    ClassificationRule(
        "ENOTDIR",
        ("enotdir", "not a directory"),
        (
            "Check that every parent in the path is a directory",
            "Verify file path format",
        ),
    ),
    ClassificationRule(
        "EEXIST",
        ("eexist", "file exists"),
        (
            "Remove or rename the existing file",
            "Choose a different target path",
        ),
    ),
)

_FILE_SYSTEM_DEFAULT: Tuple[str, ...] = (
    "Check file system status",
    "Verify file path format",
    "Try the operation again",
    "Check system resources",
)

# CLI execution

_CLI_EXECUTION_RULES: Tuple[ClassificationRule, ...] = (
    ClassificationRule(
        "COMMAND_NOT_FOUND",
        ("command not found", "not found", "no such file or directory"),
        (
            "Install the required CLI tool",
            "Check if the command is in PATH",
            "Verify command spelling",
            "Check if the tool is properly installed",
        ),
    ),
    ClassificationRule(
        "TIMEOUT",
        ("timeout", "timed out"),
        (
            "Increase timeout value",
            "Check system performance",
            "Try with smaller dataset",
            "Check network connectivity",
        ),
    ),
    ClassificationRule(
        "EXECUTION_FAILED",
        ("exit code", "failed"),
        (
            "Check command arguments",
            "Verify input data",
            "Check command documentation",
            "Try with verbose output for debugging",
        ),
    ),
    ClassificationRule(
        "PERMISSION_DENIED",
        ("permission denied",),
        (
            "Check file permissions",
            "Run with appropriate privileges",
            "Verify the executable bit is set",
        ),
    ),
)

_CLI_EXECUTION_DEFAULT: Tuple[str, ...] = (
    "Check command syntax",
    "Verify system requirements",
    "Check command permissions",
    "Review command documentation",
)

# Validation

_VALIDATION_RULES: Tuple[ClassificationRule, ...] = (
    ClassificationRule(
        "VALIDATION_FAILED",
        (
            "validation failed",
            "invalid",
            "required field",
            "missing",
            "configuration",
            "template",
            "path",
        ),
    ),
)

# Subtype keyword -> suggestions, checked against the context, then the message
_VALIDATION_SUBTYPES: Tuple[Tuple[str, Tuple[str, ...], Tuple[str, ...]], ...] = (
    (
        "configuration",
        ("configuration", "config"),
        (
            "Check configuration values",
            "Verify data types and formats",
            "Review configuration schema",
            "Use default configuration as reference",
        ),
    ),
    (
        "template",
        ("template",),
        (
            "Check template structure",
            "Verify required fields",
            "Review template schema",
            "Validate template syntax",
        ),
    ),
    (
        "path",
        ("path", "invalid characters"),
        (
            "Check path format",
            "Remove invalid characters",
            "Use absolute path",
            "Verify path exists",
        ),
    ),
    (
        "required-field",
        ("required field", "missing"),
        (
            "Check for missing required fields",
            "Review data requirements",
            "Provide a value for every required field",
        ),
    ),
)

_VALIDATION_DEFAULT: Tuple[str, ...] = (
    "Check input data format",
    "Verify validation rules",
    "Review data requirements",
    "Check for missing required fields",
)

# Configuration

_CONFIGURATION_RULES: Tuple[ClassificationRule, ...] = (
    ClassificationRule(
        "PARSE_ERROR",
        ("parse", "json", "toml", "syntax", "decode"),
        (
            "Check configuration file format",
            "Validate TOML syntax",
            "Use default configuration",
            "Check for syntax errors",
        ),
    ),
    ClassificationRule(
        "SAVE_ERROR",
        ("save", "write"),
        (
            "Check file permissions",
            "Verify directory access",
            "Try different location",
            "Check disk space",
        ),
    ),
    ClassificationRule(
        "LOAD_ERROR",
        ("load", "read", "not found"),
        (
            "Check file exists",
            "Verify file permissions",
            "Check file format",
            "Use default configuration",
        ),
    ),
    ClassificationRule(
        "VALIDATION_ERROR",
        ("invalid", "validation"),
        (
            "Check configuration values",
            "Verify data types and formats",
            "Review configuration schema",
            "Use default configuration as reference",
        ),
    ),
)

_CONFIGURATION_DEFAULT: Tuple[str, ...] = (
    "Check configuration structure",
    "Verify configuration values",
    "Review configuration schema",
    "Reset to default configuration",
)

# Codex API (errors reported by a running codex process)

_CODEX_API_RULES: Tuple[ClassificationRule, ...] = (
    ClassificationRule(
        "RATE_LIMIT_EXCEEDED",
        ("rate limit", "too many requests"),
        (
            "Wait before retrying the request",
            "Check API rate limits",
            "Retry with exponential backoff",
            "Contact Codex support if issue persists",
        ),
    ),
    ClassificationRule(
        "AUTHENTICATION_ERROR",
        ("authentication", "unauthorized"),
        (
            "Check API credentials",
            "Verify API key format",
            "Regenerate API key if needed",
            "Check API key permissions",
        ),
    ),
    ClassificationRule(
        "CONNECTION_ERROR",
        ("timeout", "connection"),
        (
            "Check internet connection",
            "Retry the request",
            "Check API status",
            "Increase timeout settings",
        ),
    ),
    ClassificationRule(
        "RESOURCE_NOT_FOUND",
        ("not found", "404"),
        (
            "Check API endpoint URL",
            "Verify resource exists",
            "Check API version",
            "Review API documentation",
        ),
    ),
    ClassificationRule(
        "PERMISSION_DENIED",
        ("permission", "forbidden"),
        (
            "Check that your account has access to the requested model",
            "Check API key permissions",
            "Contact your organization administrator",
        ),
    ),
    ClassificationRule(
        "INVALID_REQUEST",
        ("invalid", "bad request"),
        (
            "Verify request format",
            "Check the prompt and command arguments",
            "Review API documentation",
        ),
    ),
)

_CODEX_API_DEFAULT: Tuple[str, ...] = (
    "Check API documentation",
    "Verify request format",
    "Contact Codex support",
    "Check API status page",
)

CLASSIFICATION_TABLES: Mapping[ErrorDomain, Tuple[ClassificationRule, ...]] = (
    MappingProxyType(
        {
            ErrorDomain.FILE_SYSTEM: _FILE_SYSTEM_RULES,
            ErrorDomain.CLI_EXECUTION: _CLI_EXECUTION_RULES,
            ErrorDomain.VALIDATION: _VALIDATION_RULES,
            ErrorDomain.CONFIGURATION: _CONFIGURATION_RULES,
            ErrorDomain.CODEX_API: _CODEX_API_RULES,
        }
    )
)

DEFAULT_SUGGESTIONS: Mapping[ErrorDomain, Tuple[str, ...]] = MappingProxyType(
    {
        ErrorDomain.FILE_SYSTEM: _FILE_SYSTEM_DEFAULT,
        ErrorDomain.CLI_EXECUTION: _CLI_EXECUTION_DEFAULT,
        ErrorDomain.VALIDATION: _VALIDATION_DEFAULT,
        ErrorDomain.CONFIGURATION: _CONFIGURATION_DEFAULT,
        ErrorDomain.CODEX_API: _CODEX_API_DEFAULT,
    }
)

_DOMAIN_CODES: Mapping[ErrorDomain, str] = MappingProxyType(
    {
        ErrorDomain.FILE_SYSTEM: "FILESYSTEM_ERROR",
        ErrorDomain.CLI_EXECUTION: "CLI_EXECUTION_ERROR",
        ErrorDomain.VALIDATION: "VALIDATION_ERROR",
        ErrorDomain.CONFIGURATION: "CONFIGURATION_ERROR",
        ErrorDomain.CODEX_API: "CODEX_API_ERROR",
    }
)

# Name of the details entry that carries the caller's context, per domain
_CONTEXT_KEYS: Mapping[ErrorDomain, str] = MappingProxyType(
    {
        ErrorDomain.FILE_SYSTEM: "operation",
        ErrorDomain.CLI_EXECUTION: "command",
        ErrorDomain.VALIDATION: "context",
        ErrorDomain.CONFIGURATION: "config",
        ErrorDomain.CODEX_API: "context",
    }
)

# Tag used when no rule matches; UNKNOWN unless listed
_UNMATCHED_TAGS: Mapping[ErrorDomain, str] = MappingProxyType(
    {ErrorDomain.CODEX_API: "UNKNOWN_API_ERROR"}
)


def match_rule(
    rules: Tuple[ClassificationRule, ...], text: str
) -> Optional[ClassificationRule]:
    """Return the first rule whose keywords appear in text, or None."""
    lowered = text.lower()
    for rule in rules:
        if rule.matches(lowered):
            return rule
    return None


class ErrorClassifier:
    """Turns exceptions into ClassifiedError records. Stateless."""

    def classify(
        self,
        error: Union[BaseException, str],
        domain: Union[ErrorDomain, str],
        context: Any = None,
        *,
        recoverable: bool = True,
    ) -> ClassifiedError:
        """Classify an error within a domain.

        Never raises: a failure while classifying yields a generic
        UNKNOWN_ERROR record instead.

        Args:
            error: The exception (or its message)
            domain: ErrorDomain or its string value, e.g. "file-system"
            context: Operation name, command line, validation context or
                configuration snapshot, depending on the domain
            recoverable: Whether the user can fix the issue unaided

        Returns:
            ClassifiedError describing the error
        """
        try:
            resolved_domain = _resolve_domain(domain)
            if resolved_domain is None:
                return self._classify_unknown(error, context, recoverable)
            return self._classify_in_domain(
                error, resolved_domain, context, recoverable
            )
        except Exception as classification_error:
            logger.error(f"Error classification failed: {classification_error}")
            return ClassifiedError(
                code=UNKNOWN_ERROR_CODE,
                message="An error occurred while processing the error",
                domain=None,
                details=MappingProxyType(
                    {
                        "original_error": _error_text(error),
                        "error_type": UNKNOWN_TAG,
                        "handling_error": str(classification_error),
                    }
                ),
                suggestions=FALLBACK_SUGGESTIONS,
                recoverable=True,
            )

    def create_user_friendly_message(self, error: ClassifiedError) -> str:
        """Render a classified error as text for the terminal.

        Args:
            error: The classified error

        Returns:
            Message, numbered suggestions (if any) and a closing sentence
        """
        lines = [error.message, ""]

        if error.suggestions:
            lines.append("Suggestions:")
            for index, suggestion in enumerate(error.suggestions, 1):
                lines.append(f"{index}. {suggestion}")
            lines.append("")

        lines.append(RECOVERABLE_CLOSING if error.recoverable else ESCALATION_CLOSING)
        return "\n".join(lines)

    def _classify_in_domain(
        self,
        error: Union[BaseException, str],
        domain: ErrorDomain,
        context: Any,
        recoverable: bool,
    ) -> ClassifiedError:
        original_error = _error_text(error)
        rule = match_rule(CLASSIFICATION_TABLES[domain], _searchable_text(error))

        error_type = rule.tag if rule else _UNMATCHED_TAGS.get(domain, UNKNOWN_TAG)
        suggestions = rule.suggestions if rule else ()

        details: Dict[str, Any] = {
            "original_error": original_error,
            _CONTEXT_KEYS[domain]: context,
            "error_type": error_type,
        }

        if domain is ErrorDomain.VALIDATION and rule is not None:
            subtype, suggestions = _validation_subtype(context, original_error)
            details["subtype"] = subtype

        if not suggestions:
            suggestions = DEFAULT_SUGGESTIONS[domain]

        return ClassifiedError(
            code=_DOMAIN_CODES[domain],
            message=_domain_message(domain, context, original_error),
            domain=domain,
            details=MappingProxyType(details),
            suggestions=suggestions,
            recoverable=recoverable,
        )

    def _classify_unknown(
        self, error: Union[BaseException, str], context: Any, recoverable: bool
    ) -> ClassifiedError:
        return ClassifiedError(
            code=UNKNOWN_ERROR_CODE,
            message=f"Unknown error occurred during {context}",
            domain=None,
            details=MappingProxyType(
                {
                    "original_error": _error_text(error),
                    "context": context,
                    "error_type": UNKNOWN_TAG,
                }
            ),
            suggestions=FALLBACK_SUGGESTIONS,
            recoverable=recoverable,
        )


def _resolve_domain(domain: Union[ErrorDomain, str]) -> Optional[ErrorDomain]:
    if isinstance(domain, ErrorDomain):
        return domain
    try:
        return ErrorDomain(domain)
    except ValueError:
        return None


def _error_text(error: Union[BaseException, str]) -> str:
    if isinstance(error, BaseException):
        return str(error) or type(error).__name__
    return str(error)


def _searchable_text(error: Union[BaseException, str]) -> str:
    """Error text plus the symbolic errno name for OS errors (e.g. ENOENT)."""
    text = _error_text(error)
    if isinstance(error, OSError) and error.errno in errno.errorcode:
        text = f"{errno.errorcode[error.errno]}: {text}"
    return text


def _validation_subtype(
    context: Any, message: str
) -> Tuple[str, Tuple[str, ...]]:
    """Pick the validation subtype by keyword, context first, then message."""
    for text in (str(context or "").lower(), message.lower()):
        for subtype, keywords, suggestions in _VALIDATION_SUBTYPES:
            if any(keyword in text for keyword in keywords):
                return subtype, suggestions
    return "general", _VALIDATION_DEFAULT


def _domain_message(domain: ErrorDomain, context: Any, original_error: str) -> str:
    if domain is ErrorDomain.FILE_SYSTEM:
        return f"File system error occurred during {context}"
    if domain is ErrorDomain.CLI_EXECUTION:
        return f"CLI execution error occurred for command: {context}"
    if domain is ErrorDomain.VALIDATION:
        return f"Validation error occurred in {context}"
    if domain is ErrorDomain.CODEX_API:
        return f"Codex API error occurred during {context}"
    return f"Configuration error occurred: {original_error}"
