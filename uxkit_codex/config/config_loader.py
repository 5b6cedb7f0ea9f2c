"""Configuration file loader for uxkit-codex.

Loads configuration from:
1. .uxkit-codex.toml (project-level, current directory)
2. ~/.uxkit-codex.toml (user-level, home directory)
3. Defaults (if no config files found)

CLI arguments always override config file values.
"""

import sys

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple


_PROJECT_CONFIG_FILENAME = ".uxkit-codex.toml"

_CLI_FIELD_MAPPING = {
    "log_level": "log_level",
    "mock_mode": "mock_mode",
}

_CODEX_FIELD_MAPPING = {
    "enabled": "enabled",
    "cli_path": "cli_path",
    "validation_enabled": "validation_enabled",
    "fallback_to_custom": "fallback_to_custom",
    "template_path": "template_path",
    "timeout_ms": "timeout_ms",
    "tool_command": "tool_command",
}

_SECTION_MAPPINGS: List[Tuple[str, Dict[str, str]]] = [
    ("cli", _CLI_FIELD_MAPPING),
    ("codex", _CODEX_FIELD_MAPPING),
]

_BOOLEAN_FIELDS = ("enabled", "validation_enabled", "fallback_to_custom")

# Passed to merge_config to remove cli_path instead of keeping the base value
CLEAR = object()


class ConfigurationError(ValueError):
    """Raised when an integration configuration violates the schema."""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("Invalid configuration: " + "; ".join(self.errors))


@dataclass(frozen=True)
class IntegrationConfig:
    """Settings for the external tool integration.

    Attributes:
        enabled: Whether the integration is turned on
        cli_path: Explicit path to the tool executable (must be non-empty if set)
        validation_enabled: Probe the tool during initialization
        fallback_to_custom: Fall back to the toolkit's own commands when the tool is missing
        template_path: Directory that receives generated command templates
        timeout_ms: Deadline for tool invocations, in milliseconds
        tool_command: Name of the tool on PATH
    """

    enabled: bool = True
    cli_path: Optional[str] = None
    validation_enabled: bool = True
    fallback_to_custom: bool = False
    template_path: str = "."
    timeout_ms: int = 10000
    tool_command: str = "codex"

    @property
    def executable(self) -> str:
        """Executable to invoke: cli_path when set, else tool_command."""
        return self.cli_path or self.tool_command


@dataclass
class CLIConfig:
    """CLI configuration from file or defaults.

    Holds the merged values of every recognised section; the [codex]
    section becomes an IntegrationConfig through integration_config().
    """

    # CLI settings
    log_level: str = "INFO"
    mock_mode: bool = False

    # Codex integration settings
    enabled: bool = True
    cli_path: Optional[str] = None
    validation_enabled: bool = True
    fallback_to_custom: bool = False
    template_path: str = "."
    timeout_ms: int = 10000
    tool_command: str = "codex"

    def integration_config(self) -> IntegrationConfig:
        """Build and validate the integration settings.

        Raises:
            ConfigurationError: If the merged values violate the schema
        """
        values = {
            config_field.name: getattr(self, config_field.name)
            for config_field in fields(IntegrationConfig)
        }
        config = IntegrationConfig(**values)
        ensure_valid_config(config)
        return config


def validate_config(config: Any) -> List[str]:
    """Check an integration configuration against the schema.

    Args:
        config: IntegrationConfig (or any object with the same attributes)

    Returns:
        List of problems; empty when the configuration is valid
    """
    if config is None:
        return ["configuration is missing"]

    errors = []
    for name in _BOOLEAN_FIELDS:
        if not isinstance(getattr(config, name, None), bool):
            errors.append(f"{name} must be a boolean")

    template_path = getattr(config, "template_path", None)
    if not isinstance(template_path, str) or not template_path.strip():
        errors.append("template_path must be a non-empty string")

    timeout_ms = getattr(config, "timeout_ms", None)
    if isinstance(timeout_ms, bool) or not isinstance(timeout_ms, int) or timeout_ms <= 0:
        errors.append("timeout_ms must be a positive integer")

    cli_path = getattr(config, "cli_path", None)
    if cli_path is not None and (not isinstance(cli_path, str) or not cli_path.strip()):
        errors.append("cli_path must be a non-empty string when provided")

    tool_command = getattr(config, "tool_command", None)
    if not isinstance(tool_command, str) or not tool_command.strip():
        errors.append("tool_command must be a non-empty string")

    return errors


def ensure_valid_config(config: Any) -> None:
    """Raise ConfigurationError listing every schema problem, if any."""
    errors = validate_config(config)
    if errors:
        raise ConfigurationError(errors)


def merge_config(base: IntegrationConfig, **overrides: Any) -> IntegrationConfig:
    """Return a copy of base with the non-None overrides applied.

    Pass cli_path=CLEAR to drop an explicit executable path.

    Raises:
        TypeError: If an override names an unknown field
    """
    changes = {}
    for name, value in overrides.items():
        if value is CLEAR:
            changes[name] = None
        elif value is not None:
            changes[name] = value
    return replace(base, **changes)


def load_config() -> CLIConfig:
    """Load configuration from TOML files with cascading priority.

    Searches for configuration files in priority order (later overrides earlier):
    1. ~/.uxkit-codex.toml (user-level defaults)
    2. .uxkit-codex.toml (project-level overrides)

    Returns:
        CLIConfig instance with merged settings from all found config files.
        Missing files are silently ignored, falling back to defaults.
    """
    config = CLIConfig()

    for config_path in _get_config_paths():
        if config_path.exists():
            config = _merge_config(config, config_path)

    return config


def _merge_config(base_config: CLIConfig, config_path: Path) -> CLIConfig:
    """Merge TOML config file into base configuration.

    Invalid or unreadable files are silently ignored, preserving base_config.

    Args:
        base_config: Configuration to update with file values
        config_path: Path to TOML configuration file

    Returns:
        Updated CLIConfig with merged values, or unchanged base_config if file
        cannot be loaded.
    """
    toml_data = _load_toml_file(config_path)
    if toml_data is None:
        return base_config

    for section_name, field_mapping in _SECTION_MAPPINGS:
        _merge_section(base_config, toml_data, section_name, field_mapping)
    return base_config


def _get_config_paths() -> List[Path]:
    """Get configuration file paths in load order: user config, then project config."""
    user_config = Path.home() / _PROJECT_CONFIG_FILENAME
    project_config = Path.cwd() / _PROJECT_CONFIG_FILENAME

    return [user_config, project_config]


def _load_toml_file(config_path: Path) -> Optional[Dict[str, Any]]:
    """Load and parse TOML configuration file.

    Args:
        config_path: Path to TOML configuration file

    Returns:
        Dictionary with parsed TOML data, or None if file cannot be loaded
        (missing file, invalid TOML syntax, permission errors, etc.).
    """
    try:
        with open(config_path, "rb") as toml_file:
            return tomllib.load(toml_file)
    except (OSError, ValueError, tomllib.TOMLDecodeError):
        return None


def _merge_section(
    config: CLIConfig,
    toml_data: Dict[str, Any],
    section_name: str,
    field_mapping: Dict[str, str],
) -> None:
    """Merge single TOML section into configuration object.

    Only fields named in field_mapping are copied; missing sections or
    fields are ignored.

    Example:
        toml_data = {"codex": {"timeout_ms": 5000}}
        field_mapping = {"timeout_ms": "timeout_ms"}
        Result: config.timeout_ms = 5000
    """
    section_data = toml_data.get(section_name, {})
    if not isinstance(section_data, dict):
        return

    for toml_key, config_attribute_name in field_mapping.items():
        if toml_key in section_data:
            setattr(config, config_attribute_name, section_data[toml_key])


def get_config_example() -> str:
    """Get example config file content.

    Returns:
        Example .uxkit-codex.toml content as string
    """
    return """# uxkit-codex Configuration File
# Place this file as .uxkit-codex.toml in your project root or ~/.uxkit-codex.toml for user defaults

[cli]
# Logging level: DEBUG, INFO, WARNING, ERROR, CRITICAL
log_level = "INFO"

# Use mock mode by default (no external processes are spawned)
mock_mode = false

[codex]
enabled = true
# Executable name on PATH, or set cli_path to an absolute path
tool_command = "codex"
# cli_path = "/usr/local/bin/codex"
validation_enabled = true
fallback_to_custom = false
# Directory that receives codex.md and .codex/prompts/
template_path = "."
timeout_ms = 10000
"""
