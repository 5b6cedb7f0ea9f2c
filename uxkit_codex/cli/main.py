"""Main CLI entry point for uxkit-codex."""

import argparse
import asyncio
import sys
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn

from uxkit_codex import __version__
from uxkit_codex.codex.cli_wrapper import CodexWrapper
from uxkit_codex.config.config_loader import (
    CLIConfig,
    ConfigurationError,
    IntegrationConfig,
    ensure_valid_config,
    get_config_example,
    load_config,
    merge_config,
)
from uxkit_codex.core.orchestrator import (
    IntegrationError,
    IntegrationOrchestrator,
    IntegrationStatus,
)
from uxkit_codex.core.process_executor import ProcessExecutor
from uxkit_codex.core.template_generator import (
    INSTRUCTIONS_FILENAME,
    CommandTemplateGenerator,
)
from uxkit_codex.core.tool_validator import ToolValidator
from uxkit_codex.utils.logging import (
    LogContext,
    get_logger,
    log_classified_error,
    log_validation_outcome,
    setup_logging,
)

console = Console()
logger = get_logger("cli")


def _print_error(message: str, suggestion: str = None, details: str = None) -> None:
    """Print a formatted error message with optional suggestions.

    Args:
        message: The main error message
        suggestion: Optional suggestion for how to fix the issue
        details: Optional additional details
    """
    console.print(f"[bold red]❌ Error:[/bold red] {escape(message)}")

    if details:
        console.print(f"[dim]{escape(details)}[/dim]")

    if suggestion:
        console.print(f"[yellow]💡 Suggestion:[/yellow] {escape(suggestion)}")


def _print_success(message: str, details: dict = None) -> None:
    """Print a formatted success message.

    Args:
        message: The main success message
        details: Optional dictionary of details to display
    """
    console.print(f"[bold green]✅ {escape(message)}[/bold green]")

    if details:
        for key, value in details.items():
            console.print(f"  [cyan]{key}:[/cyan] {escape(str(value))}")


def _build_integration_config(args: argparse.Namespace, config: CLIConfig) -> IntegrationConfig:
    """Apply subcommand flags on top of the file configuration.

    Raises:
        ConfigurationError: If the merged values violate the schema
    """
    merged = merge_config(
        config.integration_config(),
        template_path=getattr(args, "template_path", None),
        validation_enabled=False if getattr(args, "no_validation", False) else None,
        timeout_ms=getattr(args, "timeout_ms", None),
    )
    ensure_valid_config(merged)
    return merged


async def _run_init(
    integration_config: IntegrationConfig, executor: ProcessExecutor, mock_mode: bool
) -> dict:
    """Initialize the integration and, when enabled, validate the tool."""
    if mock_mode:
        # No external processes in mock mode
        integration_config = merge_config(integration_config, validation_enabled=False)

    validator = ToolValidator.from_config(integration_config, executor=executor)
    orchestrator = IntegrationOrchestrator(
        validator=validator, template_generator=CommandTemplateGenerator()
    )

    await orchestrator.initialize(integration_config)
    state = await orchestrator.get_status()
    if integration_config.validation_enabled and state.status is IntegrationStatus.INITIALIZED:
        log_validation_outcome(await orchestrator.validate())
        state = await orchestrator.get_status()

    return {
        "Status": state.status.value,
        "Tool available": state.tool_available,
        "Templates": Path(integration_config.template_path) / INSTRUCTIONS_FILENAME,
        "Errors": state.error_count,
    }


async def _run_status(integration_config: IntegrationConfig, executor: ProcessExecutor) -> dict:
    """Collect configuration and tool availability without writing files."""
    validator = ToolValidator.from_config(integration_config, executor=executor)
    instructions_path = Path(integration_config.template_path) / INSTRUCTIONS_FILENAME
    return {
        "Enabled": integration_config.enabled,
        "Executable": integration_config.executable,
        "Tool available": await validator.is_tool_available(),
        "Path": await validator.get_tool_path() or "Not found",
        "Version": await validator.get_tool_version() or "Unknown",
        "Templates generated": instructions_path.exists(),
        "Timeout": f"{integration_config.timeout_ms}ms",
    }


def main() -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="uxkit-codex",
        description="UX research toolkit integration with the Codex CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Generate codex.md and the research prompts in the current directory
  uxkit-codex init

  # Generate templates elsewhere without probing the Codex CLI
  uxkit-codex init --template-path ./research --no-validation

  # Check the Codex CLI installation
  uxkit-codex validate

  # Send a prompt to Codex
  uxkit-codex exec "Summarize interview-03.md" --timeout-ms 60000
        """,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"uxkit-codex {__version__}",
    )

    parser.add_argument(
        "--config-example",
        action="store_true",
        help="Print example configuration file and exit",
    )

    parser.add_argument(
        "--mock",
        action="store_true",
        help="Use mock mode instead of the real Codex CLI (overrides config file)",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose output (sets log level to DEBUG)",
    )

    parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Suppress non-essential output (sets log level to ERROR)",
    )

    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Set logging level explicitly (overrides -v/-q)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Init subcommand
    init_parser = subparsers.add_parser(
        "init",
        help="Initialize the integration and generate command templates",
    )
    init_parser.add_argument(
        "--template-path",
        type=str,
        default=None,
        help="Directory that receives the templates (default: from config or .)",
    )
    init_parser.add_argument(
        "--no-validation",
        action="store_true",
        help="Skip probing the Codex CLI during initialization",
    )

    # Validate subcommand
    subparsers.add_parser(
        "validate",
        help="Validate the Codex CLI installation",
    )

    # Status subcommand
    subparsers.add_parser(
        "status",
        help="Show configuration and tool availability",
    )

    # Exec subcommand
    exec_parser = subparsers.add_parser(
        "exec",
        help="Send a prompt to the Codex CLI",
    )
    exec_parser.add_argument("prompt", help="Prompt text")
    exec_parser.add_argument(
        "--timeout-ms",
        type=int,
        default=None,
        help="Deadline in milliseconds (default: from config or 10000)",
    )

    args = parser.parse_args()

    # Handle --config-example flag
    if args.config_example:
        console.print(
            Panel(
                get_config_example(),
                title="📄 Example .uxkit-codex.toml Configuration",
                border_style="cyan",
            )
        )
        console.print(
            "\n[dim]Save this as .uxkit-codex.toml in your project root or ~/.uxkit-codex.toml for user defaults[/dim]"
        )
        sys.exit(0)

    # Load configuration from files (project > user > defaults)
    config = load_config()

    # Determine log level: CLI args override config file
    if args.log_level:
        log_level = args.log_level
    elif args.verbose:
        log_level = "DEBUG"
    elif args.quiet:
        log_level = "ERROR"
    else:
        log_level = config.log_level

    setup_logging(level=log_level)
    logger.debug(
        "Loaded config: tool_command=%s cli_path=%s template_path=%s mock_mode=%s",
        config.tool_command,
        config.cli_path,
        config.template_path,
        config.mock_mode,
    )

    if not args.command:
        parser.print_help()
        sys.exit(1)

    # Determine mock mode: CLI flag overrides config file
    mock_mode = args.mock if args.mock else config.mock_mode

    try:
        integration_config = _build_integration_config(args, config)
    except ConfigurationError as e:
        _print_error(
            "Invalid configuration",
            details="; ".join(e.errors),
            suggestion="Run 'uxkit-codex --config-example' to see the expected settings",
        )
        sys.exit(1)

    if not integration_config.enabled:
        _print_error(
            "Codex integration is disabled",
            suggestion="Set enabled = true in the [codex] section of .uxkit-codex.toml",
        )
        sys.exit(1)

    executor = ProcessExecutor()
    codex = CodexWrapper(executor=executor, config=integration_config, mock_mode=mock_mode)

    if args.command == "init":
        if not args.quiet:
            console.print(
                Panel(
                    f"[bold]Initializing Codex integration[/bold]\n[dim]Templates:[/dim] {escape(integration_config.template_path)}",
                    title="🧭 uxkit-codex",
                    border_style="blue",
                )
            )

        try:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                console=console,
                transient=True,
            ) as progress:
                progress.add_task("Initializing...", total=None)
                details = asyncio.run(_run_init(integration_config, executor, mock_mode))
        except IntegrationError as e:
            log_classified_error(e.classified)
            sys.exit(1)

        if details["Status"] == "error":
            _print_error(
                f"Integration initialized with {details['Errors']} error(s)",
                suggestion="Run with --verbose to see why the availability check failed",
            )
            sys.exit(1)

        _print_success("Integration initialized", details=details)
        sys.exit(0)

    elif args.command == "validate":
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            transient=True,
        ) as progress:
            progress.add_task("Validating Codex CLI...", total=None)
            response = asyncio.run(codex.validate_installation())

        if response.success:
            _print_success(response.output)
            sys.exit(0)
        else:
            _print_error(
                response.error,
                suggestion=response.suggestions[0] if response.suggestions else None,
            )
            sys.exit(1)

    elif args.command == "status":
        with LogContext("Probing Codex CLI"):
            details = asyncio.run(_run_status(integration_config, executor))
        console.print(
            Panel(
                "\n".join(
                    f"[cyan]{key}:[/cyan] {escape(str(value))}" for key, value in details.items()
                ),
                title="📊 Codex Integration Status",
                border_style="cyan",
            )
        )
        sys.exit(0)

    elif args.command == "exec":
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            transient=True,
        ) as progress:
            progress.add_task("Waiting for Codex...", total=None)
            response = asyncio.run(codex.generate(args.prompt, timeout_ms=args.timeout_ms))

        if response.success:
            console.print(response.output, markup=False)
            sys.exit(0)
        else:
            if response.classified is not None:
                log_classified_error(response.classified)
            else:
                _print_error(response.error)
            sys.exit(1)

    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
