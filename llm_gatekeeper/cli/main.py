"""
CLI interface for LLM Gatekeeper.

Provides command-line access to pricing, configuration checks and guarded
completions.
"""

import asyncio
import json
import logging
import sys
from typing import Optional

import structlog
import typer
import yaml
from rich.console import Console
from rich.table import Table

from llm_gatekeeper.config.loader import GatekeeperConfig, load_config
from llm_gatekeeper.core.errors import AIServiceError
from llm_gatekeeper.core.models import CompletionRequest
from llm_gatekeeper.core.pricing import PRICING_TABLE, ModelTier
from llm_gatekeeper.sdk.service import get_ai_service

app = typer.Typer()
console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1


def _configure_logging(verbose: bool) -> None:
    """Route structlog output through stdlib logging, debug events only when verbose.

    basicConfig leaves an already configured root logger alone, so a host
    application keeps its own handlers.
    """
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=level)
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.stdlib.LoggerFactory(),
    )


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logs")
):
    """LLM Gatekeeper CLI."""
    _configure_logging(verbose)
    if ctx.invoked_subcommand is None:
        console.print("LLM Gatekeeper - Use --help to see available commands")


def _load(config_path: Optional[str]) -> GatekeeperConfig:
    return load_config(config_path) if config_path else GatekeeperConfig()


@app.command()
def pricing(
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Config file with the tier to model mapping"
    )
):
    """Show per-1K token rates for each model tier."""
    try:
        config = _load(config_path)
    except (OSError, ValueError, yaml.YAMLError) as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    table = Table(title="Model Pricing (per 1K tokens)")
    table.add_column("Tier")
    table.add_column("Provider model")
    table.add_column("Prompt", justify="right")
    table.add_column("Completion", justify="right")
    for tier in ModelTier:
        rates = PRICING_TABLE.get_pricing(tier)
        table.add_row(
            tier.value,
            config.model_id(tier),
            f"${rates.prompt_cost_per_1k}",
            f"${rates.completion_cost_per_1k}"
        )
    console.print(table)


@app.command("config-check")
def config_check(path: str = typer.Argument(..., help="YAML config file to validate")):
    """Validate a configuration file and print the resolved settings."""
    try:
        config = load_config(path)
    except (OSError, ValueError, yaml.YAMLError) as e:
        console.print(f"[red]Invalid configuration:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    console.print("[green]✓[/] Configuration is valid")
    console.print(
        f"Rate limit: {config.rate_limit.max_requests} requests / "
        f"{config.rate_limit.window_seconds:g}s"
    )
    console.print(f"Daily budget: {_format_currency(config.budget.daily_limit)}")
    console.print(
        f"Cache: ttl {config.cache.ttl_seconds:g}s, max {config.cache.max_entries} entries"
    )
    console.print(
        f"Retry: {config.retry.max_attempts} attempts, base delay "
        f"{config.retry.base_delay_seconds:g}s"
    )
    console.print(f"Timeout: {config.timeout_seconds:g}s")
    for tier in ModelTier:
        console.print(f"Model {tier.value}: {config.model_id(tier)}")


@app.command()
def complete(
    prompt: str = typer.Argument(..., help="Prompt to send"),
    model: ModelTier = typer.Option(ModelTier.FAST, "--model", "-m", help="Model tier"),
    as_json: bool = typer.Option(False, "--json", help="Request and print JSON output"),
    no_cache: bool = typer.Option(False, "--no-cache", help="Bypass the response cache"),
    config_path: Optional[str] = typer.Option(None, "--config", "-c", help="Config file")
):
    """Send one prompt through the guarded AI service."""
    try:
        # Without --config the service falls back to LLM_GATEKEEPER_CONFIG
        service = get_ai_service(load_config(config_path) if config_path else None)
        if as_json:
            value = asyncio.run(service.generate_json(prompt, model=model, cache=not no_cache))
            console.print_json(json.dumps(value))
            sys.exit(EXIT_CODE_PASS)

        request = CompletionRequest(prompt=prompt, model=model, cache=not no_cache)
        result = asyncio.run(service.generate_completion(request))
    except (AIServiceError, OSError, ValueError, yaml.YAMLError) as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    console.print(result.content)
    usage = result.usage
    console.print(
        f"\n[dim]{result.model}{' (cached)' if result.cached else ''}: "
        f"{usage.prompt_tokens} prompt + {usage.completion_tokens} completion tokens, "
        f"{_format_currency(usage.estimated_cost, places=6)}[/]"
    )
    sys.exit(EXIT_CODE_PASS)


def _format_currency(amount: float, places: int = 2) -> str:
    """Format currency with proper symbols and formatting."""
    return f"${abs(amount):,.{places}f}"


if __name__ == "__main__":
    app()
