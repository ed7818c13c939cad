"""CLI commands for autorouter."""

import json
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from autorouter import __logo__, __version__
from autorouter.config.loader import get_config_path, get_keyword_config, load_keyword_config
from autorouter.config.models import KeywordConfig
from autorouter.config.normalizer import dump_config, normalize_config
from autorouter.config.schema import ModelSpec, RouterSettings
from autorouter.errors import ConfigValidationError
from autorouter.metrics import RoutingMetrics
from autorouter.router.gauge import IntentGauge
from autorouter.router.models import RoutingRequest
from autorouter.router.resolver import INTENT_TO_SPEC, AutoRouter
from autorouter.utils.logging import configure_logging

app = typer.Typer(
    name="autorouter",
    help=f"{__logo__} autorouter - intent-sensitive model routing",
    no_args_is_help=True,
)
config_app = typer.Typer(help="Keyword configuration commands")
app.add_typer(config_app, name="config")

console = Console()

REASONING_SPECS = {"optimism_reasoner", "optimism_builder", "optimism_analyst", "optimism_researcher", "optimism_strategy"}


def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} autorouter v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logs"),
    log_file: Optional[Path] = typer.Option(None, "--log-file", help="Also write logs to this file"),
    version: bool = typer.Option(None, "--version", callback=version_callback, is_eager=True),
):
    """autorouter - intent-sensitive model routing."""
    configure_logging(level=RouterSettings().log_level, log_file=log_file, verbose=verbose)


def _sample_specs() -> list[ModelSpec]:
    """One spec per intent, pointing at a chat or reasoning model."""
    return [
        ModelSpec(
            name=name,
            label=name,
            preset={
                "endpoint": "Deepseek",
                "model": "deepseek-reasoner" if name in REASONING_SPECS else "deepseek-chat",
            },
        )
        for name in INTENT_TO_SPEC.values()
    ]


def _load(config_path: Optional[Path]) -> KeywordConfig:
    return load_keyword_config(config_path) if config_path else get_keyword_config()


@app.command()
def classify(
    text: str = typer.Argument(..., help="Message text to route"),
    thinking: bool = typer.Option(False, "--thinking", help="Set the thinking toggle"),
    web_search: bool = typer.Option(False, "--web-search", help="Set the web search toggle"),
    max_tokens: int = typer.Option(0, "--max-tokens", help="Requested token budget"),
    user: str = typer.Option("cli", "--user", "-u", help="User id for the gauge key"),
    conversation: str = typer.Option("new", "--conversation", "-c", help="Conversation id for the gauge key"),
    config_path: Optional[Path] = typer.Option(None, "--config", help="Keyword configuration file"),
):
    """Route one message and show the decision."""
    router = AutoRouter(
        gauge=IntentGauge(),
        config=_load(config_path),
        metrics=RoutingMetrics(),
    )
    body = {
        "endpoint": "Deepseek",
        "conversationId": conversation,
        "text": text,
        "thinking": thinking,
        "web_search": web_search,
        "max_tokens": max_tokens,
    }
    result = router.apply(RoutingRequest(body=body, specs=_sample_specs(), user_id=user))

    if result is None:
        console.print("[yellow]Request was not routed[/yellow]")
        raise typer.Exit(1)

    candidate = result.candidate
    table = Table(title=f"{__logo__} Routing Decision", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Spec", f"[bold green]{result.spec}[/bold green]")
    table.add_row("Model", str(body.get("model", "-")))
    table.add_row("Intent", result.intent)
    table.add_row("Intensity", f"{result.gauge.intensity:.2f}")
    table.add_row("Candidate", f"{candidate.intent} ({candidate.intensity:.2f})")
    table.add_row("Reason", ", ".join(candidate.reason) or "-")
    table.add_row("Keyword hits", escape(", ".join(candidate.keyword_hits)) or "-")
    table.add_row("Toggles", ", ".join(f"{k}={v}" for k, v in result.toggles.items()))
    table.add_row("Auto web search", "[green]yes[/green]" if candidate.auto_web_search else "no")
    if candidate.search_signals.should_search:
        table.add_row(
            "Search signal",
            f"{candidate.search_signals.reason} ({candidate.search_signals.confidence:.2f})",
        )
    console.print(table)

    if candidate.keyword_signals:
        signals = Table(title="Keyword Signals")
        signals.add_column("Intent", style="cyan")
        signals.add_column("Intensity", justify="right")
        signals.add_column("Hits")
        for signal in candidate.keyword_signals:
            signals.add_row(signal.intent, f"{signal.intensity:.2f}", escape(", ".join(signal.hits)))
        console.print(signals)


@config_app.command("validate")
def config_validate(
    path: Optional[Path] = typer.Argument(None, help="Config file (defaults to the configured path)"),
):
    """Validate a keyword configuration file."""
    path = path or get_config_path()

    if not path.exists():
        console.print(f"[red]✗[/red] Config file not found: {path}")
        raise typer.Exit(1)

    try:
        config = normalize_config(json.loads(path.read_text(encoding="utf-8")))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        console.print(f"[red]✗[/red] Invalid JSON in {path}: {e}")
        raise typer.Exit(1)
    except ConfigValidationError as e:
        console.print(f"[red]✗[/red] {escape(str(e))}")
        raise typer.Exit(1)

    patterns = sum(len(group.patterns) for group in config.keyword_groups)
    console.print(
        f"[green]✓[/green] {path} is valid: "
        f"{len(config.keyword_groups)} keyword groups, {patterns} patterns"
    )


@config_app.command("show")
def config_show(
    config_path: Optional[Path] = typer.Option(None, "--config", help="Keyword configuration file"),
    as_json: bool = typer.Option(False, "--json", help="Print the normalized document as JSON"),
):
    """Show the effective keyword configuration."""
    config = _load(config_path)

    if as_json:
        console.print_json(data=dump_config(config))
        return

    groups = Table(title=f"{__logo__} Keyword Groups")
    groups.add_column("Intent", style="cyan")
    groups.add_column("Base", justify="right")
    groups.add_column("Max boost", justify="right")
    groups.add_column("Max", justify="right")
    groups.add_column("Patterns")
    for group in config.keyword_groups:
        groups.add_row(
            group.intent,
            f"{group.base_intensity:.2f}",
            f"{group.max_boost:.2f}",
            f"{group.max_intensity:.2f}",
            "\n".join(f"{escape(pattern.description)} [dim]({pattern.weight:.2f})[/dim]" for pattern in group.patterns),
        )
    console.print(groups)

    sections = Table(title="Heuristics")
    sections.add_column("Section", style="cyan")
    sections.add_column("Intensity", justify="right")
    sections.add_column("Token threshold", justify="right")
    sections.add_column("Patterns", justify="right")
    for name, section in (
        ("quick", config.quick_intent),
        ("detail", config.detail_intent),
        ("support", config.support_intent),
    ):
        sections.add_row(
            name,
            f"{section.intensity:.2f}",
            f"{section.token_budget_threshold:g}",
            str(len(section.patterns)),
        )
    console.print(sections)


if __name__ == "__main__":
    app()
