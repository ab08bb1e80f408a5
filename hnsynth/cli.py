"""HN Synth CLI — Typer + Rich terminal interface.

Commands: run. Stories and comment trees are rendered live as they
stream in.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import typer
from rich.console import Console

from hnsynth import __version__
from hnsynth.display import SessionDisplay
from hnsynth.errors import ConfigError
from hnsynth.generator import run_session
from hnsynth.keys import load_keys_env
from hnsynth.providers.litellm_provider import LiteLLMProvider
from hnsynth.providers.registry import apply_overrides, load_generator_config
from hnsynth.schemas.config import GeneratorConfig
from hnsynth.session import SessionState

# Load API keys from ~/.hnsynth/keys.env and .env on startup
load_keys_env()

console = Console()

app = typer.Typer(
    name="hnsynth",
    help="Fabricate Hacker News stories and comment trees with an LLM.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"hnsynth {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False, "--version", "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """HN Synth — streams fabricated HN content into the terminal."""


# ── Helpers ──────────────────────────────────────────────────────


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _load_settings(config_path: Path | None, **overrides: object) -> GeneratorConfig:
    """Load config and apply CLI overrides, exit on error."""
    try:
        return apply_overrides(load_generator_config(config_path), **overrides)
    except ConfigError as e:
        console.print(f"[red]Error loading config:[/red] {e}")
        raise typer.Exit(1) from None


# ── hnsynth run ──────────────────────────────────────────────────


@app.command()
def run(
    stories: int = typer.Option(
        None, "--stories", "-n",
        help="Number of stories to request",
    ),
    comments: int = typer.Option(
        None, "--comments", "-c",
        help="Minimum comments to request per story",
    ),
    model: str = typer.Option(
        None, "--model", "-m",
        help="LiteLLM model identifier (e.g. gpt-4, gpt-4o-mini)",
    ),
    mode: str = typer.Option(
        None, "--mode",
        help="Structured output mode: tools, json",
    ),
    max_retries: int = typer.Option(
        None, "--max-retries",
        help="Backend attempts per structured request",
    ),
    timeout: int = typer.Option(
        None, "--timeout", "-t",
        help="Per-call timeout in seconds",
    ),
    max_rows: int = typer.Option(
        None, "--max-rows",
        min=1,
        help="Show only the newest N comments per story",
    ),
    config_path: Path = typer.Option(
        None, "--config",
        help="Path to a generator config TOML file",
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v",
        help="Log stream progress",
    ),
) -> None:
    """Stream fabricated stories and their comment trees."""
    _configure_logging(verbose)
    settings = _load_settings(
        config_path,
        story_count=stories,
        comment_count=comments,
        model=model,
        mode=mode,
        max_retries=max_retries,
        timeout=timeout,
    )

    provider = LiteLLMProvider(settings)
    display = SessionDisplay(console, max_comments_per_story=max_rows)
    state = SessionState()

    try:
        with display:
            asyncio.run(run_session(provider, display, settings, state))
    except KeyboardInterrupt:
        console.print("[yellow]Interrupted.[/yellow]")
        raise typer.Exit(130) from None

    console.print(
        f"[bold]{len(state.stories)}[/bold] stories, "
        f"[bold]{state.comment_count}[/bold] comments "
        f"across {len(state.comments)} threads"
    )
