#!/usr/bin/env python3
"""
PSS Command Line Interface

Inspect Top-N selections and replay PSS block scripts.

Usage:
    pss top-n NODE=POWER... [--top-n N]
    pss simulate <script.json> [--config FILE]
    pss show-config [--config FILE]

Block script format (JSON):
    {
      "state": { ...ProviderState.to_dict()... },      (optional, else config)
      "blocks": [
        {
          "current_powers": {"alice": 50},             (optional)
          "history_snapshot": {"alice": 50},           (optional)
          "messages": [
            {"type": "opt_in",  "consumer": "c1", "validator": "alice"},
            {"type": "opt_out", "consumer": "c1", "validator": "bob"}
          ]
        }
      ]
    }
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import click
from rich.console import Console
from rich.table import Table

from .config import load_config
from .exceptions import ConfigurationError
from .logger import configure_logging
from .provider import (
    MsgOptIn,
    MsgOptOut,
    ProtocolState,
    ProviderState,
    TopNSelector,
    apply_block,
    sort_by_power,
)

console = Console()

_MESSAGE_TYPES = {
    "opt_in": MsgOptIn,
    "opt_out": MsgOptOut,
}


def parse_powers(pairs: List[str]) -> Dict[str, int]:
    """Parse NODE=POWER arguments."""
    powers = {}
    for pair in pairs:
        node, sep, power = pair.partition("=")
        if not sep or not node:
            raise click.BadParameter(f"expected NODE=POWER, got {pair!r}")
        try:
            value = int(power)
        except ValueError:
            raise click.BadParameter(f"power must be an integer, got {power!r}") from None
        if value < 0:
            raise click.BadParameter(f"power must be non-negative, got {value}")
        powers[node] = value
    return powers


def parse_message(data: Dict[str, Any]):
    """Build a PSS message from its JSON form."""
    msg_type = data.get("type")
    if msg_type not in _MESSAGE_TYPES:
        raise click.ClickException(f"Unknown message type: {msg_type!r}")
    try:
        return _MESSAGE_TYPES[msg_type](consumer=data["consumer"], validator=data["validator"])
    except KeyError as e:
        raise click.ClickException(f"Message is missing field {e.args[0]!r}") from None


def print_opted_in(state: ProviderState, title: str) -> None:
    table = Table(title=title)
    table.add_column("Consumer", style="cyan")
    table.add_column("N", justify="right")
    table.add_column("Running")
    table.add_column("Opted-in validators")

    consumers = sorted(set(state.opted_in_vals) | set(state.top_n_by_consumer) | state.running_consumers)
    for consumer in consumers:
        table.add_row(
            consumer,
            str(state.top_n(consumer)),
            "yes" if state.is_running(consumer) else "no",
            ", ".join(sorted(state.opted_in(consumer))) or "-",
        )
    console.print(table)


@click.group()
@click.version_option(version="0.1.0", prog_name="pss")
def cli():
    """Partial Set Security provider tools."""
    configure_logging()


@cli.command("top-n")
@click.argument("powers", nargs=-1, required=True)
@click.option("--top-n", "-n", "top_n", type=click.IntRange(0, 100), required=True,
              help="Top-N percentage (0-100)")
def top_n_cmd(powers: List[str], top_n: int):
    """Show which validators are in the top N% of a validator set."""
    validator_set = parse_powers(list(powers))
    selector = TopNSelector()
    selected = selector.select(validator_set, top_n)

    table = Table(title=f"Top {top_n}% (threshold power {selector.threshold(validator_set, top_n)})")
    table.add_column("Validator")
    table.add_column("Power", justify="right")
    table.add_column("Top-N")

    for node, power in sort_by_power(validator_set):
        table.add_row(node, str(power), "[green]yes[/green]" if node in selected else "no")

    console.print(table)


@cli.command("simulate")
@click.argument("script", type=click.Path(exists=True, dir_okay=False))
@click.option("--config", "-c", "config_path", type=click.Path(), default=None,
              help="config.toml providing the initial state")
@click.option("--json", "as_json", is_flag=True, help="Print the final state as JSON")
def simulate_cmd(script: str, config_path: Optional[str], as_json: bool):
    """Replay a JSON block script through the PSS block pipeline."""
    try:
        config = load_config(config_path)
        config.validate()
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e
    configure_logging(
        log_level=config.logging.level,
        console_output=config.logging.console,
        log_file=Path(config.logging.file) if config.logging.file else None,
        file_output=bool(config.logging.file),
    )

    with open(script, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise click.ClickException(f"Invalid block script: {e}") from e
    if not isinstance(data, dict):
        raise click.ClickException("Invalid block script: top-level JSON must be an object")

    if "state" in data:
        provider = ProviderState.from_dict(data["state"])
    else:
        provider = config.provider.initial_state()
    state = ProtocolState(provider=provider)

    blocks = data.get("blocks", [])
    if not isinstance(blocks, list) or not all(isinstance(block, dict) for block in blocks):
        raise click.ClickException("Invalid block script: \"blocks\" must be a list of objects")

    for height, block in enumerate(blocks, start=1):
        provider = state.provider
        if "current_powers" in block:
            provider = provider.with_current_powers(block["current_powers"])
        if "history_snapshot" in block:
            provider = provider.with_history_snapshot(block["history_snapshot"])
        state = state.with_provider(provider)

        messages = [parse_message(m) for m in block.get("messages", [])]
        result = apply_block(state, messages)
        state = result.state

        if not as_json:
            for message, res in result.failed:
                console.print(
                    f"[yellow]block {height}:[/yellow] {type(message).__name__} "
                    f"{message.validator} on {message.consumer} rejected: "
                    f"[red]{res.error_kind}[/red]"
                )

    if as_json:
        click.echo(json.dumps(state.provider.to_dict(), indent=2, sort_keys=True))
    else:
        print_opted_in(state.provider, "Opted-in validators")


@cli.command("show-config")
@click.option("--config", "-c", "config_path", type=click.Path(), default=None)
def show_config_cmd(config_path: Optional[str]):
    """Print the effective configuration."""
    try:
        config = load_config(config_path)
        config.validate()
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e
    click.echo(json.dumps(config.to_dict(), indent=2))


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
