"""``msgbridge convert`` — show the provider payload for a canonical history."""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click
from pydantic import ValidationError

from msgbridge.cli_commands._output import console, print_payload
from msgbridge.core.interface.client import get_transpiler
from msgbridge.core.interface.models import ConversationHistory


@click.command("convert")
@click.argument("history_file", type=click.Path(exists=True))
@click.option(
    "--provider",
    type=click.Choice(["converse", "openrouter", "anthropic"]),
    default="converse",
    help="Target provider wire format.",
)
def convert(history_file: str, provider: str) -> None:
    """Convert a canonical message history into a provider payload.

    HISTORY_FILE is a JSON list of canonical messages.
    """
    try:
        data = json.loads(Path(history_file).read_text())
        history = ConversationHistory.model_validate({"messages": data})
    except (json.JSONDecodeError, ValidationError) as exc:
        console.print(f"[red]Error loading history:[/red] {exc}")
        sys.exit(1)

    print_payload(get_transpiler(provider).to_provider(history))
