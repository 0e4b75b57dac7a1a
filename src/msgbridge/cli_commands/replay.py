"""``msgbridge replay`` — run recorded stream events through the enrichment engine."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any

import click

from msgbridge.cli_commands._output import (
    console,
    print_message,
    print_stream_summary,
    print_usage,
)
from msgbridge.core.interface.errors import BridgeError
from msgbridge.core.streaming.chunks import StreamChunk, concat_chunks
from msgbridge.core.streaming.converse import ConverseStreamProcessor
from msgbridge.core.streaming.openrouter import ChatStreamProcessor


@click.command("replay")
@click.argument("events_file", type=click.Path(exists=True))
@click.option(
    "--format",
    "event_format",
    type=click.Choice(["converse", "chat"]),
    default="converse",
    help="Shape of the recorded events.",
)
@click.option("--no-usage", is_flag=True, help="Replay with stream usage reporting disabled.")
@click.option("--json", "as_json", is_flag=True, help="Output the accumulated message as JSON.")
def replay(events_file: str, event_format: str, no_usage: bool, as_json: bool) -> None:
    """Replay a recorded stream and print the accumulated message.

    EVENTS_FILE holds one JSON stream event per line.
    """
    try:
        events = _load_events(Path(events_file))
    except json.JSONDecodeError as exc:
        console.print(f"[red]Error loading events:[/red] {exc}")
        sys.exit(1)

    processor: ConverseStreamProcessor | ChatStreamProcessor
    if event_format == "converse":
        processor = ConverseStreamProcessor(stream_usage=not no_usage)
    else:
        processor = ChatStreamProcessor(stream_usage=not no_usage)

    try:
        chunks: list[StreamChunk] = list(processor.iter_chunks(events))
    except BridgeError as exc:
        console.print(f"[red]Stream error:[/red] {exc}")
        sys.exit(1)

    final = concat_chunks(chunks)
    if final is None:
        console.print("[yellow]No chunks produced.[/yellow]")
        return

    message = final.message.to_message()
    print_message(message, as_json=as_json)
    if not as_json:
        print_usage(message.usage_metadata)
        print_stream_summary(processor.seen, len(chunks))


def _load_events(path: Path) -> list[dict[str, Any]]:
    return [json.loads(line) for line in path.read_text().splitlines() if line.strip()]
