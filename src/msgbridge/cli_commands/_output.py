"""Shared CLI output formatters."""

from __future__ import annotations

import json
from typing import Any

from rich.console import Console
from rich.table import Table

from msgbridge.core.interface.models import CanonicalMessage, UsageMetadata  # noqa: TC001
from msgbridge.core.streaming.enrich import BlockIndexSet  # noqa: TC001

console = Console()


def print_payload(payload: dict[str, Any]) -> None:
    """Print a provider payload as JSON."""
    console.print_json(json.dumps(payload, default=str))


def print_message(message: CanonicalMessage, *, as_json: bool = False) -> None:
    """Pretty-print an accumulated message, one row per content block."""
    if as_json:
        console.print_json(message.model_dump_json(exclude_none=True))
        return

    console.print(f"\n[bold]Message[/bold] ({message.role})")
    if isinstance(message.content, str):
        console.print(f"  {_truncate(message.content)}")
    else:
        table = Table(title="Content Blocks")
        table.add_column("Index", justify="right")
        table.add_column("Type", style="cyan")
        table.add_column("Content")
        for block in message.content:
            index = "-" if block.index is None else str(block.index)
            table.add_row(index, block.type, _truncate(_block_summary(block)))
        console.print(table)

    if message.response_metadata:
        console.print(f"  Metadata: {_truncate(json.dumps(message.response_metadata, default=str))}")


def print_usage(usage: UsageMetadata | None) -> None:
    """Print token usage, distinguishing 'no cache info' from zero cache hits."""
    if usage is None:
        console.print("\n[yellow]No usage reported.[/yellow]")
        return
    console.print("\n[bold]Usage[/bold]")
    console.print(f"  Input tokens: {usage.input_tokens}")
    console.print(f"  Output tokens: {usage.output_tokens}")
    console.print(f"  Total tokens: {usage.total_tokens}")
    if usage.input_token_details is None:
        console.print("  Cache: (not reported)")
    else:
        details = usage.input_token_details
        console.print(f"  Cache read: {details.cache_read}")
        console.print(f"  Cache creation: {details.cache_creation}")


def print_stream_summary(seen: BlockIndexSet, chunk_count: int) -> None:
    console.print(f"\nChunks: {chunk_count}")
    console.print(f"Content blocks: {list(seen)} ({seen.state.value})")


def _block_summary(block: Any) -> str:
    if hasattr(block, "text") and isinstance(block.text, str):
        return block.text
    if block.type in ("tool_call", "tool_call_chunk"):
        args = block.args if isinstance(block.args, str) else json.dumps(block.args)
        return f"{block.name}({args})"
    return json.dumps(block.model_dump(exclude_none=True), default=str)


def _truncate(text: str, max_len: int = 80) -> str:
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."
