"""msgbridge — canonical LLM messages, provider transpilation and stream reconciliation."""

from __future__ import annotations

from typing import TYPE_CHECKING

__version__ = "0.1.0"

if TYPE_CHECKING:
    from msgbridge.core.interface.models import CanonicalMessage as CanonicalMessage
    from msgbridge.core.orchestration.handoff import prepare_handoff as prepare_handoff
    from msgbridge.core.streaming.enrich import BlockIndexSet as BlockIndexSet
    from msgbridge.core.streaming.enrich import enrich_chunk as enrich_chunk
    from msgbridge.core.streaming.scrub import scrub as scrub

_LAZY_EXPORTS = {
    "CanonicalMessage": "msgbridge.core.interface.models",
    "BlockIndexSet": "msgbridge.core.streaming.enrich",
    "enrich_chunk": "msgbridge.core.streaming.enrich",
    "scrub": "msgbridge.core.streaming.scrub",
    "prepare_handoff": "msgbridge.core.orchestration.handoff",
}


def __getattr__(name: str) -> object:
    module_path = _LAZY_EXPORTS.get(name)
    if module_path is not None:
        import importlib

        mod = importlib.import_module(module_path)
        return getattr(mod, name)
    raise AttributeError(f"module 'msgbridge' has no attribute {name!r}")
