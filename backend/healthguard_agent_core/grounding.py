from __future__ import annotations

from typing import Iterable

from .models import GroundingSource, ModelReply


def extract(reply: ModelReply | None) -> list[GroundingSource]:
    if reply is None:
        return []
    sources: list[GroundingSource] = []
    for chunk in reply.grounding_chunks:
        web = chunk.get("web")
        if not isinstance(web, dict):
            continue
        sources.append(GroundingSource(title=web.get("title") or "Source", uri=web.get("uri") or "#"))
    return sources


def merge(*source_lists: Iterable[GroundingSource]) -> list[GroundingSource]:
    """Union in first-seen order; a repeated uri keeps its first title."""
    seen: set[str] = set()
    merged: list[GroundingSource] = []
    for sources in source_lists:
        for source in sources:
            if source.uri in seen:
                continue
            seen.add(source.uri)
            merged.append(source)
    return merged
