"""Pure ranking functions used by the retrieval service.

Nothing here does I/O.  Every function takes ranked chunk lists and returns
a new list, so the hybrid strategies can be tested with hand-built inputs.

Weighted fusion combines the raw sub-search scores without rescaling them:

    final = vector_score * semantic_weight + full_text_score * keyword_weight

A chunk found by only one sub-search gets 0 for the other side.  Because
full-text scores are already multiplied by ten, a strong keyword hit can
outrank a strong semantic hit even with a 0.7 semantic weight.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable

from src.models.retrieval import RankedChunk

VECTOR_SOURCE = "vector"
FULL_TEXT_SOURCE = "full_text"


def rank_key(chunk: RankedChunk) -> tuple[float, str]:
    """Sort key: score descending, then id ascending for stable ties."""
    return (-chunk.score, chunk.id)


def relevance_key(chunk: RankedChunk) -> tuple[float, str]:
    return (-(chunk.relevance_score or 0.0), chunk.id)


def apply_threshold(
    chunks: Iterable[RankedChunk],
    threshold: float,
    enabled: bool,
    score_of: Callable[[RankedChunk], float] = lambda c: c.score,
) -> list[RankedChunk]:
    """Drop chunks scoring below *threshold*; a no-op unless *enabled*."""
    if not enabled:
        return list(chunks)
    return [c for c in chunks if score_of(c) >= threshold]


def sort_and_truncate(
    chunks: Iterable[RankedChunk],
    top_k: int,
    key: Callable[[RankedChunk], tuple[float, str]] = rank_key,
) -> list[RankedChunk]:
    return sorted(chunks, key=key)[:top_k]


def weighted_score_fusion(
    vector: list[RankedChunk],
    full_text: list[RankedChunk],
    semantic_weight: float,
    keyword_weight: float,
    top_k: int,
) -> list[RankedChunk]:
    """Merge both candidate lists by id and rank them by the weighted sum.

    The returned chunks carry ``vector_score``, ``full_text_score`` and
    ``sources`` so callers can see which sub-search contributed what.
    """
    merged: dict[str, tuple[RankedChunk, float, float, set[str]]] = {}

    for chunk in vector:
        merged[chunk.id] = (chunk, chunk.score, 0.0, {VECTOR_SOURCE})

    for chunk in full_text:
        if chunk.id in merged:
            base, v_score, _, sources = merged[chunk.id]
            merged[chunk.id] = (base, v_score, chunk.score, sources | {FULL_TEXT_SOURCE})
        else:
            merged[chunk.id] = (chunk, 0.0, chunk.score, {FULL_TEXT_SOURCE})

    fused = [
        base.model_copy(
            update={
                "score": v_score * semantic_weight + f_score * keyword_weight,
                "vector_score": v_score,
                "full_text_score": f_score,
                "sources": frozenset(sources),
            }
        )
        for base, v_score, f_score, sources in merged.values()
    ]
    return sort_and_truncate(fused, top_k)


def merge_candidates(vector: list[RankedChunk], full_text: list[RankedChunk]) -> list[RankedChunk]:
    """Deduplicate both lists by id, keeping the copy with the higher raw score.

    Order follows first appearance (vector results first).
    """
    best: dict[str, RankedChunk] = {}
    sources: dict[str, set[str]] = {}

    for source, chunks in ((VECTOR_SOURCE, vector), (FULL_TEXT_SOURCE, full_text)):
        for chunk in chunks:
            sources.setdefault(chunk.id, set()).add(source)
            current = best.get(chunk.id)
            if current is None or chunk.score > current.score:
                best[chunk.id] = chunk

    return [
        chunk.model_copy(update={"sources": frozenset(sources[chunk_id])})
        for chunk_id, chunk in best.items()
    ]
