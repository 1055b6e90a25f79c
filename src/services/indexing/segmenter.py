"""Boundary-aware text segmentation with overlap, flat or hierarchical.

Normal mode
    The text is cut into coarse blocks on the configured delimiter.  Each
    block is then walked with a window of at most ``max_segment_length``
    characters.  When a window would end mid-block, the cut snaps back to
    the last sentence terminator inside the window (``。！？.!?`` plus any
    trailing whitespace) so segments end on whole sentences where possible.
    The next window starts at ``max(start + min_advance, end - overlap)``
    with ``min_advance = max(1, max_length // 4)``, which keeps the walk
    moving forward even when the overlap is as large as the window.

Hierarchical mode
    Parents are the whole text (``fullText``) or length-bounded blocks with
    no overlap (``paragraph``).  Every parent is preprocessed, then split
    again with the sub-segmentation settings into children.  A parent is
    only emitted when at least one child survives preprocessing.

:class:`SegmentationEngine` is a pure function of (text, config): no I/O,
deterministic, safe to call repeatedly.
"""

from __future__ import annotations

import re

import structlog

from src.models.dataset import (
    DocumentMode,
    IndexingConfig,
    ParentContextMode,
    PreprocessingRules,
)
from src.models.indexing import ParentSegment, SegmentResult
from src.services.indexing.preprocessor import preprocess_text
from src.utils.errors import IndexingError

logger = structlog.get_logger(logger_name=__name__)

# A sentence terminator plus the whitespace that follows it.
_SENTENCE_END = re.compile(r"[。！？.!?]\s*")

_ESCAPES = (("\\n", "\n"), ("\\t", "\t"), ("\\r", "\r"))


def resolve_delimiter(segment_identifier: str) -> str:
    """Turn literal ``\\n``, ``\\t`` and ``\\r`` sequences into real characters."""
    for escaped, actual in _ESCAPES:
        segment_identifier = segment_identifier.replace(escaped, actual)
    return segment_identifier


def _split_blocks(text: str, delimiter: str, split_every_delimiter: bool) -> list[str]:
    if split_every_delimiter:
        return text.split(delimiter)
    # A doubled delimiter marks the real block boundary; single occurrences
    # then stay inside their block.
    doubled = delimiter * 2
    if doubled in text:
        return text.split(doubled)
    return text.split(delimiter)


def split_long_segment(
    text: str,
    delimiter: str,
    max_length: int,
    overlap: int,
    split_every_delimiter: bool = False,
) -> list[str]:
    """Split *text* into windows of at most *max_length* characters.

    Parameters
    ----------
    text:
        Text to split.
    delimiter:
        Resolved block delimiter.
    max_length:
        Maximum window length in characters.
    overlap:
        Characters shared by consecutive windows of the same block.
    split_every_delimiter:
        Split on every delimiter occurrence instead of preferring the
        doubled delimiter.  Used for hierarchical children.

    Returns
    -------
    list[str]
        Stripped, non-empty windows in source order.
    """
    if max_length < 1:
        raise IndexingError(f"max_segment_length must be positive, got {max_length}")

    min_advance = max(1, max_length // 4)
    segments: list[str] = []

    for raw_block in _split_blocks(text, delimiter, split_every_delimiter):
        block = raw_block.strip()
        if not block:
            continue

        start = 0
        block_len = len(block)
        while start < block_len:
            end = min(start + max_length, block_len)

            if end < block_len:
                last_valid = -1
                for match in _SENTENCE_END.finditer(block, start, end):
                    last_valid = match.end()
                if last_valid > start:
                    end = last_valid

            part = block[start:end].strip()
            if part:
                segments.append(part)

            start = max(start + min_advance, end - overlap) if end < block_len else end

    return segments


class SegmentationEngine:
    """Splits raw document text into normal or hierarchical segments."""

    def segment(
        self,
        text: str,
        config: IndexingConfig,
    ) -> list[SegmentResult] | list[ParentSegment]:
        """Segment *text* according to *config*.

        Raises
        ------
        IndexingError
            If hierarchical mode is requested without a parent context mode
            or a sub-segmentation config.
        """
        rules = config.preprocessing_rules
        if config.document_mode == DocumentMode.HIERARCHICAL:
            result: list[SegmentResult] | list[ParentSegment] = self._segment_hierarchical(
                text, config, rules
            )
        else:
            result = self._segment_normal(text, config, rules)

        logger.debug(
            "segmentation_complete",
            mode=config.document_mode.value,
            input_chars=len(text),
            segments=len(result),
        )
        return result

    # ------------------------------------------------------------------
    # Modes
    # ------------------------------------------------------------------

    @staticmethod
    def _segment_normal(
        text: str,
        config: IndexingConfig,
        rules: PreprocessingRules | None,
    ) -> list[SegmentResult]:
        seg = config.segmentation
        pieces = split_long_segment(
            text,
            resolve_delimiter(seg.segment_identifier),
            seg.max_segment_length,
            seg.segment_overlap,
        )
        results: list[SegmentResult] = []
        for index, piece in enumerate(pieces):
            content = preprocess_text(piece, rules)
            if content:
                results.append(SegmentResult(content=content, index=index, length=len(piece)))
        return results

    @staticmethod
    def _segment_hierarchical(
        text: str,
        config: IndexingConfig,
        rules: PreprocessingRules | None,
    ) -> list[ParentSegment]:
        if config.parent_context_mode is None or config.sub_segmentation is None:
            raise IndexingError(
                "Hierarchical mode requires parent_context_mode and sub_segmentation"
            )

        if config.parent_context_mode == ParentContextMode.FULL_TEXT:
            parents = [text]
        else:
            seg = config.segmentation
            parents = split_long_segment(
                text,
                resolve_delimiter(seg.segment_identifier),
                seg.max_segment_length,
                0,
            )

        sub = config.sub_segmentation
        sub_delimiter = resolve_delimiter(sub.segment_identifier)
        results: list[ParentSegment] = []

        for parent_index, parent in enumerate(parents):
            clean_parent = preprocess_text(parent, rules)
            if not clean_parent:
                continue

            children: list[SegmentResult] = []
            pieces = split_long_segment(
                clean_parent,
                sub_delimiter,
                sub.max_segment_length,
                0,
                split_every_delimiter=True,
            )
            for child_index, piece in enumerate(pieces):
                content = preprocess_text(piece, rules)
                if content:
                    children.append(
                        SegmentResult(content=content, index=child_index, length=len(piece))
                    )

            if children:
                results.append(
                    ParentSegment(
                        content=clean_parent,
                        index=parent_index,
                        length=len(clean_parent),
                        children=children,
                    )
                )

        return results
