"""Unit tests for the segmentation engine (normal and hierarchical modes)."""

from __future__ import annotations

import pytest

from src.models.dataset import (
    DocumentMode,
    IndexingConfig,
    ParentContextMode,
    PreprocessingRules,
    SegmentationConfig,
)
from src.models.indexing import ParentSegment
from src.services.indexing.segmenter import (
    SegmentationEngine,
    resolve_delimiter,
    split_long_segment,
)
from src.utils.errors import IndexingError


def _normal_config(
    identifier: str = "\\n\\n",
    max_length: int = 500,
    overlap: int = 0,
    rules: PreprocessingRules | None = None,
) -> IndexingConfig:
    return IndexingConfig(
        segmentation=SegmentationConfig(
            segment_identifier=identifier,
            max_segment_length=max_length,
            segment_overlap=overlap,
        ),
        preprocessing_rules=rules,
    )


def _hierarchical_config(
    parent_mode: ParentContextMode | None = ParentContextMode.PARAGRAPH,
    sub: SegmentationConfig | None = None,
) -> IndexingConfig:
    return IndexingConfig(
        document_mode=DocumentMode.HIERARCHICAL,
        parent_context_mode=parent_mode,
        sub_segmentation=sub
        if sub is not None
        else SegmentationConfig(segment_identifier="\\n", max_segment_length=100, segment_overlap=0),
    )


# ======================================================================
# Delimiters
# ======================================================================


class TestResolveDelimiter:
    def test_escape_sequences_resolved(self) -> None:
        assert resolve_delimiter("\\n\\n") == "\n\n"
        assert resolve_delimiter("\\t") == "\t"
        assert resolve_delimiter("\\r\\n") == "\r\n"

    def test_plain_delimiter_unchanged(self) -> None:
        assert resolve_delimiter("###") == "###"


# ======================================================================
# split_long_segment
# ======================================================================


class TestSplitLongSegment:
    def test_hard_cut_without_sentence_end(self) -> None:
        assert split_long_segment("abcdefghij", "\n", 4, 0) == ["abcd", "efgh", "ij"]

    def test_consecutive_windows_share_overlap(self) -> None:
        parts = split_long_segment("abcdefghijklmnopqrstuvwxyz", "\n", 10, 3)
        assert parts == ["abcdefghij", "hijklmnopq", "opqrstuvwx", "vwxyz"]
        for current, following in zip(parts, parts[1:]):
            assert current[-3:] == following[:3]

    def test_overlapping_segments_have_increasing_indices(self) -> None:
        result = SegmentationEngine().segment(
            "abcdefghijklmnopqrstuvwxyz", _normal_config(max_length=10, overlap=3)
        )
        contents = [s.content for s in result]
        for current, following in zip(contents, contents[1:]):
            assert current[-3:] == following[:3]
        indices = [s.index for s in result]
        assert indices == sorted(set(indices))
        assert len(indices) == 4

    def test_overlap_larger_than_window_still_progresses(self) -> None:
        parts = split_long_segment("abcdefghij", "\n", 4, 10)
        assert parts[0] == "abcd"
        assert parts[1] == "bcde"
        assert parts[-1] == "ghij"
        assert len(parts) == 7

    def test_snaps_to_sentence_terminator(self) -> None:
        assert split_long_segment("One. Two. Three.", "\n", 8, 0) == ["One.", "Two.", "Three."]

    def test_doubled_delimiter_preferred(self) -> None:
        text = "line one\nline two\n\nline three"
        assert split_long_segment(text, "\n", 500, 0) == ["line one\nline two", "line three"]

    def test_split_every_delimiter(self) -> None:
        text = "line one\nline two\n\nline three"
        assert split_long_segment(text, "\n", 500, 0, split_every_delimiter=True) == [
            "line one",
            "line two",
            "line three",
        ]

    def test_empty_blocks_dropped(self) -> None:
        assert split_long_segment("\n\n  \n\nkept", "\n\n", 500, 0) == ["kept"]

    def test_windows_never_exceed_max_length(self) -> None:
        text = "这是第一句话。这是第二句话！这是第三句话？" * 5
        for part in split_long_segment(text, "\n\n", 12, 3):
            assert len(part) <= 12

    def test_non_positive_max_length_rejected(self) -> None:
        with pytest.raises(IndexingError):
            split_long_segment("text", "\n", 0, 0)


# ======================================================================
# Normal mode
# ======================================================================


class TestNormalMode:
    def test_paragraphs_become_segments(self) -> None:
        result = SegmentationEngine().segment("A.\n\nB.", _normal_config())
        assert [s.content for s in result] == ["A.", "B."]
        assert [s.index for s in result] == [0, 1]
        assert [s.length for s in result] == [2, 2]

    def test_emptied_segment_dropped_and_index_kept(self) -> None:
        rules = PreprocessingRules(remove_urls_and_emails=True)
        result = SegmentationEngine().segment(
            "http://example.com/a\n\nhello world", _normal_config(rules=rules)
        )
        assert len(result) == 1
        assert result[0].content == "hello world"
        assert result[0].index == 1

    def test_length_is_pre_preprocessing_length(self) -> None:
        rules = PreprocessingRules(replace_consecutive_whitespace=True)
        result = SegmentationEngine().segment("a    b", _normal_config(rules=rules))
        assert result[0].content == "a b"
        assert result[0].length == 6

    def test_empty_text_yields_nothing(self) -> None:
        assert SegmentationEngine().segment("", _normal_config()) == []

    def test_deterministic(self) -> None:
        engine = SegmentationEngine()
        config = _normal_config(max_length=10, overlap=3)
        text = "Alpha beta. Gamma delta. Epsilon zeta eta theta."
        assert engine.segment(text, config) == engine.segment(text, config)


# ======================================================================
# Hierarchical mode
# ======================================================================


class TestHierarchicalMode:
    def test_full_text_parent(self) -> None:
        result = SegmentationEngine().segment(
            "p1 s1\np1 s2", _hierarchical_config(ParentContextMode.FULL_TEXT)
        )
        assert len(result) == 1
        parent = result[0]
        assert isinstance(parent, ParentSegment)
        assert parent.content == "p1 s1\np1 s2"
        assert [c.content for c in parent.children] == ["p1 s1", "p1 s2"]

    def test_paragraph_parents(self) -> None:
        result = SegmentationEngine().segment("A1\nA2\n\nB1", _hierarchical_config())
        assert [p.content for p in result] == ["A1\nA2", "B1"]
        assert [c.content for c in result[0].children] == ["A1", "A2"]
        assert [c.content for c in result[1].children] == ["B1"]
        assert [c.index for c in result[0].children] == [0, 1]

    def test_children_respect_sub_max_length(self) -> None:
        sub = SegmentationConfig(segment_identifier="\\n", max_segment_length=5, segment_overlap=0)
        result = SegmentationEngine().segment(
            "abcdefghij", _hierarchical_config(ParentContextMode.FULL_TEXT, sub)
        )
        assert [c.content for c in result[0].children] == ["abcde", "fghij"]

    def test_blank_text_yields_no_parents(self) -> None:
        assert SegmentationEngine().segment("   \n\n  ", _hierarchical_config()) == []
        assert (
            SegmentationEngine().segment("   ", _hierarchical_config(ParentContextMode.FULL_TEXT))
            == []
        )

    def test_missing_sub_segmentation_rejected(self) -> None:
        config = IndexingConfig(
            document_mode=DocumentMode.HIERARCHICAL,
            parent_context_mode=ParentContextMode.PARAGRAPH,
        )
        with pytest.raises(IndexingError):
            SegmentationEngine().segment("text", config)

    def test_missing_parent_mode_rejected(self) -> None:
        with pytest.raises(IndexingError):
            SegmentationEngine().segment("text", _hierarchical_config(parent_mode=None))
