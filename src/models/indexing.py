"""Request and result models for segment indexing.

``IndexSegmentsRequest`` is what callers send to
:meth:`src.services.indexing.indexing_service.IndexingService.index_segments`;
``IndexSegmentsResult`` is what they get back: one ``FileSegments`` entry
per input file, holding either flat ``SegmentResult`` items (normal mode) or
``ParentSegment`` items with children (hierarchical mode).
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from src.models.dataset import (
    DocumentMode,
    ParentContextMode,
    PreprocessingRules,
    SegmentationConfig,
)


class SegmentResult(BaseModel):
    """A single emitted segment.

    ``index`` is the position in the splitter output before empty segments
    were dropped, so indices are strictly increasing but may have gaps.
    ``length`` is the length of the text before preprocessing.
    """

    model_config = ConfigDict(frozen=True)

    content: str
    index: int = Field(ge=0)
    length: int = Field(ge=0)


class ParentSegment(SegmentResult):
    """A hierarchical parent block; always has at least one child."""

    children: list[SegmentResult] = Field(min_length=1)


class FileSegments(BaseModel):
    """Segmentation output for one file."""

    model_config = ConfigDict(frozen=True)

    file_id: str
    file_name: str
    segments: list[ParentSegment] | list[SegmentResult]
    segment_count: int = Field(ge=0)


class IndexSegmentsRequest(BaseModel):
    """Files to segment plus the segmentation settings to use."""

    model_config = ConfigDict(frozen=True)

    file_ids: list[str] = Field(min_length=1)
    document_mode: DocumentMode = DocumentMode.NORMAL
    segmentation: SegmentationConfig = Field(default_factory=SegmentationConfig)
    parent_context_mode: ParentContextMode | None = None
    sub_segmentation: SegmentationConfig | None = None
    preprocessing_rules: PreprocessingRules | None = None


class IndexSegmentsResult(BaseModel):
    """Aggregate segmentation output.  ``processing_time`` is in milliseconds."""

    model_config = ConfigDict(frozen=True)

    file_results: list[FileSegments]
    total_segments: int
    processed_files: int
    processing_time: int


class StoredFile(BaseModel):
    """A file resolved from the file store."""

    model_config = ConfigDict(frozen=True)

    file_id: str
    name: str
    size: int
    extension: str
    mime_type: str
    data: bytes = Field(repr=False)
