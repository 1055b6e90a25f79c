"""Integration tests for SQLiteDatasetStore against a temp database.

Covers counters, the claim primitive, cascades and both search operators
(numpy cosine similarity and FTS5 bm25 with jieba tokens).
"""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from src.models.dataset import ProcessingStatus, StatusCounts
from src.providers.store.sqlite_dataset_store import SQLiteDatasetStore
from src.utils.errors import InternalError, NotFoundError, RetrievalUnavailableError
from src.utils.tokenizer import query_terms
from tests.conftest import make_dataset, make_document, make_segment


async def _seed(store: SQLiteDatasetStore, contents: list[str], document_id: str = "doc-1") -> None:
    if await store.get_dataset("ds-1") is None:
        await store.create_dataset(make_dataset())
    segments = [
        make_segment(f"{document_id}-s{i}", document_id=document_id, chunk_index=i, content=text)
        for i, text in enumerate(contents)
    ]
    await store.create_document(make_document(document_id, file_size=len("".join(contents))), segments)


async def _complete(store: SQLiteDatasetStore, vectors: dict[str, list[float]]) -> None:
    await store.claim_segments(list(vectors))
    await store.save_embeddings(vectors, "embed-1")


# ======================================================================
# Datasets, documents and counters
# ======================================================================


class TestDocuments:
    @pytest.mark.asyncio
    async def test_initialize_is_idempotent(self, store: SQLiteDatasetStore) -> None:
        await store.initialize()
        assert store.get_provider_name() == "sqlite_dataset_store"

    @pytest.mark.asyncio
    async def test_create_dataset_raises_when_row_cannot_be_read_back(
        self, store: SQLiteDatasetStore
    ) -> None:
        with patch.object(store, "get_dataset", AsyncMock(return_value=None)):
            with pytest.raises(InternalError, match="missing right after insert"):
                await store.create_dataset(make_dataset())

    @pytest.mark.asyncio
    async def test_dataset_round_trip(self, store: SQLiteDatasetStore) -> None:
        created = await store.create_dataset(make_dataset(name="manual"))
        assert created.name == "manual"
        assert created.document_count == 0
        assert await store.get_dataset("missing") is None

    @pytest.mark.asyncio
    async def test_counters_follow_inserts_and_deletes(self, store: SQLiteDatasetStore) -> None:
        await _seed(store, ["one", "two", "three"], "doc-1")
        await _seed(store, ["four"], "doc-2")

        dataset = await store.get_dataset("ds-1")
        assert (dataset.document_count, dataset.chunk_count) == (2, 4)
        assert dataset.storage_size == len("onetwothree") + len("four")

        deleted = await store.delete_document("doc-1")
        assert deleted is not None
        dataset = await store.get_dataset("ds-1")
        assert (dataset.document_count, dataset.chunk_count, dataset.storage_size) == (1, 1, 4)
        assert await store.list_segments("doc-1") == []
        assert await store.delete_document("doc-1") is None

    @pytest.mark.asyncio
    async def test_document_requires_dataset(self, store: SQLiteDatasetStore) -> None:
        with pytest.raises(NotFoundError):
            await store.create_document(make_document(dataset_id="nope"), [])

    @pytest.mark.asyncio
    async def test_deleting_dataset_cascades(self, store: SQLiteDatasetStore) -> None:
        await _seed(store, ["one"])
        assert await store.delete_dataset("ds-1") is True
        assert await store.get_document("doc-1") is None
        assert await store.get_segment("doc-1-s0") is None

    @pytest.mark.asyncio
    async def test_children_and_metadata_round_trip(self, store: SQLiteDatasetStore) -> None:
        await store.create_dataset(make_dataset())
        segment = make_segment(
            "p0", content="parent", children=["c1", "c2"], metadata={"file_name": "产品.txt"}
        )
        await store.create_document(make_document(), [segment])

        loaded = await store.get_segment("p0")
        assert loaded.children == ["c1", "c2"]
        assert loaded.metadata == {"file_name": "产品.txt"}


# ======================================================================
# Segment state machine
# ======================================================================


class TestSegmentStates:
    @pytest.mark.asyncio
    async def test_claim_only_moves_pending_rows(self, store: SQLiteDatasetStore) -> None:
        await _seed(store, ["a", "b", "c"])

        first = await store.claim_segments(["doc-1-s0", "doc-1-s1"])
        second = await store.claim_segments(["doc-1-s1", "doc-1-s2"])

        assert first == ["doc-1-s0", "doc-1-s1"]
        assert second == ["doc-1-s2"]
        assert await store.get_pending_segments("ds-1") == []

    @pytest.mark.asyncio
    async def test_pending_segments_ordered_and_scoped(self, store: SQLiteDatasetStore) -> None:
        await _seed(store, ["a", "b"], "doc-1")
        await _seed(store, ["c"], "doc-2")

        scoped = await store.get_pending_segments("ds-1", "doc-2")
        assert [s.id for s in scoped] == ["doc-2-s0"]
        everything = await store.get_pending_segments("ds-1")
        assert len(everything) == 3

    @pytest.mark.asyncio
    async def test_save_and_fail(self, store: SQLiteDatasetStore) -> None:
        await _seed(store, ["a", "b"])
        await _complete(store, {"doc-1-s0": [0.5, 0.5]})
        await store.claim_segments(["doc-1-s1"])
        await store.fail_segments(["doc-1-s1"], "boom")

        done = await store.get_segment("doc-1-s0")
        assert done.status == ProcessingStatus.COMPLETED
        assert done.embedding == [0.5, 0.5]
        assert done.vector_dimension == 2
        failed = await store.get_segment("doc-1-s1")
        assert failed.status == ProcessingStatus.FAILED
        assert failed.error == "boom"
        assert failed.embedding is None

        counts = await store.count_segment_statuses(["doc-1"])
        assert counts["doc-1"] == StatusCounts(completed=1, failed=1)

    @pytest.mark.asyncio
    async def test_fail_unfinished_and_reset(self, store: SQLiteDatasetStore) -> None:
        await _seed(store, ["a", "b", "c"])
        await _complete(store, {"doc-1-s0": [1.0]})
        await store.claim_segments(["doc-1-s1"])

        assert await store.fail_unfinished_segments("ds-1", "doc-1", "model gone") == 2
        assert await store.reset_failed_segments("ds-1") == 2
        assert await store.reset_failed_segments("ds-1") == 0

        statuses = [s.status for s in await store.list_segments("doc-1")]
        assert statuses == [
            ProcessingStatus.COMPLETED,
            ProcessingStatus.PENDING,
            ProcessingStatus.PENDING,
        ]

    @pytest.mark.asyncio
    async def test_document_status_and_errors(self, store: SQLiteDatasetStore) -> None:
        await _seed(store, ["a"])
        await store.update_document_status("doc-1", ProcessingStatus.ERROR, 50, "1 of 2 failed")
        assert (await store.get_document("doc-1")).error == "1 of 2 failed"

        await store.clear_document_errors("ds-1")
        document = await store.get_document("doc-1")
        assert document.error is None
        assert document.status == ProcessingStatus.ERROR
        assert document.progress == 50


# ======================================================================
# Search operators
# ======================================================================


class TestVectorSearch:
    @pytest.mark.asyncio
    async def test_cosine_ranking(self, store: SQLiteDatasetStore) -> None:
        await _seed(store, ["x axis", "diagonal", "y axis"])
        await _complete(
            store,
            {"doc-1-s0": [1.0, 0.0], "doc-1-s1": [1.0, 1.0], "doc-1-s2": [0.0, 1.0]},
        )

        chunks = await store.vector_search("ds-1", [1.0, 0.0], limit=3)

        assert [c.id for c in chunks] == ["doc-1-s0", "doc-1-s1", "doc-1-s2"]
        assert chunks[0].score == pytest.approx(1.0)
        assert chunks[1].score == pytest.approx(0.7071, abs=1e-3)
        assert chunks[2].score == pytest.approx(0.0)
        assert chunks[0].file_name == "doc-1.txt"

    @pytest.mark.asyncio
    async def test_threshold_and_limit(self, store: SQLiteDatasetStore) -> None:
        await _seed(store, ["x", "d", "y"])
        await _complete(
            store,
            {"doc-1-s0": [1.0, 0.0], "doc-1-s1": [1.0, 1.0], "doc-1-s2": [0.0, 1.0]},
        )
        assert len(await store.vector_search("ds-1", [1.0, 0.0], limit=3, score_threshold=0.5)) == 2
        assert len(await store.vector_search("ds-1", [1.0, 0.0], limit=1)) == 1

    @pytest.mark.asyncio
    async def test_only_completed_and_enabled_rows(self, store: SQLiteDatasetStore) -> None:
        await _seed(store, ["a", "b", "c"])
        await _complete(store, {"doc-1-s0": [1.0, 0.0], "doc-1-s1": [1.0, 0.0]})
        await store.set_segment_enabled("doc-1-s1", False)

        chunks = await store.vector_search("ds-1", [1.0, 0.0], limit=10)
        assert [c.id for c in chunks] == ["doc-1-s0"]

        await store.set_document_enabled("doc-1", False)
        assert await store.vector_search("ds-1", [1.0, 0.0], limit=10) == []

    @pytest.mark.asyncio
    async def test_dimension_mismatch_skipped(self, store: SQLiteDatasetStore) -> None:
        await _seed(store, ["a", "b"])
        await _complete(store, {"doc-1-s0": [1.0, 0.0], "doc-1-s1": [1.0, 0.0, 0.0]})
        chunks = await store.vector_search("ds-1", [1.0, 0.0], limit=10)
        assert [c.id for c in chunks] == ["doc-1-s0"]

    @pytest.mark.asyncio
    async def test_zero_query_rejected(self, store: SQLiteDatasetStore) -> None:
        with pytest.raises(RetrievalUnavailableError):
            await store.vector_search("ds-1", [0.0, 0.0], limit=3)


class TestFullTextSearch:
    @pytest.mark.asyncio
    async def test_terms_are_anded(self, store: SQLiteDatasetStore) -> None:
        await _seed(store, ["the quick brown fox", "a quick blue hare", "lazy dogs sleep"])
        await _complete(store, {f"doc-1-s{i}": [1.0] for i in range(3)})

        both = await store.full_text_search("ds-1", ["quick", "fox"], limit=10)
        assert [c.id for c in both] == ["doc-1-s0"]

        quick = await store.full_text_search("ds-1", ["quick"], limit=10)
        assert {c.id for c in quick} == {"doc-1-s0", "doc-1-s1"}
        assert all(0.0 <= c.score < 1.0 for c in quick)

    @pytest.mark.asyncio
    async def test_chinese_terms(self, store: SQLiteDatasetStore) -> None:
        await _seed(store, ["本产品的价格是一百元", "天气很好"])
        await _complete(store, {"doc-1-s0": [1.0], "doc-1-s1": [1.0]})

        chunks = await store.full_text_search("ds-1", ["价格"], limit=5)
        assert [c.id for c in chunks] == ["doc-1-s0"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["中华人民共和国", "自然语言处理", "上海交通大学"])
    async def test_segment_equal_to_query_is_found(
        self, store: SQLiteDatasetStore, text: str
    ) -> None:
        await _seed(store, [text, "天气很好"])
        await _complete(store, {"doc-1-s0": [1.0], "doc-1-s1": [1.0]})

        chunks = await store.full_text_search("ds-1", query_terms(text), limit=5)
        assert [c.id for c in chunks] == ["doc-1-s0"]

    @pytest.mark.asyncio
    async def test_pending_rows_not_searchable(self, store: SQLiteDatasetStore) -> None:
        await _seed(store, ["quick fox"])
        assert await store.full_text_search("ds-1", ["quick"], limit=5) == []

    @pytest.mark.asyncio
    async def test_quotes_in_terms_are_escaped(self, store: SQLiteDatasetStore) -> None:
        await _seed(store, ["plain text"])
        await _complete(store, {"doc-1-s0": [1.0]})
        assert await store.full_text_search("ds-1", ['te"xt'], limit=5) == []

    @pytest.mark.asyncio
    async def test_edited_content_reindexed(self, store: SQLiteDatasetStore) -> None:
        await _seed(store, ["old words"])
        await store.update_segment_content("doc-1-s0", "new words")
        await _complete(store, {"doc-1-s0": [1.0]})

        assert await store.full_text_search("ds-1", ["old"], limit=5) == []
        assert [c.id for c in await store.full_text_search("ds-1", ["new"], limit=5)] == ["doc-1-s0"]

    @pytest.mark.asyncio
    async def test_empty_terms(self, store: SQLiteDatasetStore) -> None:
        assert await store.full_text_search("ds-1", [], limit=5) == []
