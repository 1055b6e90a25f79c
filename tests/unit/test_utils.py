"""Unit tests for tokenization and bounded-concurrency helpers."""

from __future__ import annotations

import asyncio

import pytest

from src.utils.concurrency import throttled_gather
from src.utils.tokenizer import query_terms, tokenize_for_index


class TestTokenizer:
    def test_index_tokens_are_lower_case(self) -> None:
        assert tokenize_for_index("The Quick Fox") == "the quick fox"

    def test_punctuation_dropped(self) -> None:
        assert tokenize_for_index("hello, world!") == "hello world"

    def test_chinese_text_split_into_words(self) -> None:
        tokens = tokenize_for_index("产品价格说明").split()
        assert len(tokens) > 1
        assert "".join(tokens).startswith("产品")

    def test_query_terms_capped_at_three(self) -> None:
        assert query_terms("alpha beta gamma delta") == ["alpha", "beta", "gamma"]

    def test_short_tokens_only_used_as_fallback(self) -> None:
        assert query_terms("a b") == ["a", "b"]
        assert query_terms("go a") == ["go"]

    def test_no_meaningful_terms(self) -> None:
        assert query_terms("?! ...") == []

    @pytest.mark.parametrize("text", ["中华人民共和国", "自然语言处理", "上海交通大学"])
    def test_query_terms_are_index_tokens_of_same_text(self, text: str) -> None:
        terms = query_terms(text)
        assert terms
        assert set(terms) <= set(tokenize_for_index(text).split())


class TestThrottledGather:
    @pytest.mark.asyncio
    async def test_results_in_order_and_limit_respected(self) -> None:
        running = 0
        peak = 0

        async def _task(value: int) -> int:
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0.01)
            running -= 1
            return value * 2

        results = await throttled_gather([_task(i) for i in range(10)], limit=3)

        assert results == [i * 2 for i in range(10)]
        assert peak <= 3

    @pytest.mark.asyncio
    async def test_exceptions_returned_when_requested(self) -> None:
        async def _fail() -> int:
            raise ValueError("bad")

        async def _ok() -> int:
            return 1

        results = await throttled_gather([_ok(), _fail()], return_exceptions=True)
        assert results[0] == 1
        assert isinstance(results[1], ValueError)
