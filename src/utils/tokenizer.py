"""Language-aware tokenization for full-text search.

Chinese text has no spaces between words, so both indexed content and
queries go through ``jieba`` before reaching SQLite FTS5:

* :func:`tokenize_for_index` -- search-engine mode segmentation of segment
  content, space-joined, stored in the FTS table.
* :func:`query_terms` -- the same search-engine mode segmentation applied
  to a query, keeping at most three meaningful terms (length >= 2 and
  containing a CJK letter or an ASCII alphanumeric).  The store ANDs them
  together, and since both sides share one segmentation mode every query
  term of a text is also an index token of that text.

Latin text passes through jieba unchanged apart from splitting on
whitespace and punctuation, and everything is lower-cased.
"""

from __future__ import annotations

import re

import jieba
import structlog

logger = structlog.get_logger(logger_name=__name__)

jieba.setLogLevel(60)

_MEANINGFUL = re.compile(r"[一-龥a-zA-Z0-9]")
_MAX_QUERY_TERMS = 3
_MIN_TERM_LENGTH = 2


def _clean(tokens: list[str]) -> list[str]:
    return [t.strip().lower() for t in tokens if t.strip() and _MEANINGFUL.search(t)]


def tokenize_for_index(text: str) -> str:
    """Return *text* as space-separated lower-case tokens for the FTS index."""
    return " ".join(_clean(list(jieba.cut_for_search(text))))


def query_terms(query: str) -> list[str]:
    """Return up to three AND-able search terms for *query*.

    Falls back to every meaningful token (of any length) when no token is
    long enough, so single-character queries still match.
    """
    tokens = _clean(list(jieba.cut_for_search(query)))
    terms: list[str] = []
    for token in tokens:
        if len(token) >= _MIN_TERM_LENGTH and token not in terms:
            terms.append(token)
        if len(terms) == _MAX_QUERY_TERMS:
            break

    if not terms:
        terms = list(dict.fromkeys(tokens))

    logger.debug("query_tokenized", query=query, terms=terms)
    return terms
