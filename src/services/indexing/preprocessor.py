"""Text clean-up applied to every chunk before it is emitted.

Rules, in order:

1. Always collapse runs of three or more newlines to a blank line.
2. ``replace_consecutive_whitespace``: collapse repeated spaces/tabs to one
   space and repeated newlines to one newline, then strip.
3. ``remove_urls_and_emails``: delete http(s) URLs and e-mail addresses,
   then re-collapse whitespace and strip.

Pure functions; no I/O.
"""

from __future__ import annotations

import re

from src.models.dataset import PreprocessingRules

_EXCESS_NEWLINES = re.compile(r"\n{3,}")
_COLLAPSE_WS = re.compile(r"[ \t]{2,}")
_COLLAPSE_NL = re.compile(r"\n{2,}")
_URL = re.compile(r"https?://[\w./:%#$&?()~\-+=]+", re.IGNORECASE)
_EMAIL = re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}")


def collapse_whitespace(text: str) -> str:
    """Collapse repeated spaces/tabs and repeated newlines, then strip."""
    return _COLLAPSE_NL.sub("\n", _COLLAPSE_WS.sub(" ", text)).strip()


def preprocess_text(text: str, rules: PreprocessingRules | None = None) -> str:
    """Normalise *text* according to *rules*.

    Parameters
    ----------
    text:
        Raw chunk text.
    rules:
        Optional clean-up switches.  ``None`` applies only the
        always-on newline collapse.

    Returns
    -------
    str
        The cleaned text.  May be empty.
    """
    result = _EXCESS_NEWLINES.sub("\n\n", text)

    if rules is None:
        return result

    if rules.replace_consecutive_whitespace:
        result = collapse_whitespace(result)

    if rules.remove_urls_and_emails:
        result = _EMAIL.sub("", _URL.sub("", result))
        result = collapse_whitespace(result)

    return result
