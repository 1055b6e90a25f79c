"""Extract plain text from uploaded files.

Dispatch is by file extension:

    txt, md, markdown, csv, json, log  -> UTF-8 decode (undecodable bytes replaced)
    html, htm                          -> BeautifulSoup ``get_text``
    pdf                                -> PyMuPDF page text, pages joined by blank lines
    epub                               -> ebooklib documents through BeautifulSoup

Parsing is CPU/disk bound, so :meth:`FileParser.parse` runs the extractor
in a worker thread.
"""

from __future__ import annotations

import asyncio
import os
import tempfile
from collections.abc import Callable

import ebooklib
import fitz  # PyMuPDF
import structlog
from bs4 import BeautifulSoup
from ebooklib import epub

from src.models.indexing import StoredFile
from src.utils.errors import IndexingError

logger = structlog.get_logger(logger_name=__name__)

_PLAIN_TEXT_EXTENSIONS = frozenset({"txt", "md", "markdown", "csv", "json", "log"})
_HTML_EXTENSIONS = frozenset({"html", "htm"})


def _parse_plain(data: bytes) -> str:
    return data.decode("utf-8-sig", errors="replace")


def _parse_html(data: bytes) -> str:
    soup = BeautifulSoup(data, "html.parser")
    for tag in soup(["script", "style"]):
        tag.decompose()
    return soup.get_text(separator="\n")


def _parse_pdf(data: bytes) -> str:
    with fitz.open(stream=data, filetype="pdf") as doc:
        pages = [page.get_text("text").strip() for page in doc]
    return "\n\n".join(p for p in pages if p)


def _parse_epub(data: bytes) -> str:
    # ebooklib only reads from a path.
    fd, path = tempfile.mkstemp(suffix=".epub")
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
        book = epub.read_epub(path, options={"ignore_ncx": True})
    finally:
        os.unlink(path)

    chapters: list[str] = []
    for item in book.get_items_of_type(ebooklib.ITEM_DOCUMENT):
        soup = BeautifulSoup(item.get_content(), "html.parser")
        text = soup.get_text(separator="\n").strip()
        if text:
            chapters.append(text)
    return "\n\n".join(chapters)


class FileParser:
    """Turns a :class:`StoredFile` into text."""

    def __init__(self) -> None:
        self._parsers: dict[str, Callable[[bytes], str]] = {
            **{ext: _parse_plain for ext in _PLAIN_TEXT_EXTENSIONS},
            **{ext: _parse_html for ext in _HTML_EXTENSIONS},
            "pdf": _parse_pdf,
            "epub": _parse_epub,
        }

    def supported_extensions(self) -> list[str]:
        return sorted(self._parsers)

    async def parse(self, file: StoredFile) -> str:
        """Extract the text of *file*.

        Raises
        ------
        IndexingError
            For unsupported extensions or files the parser cannot read.
        """
        parser = self._parsers.get(file.extension.lower())
        if parser is None:
            raise IndexingError(f"Unsupported file type: .{file.extension} ({file.name})")

        try:
            text = await asyncio.to_thread(parser, file.data)
        except Exception as exc:  # noqa: BLE001
            raise IndexingError(f"Could not parse {file.name}: {exc}") from exc

        logger.debug("file_parsed", file_id=file.file_id, name=file.name, chars=len(text))
        return text
