# =============================================================================
# src/cli/datasets.py: Dataset indexing, vectorization and query CLI
# =============================================================================
#
# One-shot operator commands against the same SQLite store and model
# registry the HTTP app uses:
#
#   create     create a dataset (retrieval mode + embedding model)
#   index      store local files, segment them into documents, then
#                vectorize them in-process (unless --no-vectorize)
#   vectorize  embed every pending segment of a dataset or document
#   reset      flip failed segments back to pending for a retry
#   query      run a retrieval query and print the ranked chunks
#
# Usage examples:
#   python -m src.cli create --name handbook --embedding-model text-embedding-3-small
#   python -m src.cli index --dataset <id> --file docs/handbook.pdf
#   python -m src.cli vectorize --dataset <id>
#   python -m src.cli reset --dataset <id> --document <doc-id>
#   python -m src.cli query --dataset <id> --query "产品价格" --mode hybrid --top-k 5
# =============================================================================

"""Command-line access to kbForge indexing, vectorization and retrieval.

Vectorization runs inline (no background queue) so the command returns
once every segment has been processed, printing coarse progress as it goes.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Any

from src.config.settings import Settings
from src.interfaces.job_queue import IJobHandle
from src.models.dataset import RetrievalConfig
from src.models.vectorization import VectorizationJobType, VectorizationParams
from src.utils.errors import KBForgeError


class _ConsoleJobHandle(IJobHandle):
    """Prints progress milestones instead of reporting them to a queue."""

    def __init__(self, label: str) -> None:
        self._label = label
        self._last = -1

    async def progress(self, percent: int) -> None:
        if percent != self._last:
            self._last = percent
            print(f"  [{self._label}] {percent:3d}%")


# ---------------------------------------------------------------------------
# Subcommand handlers
# ---------------------------------------------------------------------------


async def _handle_create(args: argparse.Namespace, components: dict[str, Any]) -> int:
    dataset = await components["document_service"].create_dataset(
        name=args.name,
        embedding_model_id=args.embedding_model,
        retrieval_mode=args.mode,
    )
    print(f"Created dataset {dataset.id}")
    print(f"  Name:            {dataset.name}")
    print(f"  Retrieval mode:  {dataset.retrieval_mode}")
    print(f"  Embedding model: {dataset.embedding_model_id}")
    return 0


async def _vectorize(
    components: dict[str, Any], dataset_id: str, document_id: str | None
) -> bool:
    job_type = VectorizationJobType.DOCUMENT if document_id else VectorizationJobType.DATASET
    result = await components["vectorization_worker"].process_vectorization(
        job_type,
        VectorizationParams(dataset_id=dataset_id, document_id=document_id),
        _ConsoleJobHandle(document_id or dataset_id),
    )
    print(
        f"  Segments: {result.total_segments}  succeeded: {result.success_count}  "
        f"failed: {result.failure_count}  ({result.processing_time} ms)"
    )
    if result.final_status is not None:
        print(f"  Document status: {result.final_status.value}")
    return result.success


async def _handle_index(args: argparse.Namespace, components: dict[str, Any]) -> int:
    file_ids: list[str] = []
    for path in args.files:
        data = Path(path).read_bytes()
        stored = await components["file_store"].save_file(Path(path).name, data)
        print(f"Stored {path} as {stored.file_id} ({stored.size} bytes)")
        file_ids.append(stored.file_id)

    documents = await components["document_service"].ingest_files(
        args.dataset, file_ids, vectorize=False
    )
    for document in documents:
        print(f"Document {document.id}: {document.file_name}, {document.chunk_count} segments")

    if args.no_vectorize:
        return 0

    ok = True
    for document in documents:
        print(f"Vectorizing {document.file_name}")
        ok = await _vectorize(components, args.dataset, document.id) and ok
    return 0 if ok else 2


async def _handle_vectorize(args: argparse.Namespace, components: dict[str, Any]) -> int:
    print(f"Vectorizing dataset {args.dataset}" + (f" document {args.document}" if args.document else ""))
    return 0 if await _vectorize(components, args.dataset, args.document) else 2


async def _handle_reset(args: argparse.Namespace, components: dict[str, Any]) -> int:
    count = await components["vectorization_worker"].reset_vectorization_status(
        args.dataset, args.document
    )
    print(f"Reset {count} failed segment(s) to pending")
    return 0


async def _handle_query(args: argparse.Namespace, components: dict[str, Any]) -> int:
    config = None
    if args.mode or args.top_k or args.threshold is not None:
        dataset = await components["document_service"].get_dataset(args.dataset)
        update: dict[str, Any] = {}
        if args.mode:
            update["retrieval_mode"] = args.mode
        if args.top_k:
            update["top_k"] = args.top_k
        if args.threshold is not None:
            update["score_threshold"] = args.threshold
            update["score_threshold_enabled"] = True
        config = RetrievalConfig.model_validate(
            {**dataset.retrieval_config.model_dump(), **update}
        )

    result = await components["retrieval_service"].query_dataset(args.dataset, args.query, config)
    print(f"{len(result.chunks)} result(s) in {result.total_time} ms\n")
    for rank, chunk in enumerate(result.chunks, start=1):
        score = f"{chunk.score:.4f}"
        if chunk.relevance_score is not None:
            score += f" (relevance {chunk.relevance_score:.4f})"
        print(f"{rank}. [{score}] {chunk.file_name or chunk.document_id} #{chunk.chunk_index}")
        preview = chunk.content.replace("\n", " ")
        print(f"   {preview[:200]}{'...' if len(preview) > 200 else ''}")
    return 0


_HANDLERS = {
    "create": _handle_create,
    "index": _handle_index,
    "vectorize": _handle_vectorize,
    "reset": _handle_reset,
    "query": _handle_query,
}


async def _run(args: argparse.Namespace, app_settings: Settings) -> int:
    # Deferred so --help does not pay for wiring the app.
    from src.main import build_components, shutdown_components

    components = build_components(app_settings)
    await components["dataset_store"].initialize()
    try:
        return await _HANDLERS[args.command](args, components)
    except KBForgeError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    finally:
        await shutdown_components(components)


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m src.cli",
        description="Index, vectorize and query kbForge datasets.",
    )
    subparsers = parser.add_subparsers(dest="command", help="Dataset commands")

    create_parser = subparsers.add_parser("create", help="Create a dataset")
    create_parser.add_argument("--name", required=True, help="Dataset name")
    create_parser.add_argument(
        "--embedding-model", dest="embedding_model", help="Registry id of the embedding model"
    )
    create_parser.add_argument(
        "--mode", default="vector", help="Retrieval mode: vector, fullText or hybrid"
    )

    index_parser = subparsers.add_parser("index", help="Segment local files into a dataset")
    index_parser.add_argument("--dataset", required=True, help="Dataset id")
    index_parser.add_argument(
        "--file", dest="files", action="append", required=True, help="File to index (repeatable)"
    )
    index_parser.add_argument(
        "--no-vectorize", dest="no_vectorize", action="store_true", help="Skip embedding"
    )

    for name, help_text in (
        ("vectorize", "Embed pending segments"),
        ("reset", "Reset failed segments to pending"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("--dataset", required=True, help="Dataset id")
        sub.add_argument("--document", help="Limit to one document id")

    query_parser = subparsers.add_parser("query", help="Query a dataset")
    query_parser.add_argument("--dataset", required=True, help="Dataset id")
    query_parser.add_argument("--query", required=True, help="Query text")
    query_parser.add_argument("--mode", help="Override retrieval mode")
    query_parser.add_argument("--top-k", dest="top_k", type=int, help="Override top_k")
    query_parser.add_argument(
        "--threshold", type=float, help="Enable a score threshold with this value"
    )

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    sys.exit(asyncio.run(_run(args, Settings())))


if __name__ == "__main__":
    main()
