"""Dataset store providers.

SQLiteDatasetStore keeps datasets, documents and segments in one SQLite
file.  Vector similarity is computed with numpy over the stored float32
blobs; full-text search uses an FTS5 table fed with jieba tokens.
"""

from src.providers.store.sqlite_dataset_store import SQLiteDatasetStore

__all__ = ["SQLiteDatasetStore"]
