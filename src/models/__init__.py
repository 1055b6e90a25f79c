"""Pydantic data models for kbForge.

- ``dataset``        -- persisted entities and their structured configuration
- ``indexing``       -- segmentation requests and results
- ``retrieval``      -- ranked query results
- ``vectorization``  -- job payloads, model registry records, run summaries
"""
