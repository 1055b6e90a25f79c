"""Retrieval: mode dispatch, hybrid fusion, rerank and config validation."""
