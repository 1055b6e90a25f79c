"""Vectorization: the queue worker, status aggregation and embedding checks."""
