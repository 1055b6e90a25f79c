"""Segment indexing: text preprocessing, file parsing and segmentation."""
