"""Sequence allocation, grouping and sorting of products."""
