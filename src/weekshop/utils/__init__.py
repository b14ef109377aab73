"""Logging and helpers."""
