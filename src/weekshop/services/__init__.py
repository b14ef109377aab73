"""Application services used by the presentation layer."""
