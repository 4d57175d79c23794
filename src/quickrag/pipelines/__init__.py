"""Pipelines: indexing and question answering."""
