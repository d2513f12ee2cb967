"""Memories, stores and semantic search."""
