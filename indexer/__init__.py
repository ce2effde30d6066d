"""Embedding and vector storage for docsift."""
