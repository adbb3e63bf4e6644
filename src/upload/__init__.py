"""Chunked upload transport and storage backends."""
