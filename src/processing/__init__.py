"""Remote processing status polling."""
