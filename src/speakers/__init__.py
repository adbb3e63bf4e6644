"""Speaker labeling and frame capture."""
