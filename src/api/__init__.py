"""Public API facade and caller-facing models."""
