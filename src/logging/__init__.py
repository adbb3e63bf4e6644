"""Structured logging: formatters, context and file rotation."""
