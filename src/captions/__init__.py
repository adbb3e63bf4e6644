"""Caption document parsing and retrieval."""
