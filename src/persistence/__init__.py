"""Video record persistence backends."""
