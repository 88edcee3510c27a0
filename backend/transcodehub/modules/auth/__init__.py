"""Authentication and access scope."""
