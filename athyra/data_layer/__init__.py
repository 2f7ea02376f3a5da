"""Domain model, error taxonomy, storage and repositories."""
