"""Infrastructure adapters for models, storage and capture."""
