"""Face recognition services."""
from .embedding_extractor import EmbeddingExtractor

__all__ = ["EmbeddingExtractor"]
