"""Identity repository implementations."""
from .json_store import InMemoryIdentityRepository, JsonFileIdentityRepository

__all__ = ["InMemoryIdentityRepository", "JsonFileIdentityRepository"]
