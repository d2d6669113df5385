"""Storage interfaces package."""
from .identity_repository import IdentityRepository

__all__ = ["IdentityRepository"]
