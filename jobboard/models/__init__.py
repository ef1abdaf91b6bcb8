"""Database models."""

from jobboard.models.user import User

__all__ = ["User"]
