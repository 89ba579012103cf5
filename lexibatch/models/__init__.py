"""SQLAlchemy models and declarative base."""

from lexibatch.models.base import Base  # noqa: F401
from lexibatch.models.entities import Language, Prompt, Translation  # noqa: F401

__all__ = [
    "Base",
    "Language",
    "Prompt",
    "Translation",
]
