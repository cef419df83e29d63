"""Repository implementations backed by SQLModel."""

from .document import SQLModelDocumentRepository

__all__ = ["SQLModelDocumentRepository"]
