"""Document repository for JSON blobs stored under fixed keys."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Optional

from sqlmodel import Session, select

from ...models.document import StoredDocument


class SQLModelDocumentRepository:
    """SQLModel-based document repository."""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def get(self, key: str) -> Optional[StoredDocument]:
        with self.session_factory() as session:
            return session.exec(select(StoredDocument).where(StoredDocument.key == key)).first()

    def set(self, key: str, value: str) -> StoredDocument:
        with self.session_factory() as session:
            document = session.exec(
                select(StoredDocument).where(StoredDocument.key == key)
            ).first()
            if document:
                document.value = value
                document.updated_at = datetime.now(timezone.utc)
            else:
                document = StoredDocument(key=key, value=value)
                session.add(document)
            session.commit()
            session.refresh(document)
            return document

    def delete(self, key: str) -> None:
        with self.session_factory() as session:
            document = session.exec(
                select(StoredDocument).where(StoredDocument.key == key)
            ).first()
            if document:
                session.delete(document)
                session.commit()


__all__ = ["SQLModelDocumentRepository"]
