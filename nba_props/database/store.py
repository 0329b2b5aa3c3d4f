"""
Durable key -> JSON document store for batch output.

The orchestrator writes per-game results, the latest slips and the batch
summary here; the read API serves them back out.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from loguru import logger
from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from .models import Base, Document, get_engine

GAMES = "games"
SLIPS = "slips"
BATCHES = "batches"
LATEST = "latest"


class ResultStore:
    """
    Collection/key addressed JSON documents on any SQLAlchemy database.

    Example:
        >>> store = ResultStore("sqlite:///nba_props.db")
        >>> store.put("games", "abc123", {"status": "ok"})
        >>> store.get("games", "abc123")
        {'status': 'ok'}
    """

    def __init__(self, database_url: str, create_tables: bool = True):
        self.database_url = database_url
        self.engine = get_engine(database_url)
        self._session_factory = sessionmaker(self.engine, expire_on_commit=False)
        self.logger = logger.bind(component="store")
        if create_tables:
            Base.metadata.create_all(self.engine)

    @classmethod
    def from_settings(cls, settings) -> "ResultStore":
        return cls(settings.database_url)

    def _session(self) -> Session:
        return self._session_factory()

    def put(self, collection: str, key: str, payload: dict[str, Any]) -> None:
        """Insert or replace a document."""
        with self._session() as session:
            document = session.get(Document, (collection, key))
            if document is None:
                session.add(Document(collection=collection, key=key, payload=payload))
            else:
                document.payload = payload
                document.updated_at = datetime.utcnow()
            session.commit()
        self.logger.debug(f"Stored {collection}/{key}")

    def get(self, collection: str, key: str) -> Optional[dict[str, Any]]:
        with self._session() as session:
            document = session.get(Document, (collection, key))
            return dict(document.payload) if document is not None else None

    def list(self, collection: str, limit: Optional[int] = None) -> list[dict[str, Any]]:
        """Documents in a collection, most recently updated first."""
        query = (
            select(Document)
            .where(Document.collection == collection)
            .order_by(Document.updated_at.desc())
        )
        if limit is not None:
            query = query.limit(limit)
        with self._session() as session:
            return [dict(doc.payload) for doc in session.scalars(query)]

    def keys(self, collection: str) -> list[str]:
        with self._session() as session:
            query = select(Document.key).where(Document.collection == collection)
            return list(session.scalars(query))

    def delete(self, collection: str, key: str) -> bool:
        with self._session() as session:
            document = session.get(Document, (collection, key))
            if document is None:
                return False
            session.delete(document)
            session.commit()
            return True
