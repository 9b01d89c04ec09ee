"""
Venue Execution - Repository.

============================================================
PURPOSE
============================================================
Durable storage for ledger snapshots.

RESPONSIBILITIES:
- Save/load one record per venue ledger
- Save/load the aggregator's global record

DURABILITY:
- Best-effort. Stores raise PersistenceError; executors and
  the aggregator catch and log it. The in-memory ledger stays
  authoritative for the life of the process.

============================================================
"""

import copy
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from .models import Base, LedgerRecordModel
from .types import PersistenceError, utcnow


logger = logging.getLogger(__name__)


# ============================================================
# LEDGER REPOSITORY
# ============================================================

class LedgerRepository:
    """
    Database operations on ledger records.
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize repository.

        Args:
            session: SQLAlchemy async session
        """
        self._session = session

    async def get(self, record_key: str) -> Optional[LedgerRecordModel]:
        """Get record by key."""
        result = await self._session.execute(
            select(LedgerRecordModel).where(LedgerRecordModel.record_key == record_key)
        )
        return result.scalar_one_or_none()

    async def upsert(self, record_key: str, payload: str) -> LedgerRecordModel:
        """
        Save or update a record.

        Args:
            record_key: Record key
            payload: JSON payload

        Returns:
            Saved model
        """
        existing = await self.get(record_key)

        if existing:
            existing.payload = payload
            existing.saved_at = utcnow()
            await self._session.commit()
            return existing

        model = LedgerRecordModel(record_key=record_key, payload=payload, saved_at=utcnow())
        self._session.add(model)
        await self._session.commit()
        return model

    async def delete(self, record_key: str) -> None:
        """Delete a record if present."""
        await self._session.execute(
            delete(LedgerRecordModel).where(LedgerRecordModel.record_key == record_key)
        )
        await self._session.commit()


# ============================================================
# LEDGER STORE
# ============================================================

class LedgerStore(ABC):
    """
    Key/value store of ledger snapshots.
    """

    async def initialize(self) -> None:
        """Prepare the store (create tables, open connections)."""

    async def close(self) -> None:
        """Release resources."""

    @abstractmethod
    async def load(self, record_key: str) -> Optional[Dict[str, Any]]:
        """
        Load a snapshot.

        Returns:
            Snapshot dict, or None if never saved

        Raises:
            PersistenceError: Store failure or corrupt payload
        """
        pass

    @abstractmethod
    async def save(self, record_key: str, payload: Dict[str, Any]) -> None:
        """
        Save a snapshot.

        Raises:
            PersistenceError: Store failure
        """
        pass


class InMemoryLedgerStore(LedgerStore):
    """
    Process-local store.

    Payloads are JSON round-tripped so stored values never alias
    live ledger objects.
    """

    def __init__(self):
        self._records: Dict[str, str] = {}

    async def load(self, record_key: str) -> Optional[Dict[str, Any]]:
        raw = self._records.get(record_key)
        if raw is None:
            return None
        return json.loads(raw)

    async def save(self, record_key: str, payload: Dict[str, Any]) -> None:
        try:
            self._records[record_key] = json.dumps(payload)
        except (TypeError, ValueError) as e:
            raise PersistenceError(f"Cannot encode record {record_key}: {e}") from e

    def keys(self):
        return list(self._records.keys())

    def snapshot(self) -> Dict[str, Dict[str, Any]]:
        """Decoded copy of every record."""
        return {k: json.loads(v) for k, v in copy.copy(self._records).items()}


class SqlLedgerStore(LedgerStore):
    """
    SQLAlchemy-backed store (async engine).
    """

    def __init__(self, database_url: str, echo: bool = False):
        """
        Initialize store.

        Args:
            database_url: SQLAlchemy async URL (e.g. sqlite+aiosqlite:///ledgers.db)
            echo: Log SQL statements
        """
        self._database_url = database_url
        self._engine = create_async_engine(database_url, echo=echo)
        self._session_factory = async_sessionmaker(self._engine, expire_on_commit=False)

    async def initialize(self) -> None:
        try:
            async with self._engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Cannot initialize ledger store: {e}") from e
        logger.info("Ledger store ready: %s", self._database_url.split("@")[-1])

    async def close(self) -> None:
        await self._engine.dispose()

    async def load(self, record_key: str) -> Optional[Dict[str, Any]]:
        try:
            async with self._session_factory() as session:
                model = await LedgerRepository(session).get(record_key)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Cannot load record {record_key}: {e}") from e

        if model is None:
            return None

        try:
            return json.loads(model.payload)
        except ValueError as e:
            raise PersistenceError(f"Corrupt record {record_key}: {e}") from e

    async def save(self, record_key: str, payload: Dict[str, Any]) -> None:
        try:
            encoded = json.dumps(payload)
        except (TypeError, ValueError) as e:
            raise PersistenceError(f"Cannot encode record {record_key}: {e}") from e

        try:
            async with self._session_factory() as session:
                await LedgerRepository(session).upsert(record_key, encoded)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Cannot save record {record_key}: {e}") from e


def create_store(database_url: Optional[str]) -> LedgerStore:
    """In-memory store when no URL is given, SQL store otherwise."""
    if not database_url:
        return InMemoryLedgerStore()
    return SqlLedgerStore(database_url)
