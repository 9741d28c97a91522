"""
Read/write database layer backing the query cache.

Provides a ReadWriteDatabase with:
- Separate read and write engines (shared when both URLs match)
- Connection pooling (PostgreSQL/MySQL) / StaticPool (SQLite)
- Session context managers with auto-commit/rollback on the write path

Usage:
    from querycache.db import ReadWriteDatabase, Base

    database = ReadWriteDatabase.from_settings()
    with database.read() as session:
        widget = session.query(Widget).first()
"""

import time
from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from .config import Settings, get_settings, validate_database_config
from .exceptions import ConfigurationError
from .logging import db_logger


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all models."""

    pass


class ReadWriteDatabase:
    """
    Backing store with a read access path and a write access path.

    Features:
    - read(): session for queries, always closed, never committed
    - write(): session committed on success, rolled back on error
    - save(): upsert a single record through the write path
    """

    def __init__(self, settings: Settings | None = None):
        self._settings = settings or get_settings()
        self._initialized = False
        self.read_engine: Engine | None = None
        self.write_engine: Engine | None = None

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "ReadWriteDatabase":
        """
        Build and initialize a database from settings.

        Raises:
            ConfigurationError: if required URLs are missing. Each missing
                value is logged before raising.
        """
        settings = settings or get_settings()
        errors = validate_database_config(settings)
        if errors:
            for error in errors:
                db_logger.error("database_config_missing", error=error)
            raise ConfigurationError("required configs not found", errors)

        database = cls(settings)
        database.initialize()
        return database

    def initialize(self, read_url: str | None = None, write_url: str | None = None) -> None:
        """
        Initialize both engines. Call once at app startup.

        Args:
            read_url: Optional override. Uses settings.read_database_url if not provided.
            write_url: Optional override. Defaults to the read URL when only
                read_url is given, otherwise settings.write_database_url.
        """
        if self._initialized:
            return

        if read_url is None:
            read_url = self._settings.read_database_url
            write_url = write_url or self._settings.write_database_url
        write_url = write_url or read_url

        self.read_engine = self._create_engine(read_url)
        if write_url == read_url:
            self.write_engine = self.read_engine
        else:
            self.write_engine = self._create_engine(write_url)

        self._read_sessions = sessionmaker(
            bind=self.read_engine,
            autoflush=False,
            expire_on_commit=False,
        )
        self._write_sessions = sessionmaker(
            bind=self.write_engine,
            autoflush=False,
            expire_on_commit=False,
        )

        self._initialized = True
        db_logger.info(
            "database_initialized",
            shared_engine=self.write_engine is self.read_engine,
        )

    def _create_engine(self, url: str) -> Engine:
        settings = self._settings
        is_sqlite = url.startswith("sqlite")

        pool_config: dict[str, Any]
        if is_sqlite:
            connect_args = {"check_same_thread": False}
            pool_class: type[StaticPool | QueuePool] = StaticPool
            pool_config = {}
        else:
            connect_args = {}
            pool_class = QueuePool
            pool_config = {
                "pool_size": settings.db_pool_size,
                "max_overflow": settings.db_max_overflow,
                "pool_pre_ping": settings.db_pool_pre_ping,
                "pool_recycle": settings.db_pool_recycle_seconds,
            }

        engine = create_engine(
            url,
            poolclass=pool_class,
            connect_args=connect_args,
            echo=settings.debug,
            **pool_config,
        )

        # Enable foreign keys for SQLite
        if is_sqlite:

            @event.listens_for(engine, "connect")
            def set_sqlite_pragma(dbapi_connection, connection_record):
                cursor = dbapi_connection.cursor()
                cursor.execute("PRAGMA foreign_keys=ON")
                cursor.close()

        return engine

    def create_all_tables(self) -> None:
        """Create all tables defined by models on the write engine."""
        self._ensure_initialized()
        Base.metadata.create_all(bind=self.write_engine)

    @contextmanager
    def read(self) -> Generator[Session, None, None]:
        """
        Session on the read engine. Loaded objects stay usable after the
        session closes.
        """
        self._ensure_initialized()
        session = self._read_sessions()
        try:
            yield session
        finally:
            session.close()

    @contextmanager
    def write(self) -> Generator[Session, None, None]:
        """
        Session on the write engine with auto-commit/rollback.

        Usage:
            with database.write() as session:
                session.add(widget)
        """
        self._ensure_initialized()
        session = self._write_sessions()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def save(self, record: Base) -> Base:
        """Insert or update a record, returning the persisted instance."""
        with self.write() as session:
            return session.merge(record)

    @property
    def is_initialized(self) -> bool:
        """Check if the database is initialized."""
        return self._initialized

    def health_check(self) -> dict:
        """
        Perform a health check against both engines.

        Returns:
            dict with 'healthy' (bool), 'latency_ms' (float), and 'error' (str or None)
        """
        if not self._initialized:
            return {"healthy": False, "latency_ms": 0, "error": "Database not initialized"}

        start = time.perf_counter()
        try:
            for engine in {self.read_engine, self.write_engine}:
                with engine.connect() as conn:
                    conn.execute(text("SELECT 1"))
            latency = (time.perf_counter() - start) * 1000
            return {"healthy": True, "latency_ms": round(latency, 2), "error": None}
        except Exception as e:
            latency = (time.perf_counter() - start) * 1000
            return {"healthy": False, "latency_ms": round(latency, 2), "error": str(e)}

    def reset(self) -> None:
        """Dispose both engines and mark as uninitialized."""
        for engine in {self.read_engine, self.write_engine}:
            if engine is not None:
                engine.dispose()
        self.read_engine = None
        self.write_engine = None
        self._initialized = False

    def _ensure_initialized(self) -> None:
        """Raise error if not initialized."""
        if not self._initialized:
            raise RuntimeError("ReadWriteDatabase not initialized. Call initialize() first.")


__all__ = ["Base", "ReadWriteDatabase"]
