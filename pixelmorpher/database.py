import asyncio
import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from pixelmorpher.errors import ConfigurationError
from pixelmorpher.models.base import Base

logger = logging.getLogger("pixelmorpher.database")


class Database:
    """Connect-once handle to the application database.

    The engine is created on the first ``connect()`` and reused afterwards.
    Callers that arrive while the first attempt is still running await the
    same future instead of starting their own.
    """

    def __init__(self, url: Optional[str], echo: bool = False):
        self.url = url
        self.echo = echo
        self.engine: Optional[Engine] = None
        self.SessionLocal: Optional[sessionmaker] = None
        self._pending: Optional[asyncio.Future] = None

    @property
    def connected(self) -> bool:
        return self.engine is not None

    async def connect(self) -> Engine:
        if self.engine is not None:
            return self.engine

        if not self.url:
            raise ConfigurationError("DATABASE_URL is not defined or missing")

        if self._pending is None:
            self._pending = asyncio.ensure_future(asyncio.to_thread(self._open))
        pending = self._pending

        try:
            engine = await pending
        except Exception:
            # A newer attempt may already be in flight
            if self._pending is pending:
                self._pending = None
            raise

        if self.engine is None:
            self.engine = engine
            self.SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)
            logger.info("Database connected")
        return self.engine

    def _open(self) -> Engine:
        connect_args = {}
        if self.url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        engine = create_engine(self.url, echo=self.echo, pool_pre_ping=True, connect_args=connect_args)
        Base.metadata.create_all(bind=engine)
        return engine

    @contextmanager
    def session(self) -> Iterator[Session]:
        if self.SessionLocal is None:
            raise ConfigurationError("Database is not connected")
        db = self.SessionLocal()
        try:
            yield db
        finally:
            db.close()

    async def close(self):
        if self._pending is not None and not self._pending.done():
            await self._pending
        if self.engine is not None:
            self.engine.dispose()
            logger.info("Database connection closed")
        self.engine = None
        self.SessionLocal = None
        self._pending = None


async def get_db(request: Request) -> Iterator[Session]:
    database: Database = request.app.state.database
    await database.connect()
    with database.session() as db:
        yield db
