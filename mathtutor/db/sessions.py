import logging
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from mathtutor.core.config import settings
from mathtutor.db.base import Base

logger = logging.getLogger(__name__)


class Database:
    """Owns the engine and session factory for one database URL.

    The engine is created on first use and reused afterwards; reconnecting a
    dropped connection is left to the pool (``pool_pre_ping``).
    """

    def __init__(self, url: str):
        self.url = url
        self._engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker] = None

    @property
    def connected(self) -> bool:
        return self._engine is not None

    @property
    def engine(self) -> Engine:
        return self.connect()

    def connect(self) -> Engine:
        if self._engine is not None:
            return self._engine

        logger.info("Initializing DB engine (checking configuration)")
        logger.info("DATABASE_URL configured: %s", bool(self.url))
        if not self.url:
            raise RuntimeError(
                "DATABASE_URL is not configured. Set the DATABASE_URL env var."
            )

        connect_args = {}
        if self.url.startswith("sqlite"):
            connect_args["check_same_thread"] = False

        self._engine = create_engine(self.url, pool_pre_ping=True, connect_args=connect_args)
        self._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=self._engine)
        return self._engine

    def session(self) -> Session:
        self.connect()
        return self._session_factory()

    def create_all(self) -> None:
        # Import all models to ensure they're registered with Base
        import mathtutor.models  # noqa: F401

        Base.metadata.create_all(bind=self.engine)


database = Database(settings.DATABASE_URL)


def get_db():
    db = database.session()
    try:
        yield db
    finally:
        db.close()
