from contextlib import contextmanager
import logging
from pathlib import Path
from typing import Iterator, Optional
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..models.base import Base

logger = logging.getLogger(__name__)


def _ensure_sqlite_dir(database_url: str) -> None:
    # Ensure sqlite file parent directory exists to avoid 'unable to open database file'
    if database_url.startswith("sqlite:///") and ":memory:" not in database_url:
        db_path = database_url.split("sqlite:///")[-1]
        Path(db_path).expanduser().resolve().parent.mkdir(parents=True, exist_ok=True)


class Database:
    """Engine plus session factory; handed to every service that touches storage."""

    def __init__(self, database_url: str, engine: Optional[Engine] = None):
        self.database_url = database_url
        if engine is None:
            _ensure_sqlite_dir(database_url)
            kwargs = {"future": True}
            if database_url.startswith("sqlite"):
                kwargs["connect_args"] = {"check_same_thread": False}
                if ":memory:" in database_url or database_url == "sqlite://":
                    kwargs["poolclass"] = StaticPool
            engine = create_engine(database_url, **kwargs)
        self.engine = engine
        self._sessionmaker = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False, future=True)

    @contextmanager
    def session(self) -> Iterator[Session]:
        session = self._sessionmaker()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def create_all(self) -> None:
        Base.metadata.create_all(self.engine)

    def ping(self) -> None:
        """Raise if the database cannot be reached."""
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        logger.info("database reachable: %s", self.engine.url.render_as_string(hide_password=True))

    def dispose(self) -> None:
        self.engine.dispose()
