"""Database setup and session management."""

import logging
from collections.abc import Generator

from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine

from sightline.config import settings

logger = logging.getLogger(__name__)


def build_engine(url: str) -> Engine:
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, echo=False, connect_args=connect_args)


engine = build_engine(settings.database_url)


def init_db(reset: bool = False) -> None:
    """Create all tables, dropping existing ones first when ``reset`` is set."""
    if reset:
        logger.warning("Dropping all tables before schema creation; stored clients are lost")
        SQLModel.metadata.drop_all(engine)
    SQLModel.metadata.create_all(engine)


def get_session() -> Generator[Session, None, None]:
    """Yield a database session for FastAPI Depends()."""
    with Session(engine) as session:
        yield session
