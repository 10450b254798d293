"""SQLAlchemy engine, session factory and declarative base."""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from spooltag.config import DATABASE_URL

Base = declarative_base()


def make_engine(url: str = DATABASE_URL) -> Engine:
    """
    Create an engine usable from request handlers and cache worker threads.

    In-memory SQLite URLs get a single shared connection, otherwise every
    thread would see its own empty database.
    """
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(url, **kwargs)
    return create_engine(url)


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


def init_db(engine: Engine):
    """Create all tables that are not present yet."""
    # Registers the models on Base.metadata
    from spooltag.storage import models  # noqa: F401
    Base.metadata.create_all(bind=engine)
