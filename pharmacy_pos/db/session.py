# pharmacy_pos/db/session.py
from typing import Any, Dict

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from pharmacy_pos.core.config import settings


def make_engine(db_uri: str) -> Engine:
    if db_uri.startswith("sqlite"):
        # SQLite connections are shared across the request threadpool
        return create_engine(
            db_uri,
            connect_args={"check_same_thread": False},
            future=True,
        )

    kwargs: Dict[str, Any] = dict(
        pool_pre_ping=True,
        pool_recycle=280,
        pool_size=10,
        max_overflow=20,
        future=True,
    )
    return create_engine(db_uri, **kwargs)


engine: Engine = make_engine(settings.DATABASE_URL)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    future=True,
)
