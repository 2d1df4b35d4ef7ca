from sqlmodel import create_engine, SQLModel, Session
import logging

from sitepulse.core.config import settings

logger = logging.getLogger(__name__)

DATABASE_URL = settings.DATABASE_URL

if DATABASE_URL.startswith("sqlite"):
    # SQLite is only used for local development and tests
    engine = create_engine(
        DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
    )
else:
    engine = create_engine(
        DATABASE_URL,
        echo=False,  # Disable query logging in production
        pool_size=5,
        max_overflow=10,  # Allow burst connections from tracker traffic
        pool_pre_ping=True,  # Verify connections before use
        pool_recycle=300,  # Recycle connections every 5 min
        pool_timeout=30,  # Wait up to 30s for a connection
    )


def get_session():
    with Session(engine) as session:
        yield session


def create_db_and_tables():
    # Import models so they are registered on the metadata
    from sitepulse import models  # noqa: F401

    SQLModel.metadata.create_all(engine)
    logger.info("Analytics tables ensured")
