from typing import Generator

from sqlalchemy import create_engine, text
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from config import settings
from logging_config import get_logger

logger = get_logger("database")

SQLALCHEMY_DATABASE_URL = settings.DATABASE_URL

connect_args = {"check_same_thread": False} if SQLALCHEMY_DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(
    SQLALCHEMY_DATABASE_URL, connect_args=connect_args, echo=settings.DB_ECHO
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=engine) -> None:
    """
    Verify the database is reachable and create missing tables.

    Called once at startup; any error propagates so the process exits
    instead of serving requests against an unreachable store.
    """
    # Import models so their tables are registered on Base.metadata
    import models  # noqa: F401

    try:
        with bind.connect() as conn:
            conn.execute(text("SELECT 1"))
        Base.metadata.create_all(bind=bind)
    except Exception:
        logger.critical(f"Database connection failed: {bind.url!r}", exc_info=True)
        raise
    logger.info(f"Database connected: {bind.url.get_backend_name()}")
