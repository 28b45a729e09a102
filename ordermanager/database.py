import os

from dotenv import load_dotenv
from sqlmodel import Session, SQLModel, create_engine

from .logger import get_logger

load_dotenv()

logger = get_logger("database")

DATABASE_URL = os.getenv("DATABASE_URL")
SQL_ECHO = os.getenv("SQL_ECHO", "false").lower() in ("1", "true", "yes")


def build_engine(url=None):
    url = url or DATABASE_URL
    if url and "postgres" in url:
        # Hosted providers still hand out postgres:// URLs
        if url.startswith("postgres://"):
            url = url.replace("postgres://", "postgresql://", 1)
        logger.info("Using PostgreSQL database")
        return create_engine(url, echo=SQL_ECHO, pool_pre_ping=True)

    sqlite_url = url or "sqlite:///order_manager.db"
    logger.info("Using SQLite database at %s", sqlite_url)
    return create_engine(
        sqlite_url, echo=SQL_ECHO, connect_args={"check_same_thread": False}
    )


engine = build_engine()


def create_db_and_tables(bind=None):
    # Table classes must be registered on the metadata first
    from . import models  # noqa: F401

    SQLModel.metadata.create_all(bind or engine)


def get_session():
    with Session(engine) as session:
        yield session
