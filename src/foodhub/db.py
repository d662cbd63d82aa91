"""SQLAlchemy engine and declarative base."""

from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base

from foodhub import settings


def normalize_database_url(database_url: str) -> str:
    """Force the psycopg2 driver for Postgres URLs; leave other dialects alone."""
    if "psycopg://" in database_url:
        return database_url.replace("psycopg://", "psycopg2://", 1)
    if database_url.startswith("postgresql://"):
        return database_url.replace("postgresql://", "postgresql+psycopg2://", 1)
    if database_url.startswith("postgres://"):
        return database_url.replace("postgres://", "postgresql+psycopg2://", 1)
    return database_url


DATABASE_URL = normalize_database_url(settings.DATABASE_URL)

if DATABASE_URL.startswith("sqlite"):
    engine = create_engine(DATABASE_URL, connect_args={"check_same_thread": False})

    @event.listens_for(engine, "connect")
    def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
        # SQLite ignores FOREIGN KEY clauses unless asked per connection
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()
else:
    engine = create_engine(DATABASE_URL, pool_pre_ping=True)

Base = declarative_base()
