"""
Database connection and session management.

SQLite is the default store; foreign keys are switched on per connection
so debts and decisions cannot point at missing persons.
"""

from pathlib import Path

from sqlalchemy import create_engine, event
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker

from config.settings import settings
from matching.models import Base

DATABASE_URL = make_url(settings.DATABASE_URL)

engine = create_engine(
    DATABASE_URL,
    echo=settings.DEBUG,
    future=True,
)

if DATABASE_URL.get_backend_name() == "sqlite":
    @event.listens_for(engine, "connect")
    def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


def init_db():
    """Create the registry, debt and matching history tables."""
    database = DATABASE_URL.database
    if DATABASE_URL.get_backend_name() == "sqlite" and database not in (None, "", ":memory:"):
        Path(database).parent.mkdir(parents=True, exist_ok=True)
    Base.metadata.create_all(bind=engine)
