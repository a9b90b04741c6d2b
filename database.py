"""Database engine and sessions for the employee state service."""
import os
import time
import logging
from pathlib import Path

from sqlalchemy import create_engine, event, text
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Load .env from project root (next to this file) so settings are ready regardless of cwd
load_dotenv(Path(__file__).resolve().parent / ".env")

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./simple_state.db")

# psycopg2 expects postgresql://; some providers give postgres://
if DATABASE_URL and DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = "postgresql://" + DATABASE_URL[len("postgres://") :]


def _use_sqlite_transactions(engine):
    """Let SQLAlchemy emit BEGIN itself so SAVEPOINT rollbacks work on pysqlite."""

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")


def make_engine(url=None):
    """Create an engine for ``url`` (defaults to DATABASE_URL)."""
    url = url or DATABASE_URL
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection, otherwise every checkout sees an empty database
            kwargs["poolclass"] = StaticPool
        eng = create_engine(url, **kwargs)
        _use_sqlite_transactions(eng)
        return eng

    # Connection pooling and automatic reconnection for server databases
    return create_engine(
        url,
        pool_pre_ping=True,  # Test connections before using them
        pool_size=5,
        max_overflow=10,
        pool_recycle=3600,  # Recycle connections after 1 hour
    )


engine = make_engine()
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    """Dependency yielding a database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def check_connection(retry_count=3, retry_delay=1):
    """
    Verify database is reachable with retry logic.

    Args:
        retry_count: Number of retry attempts
        retry_delay: Initial delay between retries (exponential backoff)

    Returns True if connected, False otherwise.
    """
    for attempt in range(retry_count):
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            if attempt > 0:
                logger.info(f"Database connection successful after {attempt + 1} attempts")
            return True
        except Exception as e:
            if attempt < retry_count - 1:
                wait_time = retry_delay * (2 ** attempt)
                logger.warning(f"Database connection attempt {attempt + 1} failed: {e}. Retrying in {wait_time}s...")
                time.sleep(wait_time)
            else:
                logger.error(f"Database connection failed after {retry_count} attempts: {e}")
    return False
