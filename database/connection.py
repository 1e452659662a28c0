"""
Database connection and session management.

SQLite is the default record store; a mysql+pymysql URL switches to MySQL,
whose database is created on first init.
"""
import logging
from contextlib import contextmanager

from sqlalchemy import create_engine, text
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker

from config.settings import settings
from .models import Base

logger = logging.getLogger(__name__)


def build_engine(database_url: str, echo: bool = False, **options):
    """Engine for a SQLite or MySQL URL. Extra options go to create_engine."""
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite":
        defaults = {"connect_args": {"check_same_thread": False}}
    else:
        defaults = {"pool_pre_ping": True, "pool_recycle": 3600}
    return create_engine(url, echo=echo, **{**defaults, **options})


def _create_mysql_database(url) -> None:
    server_engine = create_engine(url.set(database=None), pool_pre_ping=True)
    try:
        with server_engine.connect() as conn:
            conn.execute(text(
                f"CREATE DATABASE IF NOT EXISTS `{url.database}` "
                "CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci"
            ))
            conn.commit()
    finally:
        server_engine.dispose()
    logger.info("Ensured MySQL database %s exists", url.database)


engine = build_engine(settings.database_url, echo=settings.debug)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(bind=None):
    """Create the schools, students and user_profiles tables if missing."""
    bind = bind or engine
    if bind.url.get_backend_name() == "mysql":
        _create_mysql_database(bind.url)
    Base.metadata.create_all(bind=bind)


@contextmanager
def get_db_context(session_factory=None):
    """
    Transactional session scope for scripts.
    Commits on success, rolls back on any error.
    """
    db = (session_factory or SessionLocal)()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
