import logging

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.core.config import settings

logger = logging.getLogger(__name__)


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        # one SQLite file shared by the threadpool that serves sync routes
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True}


engine = create_engine(settings.DATABASE_URL, **_engine_options(settings.DATABASE_URL))

SessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,
)

def get_db():
    """
    One session and one transaction per request: committed when the route
    returns, rolled back when anything (domain error included) escapes it.
    """
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        logger.debug("rolling back request transaction")
        db.rollback()
        raise
    finally:
        db.close()
