import logging

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, Session
from app.core.config import settings
from fastapi import HTTPException

logger = logging.getLogger(__name__)


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "connect_args": {"connect_timeout": 30},
        "pool_pre_ping": True,
        "pool_recycle": 3600,
    }


# Create the SQLAlchemy engine
engine = create_engine(settings.DATABASE_URL, **_engine_kwargs(settings.DATABASE_URL))

# Create a configured "Session" class
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# do not change the order of the code below
# Dependency that can be used in routes to get the session
def get_db() -> Session  |  HTTPException:
    db = SessionLocal()  # generate a new SessionLocal
    try:
        yield db
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("database error: %s", e)
        raise HTTPException(status_code=500, detail="Query data error")
    finally:
        db.close()


def init_db() -> None:
    """Create the auth tables if they do not exist yet."""
    from app.db.base import Base
    import app.models.auth  # noqa: F401
    import app.models.users  # noqa: F401

    Base.metadata.create_all(bind=engine)
