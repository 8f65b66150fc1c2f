import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from app.core.config import settings

logger = logging.getLogger(__name__)

_connect_args = {"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(settings.DATABASE_URL, pool_pre_ping=True, connect_args=_connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

_UOW_DEPTH_KEY = "unit_of_work_depth"


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def unit_of_work(db: Session) -> Iterator[Session]:
    """Run a block of reads and writes as a single transaction.

    The outermost block commits on success and rolls back on any error.
    Inner blocks join the outer transaction, so a helper that opens its own
    unit of work can still be composed into a larger one.
    """
    depth = db.info.get(_UOW_DEPTH_KEY, 0)
    db.info[_UOW_DEPTH_KEY] = depth + 1
    try:
        yield db
        if depth == 0:
            db.commit()
    except Exception:
        if depth == 0:
            logger.debug("Rolling back unit of work")
            db.rollback()
        raise
    finally:
        db.info[_UOW_DEPTH_KEY] = depth
