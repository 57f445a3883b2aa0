"""
Advisory usage counter for the shared transcription endpoint.

The counter lives in the database so every API and worker process sees the
same value. It never blocks callers: it only records how many attempts are
in flight so external auto-suspend logic can tell when the endpoint is idle.
"""
from contextlib import contextmanager
from typing import Iterator, Optional

import structlog
from sqlalchemy import case, select, update
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from radiocheck.core.config import get_settings
from radiocheck.models import ResourceLock

logger = structlog.get_logger()
settings = get_settings()


def _read_count(db: Session, resource_id: str) -> int:
    count = db.execute(
        select(ResourceLock.count).where(ResourceLock.resource_id == resource_id)
    ).scalar_one_or_none()
    return count or 0


def acquire_lock(db: Session, resource_id: str) -> int:
    """Atomically increment the counter and return the new value."""
    result = db.execute(
        update(ResourceLock)
        .where(ResourceLock.resource_id == resource_id)
        .values(count=ResourceLock.count + 1)
    )
    if result.rowcount == 0:
        db.add(ResourceLock(resource_id=resource_id, count=1))
        try:
            db.commit()
        except IntegrityError:
            # another process created the row first
            db.rollback()
            return acquire_lock(db, resource_id)
        return 1
    count = _read_count(db, resource_id)
    db.commit()
    return count


def release_lock(db: Session, resource_id: str) -> int:
    """Atomically decrement the counter, never below zero."""
    db.execute(
        update(ResourceLock)
        .where(ResourceLock.resource_id == resource_id)
        .values(count=case((ResourceLock.count > 0, ResourceLock.count - 1), else_=0))
    )
    count = _read_count(db, resource_id)
    db.commit()
    return count


def current_count(db: Session, resource_id: Optional[str] = None) -> int:
    return _read_count(db, resource_id or settings.compute_lock_resource)


@contextmanager
def compute_lock(bind: Engine | Connection, resource_id: Optional[str] = None) -> Iterator[bool]:
    """
    Hold the advisory counter for the duration of the block.

    Uses short-lived sessions of its own so the caller's transaction state
    never affects the bookkeeping. Yields whether acquisition succeeded.
    """
    resource_id = resource_id or settings.compute_lock_resource
    acquired = False
    with Session(bind) as db:
        try:
            count = acquire_lock(db, resource_id)
            acquired = True
            logger.info("lock.acquired", resource=resource_id, count=count)
        except SQLAlchemyError as exc:
            db.rollback()
            logger.warning("lock.acquire_failed", resource=resource_id, error=str(exc))
    try:
        yield acquired
    finally:
        if acquired:
            with Session(bind) as db:
                try:
                    count = release_lock(db, resource_id)
                    logger.info("lock.released", resource=resource_id, count=count)
                except SQLAlchemyError as exc:
                    db.rollback()
                    logger.error("lock.release_failed", resource=resource_id, error=str(exc))
