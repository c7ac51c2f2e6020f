from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session, sessionmaker

from records_cli.errors import StoreUnavailable
from records_cli.utils.logging_config import get_logger

logger = get_logger(__name__)


@contextmanager
def transaction(session_factory: sessionmaker) -> Iterator[Session]:
    """
    Run a block of work in one database transaction.

    Commits when the block finishes, rolls back when it raises. Backend
    failures are re-raised as StoreUnavailable; domain errors raised inside
    the block propagate unchanged after the rollback.
    """
    try:
        with session_factory.begin() as db:
            yield db
    except DBAPIError as e:
        logger.error(f"Store operation failed: {e}")
        raise StoreUnavailable(f"Database unavailable: {e.orig or e}") from e
