import logging
from contextlib import contextmanager
from functools import wraps

from sqlalchemy.orm.exc import StaleDataError

from ...extensions import db
from ..errors import ConcurrentUpdateError

logger = logging.getLogger(__name__)

_DEPTH_KEY = 'stockledger_uow_depth'

CONFLICT_ATTEMPTS = 3


@contextmanager
def unit_of_work():
    """
    Run a ledger operation atomically: commit on success, roll back and
    re-raise on any exception.

    Nested units join the outermost one; only the outermost commits. A batch
    row updated by another transaction since it was read surfaces as
    ConcurrentUpdateError.
    """
    session = db.session
    depth = session.info.get(_DEPTH_KEY, 0)
    session.info[_DEPTH_KEY] = depth + 1
    try:
        yield session
        if depth == 0:
            session.commit()
    except Exception as e:
        if depth == 0:
            logger.warning(f"UNIT OF WORK: rolling back after {type(e).__name__}: {e}")
            session.rollback()
        if isinstance(e, StaleDataError):
            raise ConcurrentUpdateError() from e
        raise
    finally:
        session.info[_DEPTH_KEY] = depth


def retry_on_conflict(func):
    """
    Re-run a ledger operation from scratch when it loses a race on a batch.

    Only the outermost call retries; a nested call re-raises so the enclosing
    unit of work rolls back as a whole.
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        for attempt in range(1, CONFLICT_ATTEMPTS + 1):
            try:
                return func(*args, **kwargs)
            except ConcurrentUpdateError:
                if db.session.info.get(_DEPTH_KEY, 0) > 0 or attempt == CONFLICT_ATTEMPTS:
                    raise
                logger.warning(f"UNIT OF WORK: {func.__name__} hit a concurrent batch update, retry {attempt}")
    return wrapper
