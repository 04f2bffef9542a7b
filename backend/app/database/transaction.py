"""Commit/rollback boundary for request handlers."""
import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import ApiError

logger = logging.getLogger(__name__)


@contextmanager
def transaction(
    db: Session,
    failure_message: str = "Unexpected error",
    conflict: Optional[ApiError] = None,
) -> Iterator[Session]:
    """Run a relationship operation as one unit of work.

    Commits when the block exits cleanly. On any error the session is rolled
    back, so no partial pending-set or assignment write survives. ApiErrors
    propagate unchanged; an IntegrityError becomes ``conflict`` when given;
    anything else is logged and re-raised as a 500 ApiError carrying
    ``failure_message``.
    """
    try:
        yield db
        db.commit()
    except ApiError:
        db.rollback()
        logger.debug("Transaction rolled back")
        raise
    except IntegrityError as exc:
        db.rollback()
        if conflict is not None:
            raise conflict from exc
        logger.exception(failure_message)
        raise ApiError(failure_message) from exc
    except Exception as exc:
        db.rollback()
        logger.exception(failure_message)
        raise ApiError(failure_message) from exc
