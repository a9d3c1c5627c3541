"""
Transaction and error-translation helpers for store access.

Every mutation entry point runs as a single atomic unit together with the
aggregate recomputation its signals trigger. A detected write-write conflict
(serialization failure or deadlock) is retried a bounded number of times
before it is surfaced as a StoreError.
"""
import functools
import logging

from django.conf import settings
from django.db import DatabaseError, IntegrityError, transaction

from core.exceptions import ConflictError, StoreError, VenueServiceError

logger = logging.getLogger(__name__)

# PostgreSQL SQLSTATE codes
UNIQUE_VIOLATION = '23505'
SERIALIZATION_FAILURE = '40001'
DEADLOCK_DETECTED = '40P01'
WRITE_CONFLICT_CODES = frozenset({SERIALIZATION_FAILURE, DEADLOCK_DETECTED})


def sqlstate(exc: BaseException):
    """Return the driver SQLSTATE behind a Django database error, if any."""
    cause = exc.__cause__
    return getattr(cause, 'pgcode', None) or getattr(cause, 'sqlstate', None)


def is_write_conflict(exc: BaseException) -> bool:
    return sqlstate(exc) in WRITE_CONFLICT_CODES


def atomic_with_retry(func):
    """
    Run ``func`` inside ``transaction.atomic`` and translate database errors.

    - unique constraint violations become ConflictError
    - write-write conflicts are retried (only when this is the outermost
      transaction, a savepoint cannot be replayed)
    - any other database error becomes StoreError
    """

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        max_retries = getattr(settings, 'AGGREGATE_CONFLICT_RETRIES', 1)
        outermost = not transaction.get_connection().in_atomic_block
        attempt = 0

        while True:
            try:
                with transaction.atomic():
                    return func(*args, **kwargs)
            except VenueServiceError:
                raise
            except IntegrityError as e:
                if sqlstate(e) == UNIQUE_VIOLATION:
                    raise ConflictError(
                        'A record with the same identity already exists',
                        details={'operation': func.__name__},
                    ) from e
                raise StoreError(f"Integrity failure in {func.__name__}") from e
            except DatabaseError as e:
                if outermost and is_write_conflict(e) and attempt < max_retries:
                    attempt += 1
                    logger.warning(
                        f"Write conflict in {func.__name__} (sqlstate={sqlstate(e)}), "
                        f"retrying ({attempt}/{max_retries})"
                    )
                    continue
                logger.error(f"Database failure in {func.__name__}: {str(e)}")
                raise StoreError(f"Transaction failed in {func.__name__}") from e

    return wrapper


def store_read(func):
    """
    Translate database errors raised by a read path into StoreError.

    Reads open no transaction and are never retried; a cancelled statement
    (statement timeout) or a lost connection surfaces like any other store
    failure.
    """

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except DatabaseError as e:
            logger.error(f"Database failure in {func.__name__}: {str(e)}")
            raise StoreError(f"Query failed in {func.__name__}") from e

    return wrapper
