import logging

from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)

UNDEFINED_TABLE_CODE = '42P01'
UNDEFINED_FUNCTION_CODE = '42883'


def _error_code(exc: SQLAlchemyError) -> str | None:
    original = getattr(exc, 'orig', None)
    return getattr(original, 'pgcode', None) or getattr(original, 'sqlstate', None)


def is_missing_resource_error(exc: SQLAlchemyError) -> bool:
    code = _error_code(exc)
    if code in {UNDEFINED_TABLE_CODE, UNDEFINED_FUNCTION_CODE}:
        return True

    message = str(exc).lower()
    return 'no such table' in message or (
        ('relation' in message or 'function' in message) and 'does not exist' in message
    )


def database_http_error(exc: SQLAlchemyError, resource: str) -> HTTPException:
    logger.error('Database error while accessing %s', resource, exc_info=exc)

    if is_missing_resource_error(exc):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f'Database not ready: {resource} is missing. Run the schema setup before serving requests.',
        )

    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail='Database unavailable. Verify DATABASE_URL and database credentials.',
    )
