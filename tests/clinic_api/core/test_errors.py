from types import SimpleNamespace

from sqlalchemy.exc import OperationalError, ProgrammingError

from clinic_api.core.errors import database_http_error, is_missing_resource_error


def test_missing_sqlite_table_is_reported_as_not_ready() -> None:
    exc = OperationalError('SELECT * FROM providers', {}, Exception('no such table: providers'))

    error = database_http_error(exc, 'providers')

    assert is_missing_resource_error(exc)
    assert error.status_code == 503
    assert error.detail.startswith('Database not ready')


def test_postgres_undefined_table_code_is_reported_as_not_ready() -> None:
    exc = ProgrammingError('SELECT 1', {}, SimpleNamespace(pgcode='42P01'))

    assert is_missing_resource_error(exc)


def test_other_database_errors_are_reported_as_unavailable() -> None:
    exc = OperationalError('SELECT 1', {}, Exception('connection refused'))

    error = database_http_error(exc, 'providers')

    assert not is_missing_resource_error(exc)
    assert error.detail == 'Database unavailable. Verify DATABASE_URL and database credentials.'
