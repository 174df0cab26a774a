from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker

from clinic_api.core import config


engine = create_engine(config.DATABASE_URL, echo=config.SQL_ECHO)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_availability_schema_checked = False
_appointment_schema_checked = False


def _apply_migration_steps(table_name: str, migration_steps: list[tuple[str, str]], index_statements: list[str]) -> None:
    inspector = inspect(engine)

    if table_name not in inspector.get_table_names():
        return

    existing_columns = {column['name'] for column in inspector.get_columns(table_name)}

    with engine.begin() as connection:
        for column_name, statement in migration_steps:
            if column_name not in existing_columns:
                connection.execute(text(statement))
        for statement in index_statements:
            connection.execute(text(statement))


def ensure_availability_schema() -> None:
    global _availability_schema_checked

    if _availability_schema_checked:
        return

    with _schema_lock:
        if _availability_schema_checked:
            return

        _apply_migration_steps(
            'appointment_availability',
            [
                ('current_bookings', 'ALTER TABLE appointment_availability ADD COLUMN current_bookings INTEGER DEFAULT 0'),
                ('blocked_reason', 'ALTER TABLE appointment_availability ADD COLUMN blocked_reason VARCHAR'),
            ],
            [
                'CREATE INDEX IF NOT EXISTS idx_availability_date_start ON appointment_availability(date, start_time)',
                'CREATE INDEX IF NOT EXISTS idx_availability_provider_date ON appointment_availability(provider_id, date)',
            ],
        )

        _availability_schema_checked = True


def ensure_appointment_schema() -> None:
    global _appointment_schema_checked

    if _appointment_schema_checked:
        return

    with _schema_lock:
        if _appointment_schema_checked:
            return

        _apply_migration_steps(
            'appointments',
            [
                ('appointment_type', 'ALTER TABLE appointments ADD COLUMN appointment_type VARCHAR'),
                ('notes', 'ALTER TABLE appointments ADD COLUMN notes VARCHAR'),
                ('confirmation_code', 'ALTER TABLE appointments ADD COLUMN confirmation_code VARCHAR'),
                ('availability_id', 'ALTER TABLE appointments ADD COLUMN availability_id INTEGER'),
                ('cancellation_reason', 'ALTER TABLE appointments ADD COLUMN cancellation_reason VARCHAR'),
                ('updated_at', 'ALTER TABLE appointments ADD COLUMN updated_at TIMESTAMP'),
            ],
            [
                'CREATE INDEX IF NOT EXISTS idx_appointments_provider_date ON appointments(provider_id, preferred_date)',
            ],
        )

        _appointment_schema_checked = True
