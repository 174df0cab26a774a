import os
from datetime import date, time

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')
os.environ.setdefault('JWT_SECRET_KEY', 'test-secret')

from clinic_api.database import Base  # noqa: E402
from clinic_api.models.appointment import Appointment  # noqa: E402,F401
from clinic_api.models.availability import AppointmentAvailability  # noqa: E402
from clinic_api.models.procedure import Procedure, procedure_providers  # noqa: E402,F401
from clinic_api.models.provider import Provider  # noqa: E402


@pytest.fixture
def clinic_db():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    db = testing_session_local()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def add_provider(clinic_db):
    def _add_provider(full_name: str = 'Dr. Jane Smith', active: bool = True, **fields) -> Provider:
        provider = Provider(
            full_name=full_name,
            title=fields.get('title', 'Plastic Surgeon'),
            specialization=fields.get('specialization', 'Facial Surgery'),
            active=active,
        )
        clinic_db.add(provider)
        clinic_db.commit()
        clinic_db.refresh(provider)
        return provider

    return _add_provider


@pytest.fixture
def add_window(clinic_db):
    def _add_window(
        provider: Provider,
        window_date: date = date(2024, 2, 15),
        start_time: time = time(9, 0),
        end_time: time = time(11, 0),
        **fields,
    ) -> AppointmentAvailability:
        window = AppointmentAvailability(
            provider_id=provider.id,
            date=window_date,
            start_time=start_time,
            end_time=end_time,
            slot_duration_minutes=fields.get('slot_duration_minutes', 60),
            current_bookings=fields.get('current_bookings', 0),
            max_bookings=fields.get('max_bookings', 1),
            available=fields.get('available', True),
            blocked_reason=fields.get('blocked_reason'),
        )
        clinic_db.add(window)
        clinic_db.commit()
        clinic_db.refresh(window)
        return window

    return _add_window
