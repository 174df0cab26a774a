from datetime import date, datetime, time

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient
from pydantic import ValidationError

from clinic_api.auth import jwt_handler
from clinic_api.main import app
from clinic_api.models.appointment import Appointment
from clinic_api.routes.appointment_admin_routes import (
    CancelAppointmentRequest,
    RescheduleAppointmentRequest,
    UpdateAppointmentRequest,
    cancel_appointment,
    get_appointment,
    list_appointments,
    reschedule_appointment,
    update_appointment,
)
from clinic_api.routes.appointment_routes import CreateAppointmentRequest, book_appointment
from clinic_api.routes.dependencies import get_db

NOW = datetime(2024, 2, 14, 12, 0)


@pytest.fixture(autouse=True)
def skip_schema_checks(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr('clinic_api.routes.appointment_routes.ensure_database_ready', lambda: None)
    monkeypatch.setattr('clinic_api.routes.appointment_admin_routes.ensure_database_ready', lambda: None)


@pytest.fixture
def book(clinic_db):
    def _book(**overrides):
        fields = {
            'patient_name': 'John Doe',
            'patient_email': 'john.doe@example.com',
            'service_type': 'Consultation',
            'preferred_date': date(2024, 2, 15),
            'preferred_time': time(9, 0),
        }
        fields.update(overrides)
        return book_appointment(CreateAppointmentRequest(**fields), db=clinic_db, now=NOW).appointment

    return _book


def list_all(db, **filters):
    arguments = {
        'appointment_status': None,
        'provider_id': None,
        'date_from': None,
        'date_to': None,
        'page': 1,
        'limit': 20,
    }
    arguments.update(filters)
    return list_appointments(db=db, **arguments)


def test_list_appointments_filters_by_status_provider_and_date(clinic_db, add_provider, add_window, book) -> None:
    provider = add_provider()
    add_window(provider, max_bookings=3)
    add_window(provider, window_date=date(2024, 2, 20), max_bookings=3)
    first = book(provider_id=provider.id)
    book(provider_id=provider.id, preferred_date=date(2024, 2, 20))
    book(patient_email='walk.in@example.com')
    update_appointment(first.id, UpdateAppointmentRequest(status='confirmed'), db=clinic_db)

    assert list_all(clinic_db).total == 3
    assert [item.id for item in list_all(clinic_db, appointment_status='confirmed').appointments] == [first.id]
    assert list_all(clinic_db, provider_id=provider.id).total == 2
    assert list_all(clinic_db, date_from=date(2024, 2, 16)).total == 1
    assert list_all(clinic_db, date_to=date(2024, 2, 15)).total == 2


def test_list_appointments_paginates(clinic_db, book) -> None:
    for hour in (9, 10, 11):
        book(preferred_time=time(hour, 0))

    second_page = list_all(clinic_db, page=2, limit=2)

    assert second_page.total == 3
    assert second_page.page == 2
    assert [item.preferred_time for item in second_page.appointments] == [time(11, 0)]


def test_get_appointment_returns_404_for_unknown_id(clinic_db) -> None:
    with pytest.raises(HTTPException) as exception_info:
        get_appointment(42, db=clinic_db)

    assert exception_info.value.status_code == 404


def test_update_appointment_changes_status_and_notes(clinic_db, book) -> None:
    booked = book(notes='Initial')

    response = update_appointment(
        booked.id,
        UpdateAppointmentRequest(status=' Completed ', notes='Seen by Dr. Smith'),
        db=clinic_db,
    )

    assert response.status == 'completed'
    assert response.notes == 'Seen by Dr. Smith'
    assert get_appointment(booked.id, db=clinic_db).status == 'completed'


@pytest.mark.parametrize('requested_status', ['cancelled', 'archived'])
def test_update_appointment_request_rejects_status(requested_status: str) -> None:
    with pytest.raises(ValidationError):
        UpdateAppointmentRequest(status=requested_status)


def test_cancel_appointment_releases_capacity_in_the_same_commit(clinic_db, add_provider, add_window, book) -> None:
    provider = add_provider()
    window = add_window(provider, max_bookings=1)
    booked = book(provider_id=provider.id)

    response = cancel_appointment(
        booked.id,
        CancelAppointmentRequest(cancellation_reason='Provider unavailable'),
        db=clinic_db,
    )

    assert response.status == 'cancelled'
    assert response.cancellation_reason == 'Provider unavailable'
    clinic_db.refresh(window)
    assert window.current_bookings == 0
    assert clinic_db.query(Appointment).one().availability_id is None


def test_cancelled_appointment_cannot_be_updated(clinic_db, book) -> None:
    booked = book()
    cancel_appointment(booked.id, CancelAppointmentRequest(), db=clinic_db)

    with pytest.raises(HTTPException) as exception_info:
        update_appointment(booked.id, UpdateAppointmentRequest(status='confirmed'), db=clinic_db)

    assert exception_info.value.status_code == 409


def test_reschedule_appointment_moves_capacity_between_windows(clinic_db, add_provider, add_window, book) -> None:
    provider = add_provider()
    old_window = add_window(provider)
    new_window = add_window(provider, window_date=date(2024, 2, 16))
    booked = book(provider_id=provider.id)
    update_appointment(booked.id, UpdateAppointmentRequest(status='confirmed'), db=clinic_db)

    response = reschedule_appointment(
        booked.id,
        RescheduleAppointmentRequest(preferred_date=date(2024, 2, 16), preferred_time=time(10, 0)),
        db=clinic_db,
        now=NOW,
    )

    assert response.preferred_date == date(2024, 2, 16)
    assert response.preferred_time == time(10, 0)
    assert response.status == 'pending'
    clinic_db.refresh(old_window)
    clinic_db.refresh(new_window)
    assert old_window.current_bookings == 0
    assert new_window.current_bookings == 1


def test_reschedule_appointment_within_its_own_full_window(clinic_db, add_provider, add_window, book) -> None:
    provider = add_provider()
    window = add_window(provider, max_bookings=1)
    booked = book(provider_id=provider.id)

    response = reschedule_appointment(
        booked.id,
        RescheduleAppointmentRequest(preferred_date=date(2024, 2, 15), preferred_time=time(10, 0)),
        db=clinic_db,
        now=NOW,
    )

    assert response.preferred_time == time(10, 0)
    clinic_db.refresh(window)
    assert window.current_bookings == 1


def test_reschedule_appointment_keeps_old_booking_when_target_is_full(
    clinic_db, add_provider, add_window, book,
) -> None:
    provider = add_provider()
    old_window = add_window(provider)
    add_window(provider, window_date=date(2024, 2, 16), current_bookings=1, max_bookings=1)
    booked = book(provider_id=provider.id)

    with pytest.raises(HTTPException) as exception_info:
        reschedule_appointment(
            booked.id,
            RescheduleAppointmentRequest(preferred_date=date(2024, 2, 16), preferred_time=time(9, 0)),
            db=clinic_db,
            now=NOW,
        )

    assert exception_info.value.status_code == 409
    clinic_db.refresh(old_window)
    assert old_window.current_bookings == 1
    stored = clinic_db.query(Appointment).one()
    assert stored.preferred_date == date(2024, 2, 15)
    assert stored.availability_id == old_window.id


def test_reschedule_appointment_rejects_past_times(clinic_db, book) -> None:
    booked = book()

    with pytest.raises(HTTPException) as exception_info:
        reschedule_appointment(
            booked.id,
            RescheduleAppointmentRequest(preferred_date=date(2024, 2, 14), preferred_time=time(11, 0)),
            db=clinic_db,
            now=NOW,
        )

    assert exception_info.value.status_code == 400


def test_admin_appointment_routes_require_admin_role(clinic_db) -> None:
    app.dependency_overrides[get_db] = lambda: clinic_db
    try:
        client = TestClient(app)
        patient_token = jwt_handler.create_access_token(subject='patient@example.com')
        admin_token = jwt_handler.create_access_token(subject='staff@clinic.example', role='admin')

        assert client.get('/admin/appointments').status_code == 401
        assert client.get(
            '/admin/appointments', headers={'Authorization': f'Bearer {patient_token}'},
        ).status_code == 403

        response = client.get('/admin/appointments', headers={'Authorization': f'Bearer {admin_token}'})
        assert response.status_code == 200
        assert response.json()['total'] == 0
    finally:
        app.dependency_overrides.clear()
