import logging
import re
import secrets
import string
from datetime import date, datetime, time, timedelta

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_api.core import config
from clinic_api.core.errors import database_http_error
from clinic_api.models.appointment import Appointment
from clinic_api.models.availability import AppointmentAvailability
from clinic_api.models.procedure import Procedure
from clinic_api.models.provider import Provider
from clinic_api.routes.dependencies import ensure_database_ready, get_db, get_now

router = APIRouter(tags=['appointments'])

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
CONFIRMATION_CODE_LENGTH = 8
CONFIRMATION_CODE_ALPHABET = string.ascii_uppercase + string.digits
DEFAULT_APPOINTMENT_TYPE = 'consultation'
MAX_APPOINTMENT_NOTES_LENGTH = 1000
PENDING_STATUS = 'pending'
CANCELLED_STATUS = 'cancelled'


class CreateAppointmentRequest(BaseModel):
    patient_name: str
    patient_email: str
    patient_phone: str | None = None
    service_type: str
    procedure_id: int | None = None
    provider_id: int | None = None
    preferred_date: date
    preferred_time: time
    duration_minutes: int = config.DEFAULT_DURATION_MINUTES
    notes: str | None = None
    appointment_type: str = DEFAULT_APPOINTMENT_TYPE

    @field_validator('patient_name', 'service_type')
    @classmethod
    def validate_required_text(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('This field is required.')
        return normalized

    @field_validator('patient_email')
    @classmethod
    def validate_patient_email(cls, value: str) -> str:
        normalized = value.strip().lower()
        if not EMAIL_PATTERN.match(normalized):
            raise ValueError('Invalid email format')
        return normalized

    @field_validator('duration_minutes')
    @classmethod
    def validate_duration_minutes(cls, value: int) -> int:
        if value < 1:
            raise ValueError('Duration must be at least one minute.')
        return value

    @field_validator('appointment_type')
    @classmethod
    def validate_appointment_type(cls, value: str) -> str:
        return value.strip().lower() or DEFAULT_APPOINTMENT_TYPE

    @field_validator('patient_phone', 'notes')
    @classmethod
    def validate_optional_text(cls, value: str | None) -> str | None:
        if value is None:
            return None

        normalized = value.strip()
        if not normalized:
            return None

        if len(normalized) > MAX_APPOINTMENT_NOTES_LENGTH:
            raise ValueError(f'Must be {MAX_APPOINTMENT_NOTES_LENGTH} characters or fewer.')

        return normalized


class ProviderInfoResponse(BaseModel):
    full_name: str
    title: str | None = None
    specialization: str | None = None

    class Config:
        from_attributes = True


class ProcedureInfoResponse(BaseModel):
    name: str
    duration_minutes: int | None = None
    price_range: str | None = None

    class Config:
        from_attributes = True


class AppointmentResponse(BaseModel):
    id: int
    patient_name: str
    patient_email: str
    patient_phone: str | None = None
    service_type: str
    procedure_id: int | None = None
    provider_id: int | None = None
    preferred_date: date
    preferred_time: time
    duration_minutes: int
    appointment_type: str
    notes: str | None = None
    confirmation_code: str
    status: str
    cancellation_reason: str | None = None
    provider: ProviderInfoResponse | None = None
    procedure: ProcedureInfoResponse | None = None


class BookAppointmentResponse(BaseModel):
    success: bool = True
    appointment: AppointmentResponse
    confirmation_code: str


class PatientAppointmentsResponse(BaseModel):
    success: bool = True
    appointments: list[AppointmentResponse]


def to_appointment_response(appointment: Appointment) -> AppointmentResponse:
    return AppointmentResponse(
        id=appointment.id,
        patient_name=appointment.patient_name,
        patient_email=appointment.patient_email,
        patient_phone=appointment.patient_phone,
        service_type=appointment.service_type,
        procedure_id=appointment.procedure_id,
        provider_id=appointment.provider_id,
        preferred_date=appointment.preferred_date,
        preferred_time=appointment.preferred_time,
        duration_minutes=appointment.duration_minutes,
        appointment_type=appointment.appointment_type or DEFAULT_APPOINTMENT_TYPE,
        notes=appointment.notes,
        confirmation_code=appointment.confirmation_code or '',
        status=appointment.status or PENDING_STATUS,
        cancellation_reason=appointment.cancellation_reason,
        provider=ProviderInfoResponse.model_validate(appointment.provider) if appointment.provider else None,
        procedure=ProcedureInfoResponse.model_validate(appointment.procedure) if appointment.procedure else None,
    )


def normalize_patient_email(patient_email: str) -> str:
    normalized = patient_email.strip().lower()
    if not normalized:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Patient email is required.',
        )
    return normalized


def generate_confirmation_code() -> str:
    return ''.join(secrets.choice(CONFIRMATION_CODE_ALPHABET) for _ in range(CONFIRMATION_CODE_LENGTH))


def find_bookable_window(
    db: Session,
    provider_id: int,
    requested_date: date,
    requested_time: time,
    duration_minutes: int,
) -> AppointmentAvailability | None:
    """Return a window of the provider that can hold the requested interval, locking it for update."""
    requested_start = datetime.combine(requested_date, requested_time)
    requested_end = requested_start + timedelta(minutes=duration_minutes)

    candidates = db.query(AppointmentAvailability).join(
        Provider, Provider.id == AppointmentAvailability.provider_id,
    ).filter(
        AppointmentAvailability.provider_id == provider_id,
        AppointmentAvailability.date == requested_date,
        AppointmentAvailability.available.is_(True),
        AppointmentAvailability.start_time <= requested_time,
        AppointmentAvailability.current_bookings < AppointmentAvailability.max_bookings,
        Provider.active.is_(True),
    ).order_by(
        AppointmentAvailability.start_time.asc(),
    ).with_for_update(of=AppointmentAvailability).all()

    for window in candidates:
        if requested_end <= datetime.combine(window.date, window.end_time):
            return window

    return None


def check_provider_availability(
    db: Session,
    provider_id: int,
    requested_date: date,
    requested_time: time,
    duration_minutes: int,
) -> bool:
    return find_bookable_window(db, provider_id, requested_date, requested_time, duration_minutes) is not None


def reserve_window(
    db: Session,
    provider_id: int,
    requested_date: date,
    requested_time: time,
    duration_minutes: int,
) -> AppointmentAvailability:
    window = find_bookable_window(db, provider_id, requested_date, requested_time, duration_minutes)
    if window is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail='Selected time slot is not available. Please choose a different time.',
        )
    window.current_bookings = (window.current_bookings or 0) + 1
    return window


def release_window(db: Session, appointment: Appointment) -> None:
    """Give back the capacity an appointment took from its availability window."""
    if appointment.availability_id is None:
        return

    window = db.query(AppointmentAvailability).filter(
        AppointmentAvailability.id == appointment.availability_id,
    ).with_for_update(of=AppointmentAvailability).first()
    if window is not None and (window.current_bookings or 0) > 0:
        window.current_bookings -= 1
    appointment.availability_id = None
    db.flush()


def cancel_appointment_record(db: Session, appointment: Appointment, cancellation_reason: str | None) -> None:
    if appointment.status == CANCELLED_STATUS:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail='Appointment is already cancelled.',
        )

    release_window(db, appointment)
    appointment.status = CANCELLED_STATUS
    appointment.cancellation_reason = cancellation_reason


def ensure_procedure_exists(db: Session, procedure_id: int) -> Procedure:
    procedure = db.query(Procedure).filter(Procedure.id == procedure_id).first()
    if procedure is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Procedure not found.',
        )
    return procedure


@router.post('', response_model=BookAppointmentResponse, status_code=status.HTTP_201_CREATED)
def book_appointment(
    data: CreateAppointmentRequest,
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
):
    requested_start = datetime.combine(data.preferred_date, data.preferred_time)
    if requested_start <= now:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Appointment must be scheduled for a future date and time',
        )

    ensure_database_ready()

    try:
        if data.procedure_id is not None:
            ensure_procedure_exists(db, data.procedure_id)

        window = None
        if data.provider_id is not None:
            window = reserve_window(
                db,
                data.provider_id,
                data.preferred_date,
                data.preferred_time,
                data.duration_minutes,
            )

        appointment = Appointment(
            patient_name=data.patient_name,
            patient_email=data.patient_email,
            patient_phone=data.patient_phone,
            service_type=data.service_type,
            procedure_id=data.procedure_id,
            provider_id=data.provider_id,
            availability_id=window.id if window is not None else None,
            preferred_date=data.preferred_date,
            preferred_time=data.preferred_time,
            duration_minutes=data.duration_minutes,
            appointment_type=data.appointment_type,
            notes=data.notes,
            confirmation_code=generate_confirmation_code(),
            status=PENDING_STATUS,
        )
        db.add(appointment)
        db.commit()
        db.refresh(appointment)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_http_error(exc, 'appointments') from exc

    logger.info('Appointment %s booked with confirmation code %s', appointment.id, appointment.confirmation_code)

    return BookAppointmentResponse(
        appointment=to_appointment_response(appointment),
        confirmation_code=appointment.confirmation_code,
    )


@router.get('', response_model=PatientAppointmentsResponse)
def list_my_appointments(
    patient_email: str = Query(...),
    db: Session = Depends(get_db),
):
    normalized_email = normalize_patient_email(patient_email)

    ensure_database_ready()

    try:
        appointments = db.query(Appointment).filter(
            Appointment.patient_email == normalized_email,
        ).order_by(Appointment.created_at.desc(), Appointment.id.desc()).all()
    except SQLAlchemyError as exc:
        raise database_http_error(exc, 'appointments') from exc

    return PatientAppointmentsResponse(
        appointments=[to_appointment_response(appointment) for appointment in appointments],
    )


@router.post('/{appointment_id}/cancel', response_model=AppointmentResponse)
def cancel_my_appointment(
    appointment_id: int,
    patient_email: str = Query(...),
    confirmation_code: str = Query(...),
    cancellation_reason: str | None = Query(default=None),
    db: Session = Depends(get_db),
):
    normalized_email = normalize_patient_email(patient_email)

    ensure_database_ready()

    try:
        appointment = db.query(Appointment).filter(Appointment.id == appointment_id).first()
        if appointment is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail='Appointment not found.',
            )

        if (
            appointment.patient_email != normalized_email
            or appointment.confirmation_code != confirmation_code.strip().upper()
        ):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail='Only the patient who booked this appointment can cancel it.',
            )

        cancel_appointment_record(db, appointment, (cancellation_reason or '').strip() or None)
        db.commit()
        db.refresh(appointment)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_http_error(exc, 'appointments') from exc

    logger.info('Appointment %s cancelled by patient', appointment_id)
    return to_appointment_response(appointment)
