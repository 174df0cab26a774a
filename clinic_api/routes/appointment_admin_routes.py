import logging
from datetime import date, datetime, time

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_api.auth.dependencies import require_admin
from clinic_api.core.errors import database_http_error
from clinic_api.models.appointment import Appointment
from clinic_api.routes.appointment_routes import (
    CANCELLED_STATUS,
    MAX_APPOINTMENT_NOTES_LENGTH,
    PENDING_STATUS,
    AppointmentResponse,
    cancel_appointment_record,
    release_window,
    reserve_window,
    to_appointment_response,
)
from clinic_api.routes.dependencies import ensure_database_ready, get_db, get_now

router = APIRouter(tags=['appointment-admin'], dependencies=[Depends(require_admin)])

logger = logging.getLogger(__name__)

APPOINTMENT_STATUSES = {PENDING_STATUS, 'confirmed', 'completed', 'no_show', CANCELLED_STATUS}
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


class UpdateAppointmentRequest(BaseModel):
    status: str | None = None
    notes: str | None = None

    @field_validator('status')
    @classmethod
    def validate_status(cls, value: str | None) -> str | None:
        if value is None:
            return None

        normalized = value.strip().lower()
        if normalized == CANCELLED_STATUS:
            raise ValueError('Use the cancel action to cancel an appointment.')
        if normalized not in APPOINTMENT_STATUSES:
            raise ValueError(f'Unknown appointment status: {value}')
        return normalized

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        if value is None:
            return None

        normalized = value.strip()
        if len(normalized) > MAX_APPOINTMENT_NOTES_LENGTH:
            raise ValueError(f'Must be {MAX_APPOINTMENT_NOTES_LENGTH} characters or fewer.')
        return normalized or None


class CancelAppointmentRequest(BaseModel):
    cancellation_reason: str | None = None

    @field_validator('cancellation_reason')
    @classmethod
    def validate_cancellation_reason(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None


class RescheduleAppointmentRequest(BaseModel):
    preferred_date: date
    preferred_time: time
    provider_id: int | None = None


class AppointmentListResponse(BaseModel):
    success: bool = True
    appointments: list[AppointmentResponse]
    total: int
    page: int
    limit: int


def get_appointment_or_404(db: Session, appointment_id: int) -> Appointment:
    appointment = db.query(Appointment).filter(Appointment.id == appointment_id).first()
    if appointment is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Appointment not found.',
        )
    return appointment


@router.get('', response_model=AppointmentListResponse)
def list_appointments(
    appointment_status: str | None = Query(default=None, alias='status'),
    provider_id: int | None = Query(default=None),
    date_from: date | None = Query(default=None),
    date_to: date | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        query = db.query(Appointment)
        if appointment_status:
            query = query.filter(Appointment.status == appointment_status.strip().lower())
        if provider_id is not None:
            query = query.filter(Appointment.provider_id == provider_id)
        if date_from is not None:
            query = query.filter(Appointment.preferred_date >= date_from)
        if date_to is not None:
            query = query.filter(Appointment.preferred_date <= date_to)

        total = query.count()
        appointments = query.order_by(
            Appointment.preferred_date.asc(),
            Appointment.preferred_time.asc(),
            Appointment.id.asc(),
        ).offset((page - 1) * limit).limit(limit).all()
    except SQLAlchemyError as exc:
        raise database_http_error(exc, 'appointments') from exc

    return AppointmentListResponse(
        appointments=[to_appointment_response(appointment) for appointment in appointments],
        total=total,
        page=page,
        limit=limit,
    )


@router.get('/{appointment_id}', response_model=AppointmentResponse)
def get_appointment(appointment_id: int, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        appointment = get_appointment_or_404(db, appointment_id)
    except SQLAlchemyError as exc:
        raise database_http_error(exc, 'appointments') from exc

    return to_appointment_response(appointment)


@router.patch('/{appointment_id}', response_model=AppointmentResponse)
def update_appointment(
    appointment_id: int,
    data: UpdateAppointmentRequest,
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointment = get_appointment_or_404(db, appointment_id)

        if appointment.status == CANCELLED_STATUS:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail='Cancelled appointments cannot be changed.',
            )

        for field_name, value in data.model_dump(exclude_unset=True).items():
            if value is None and field_name != 'notes':
                continue
            setattr(appointment, field_name, value)

        db.commit()
        db.refresh(appointment)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_http_error(exc, 'appointments') from exc

    logger.info('Updated appointment %s', appointment_id)
    return to_appointment_response(appointment)


@router.post('/{appointment_id}/cancel', response_model=AppointmentResponse)
def cancel_appointment(
    appointment_id: int,
    data: CancelAppointmentRequest,
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointment = get_appointment_or_404(db, appointment_id)
        cancel_appointment_record(db, appointment, data.cancellation_reason)
        db.commit()
        db.refresh(appointment)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_http_error(exc, 'appointments') from exc

    logger.info('Cancelled appointment %s', appointment_id)
    return to_appointment_response(appointment)


@router.post('/{appointment_id}/reschedule', response_model=AppointmentResponse)
def reschedule_appointment(
    appointment_id: int,
    data: RescheduleAppointmentRequest,
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
):
    if datetime.combine(data.preferred_date, data.preferred_time) <= now:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Appointment must be scheduled for a future date and time',
        )

    ensure_database_ready()

    try:
        appointment = get_appointment_or_404(db, appointment_id)

        if appointment.status == CANCELLED_STATUS:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail='Cancelled appointments cannot be rescheduled.',
            )

        provider_id = data.provider_id if data.provider_id is not None else appointment.provider_id

        release_window(db, appointment)

        window = None
        if provider_id is not None:
            try:
                window = reserve_window(
                    db,
                    provider_id,
                    data.preferred_date,
                    data.preferred_time,
                    appointment.duration_minutes,
                )
            except HTTPException:
                db.rollback()
                raise

        appointment.provider_id = provider_id
        appointment.availability_id = window.id if window is not None else None
        appointment.preferred_date = data.preferred_date
        appointment.preferred_time = data.preferred_time
        appointment.status = PENDING_STATUS

        db.commit()
        db.refresh(appointment)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_http_error(exc, 'appointments') from exc

    logger.info(
        'Rescheduled appointment %s to %s %s',
        appointment_id,
        appointment.preferred_date,
        appointment.preferred_time,
    )
    return to_appointment_response(appointment)
