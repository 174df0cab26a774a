import datetime as dt
import logging
from datetime import date, datetime, time, timedelta

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator, model_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_api.auth.dependencies import require_admin
from clinic_api.core import config
from clinic_api.core.errors import database_http_error
from clinic_api.models.availability import AppointmentAvailability
from clinic_api.models.provider import Provider
from clinic_api.routes.dependencies import ensure_database_ready, get_db

router = APIRouter(tags=['schedule'], dependencies=[Depends(require_admin)])

logger = logging.getLogger(__name__)

DAYS_PER_WEEK = 7


class AvailabilityWindowResponse(BaseModel):
    id: int
    provider_id: int
    date: date
    start_time: time
    end_time: time
    slot_duration_minutes: int
    current_bookings: int
    max_bookings: int
    available: bool
    blocked_reason: str | None = None
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class CreateAvailabilityWindowRequest(BaseModel):
    provider_id: int
    date: date
    start_time: time
    end_time: time
    slot_duration_minutes: int = config.DEFAULT_DURATION_MINUTES
    max_bookings: int = 1
    available: bool = True
    blocked_reason: str | None = None

    @field_validator('slot_duration_minutes', 'max_bookings')
    @classmethod
    def validate_positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError('Must be a positive number.')
        return value

    @model_validator(mode='after')
    def validate_time_range(self) -> 'CreateAvailabilityWindowRequest':
        if self.end_time <= self.start_time:
            raise ValueError('end_time must be after start_time.')
        return self


class UpdateAvailabilityWindowRequest(BaseModel):
    date: dt.date | None = None
    start_time: time | None = None
    end_time: time | None = None
    slot_duration_minutes: int | None = None
    max_bookings: int | None = None
    available: bool | None = None
    blocked_reason: str | None = None

    @field_validator('slot_duration_minutes', 'max_bookings')
    @classmethod
    def validate_positive(cls, value: int | None) -> int | None:
        if value is not None and value < 1:
            raise ValueError('Must be a positive number.')
        return value


class WeeklyScheduleRequest(BaseModel):
    provider_id: int
    start_date: date
    weekdays: list[int]
    start_time: time
    end_time: time
    slot_duration_minutes: int

    @field_validator('weekdays')
    @classmethod
    def validate_weekdays(cls, value: list[int]) -> list[int]:
        if not value:
            raise ValueError('At least one weekday is required.')
        if any(day < 0 or day > 6 for day in value):
            raise ValueError('Weekdays must be between 0 (Sunday) and 6 (Saturday).')
        return sorted(set(value))

    @field_validator('slot_duration_minutes')
    @classmethod
    def validate_slot_duration(cls, value: int) -> int:
        if value < 1:
            raise ValueError('Must be a positive number.')
        return value

    @model_validator(mode='after')
    def validate_time_range(self) -> 'WeeklyScheduleRequest':
        if self.end_time <= self.start_time:
            raise ValueError('end_time must be after start_time.')
        return self


class WeeklyScheduleResponse(BaseModel):
    success: bool = True
    data: list[AvailabilityWindowResponse]
    slots_created: int


def sunday_based_weekday(day: date) -> int:
    # Sunday = 0 ... Saturday = 6
    return (day.weekday() + 1) % DAYS_PER_WEEK


def iterate_weekly_dates(start_date: date, weekdays: list[int], weeks: int) -> list[date]:
    selected = set(weekdays)
    days = (start_date + timedelta(days=offset) for offset in range(weeks * DAYS_PER_WEEK))
    return [day for day in days if sunday_based_weekday(day) in selected]


def get_window_or_404(db: Session, window_id: int) -> AppointmentAvailability:
    window = db.query(AppointmentAvailability).filter(AppointmentAvailability.id == window_id).first()
    if window is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Availability window not found.',
        )
    return window


def ensure_provider_exists(db: Session, provider_id: int) -> None:
    if db.query(Provider.id).filter(Provider.id == provider_id).first() is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Provider not found.',
        )


@router.get('', response_model=list[AvailabilityWindowResponse])
def list_availability_windows(
    provider_id: int | None = Query(default=None),
    date_from: date | None = Query(default=None),
    date_to: date | None = Query(default=None),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        query = db.query(AppointmentAvailability)
        if provider_id is not None:
            query = query.filter(AppointmentAvailability.provider_id == provider_id)
        if date_from is not None:
            query = query.filter(AppointmentAvailability.date >= date_from)
        if date_to is not None:
            query = query.filter(AppointmentAvailability.date <= date_to)

        return query.order_by(
            AppointmentAvailability.date.asc(),
            AppointmentAvailability.start_time.asc(),
        ).all()
    except SQLAlchemyError as exc:
        raise database_http_error(exc, 'appointment_availability') from exc


@router.post('', response_model=AvailabilityWindowResponse, status_code=status.HTTP_201_CREATED)
def create_availability_window(data: CreateAvailabilityWindowRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        ensure_provider_exists(db, data.provider_id)

        window = AppointmentAvailability(
            provider_id=data.provider_id,
            date=data.date,
            start_time=data.start_time,
            end_time=data.end_time,
            slot_duration_minutes=data.slot_duration_minutes,
            current_bookings=0,
            max_bookings=data.max_bookings,
            available=data.available,
            blocked_reason=data.blocked_reason,
        )
        db.add(window)
        db.commit()
        db.refresh(window)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_http_error(exc, 'appointment_availability') from exc

    logger.info('Created availability window %s for provider %s on %s', window.id, window.provider_id, window.date)
    return window


@router.patch('/{window_id}', response_model=AvailabilityWindowResponse)
def update_availability_window(
    window_id: int,
    data: UpdateAvailabilityWindowRequest,
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        window = get_window_or_404(db, window_id)

        for field_name, value in data.model_dump(exclude_unset=True).items():
            if value is None and field_name != 'blocked_reason':
                continue
            setattr(window, field_name, value)

        if window.end_time <= window.start_time:
            db.rollback()
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='end_time must be after start_time.',
            )

        if window.max_bookings < (window.current_bookings or 0):
            db.rollback()
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='max_bookings cannot be lower than current_bookings.',
            )

        db.commit()
        db.refresh(window)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_http_error(exc, 'appointment_availability') from exc

    logger.info('Updated availability window %s', window.id)
    return window


@router.delete('/{window_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_availability_window(window_id: int, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        window = get_window_or_404(db, window_id)
        db.delete(window)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_http_error(exc, 'appointment_availability') from exc

    logger.info('Deleted availability window %s', window_id)


@router.post('/weekly', response_model=WeeklyScheduleResponse, status_code=status.HTTP_201_CREATED)
def generate_weekly_schedule(data: WeeklyScheduleRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        ensure_provider_exists(db, data.provider_id)

        windows = [
            AppointmentAvailability(
                provider_id=data.provider_id,
                date=day,
                start_time=data.start_time,
                end_time=data.end_time,
                slot_duration_minutes=data.slot_duration_minutes,
                current_bookings=0,
                max_bookings=1,
                available=True,
            )
            for day in iterate_weekly_dates(data.start_date, data.weekdays, config.WEEKLY_SCHEDULE_WEEKS)
        ]
        db.add_all(windows)
        db.commit()
        for window in windows:
            db.refresh(window)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_http_error(exc, 'appointment_availability') from exc

    logger.info('Generated %d weekly availability windows for provider %s', len(windows), data.provider_id)

    return WeeklyScheduleResponse(
        data=[AvailabilityWindowResponse.model_validate(window) for window in windows],
        slots_created=len(windows),
    )
