import logging
from datetime import date, datetime, time, timedelta

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_api.core import config
from clinic_api.core.errors import database_http_error
from clinic_api.models.availability import AppointmentAvailability
from clinic_api.models.procedure import procedure_providers
from clinic_api.models.provider import Provider
from clinic_api.routes.dependencies import ensure_database_ready, get_db, get_now
from clinic_api.scheduling.slots import AvailabilityWindow, generate_slots

router = APIRouter(tags=['availability'])

logger = logging.getLogger(__name__)


class TimeSlotResponse(BaseModel):
    date: date
    start_time: time
    end_time: time
    available: bool
    provider_id: int
    provider_name: str
    current_bookings: int
    max_bookings: int

    class Config:
        from_attributes = True


class ProviderSummaryResponse(BaseModel):
    id: int
    name: str
    title: str | None = None
    specialization: str | None = None


class AvailabilityResponse(BaseModel):
    success: bool = True
    availability: list[TimeSlotResponse]
    providers: list[ProviderSummaryResponse]


def to_availability_window(row: AppointmentAvailability) -> AvailabilityWindow:
    return AvailabilityWindow(
        provider_id=row.provider_id,
        date=row.date,
        start_time=row.start_time,
        end_time=row.end_time,
        slot_duration_minutes=row.slot_duration_minutes or config.DEFAULT_DURATION_MINUTES,
        current_bookings=row.current_bookings or 0,
        max_bookings=row.max_bookings or 1,
        provider_name=row.provider.full_name if row.provider else '',
        is_available=bool(row.available),
    )


def query_eligible_windows(
    db: Session,
    start_date: date,
    end_date: date,
    provider_id: int | None = None,
    procedure_id: int | None = None,
) -> tuple[list[AvailabilityWindow], list[ProviderSummaryResponse]]:
    query = db.query(AppointmentAvailability).join(
        Provider, Provider.id == AppointmentAvailability.provider_id,
    ).filter(
        AppointmentAvailability.date >= start_date,
        AppointmentAvailability.date <= end_date,
        AppointmentAvailability.available.is_(True),
        Provider.active.is_(True),
    )

    if provider_id is not None:
        query = query.filter(AppointmentAvailability.provider_id == provider_id)

    if procedure_id is not None:
        provider_ids = [
            row.provider_id
            for row in db.query(procedure_providers.c.provider_id).filter(
                procedure_providers.c.procedure_id == procedure_id,
            ).all()
        ]
        if not provider_ids:
            return [], []
        query = query.filter(AppointmentAvailability.provider_id.in_(provider_ids))

    rows = query.order_by(
        AppointmentAvailability.date.asc(),
        AppointmentAvailability.start_time.asc(),
    ).all()

    providers: dict[int, ProviderSummaryResponse] = {}
    for row in rows:
        if row.provider_id not in providers:
            providers[row.provider_id] = ProviderSummaryResponse(
                id=row.provider.id,
                name=row.provider.full_name,
                title=row.provider.title,
                specialization=row.provider.specialization,
            )

    return [to_availability_window(row) for row in rows], list(providers.values())


@router.get('', response_model=AvailabilityResponse)
def get_availability(
    start_date: date = Query(...),
    end_date: date | None = Query(default=None),
    provider_id: int | None = Query(default=None),
    procedure_id: int | None = Query(default=None),
    duration_minutes: int = Query(default=config.DEFAULT_DURATION_MINUTES, ge=1),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
):
    if start_date < now.date():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Cannot check availability for past dates',
        )

    range_end = end_date or start_date + timedelta(days=config.AVAILABILITY_RANGE_DAYS)
    if range_end < start_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='end_date must not be before start_date',
        )

    ensure_database_ready()

    try:
        windows, providers = query_eligible_windows(db, start_date, range_end, provider_id, procedure_id)
    except SQLAlchemyError as exc:
        raise database_http_error(exc, 'appointment_availability') from exc

    slots = generate_slots(windows, duration_minutes, now)
    logger.debug('Generated %d slots from %d windows', len(slots), len(windows))

    return AvailabilityResponse(
        availability=[TimeSlotResponse.model_validate(slot) for slot in slots],
        providers=providers,
    )
