"""
Appointment slot generation.

Turns a provider's open availability windows into fixed-duration candidate
slots for display. Windows arrive already filtered (date range, open flag,
active provider, procedure association); this module only subdivides them,
marks each slot with the window's capacity snapshot and drops slots that
have already started.

Nothing here reads the clock or touches the database: ``now`` is passed in,
so the same inputs always produce the same slots.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

DEFAULT_REQUESTED_DURATION_MINUTES = 60


@dataclass(frozen=True)
class AvailabilityWindow:
    """A block of time on one date during which a provider accepts bookings."""

    provider_id: int
    date: date
    start_time: time
    end_time: time
    slot_duration_minutes: int
    current_bookings: int
    max_bookings: int
    provider_name: str = ""
    is_available: bool = True

    @property
    def has_capacity(self) -> bool:
        return self.current_bookings < self.max_bookings


@dataclass(frozen=True)
class TimeSlot:
    """One candidate bookable interval cut from an availability window."""

    date: date
    start_time: time
    end_time: time
    available: bool
    provider_id: int
    provider_name: str
    current_bookings: int
    max_bookings: int

    @property
    def starts_at(self) -> datetime:
        return datetime.combine(self.date, self.start_time)


def effective_duration_minutes(window: AvailabilityWindow, requested_duration_minutes: int) -> int:
    return max(requested_duration_minutes, window.slot_duration_minutes)


def iterate_window_slots(window: AvailabilityWindow, requested_duration_minutes: int) -> list[TimeSlot]:
    """
    Subdivide a single window.

    Slots are sized by the effective duration but the cursor advances by the
    window's own granularity, so a request longer than the granularity yields
    overlapping candidates (09:00-10:30, 09:30-11:00, ...). Slots that would
    run past the window end are dropped rather than shortened.
    """
    duration = timedelta(minutes=effective_duration_minutes(window, requested_duration_minutes))
    step = timedelta(minutes=window.slot_duration_minutes)
    window_end = datetime.combine(window.date, window.end_time)
    cursor = datetime.combine(window.date, window.start_time)

    slots: list[TimeSlot] = []
    if step <= timedelta(0):
        return slots

    while cursor + duration <= window_end:
        slot_end = cursor + duration
        slots.append(
            TimeSlot(
                date=window.date,
                start_time=cursor.time(),
                end_time=slot_end.time(),
                available=window.has_capacity,
                provider_id=window.provider_id,
                provider_name=window.provider_name,
                current_bookings=window.current_bookings,
                max_bookings=window.max_bookings,
            )
        )
        cursor += step

    return slots


def generate_slots(
    windows: list[AvailabilityWindow],
    requested_duration_minutes: int | None,
    now: datetime,
) -> list[TimeSlot]:
    """
    Build the candidate slots for a set of eligible windows.

    Args:
        windows: eligible windows ordered by (date, start_time)
        requested_duration_minutes: length the caller wants; ``None`` means 60
        now: reference instant; slots starting at or before it are removed

    Returns:
        list[TimeSlot] in window order, possibly empty
    """
    if requested_duration_minutes is None:
        requested_duration_minutes = DEFAULT_REQUESTED_DURATION_MINUTES

    slots: list[TimeSlot] = []
    for window in windows:
        slots.extend(iterate_window_slots(window, requested_duration_minutes))

    return [slot for slot in slots if slot.starts_at > now]
