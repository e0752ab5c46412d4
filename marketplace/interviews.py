"""
marketplace/interviews.py — Interview booking against a VA's weekly availability.

Slots are 30-minute starts inside each availability window. A slot is offered
when it is in the future and does not overlap a scheduled interview.
"""
import logging
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import List, Optional, TYPE_CHECKING

from pydantic import BaseModel, Field, field_validator

from backend.client import BackendError, eq, gte
from backend.types import many, one
from config.settings import settings

if TYPE_CHECKING:
    from backend.client import BackendClient
    from .notifications import Notifier
    from .session import Session

logger = logging.getLogger(__name__)

MSG_BOOKING_FAILED = "Failed to book interview. The slot may no longer be available."


class BookingError(Exception):
    pass


class AvailabilityWindow(BaseModel):
    day_of_week: int = Field(..., ge=0, le=6)  # 0 = Sunday
    start_time: time
    end_time: time
    timezone: Optional[str] = None

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def parse_clock(cls, v):
        if isinstance(v, str):
            hour, minute = v.split(":")[:2]
            return time(int(hour), int(minute))
        return v


class ScheduledInterview(BaseModel):
    scheduled_at: datetime
    duration_minutes: int = 30

    @property
    def ends_at(self) -> datetime:
        return self.scheduled_at + timedelta(minutes=self.duration_minutes)


def sunday_index(day: date) -> int:
    """date.weekday() is Monday-based; availability rows are Sunday-based."""
    return (day.weekday() + 1) % 7


def week_start(day: date) -> date:
    return day - timedelta(days=sunday_index(day))


def week_dates(start: date) -> List[date]:
    return [start + timedelta(days=i) for i in range(7)]


def prev_week(current_start: date, today: date) -> date:
    """Step back one week unless that week ends before today."""
    candidate = current_start - timedelta(days=7)
    if candidate + timedelta(days=6) >= today:
        return candidate
    return current_start


def next_week(current_start: date, today: date, horizon_days: Optional[int] = None) -> date:
    horizon = settings.booking_horizon_days if horizon_days is None else horizon_days
    candidate = current_start + timedelta(days=7)
    if candidate <= today + timedelta(days=horizon):
        return candidate
    return current_start


def is_date_available(day: date, windows: List[AvailabilityWindow], today: date) -> bool:
    if day < today:
        return False
    return any(w.day_of_week == sunday_index(day) for w in windows)


def compute_slots(
    day: date,
    windows: List[AvailabilityWindow],
    interviews: List[ScheduledInterview],
    now: datetime,
    tz: tzinfo = timezone.utc,
    slot_minutes: Optional[int] = None,
) -> List[str]:
    """Free slot starts ("HH:MM") for one day, sorted."""
    step = timedelta(minutes=slot_minutes or settings.slot_minutes)
    slots = set()
    for window in windows:
        if window.day_of_week != sunday_index(day):
            continue
        current = datetime.combine(day, window.start_time, tzinfo=tz)
        end = datetime.combine(day, window.end_time, tzinfo=tz)
        while current < end:
            slot_end = current + step
            if current > now and not any(
                current < iv.ends_at and slot_end > iv.scheduled_at for iv in interviews
            ):
                slots.add(current.strftime("%H:%M"))
            current += step
    return sorted(slots)


class InterviewScheduler:
    def __init__(self, client: "BackendClient", notifier: Optional["Notifier"] = None):
        self.client = client
        self.notifier = notifier

    async def fetch_availability(self, va_id: str) -> List[AvailabilityWindow]:
        rows = many(await self.client.select(
            "va_availability", "day_of_week, start_time, end_time, timezone",
            {"va_id": eq(va_id)},
        ))
        return [AvailabilityWindow.model_validate(r) for r in rows]

    async def fetch_scheduled(self, va_id: str, now: datetime) -> List[ScheduledInterview]:
        rows = many(await self.client.select(
            "interviews", "scheduled_at, duration_minutes",
            {"va_id": eq(va_id), "status": eq("scheduled"), "scheduled_at": gte(now.isoformat())},
        ))
        return [ScheduledInterview.model_validate(r) for r in rows]

    async def fetch_va(self, va_id: str) -> Optional[dict]:
        """VA row with its profile normalized to a single object."""
        va = one(await self.client.select(
            "vas", "id, user_id, profile:profiles!vas_user_id_fkey(full_name)",
            {"id": eq(va_id)},
        ))
        if va is None:
            return None
        va["profile"] = one(va.get("profile")) or {"full_name": None}
        return va

    async def available_slots(
        self, va_id: str, day: date, now: Optional[datetime] = None, tz: tzinfo = timezone.utc,
    ) -> List[str]:
        now = now or datetime.now(timezone.utc)
        windows = await self.fetch_availability(va_id)
        interviews = await self.fetch_scheduled(va_id, now)
        return compute_slots(day, windows, interviews, now, tz)

    async def book_interview(
        self,
        session: "Session",
        va_id: str,
        slot_start: datetime,
        notes: str = "",
    ) -> dict:
        if not session.is_client:
            raise BookingError("Only clients can book interviews")
        duration = settings.slot_minutes
        try:
            row = one(await self.client.insert("interviews", {
                "va_id": va_id,
                "client_id": session.client_id,
                "scheduled_at": slot_start.isoformat(),
                "duration_minutes": duration,
                "notes": notes.strip() or None,
                "status": "scheduled",
            }))
        except BackendError as e:
            logger.error(f"❌ Booking error for {va_id} at {slot_start}: {e}")
            raise BookingError(MSG_BOOKING_FAILED) from e

        logger.info(f"📅 Interview booked: va={va_id} at {slot_start.isoformat()}")
        if self.notifier is not None:
            va = await self._fetch_va_quietly(va_id)
            if va is not None:
                self.notifier.notify_interview_scheduled(
                    session, str(va["user_id"]), va["profile"].get("full_name") or "",
                    slot_start.strftime("%Y-%m-%d"), slot_start.strftime("%H:%M"), duration,
                )
        return row or {}

    async def _fetch_va_quietly(self, va_id: str) -> Optional[dict]:
        try:
            return await self.fetch_va(va_id)
        except BackendError as e:
            logger.warning(f"⚠️ No interview notification, VA lookup failed: {e}")
            return None
