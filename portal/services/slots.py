"""
Appointment slot availability.

Turns a doctor's appointments for one day plus a requested duration into
the list of bookable start times inside the clinic's working window.
Everything here is a pure function of its inputs so that HTTP views,
the booking WebSocket and tests can all call it directly.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from email.utils import parsedate_to_datetime
from typing import Any, Callable, Iterable, Optional

from django.utils.dateparse import parse_datetime

logger = logging.getLogger(__name__)

DAY_START_HOUR = 9
DAY_END_HOUR = 17
SLOT_GRANULARITY_MINUTES = 30
DEFAULT_DURATION_MINUTES = 30
DURATION_OPTIONS = (15, 30, 45, 60)

# Statuses that no longer occupy the doctor's time
RELEASED_STATUSES = frozenset({"CANCELLED", "COMPLETED"})
DEFAULT_STATUS = "SCHEDULED"

_ISO_TIME_RE = re.compile(r"T(\d{2}):(\d{2})")
_CLOCK_RE = re.compile(r"^(\d{1,2}):(\d{2})")

HourMinute = tuple[int, int]


class InvalidAppointmentData(ValueError):
    """The appointment collection as a whole could not be used."""


def _from_iso_t(raw: str) -> Optional[HourMinute]:
    m = _ISO_TIME_RE.search(raw)
    if not m:
        return None
    return int(m.group(1)), int(m.group(2))


def _from_space_separated(raw: str) -> Optional[HourMinute]:
    parts = raw.split()
    if len(parts) < 2:
        return None
    m = _CLOCK_RE.match(parts[1])
    if not m:
        return None
    return int(m.group(1)), int(m.group(2))


def _from_generic_datetime(raw: str) -> Optional[HourMinute]:
    try:
        dt = parse_datetime(raw)
    except ValueError:
        dt = None
    if dt is None:
        try:
            dt = datetime.fromisoformat(raw)
        except ValueError:
            dt = None
    if dt is None:
        # RFC 2822, e.g. "Fri, 15 Sep 2023 14:30:00 GMT"
        try:
            dt = parsedate_to_datetime(raw)
        except (TypeError, ValueError, IndexError):
            return None
    return dt.hour, dt.minute


# Tried in order; the first strategy that returns a value wins.
TIME_PARSERS: list[Callable[[str], Optional[HourMinute]]] = [
    _from_iso_t,
    _from_space_separated,
    _from_generic_datetime,
]


def parse_time_of_day(raw: Any) -> Optional[HourMinute]:
    """Return ``(hour, minute)`` for a backend timestamp, or None."""
    if not isinstance(raw, str) or not raw.strip():
        return None
    raw = raw.strip()
    for parser in TIME_PARSERS:
        value = parser(raw)
        if value is None:
            continue
        hour, minute = value
        if 0 <= hour <= 23 and 0 <= minute <= 59:
            return hour, minute
        logger.warning("Out of range time %02d:%02d in %r", hour, minute, raw)
        return None
    return None


def normalize_duration(value: Any) -> int:
    """Coerce a duration to positive minutes, defaulting to 30."""
    if isinstance(value, bool):
        return DEFAULT_DURATION_MINUTES
    try:
        minutes = int(value)
    except (TypeError, ValueError):
        return DEFAULT_DURATION_MINUTES
    return minutes if minutes > 0 else DEFAULT_DURATION_MINUTES


@dataclass(frozen=True)
class BlockingInterval:
    start: int
    end: int
    status: str
    raw: str = ""

    @property
    def active(self) -> bool:
        return self.status not in RELEASED_STATUSES

    def overlaps(self, start: int, end: int) -> bool:
        return start < self.end and end > self.start


@dataclass
class SlotResult:
    slots: list[str]
    duration: int
    active_blockers: int = 0
    # True when the full grid was substituted for an unexplained empty result
    fallback: bool = False
    skipped: list[Any] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            'slots': list(self.slots),
            'duration': self.duration,
            'fallback': self.fallback,
            'activeAppointments': self.active_blockers,
            'skippedAppointments': len(self.skipped),
        }


def format_minutes(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def standard_grid() -> list[int]:
    """Every candidate start in the working window, in minutes."""
    return [
        hour * 60 + minute
        for hour in range(DAY_START_HOUR, DAY_END_HOUR)
        for minute in range(0, 60, SLOT_GRANULARITY_MINUTES)
    ]


def build_intervals(appointments: Iterable[Any]) -> tuple[list[BlockingInterval], list[Any]]:
    """Parse appointment records into intervals.

    Returns ``(intervals, skipped)``.  Records that are not mappings or
    whose timestamp cannot be resolved end up in ``skipped``.
    """
    intervals: list[BlockingInterval] = []
    skipped: list[Any] = []
    for record in appointments:
        if not isinstance(record, dict):
            logger.warning("Skipping appointment record of type %s", type(record).__name__)
            skipped.append(record)
            continue
        raw = record.get('appointmentDateTime')
        parsed = parse_time_of_day(raw)
        if parsed is None:
            logger.warning("Skipping appointment %s: unparseable time %r", record.get('id'), raw)
            skipped.append(record)
            continue
        hour, minute = parsed
        start = hour * 60 + minute
        intervals.append(BlockingInterval(
            start=start,
            end=start + normalize_duration(record.get('duration')),
            status=str(record.get('status') or DEFAULT_STATUS),
            raw=raw,
        ))
    return intervals, skipped


def compute_slots(appointments: Any, duration: Any = DEFAULT_DURATION_MINUTES) -> SlotResult:
    """Compute free start times for ``duration`` minutes.

    Raises :class:`InvalidAppointmentData` when ``appointments`` is not a
    list.  When nothing fits and nothing is booked the full grid is
    returned with ``fallback`` set.
    """
    if not isinstance(appointments, (list, tuple)):
        raise InvalidAppointmentData(
            f"expected a list of appointments, got {type(appointments).__name__}"
        )
    minutes = normalize_duration(duration)
    intervals, skipped = build_intervals(appointments)
    blockers = [iv for iv in intervals if iv.active]
    day_end = DAY_END_HOUR * 60

    slots: list[str] = []
    for start in standard_grid():
        end = start + minutes
        if end > day_end:
            continue
        if any(b.overlaps(start, end) for b in blockers):
            continue
        slots.append(format_minutes(start))

    result = SlotResult(slots=slots, duration=minutes, active_blockers=len(blockers), skipped=skipped)
    if not slots and not blockers:
        logger.warning(
            "No slots generated for duration=%s without any active appointment; using full grid",
            minutes,
        )
        result.slots = [format_minutes(m) for m in standard_grid()]
        result.fallback = True
    elif not slots:
        logger.info("Day fully booked: %d active appointment(s)", len(blockers))
    return result


def available_slots(appointments: Any, duration: Any = DEFAULT_DURATION_MINUTES) -> list[str]:
    return compute_slots(appointments, duration).slots
