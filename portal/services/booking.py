"""
State behind the "schedule appointment" form.

Doctor, date and duration are the inputs; every change bumps a
generation counter.  A fetch-and-compute cycle remembers the generation
it started with and its result is only applied if no newer change has
happened in the meantime.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, Optional

from portal.services.backend import BackendError, BackendUnauthorized
from portal.services.slots import (
    DEFAULT_DURATION_MINUTES,
    InvalidAppointmentData,
    SlotResult,
    compute_slots,
    normalize_duration,
)

logger = logging.getLogger(__name__)

_UNSET = object()

FETCH_FAILED_MESSAGE = 'Failed to check doctor availability. Please try again.'
INVALID_DATA_MESSAGE = 'Failed to load doctor appointments. Please try again.'


@dataclass
class SlotSelection:
    doctor_id: Optional[Any] = None
    day: Optional[date] = None
    duration: int = DEFAULT_DURATION_MINUTES
    appointment_time: str = ''
    slots: list[str] = field(default_factory=list)
    fallback: bool = False
    error: str = ''
    generation: int = 0

    @property
    def ready(self) -> bool:
        return bool(self.doctor_id) and self.day is not None

    def update(self, *, doctor_id=_UNSET, day=_UNSET, duration=_UNSET, appointment_time=_UNSET) -> int:
        """Apply input changes; returns the generation token to compute for."""
        recompute = False
        if doctor_id is not _UNSET and doctor_id != self.doctor_id:
            self.doctor_id = doctor_id
            recompute = True
        if day is not _UNSET and day != self.day:
            self.day = day
            recompute = True
        if duration is not _UNSET:
            minutes = normalize_duration(duration)
            if minutes != self.duration:
                self.duration = minutes
                recompute = True
        if appointment_time is not _UNSET:
            self.appointment_time = appointment_time or ''
        if recompute:
            self.generation += 1
        return self.generation

    def is_current(self, token: int) -> bool:
        return token == self.generation

    def apply(self, token: int, result: SlotResult) -> bool:
        if not self.is_current(token):
            logger.debug("Dropping stale slot result (token=%s, current=%s)", token, self.generation)
            return False
        self.slots = list(result.slots)
        self.fallback = result.fallback
        self.error = ''
        if self.appointment_time and self.appointment_time not in self.slots:
            logger.info("Selected time %s no longer available; clearing", self.appointment_time)
            self.appointment_time = ''
        return True

    def fail(self, token: int, message: str) -> bool:
        if not self.is_current(token):
            return False
        self.slots = []
        self.fallback = False
        self.error = message
        return True

    def refresh(self, fetch: Callable[[Any, date], Any], token: Optional[int] = None) -> bool:
        """Fetch the doctor's appointments and recompute for ``token``.

        ``fetch(doctor_id, day)`` is the appointment directory lookup.
        Returns True if the outcome was applied.
        """
        token = self.generation if token is None else token
        if not self.ready:
            return False
        try:
            appointments = fetch(self.doctor_id, self.day)
        except BackendUnauthorized:
            raise
        except BackendError as exc:
            return self.fetch_failed(token, exc)
        except InvalidAppointmentData:
            return self.invalid_data(token)
        return self.receive(token, appointments)

    def fetch_failed(self, token: int, exc: Exception) -> bool:
        logger.error("Error checking doctor availability for %s on %s: %s", self.doctor_id, self.day, exc)
        return self.fail(token, FETCH_FAILED_MESSAGE)

    def receive(self, token: int, appointments) -> bool:
        """Compute slots from fetched ``appointments`` for ``token``."""
        try:
            result = compute_slots(appointments, self.duration)
        except InvalidAppointmentData:
            return self.invalid_data(token)
        return self.apply(token, result)

    def invalid_data(self, token: int) -> bool:
        logger.error("Invalid appointment data for doctor %s on %s", self.doctor_id, self.day)
        return self.fail(token, INVALID_DATA_MESSAGE)

    def as_dict(self) -> dict:
        return {
            'generation': self.generation,
            'doctorId': self.doctor_id,
            'date': self.day.isoformat() if self.day else None,
            'duration': self.duration,
            'appointmentTime': self.appointment_time,
            'slots': list(self.slots),
            'fallback': self.fallback,
            'error': self.error,
        }
