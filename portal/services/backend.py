"""
REST client for the hospital backend.

The portal never stores records itself; every page goes through
:class:`BackendClient`.  Transport problems and non-2xx replies are
turned into the exceptions below so views can map them onto the API
error envelope.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import date
from typing import Any, Optional

import requests
from django.conf import settings

from portal.services.slots import DEFAULT_DURATION_MINUTES, DEFAULT_STATUS, InvalidAppointmentData

logger = logging.getLogger(__name__)


class BackendError(Exception):
    status_code = 502
    code = 'backend_error'

    def __init__(self, message: str, *, status: Optional[int] = None, payload: Any = None):
        super().__init__(message)
        self.message = message
        self.backend_status = status
        self.payload = payload


class BackendUnavailable(BackendError):
    status_code = 503
    code = 'backend_unavailable'


class BackendUnauthorized(BackendError):
    status_code = 401
    code = 'not_authenticated'


# Directory resource -> backend path
RESOURCE_PATHS: dict[str, str] = {
    'appointments': '/receptionist/appointments',
    'patients': '/receptionist/patients',
    'doctors': '/receptionist/doctors',
    'users': '/admin/users',
    'medicines': '/pharmacist/medicines',
    'companies': '/pharmacist/companies',
    'distributors': '/pharmacist/distributors',
    'prescriptions': '/pharmacist/prescriptions',
    'billings': '/receptionist/billings',
    'rooms': '/doctor/rooms',
}

DASHBOARD_ROLES = ('admin', 'doctor', 'pharmacist', 'receptionist')

PING_PATHS = (
    '/actuator/health',
    '/health',
    '/doctor/dashboard',
    '/login',
)


@dataclass
class PingResult:
    connected: bool
    endpoint: Optional[str] = None
    response_time_ms: Optional[int] = None
    error: Optional[str] = None

    def as_dict(self) -> dict:
        return {
            'isConnected': self.connected,
            'endpoint': self.endpoint,
            'responseTime': self.response_time_ms,
            'error': self.error,
        }


def _error_message(resp: requests.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        return resp.text[:200] or resp.reason or 'Unknown error'
    if isinstance(data, dict):
        return str(data.get('message') or data.get('error') or data.get('detail') or 'Unknown error')
    return str(data)


def normalize_appointment(raw: dict) -> dict:
    """Fill in the fields slot computation relies on."""
    return {
        'id': raw.get('id') or 0,
        'appointmentId': raw.get('appointmentId') or '',
        'appointmentDateTime': raw.get('appointmentDateTime') or '',
        'duration': raw.get('duration') or DEFAULT_DURATION_MINUTES,
        'status': raw.get('status') or DEFAULT_STATUS,
        'notes': raw.get('notes') or '',
        'patient': raw.get('patient') or {'id': 0, 'firstName': '', 'lastName': ''},
        'doctor': raw.get('doctor') or {'id': 0, 'firstName': '', 'lastName': ''},
    }


class BackendClient:
    def __init__(self, base_url: Optional[str] = None, *, token: Optional[str] = None,
                 timeout: Optional[int] = None, session: Optional[requests.Session] = None):
        self.base_url = (base_url or settings.BACKEND_API_URL).rstrip('/')
        self.timeout = timeout or settings.BACKEND_TIMEOUT
        self.session = session or requests.Session()
        self.session.headers.update({'Content-Type': 'application/json', 'Accept': 'application/json'})
        if token:
            self.session.headers['Authorization'] = f'Bearer {token}'

    def request(self, method: str, path: str, *, params: Optional[dict] = None,
                json: Any = None, timeout: Optional[int] = None) -> Any:
        url = f"{self.base_url}{path}"
        logger.debug("Backend request: %s %s params=%s", method, url, params)
        try:
            resp = self.session.request(method, url, params=params, json=json,
                                        timeout=timeout or self.timeout)
        except requests.Timeout as exc:
            logger.error("Backend timeout: %s %s", method, url)
            raise BackendUnavailable(f'backend timed out: {method} {path}') from exc
        except requests.ConnectionError as exc:
            logger.error("Backend unreachable at %s: %s", self.base_url, exc)
            raise BackendUnavailable(f'backend unreachable: {self.base_url}') from exc

        if resp.status_code == 401:
            raise BackendUnauthorized(_error_message(resp), status=401)
        if not resp.ok:
            message = _error_message(resp)
            logger.error("Backend error: %s - %s - %s %s", resp.status_code, message, method, path)
            raise BackendError(message, status=resp.status_code)
        logger.debug("Backend response: %s - %s %s", resp.status_code, method, path)
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as exc:
            raise BackendError(f'invalid JSON from backend: {method} {path}', status=resp.status_code) from exc

    def get(self, path: str, **params) -> Any:
        return self.request('GET', path, params={k: v for k, v in params.items() if v not in (None, '')})

    # -- appointment directory -------------------------------------------------

    def get_appointments_for_doctor_on_date(self, doctor_id: Any, day: date) -> list[dict]:
        day_str = day.isoformat() if isinstance(day, date) else str(day)
        data = self.get(f'/receptionist/doctors/{doctor_id}/appointments/{day_str}')
        if not isinstance(data, list):
            logger.error("Unexpected appointments payload for doctor %s on %s: %r", doctor_id, day_str, data)
            raise InvalidAppointmentData('expected an array of appointments')
        logger.debug("Found %d appointments for doctor %s on %s", len(data), doctor_id, day_str)
        return [normalize_appointment(a) if isinstance(a, dict) else a for a in data]

    def schedule_appointment(self, payload: dict) -> Any:
        return self.request('POST', '/receptionist/appointments', json=payload)

    def update_appointment_status(self, appointment_id: Any, status: str) -> Any:
        return self.request('PUT', f'/receptionist/appointments/{appointment_id}/status', json={'status': status})

    def cancel_appointment(self, appointment_id: Any) -> Any:
        return self.request('PUT', f'/receptionist/appointments/{appointment_id}/cancel')

    # -- directories & dashboards ----------------------------------------------

    def list_resource(self, resource: str, **params) -> list[dict]:
        try:
            path = RESOURCE_PATHS[resource]
        except KeyError:
            raise ValueError(f'unknown resource: {resource}') from None
        data = self.get(path, **params)
        # Some endpoints answer with a Spring page instead of a bare list
        if isinstance(data, dict) and isinstance(data.get('content'), list):
            data = data['content']
        if not isinstance(data, list):
            raise BackendError(f'expected a list from {path}')
        return data

    def dashboard(self, role: str) -> Any:
        if role not in DASHBOARD_ROLES:
            raise ValueError(f'unknown dashboard: {role}')
        return self.get(f'/{role}/dashboard')

    # -- auth service & health -------------------------------------------------

    def verify_token(self) -> dict:
        data = self.get('/api/auth/verify')
        if not isinstance(data, dict):
            raise BackendUnauthorized('invalid verification response')
        return data

    def ping(self) -> PingResult:
        """Try the known health endpoints in order until one answers 2xx."""
        started = time.monotonic()
        last_error = None
        for path in PING_PATHS:
            try:
                resp = self.session.get(f'{self.base_url}{path}', timeout=settings.BACKEND_PING_TIMEOUT)
            except requests.RequestException as exc:
                logger.debug("Health check failed at %s: %s", path, exc)
                last_error = str(exc)
                continue
            if 200 <= resp.status_code < 300:
                elapsed = int((time.monotonic() - started) * 1000)
                return PingResult(connected=True, endpoint=path, response_time_ms=elapsed)
            last_error = f'{path} answered {resp.status_code}'
        logger.warning("All backend health endpoints failed: %s", last_error)
        return PingResult(connected=False, error=last_error or 'No health check endpoints available')


def get_backend(request=None) -> BackendClient:
    """Client for the current request, forwarding its bearer token."""
    token = getattr(request, 'auth', None) if request is not None else None
    return BackendClient(token=token if isinstance(token, str) else None)
