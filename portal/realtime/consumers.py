import asyncio
import json
import logging
from urllib.parse import parse_qs

from asgiref.sync import sync_to_async
from channels.generic.websocket import AsyncWebsocketConsumer
from django.utils.dateparse import parse_date
from rest_framework.exceptions import AuthenticationFailed

from portal.authentication import verify_token
from portal.permissions import ADMIN, RECEPTIONIST
from portal.services import backend as backend_svc
from portal.services.booking import SlotSelection
from portal.services.slots import InvalidAppointmentData

logger = logging.getLogger(__name__)


async def _ws_error(ws, code: int, message: str, *, close: bool = False):
    """
    Uniform error frame.
    App codes: 4xxx client errors, 5xxx server errors.
    """
    payload = {"type": "error", "code": code, "message": message}
    try:
        await ws.send(json.dumps(payload))
    finally:
        if close:
            await ws.close(code=code)


class SlotAvailabilityConsumer(AsyncWebsocketConsumer):
    """Live time picker for the "schedule appointment" form.

    The client sends ``{"type": "select", "doctorId", "date", "duration",
    "appointmentTime"}`` whenever one of the inputs changes.  Each change
    starts a new fetch-and-compute cycle and cancels the previous one;
    only the outcome for the latest inputs is pushed back as
    ``{"type": "slots", ...}`` or ``{"type": "error", ...}``.
    """

    async def connect(self):
        self.selection = SlotSelection()
        self.task = None

        query = parse_qs(self.scope.get("query_string", b"").decode())
        token = (query.get("token") or [""])[0]
        if not token:
            await self.close(code=4001)
            return
        try:
            user = await sync_to_async(verify_token)(token)
        except AuthenticationFailed:
            await self.close(code=4001)
            return
        except backend_svc.BackendError:
            logger.exception("Auth service unavailable during WebSocket connect")
            await self.close(code=5003)
            return
        if user.role not in (ADMIN, RECEPTIONIST):
            await self.close(code=4003)
            return

        self.user = user
        self.client = backend_svc.BackendClient(token=token)
        await self.accept()

    async def disconnect(self, close_code):
        if self.task is not None and not self.task.done():
            self.task.cancel()

    async def receive(self, text_data=None, bytes_data=None):
        if not text_data:
            return

        try:
            data = json.loads(text_data)
        except ValueError:
            await _ws_error(self, 4000, "invalid_json")
            return

        if not isinstance(data, dict):
            await _ws_error(self, 4001, "invalid_payload")
            return

        if data.get("type") != "select":
            await _ws_error(self, 4002, "unsupported_type")
            return

        changes = {}
        if "doctorId" in data:
            changes["doctor_id"] = data["doctorId"] or None
        if "date" in data:
            raw = data["date"] or ""
            try:
                day = parse_date(raw) if raw else None
            except ValueError:
                day = None
            if raw and day is None:
                await _ws_error(self, 4003, "invalid_date")
                return
            changes["day"] = day
        if "duration" in data:
            changes["duration"] = data["duration"]
        if "appointmentTime" in data:
            changes["appointment_time"] = data["appointmentTime"]

        before = self.selection.generation
        token = self.selection.update(**changes)
        if token == before or not self.selection.ready:
            # Nothing to recompute; echo the current state
            await self._push()
            return

        if self.task is not None and not self.task.done():
            self.task.cancel()
        self.task = asyncio.ensure_future(self._refresh(token))

    async def _refresh(self, token: int):
        selection = self.selection
        fetch = sync_to_async(self.client.get_appointments_for_doctor_on_date, thread_sensitive=False)
        try:
            appointments = await fetch(selection.doctor_id, selection.day)
        except asyncio.CancelledError:
            raise
        except backend_svc.BackendUnauthorized:
            await _ws_error(self, 4001, "unauthorized", close=True)
            return
        except backend_svc.BackendError as exc:
            applied = selection.fetch_failed(token, exc)
        except InvalidAppointmentData:
            applied = selection.invalid_data(token)
        else:
            applied = selection.receive(token, appointments)
        if applied:
            await self._push()

    async def _push(self):
        state = self.selection.as_dict()
        kind = "error" if state["error"] else "slots"
        await self.send(json.dumps({"type": kind, **state}))
