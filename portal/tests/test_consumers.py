import threading

import pytest
from asgiref.sync import async_to_sync
from channels.routing import URLRouter
from channels.testing import WebsocketCommunicator

from portal.authentication import PortalUser
from portal.realtime import consumers
from portal.realtime.routing import websocket_urlpatterns
from portal.services.backend import BackendClient, BackendUnauthorized, BackendUnavailable

# channels' consumer dispatch calls close_old_connections(), which pytest-django blocks without DB access.
pytestmark = pytest.mark.django_db

application = URLRouter(websocket_urlpatterns)

SELECT = {'type': 'select', 'doctorId': '5', 'date': '2024-03-04', 'duration': 30}


def booked(*times):
    return [{'id': i, 'appointmentDateTime': f'2024-03-04T{t}:00', 'duration': 30, 'status': 'SCHEDULED'}
            for i, t in enumerate(times, 1)]


@pytest.fixture
def as_role(monkeypatch):
    def login(role):
        monkeypatch.setattr(consumers, 'verify_token', lambda token: PortalUser(id=1, role=role))
    return login


@pytest.fixture
def appointments(monkeypatch):
    """Replace the backend lookup; ``by_doctor`` maps doctor id to a list or an exception."""
    by_doctor = {}

    def fake(self, doctor_id, day):
        value = by_doctor[doctor_id]
        if callable(value):
            value = value()
        if isinstance(value, Exception):
            raise value
        return value

    monkeypatch.setattr(BackendClient, 'get_appointments_for_doctor_on_date', fake)
    return by_doctor


def test_rejects_missing_token():
    async def scenario():
        comm = WebsocketCommunicator(application, '/ws/slots/')
        connected, code = await comm.connect()
        assert not connected
        assert code == 4001
        await comm.disconnect()

    async_to_sync(scenario)()


def test_rejects_other_roles(as_role):
    as_role('PHARMACIST')

    async def scenario():
        comm = WebsocketCommunicator(application, '/ws/slots/?token=abc')
        connected, code = await comm.connect()
        assert not connected
        assert code == 4003
        await comm.disconnect()

    async_to_sync(scenario)()


def test_select_pushes_slots(as_role, appointments):
    as_role('RECEPTIONIST')
    appointments['5'] = booked('10:00')

    async def scenario():
        comm = WebsocketCommunicator(application, '/ws/slots/?token=abc')
        connected, _ = await comm.connect()
        assert connected
        await comm.send_json_to({**SELECT, 'appointmentTime': '10:00'})
        msg = await comm.receive_json_from(timeout=2)
        assert msg['type'] == 'slots'
        assert msg['generation'] == 1
        assert '10:00' not in msg['slots']
        assert msg['slots'][0] == '09:00'
        # the chosen time was taken in the meantime
        assert msg['appointmentTime'] == ''
        await comm.disconnect()

    async_to_sync(scenario)()


def test_incomplete_selection_echoes_state(as_role, appointments):
    as_role('ADMIN')

    async def scenario():
        comm = WebsocketCommunicator(application, '/ws/slots/?token=abc')
        await comm.connect()
        await comm.send_json_to({'type': 'select', 'doctorId': '5'})
        msg = await comm.receive_json_from(timeout=2)
        assert msg['type'] == 'slots'
        assert msg['slots'] == []
        assert msg['date'] is None
        await comm.disconnect()

    async_to_sync(scenario)()


def test_only_latest_selection_is_pushed(as_role, appointments):
    as_role('RECEPTIONIST')
    release = threading.Event()

    def slow():
        release.wait(2)
        return []

    appointments['5'] = slow
    appointments['6'] = booked('09:00')

    async def scenario():
        comm = WebsocketCommunicator(application, '/ws/slots/?token=abc')
        await comm.connect()
        await comm.send_json_to(SELECT)
        await comm.send_json_to({**SELECT, 'doctorId': '6'})
        msg = await comm.receive_json_from(timeout=2)
        assert msg['generation'] == 2
        assert msg['doctorId'] == '6'
        assert '09:00' not in msg['slots']
        release.set()
        assert await comm.receive_nothing(timeout=0.3)
        await comm.disconnect()

    try:
        async_to_sync(scenario)()
    finally:
        release.set()


def test_fetch_failure_sends_error(as_role, appointments):
    as_role('RECEPTIONIST')
    appointments['5'] = BackendUnavailable('backend unreachable')

    async def scenario():
        comm = WebsocketCommunicator(application, '/ws/slots/?token=abc')
        await comm.connect()
        await comm.send_json_to(SELECT)
        msg = await comm.receive_json_from(timeout=2)
        assert msg['type'] == 'error'
        assert msg['slots'] == []
        assert msg['error'] == 'Failed to check doctor availability. Please try again.'
        await comm.disconnect()

    async_to_sync(scenario)()


def test_expired_token_closes(as_role, appointments):
    as_role('RECEPTIONIST')
    appointments['5'] = BackendUnauthorized('expired')

    async def scenario():
        comm = WebsocketCommunicator(application, '/ws/slots/?token=abc')
        await comm.connect()
        await comm.send_json_to(SELECT)
        msg = await comm.receive_json_from(timeout=2)
        assert msg == {'type': 'error', 'code': 4001, 'message': 'unauthorized'}
        closed = await comm.receive_output(timeout=2)
        assert closed['type'] == 'websocket.close'
        await comm.disconnect()

    async_to_sync(scenario)()


def test_bad_frames(as_role):
    as_role('RECEPTIONIST')

    async def scenario():
        comm = WebsocketCommunicator(application, '/ws/slots/?token=abc')
        await comm.connect()
        await comm.send_to(text_data='{not json')
        assert (await comm.receive_json_from(timeout=2))['code'] == 4000
        await comm.send_json_to({'type': 'subscribe'})
        assert (await comm.receive_json_from(timeout=2))['code'] == 4002
        await comm.send_json_to({'type': 'select', 'date': '04/03/2024'})
        assert (await comm.receive_json_from(timeout=2))['message'] == 'invalid_date'
        await comm.disconnect()

    async_to_sync(scenario)()


def test_non_list_reply_sends_error(as_role, monkeypatch):
    as_role('RECEPTIONIST')
    monkeypatch.setattr(BackendClient, 'request', lambda self, method, path, **kwargs: {'content': []})

    async def scenario():
        comm = WebsocketCommunicator(application, '/ws/slots/?token=abc')
        await comm.connect()
        await comm.send_json_to(SELECT)
        msg = await comm.receive_json_from(timeout=2)
        assert msg['type'] == 'error'
        assert msg['slots'] == []
        assert msg['error'] == 'Failed to load doctor appointments. Please try again.'
        await comm.disconnect()

    async_to_sync(scenario)()
