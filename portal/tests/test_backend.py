import json
from datetime import date

import pytest
import requests

from portal.services import backend as backend_svc
from portal.services.backend import (
    BackendClient,
    BackendError,
    BackendUnauthorized,
    BackendUnavailable,
)
from portal.services.slots import InvalidAppointmentData


class FakeResponse:
    def __init__(self, status_code=200, body=None, text=None):
        self.status_code = status_code
        self.reason = 'Reason'
        if text is None:
            text = '' if body is None else json.dumps(body)
        self.text = text
        self.content = text.encode()

    @property
    def ok(self):
        return 200 <= self.status_code < 400

    def json(self):
        return json.loads(self.text)


class FakeSession:
    def __init__(self, responses):
        self.headers = {}
        self.responses = list(responses)
        self.calls = []

    def _next(self, method, url, kwargs):
        self.calls.append((method, url, kwargs))
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def request(self, method, url, **kwargs):
        return self._next(method, url, kwargs)

    def get(self, url, **kwargs):
        return self._next('GET', url, kwargs)


def client_with(*responses, token='tok'):
    session = FakeSession(responses)
    return BackendClient('http://backend.test/', token=token, session=session), session


def test_bearer_token_and_base_url():
    client, session = client_with(FakeResponse(body=[]))
    client.get('/pharmacist/medicines', q='', page=None, category='x')
    method, url, kwargs = session.calls[0]
    assert session.headers['Authorization'] == 'Bearer tok'
    assert url == 'http://backend.test/pharmacist/medicines'
    assert kwargs['params'] == {'category': 'x'}


def test_appointments_for_doctor_on_date_normalizes_records():
    client, session = client_with(FakeResponse(body=[{'id': 1, 'appointmentDateTime': '2024-03-04T10:00:00'}]))
    records = client.get_appointments_for_doctor_on_date(7, date(2024, 3, 4))
    assert session.calls[0][1] == 'http://backend.test/receptionist/doctors/7/appointments/2024-03-04'
    assert records[0]['status'] == 'SCHEDULED'
    assert records[0]['duration'] == 30


def test_appointments_non_list_body():
    client, _ = client_with(FakeResponse(body={'message': 'nope'}))
    with pytest.raises(InvalidAppointmentData):
        client.get_appointments_for_doctor_on_date(7, date(2024, 3, 4))


def test_unauthorized_maps_to_typed_error():
    client, _ = client_with(FakeResponse(status_code=401, body={'message': 'expired'}))
    with pytest.raises(BackendUnauthorized) as exc:
        client.dashboard('doctor')
    assert exc.value.message == 'expired'


def test_backend_error_carries_message_and_status():
    client, _ = client_with(FakeResponse(status_code=409, body={'message': 'slot taken'}))
    with pytest.raises(BackendError) as exc:
        client.schedule_appointment({'doctorId': '1'})
    assert exc.value.message == 'slot taken'
    assert exc.value.backend_status == 409
    assert exc.value.status_code == 502


@pytest.mark.parametrize('error', [requests.ConnectionError('refused'), requests.Timeout('slow')])
def test_transport_failures_are_unavailable(error):
    client, _ = client_with(error)
    with pytest.raises(BackendUnavailable):
        client.list_resource('patients')


def test_invalid_json_body():
    client, _ = client_with(FakeResponse(text='<html>'))
    with pytest.raises(BackendError):
        client.dashboard('admin')


def test_list_resource_unwraps_page_content():
    client, session = client_with(FakeResponse(body={'content': [{'id': 1}], 'totalElements': 1}))
    assert client.list_resource('medicines') == [{'id': 1}]
    assert session.calls[0][1].endswith('/pharmacist/medicines')


def test_list_resource_rejects_unknown_and_non_list():
    client, _ = client_with(FakeResponse(body={'total': 3}))
    with pytest.raises(ValueError):
        client.list_resource('spaceships')
    with pytest.raises(BackendError):
        client.list_resource('rooms')


def test_status_and_cancel_use_put():
    client, session = client_with(FakeResponse(body={'id': 9}), FakeResponse(text=''))
    assert client.update_appointment_status(9, 'CHECKED_IN') == {'id': 9}
    assert client.cancel_appointment(9) is None
    assert session.calls[0][0] == 'PUT'
    assert session.calls[0][1].endswith('/receptionist/appointments/9/status')
    assert session.calls[0][2]['json'] == {'status': 'CHECKED_IN'}
    assert session.calls[1][1].endswith('/receptionist/appointments/9/cancel')


def test_ping_tries_endpoints_in_order():
    client, session = client_with(
        requests.ConnectionError('down'),
        FakeResponse(status_code=404),
        FakeResponse(body={'status': 'UP'}),
        token=None,
    )
    result = client.ping()
    assert result.connected is True
    assert result.endpoint == '/doctor/dashboard'
    assert [c[1] for c in session.calls] == [
        'http://backend.test/actuator/health',
        'http://backend.test/health',
        'http://backend.test/doctor/dashboard',
    ]
    assert 'Authorization' not in session.headers


def test_ping_reports_failure():
    client, _ = client_with(*[requests.ConnectionError('down')] * len(backend_svc.PING_PATHS))
    result = client.ping()
    assert result.connected is False
    assert result.as_dict()['isConnected'] is False
    assert result.error


def test_get_backend_uses_request_token():
    class Req:
        auth = 'abc'

    client = backend_svc.get_backend(Req())
    assert client.session.headers['Authorization'] == 'Bearer abc'
    assert 'Authorization' not in backend_svc.get_backend().session.headers
