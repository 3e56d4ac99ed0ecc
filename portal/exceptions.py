"""DRF exception handler producing the `{ok, error: {code, message}}` envelope."""
import logging

from rest_framework.views import exception_handler as drf_exception_handler
from rest_framework.response import Response

from portal.services.backend import BackendError
from portal.services.slots import InvalidAppointmentData

logger = logging.getLogger(__name__)


def error_response(code: str, message, status: int) -> Response:
    return Response({'ok': False, 'error': {'code': code, 'message': message}}, status=status)


def api_exception_handler(exc, context):
    if isinstance(exc, BackendError):
        return error_response(exc.code, exc.message, exc.status_code)
    if isinstance(exc, InvalidAppointmentData):
        return error_response('invalid_backend_data', str(exc), 502)
    resp = drf_exception_handler(exc, context)
    if resp is None:
        logger.exception("Unhandled exception in %s", context.get('view'))
        return error_response('server_error', str(exc), 500)
    # normalize response
    detail = None
    if isinstance(resp.data, dict):
        detail = resp.data.get('detail') or resp.data
    else:
        detail = str(resp.data)
    out = error_response('api_error', detail, resp.status_code)
    if resp.has_header('WWW-Authenticate'):
        out['WWW-Authenticate'] = resp['WWW-Authenticate']
    return out
