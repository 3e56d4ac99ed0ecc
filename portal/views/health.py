from django.http import JsonResponse

from portal.services import backend as backend_svc


def healthz(request):
    result = backend_svc.get_backend().ping()
    return JsonResponse({'ok': result.connected, 'backend': result.as_dict()},
                        status=200 if result.connected else 503)
