"""
Role dashboards.

Each role's landing page shows the statistics the backend computes for
it.  Administrators may open any dashboard; other roles only their own.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import NotFound, PermissionDenied
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from portal.permissions import has_role
from portal.services import backend as backend_svc


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def role_dashboard(request, role: str):
    """Return ``{ok, role, data}`` where ``data`` is the backend summary."""
    if role not in backend_svc.DASHBOARD_ROLES:
        raise NotFound('unknown dashboard')
    if not has_role(request, role.upper()):
        raise PermissionDenied('forbidden for this dashboard')
    data = backend_svc.get_backend(request).dashboard(role)
    return Response({'ok': True, 'role': role, 'data': data})
