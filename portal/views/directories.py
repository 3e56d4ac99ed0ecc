"""
Directory pages (appointments, patients, doctors, medicines, ...).

The backend returns whole collections; search, equality filters,
sorting and pagination are applied here so every page behaves the same
way.  Query params: ``q``, any filter declared for the resource,
``sort``, ``direction``, ``page`` and ``pageSize``.
"""
from __future__ import annotations

from django.conf import settings
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import NotFound, PermissionDenied
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from portal.permissions import DOCTOR, PHARMACIST, RECEPTIONIST, has_role
from portal.serializers.directory import DirectoryQuerySerializer
from portal.services import backend as backend_svc
from portal.services.listing import LIST_SPECS, ListState, apply

# Roles allowed on each directory besides ADMIN
DIRECTORY_ROLES: dict[str, tuple[str, ...]] = {
    'appointments': (DOCTOR, RECEPTIONIST),
    'patients': (DOCTOR, RECEPTIONIST),
    'doctors': (RECEPTIONIST,),
    'users': (),
    'medicines': (PHARMACIST, DOCTOR),
    'companies': (PHARMACIST,),
    'distributors': (PHARMACIST,),
    'prescriptions': (PHARMACIST, DOCTOR),
    'billings': (RECEPTIONIST,),
    'rooms': (DOCTOR,),
}


def state_from_query(resource: str, params) -> ListState:
    q = DirectoryQuerySerializer(data=params)
    q.is_valid(raise_exception=True)
    spec = LIST_SPECS[resource]
    return ListState(
        search=q.validated_data.get('q') or '',
        filters={name: params.get(name) for name in spec.filters if params.get(name) is not None},
        sort=q.validated_data.get('sort') or None,
        direction=q.validated_data.get('direction'),
        page=q.validated_data.get('page') or 1,
        page_size=q.validated_data.get('pageSize') or settings.PORTAL_PAGE_SIZE,
    )


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def directory(request, resource: str):
    if resource not in LIST_SPECS:
        raise NotFound('unknown directory')
    if not has_role(request, *DIRECTORY_ROLES[resource]):
        raise PermissionDenied('forbidden for this directory')
    state = state_from_query(resource, request.query_params)
    records = backend_svc.get_backend(request).list_resource(resource)
    spec = LIST_SPECS[resource]
    page = apply(records, spec, state)
    return Response({
        'ok': True,
        **page.as_dict(),
        'sort': {
            'key': state.sort if state.sort in spec.sorts else spec.default_sort,
            'direction': state.direction or spec.default_direction,
        },
        'filters': dict(state.filters),
    })
