"""
Receptionist appointment endpoints.

``available_slots`` backs the time picker of the "schedule appointment"
form.  ``schedule_appointment`` re-checks the chosen time against fresh
availability before forwarding the booking to the backend, so two
receptionists racing for the same slot do not double book a doctor.
"""
from __future__ import annotations

import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from portal.permissions import IsReceptionistRole
from portal.serializers.appointments import (
    AppointmentStatusSerializer,
    AvailableSlotsQuerySerializer,
    ScheduleAppointmentSerializer,
)
from portal.services import backend as backend_svc
from portal.services.booking import SlotSelection
from portal.services.slots import DURATION_OPTIONS

logger = logging.getLogger(__name__)


def _selection_for(request, doctor_id, day, duration, appointment_time='') -> SlotSelection:
    client = backend_svc.get_backend(request)
    selection = SlotSelection()
    selection.update(doctor_id=doctor_id, day=day, duration=duration, appointment_time=appointment_time)
    selection.refresh(client.get_appointments_for_doctor_on_date)
    return selection


def _availability_error(selection: SlotSelection) -> Response:
    return Response(
        {'ok': False, 'error': {'code': 'availability_error', 'message': selection.error}, 'slots': []},
        status=status.HTTP_502_BAD_GATEWAY,
    )


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsReceptionistRole])
def available_slots(request, doctor_id: str):
    """Free start times for ``doctor_id`` on ``?date=YYYY-MM-DD``.

    ``duration`` (minutes) defaults to 30 when missing or invalid.
    ``fallback`` is true when the full grid was returned because the
    computation produced nothing without any booking to explain it.
    """
    q = AvailableSlotsQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    selection = _selection_for(request, doctor_id, q.validated_data['date'], q.validated_data.get('duration'))
    if selection.error:
        return _availability_error(selection)
    return Response({
        'ok': True,
        'doctorId': doctor_id,
        'date': selection.day.isoformat(),
        'duration': selection.duration,
        'durationOptions': list(DURATION_OPTIONS),
        'slots': selection.slots,
        'fallback': selection.fallback,
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsReceptionistRole])
def schedule_appointment(request):
    data = ScheduleAppointmentSerializer(data=request.data)
    data.is_valid(raise_exception=True)
    v = data.validated_data
    selection = _selection_for(request, v['doctorId'], v['appointmentDate'], v.get('duration'),
                               appointment_time=v['appointmentTime'])
    if selection.error:
        return _availability_error(selection)
    if not selection.appointment_time:
        return Response(
            {
                'ok': False,
                'error': {'code': 'slot_unavailable', 'message': 'Selected time is no longer available.'},
                'slots': selection.slots,
            },
            status=status.HTTP_409_CONFLICT,
        )
    payload = {
        'patientId': v['patientId'],
        'doctorId': v['doctorId'],
        # Backend parses LocalDateTime: yyyy-MM-ddTHH:mm:ss
        'appointmentDateTime': f"{v['appointmentDate'].isoformat()}T{selection.appointment_time}:00",
        'type': v['type'],
        'duration': selection.duration,
        'notes': v.get('notes', ''),
        'status': 'SCHEDULED',
    }
    logger.info("Scheduling appointment for doctor %s at %s", v['doctorId'], payload['appointmentDateTime'])
    created = backend_svc.get_backend(request).schedule_appointment(payload)
    return Response({'ok': True, 'data': created}, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsReceptionistRole])
def update_appointment_status(request, pk: str):
    data = AppointmentStatusSerializer(data=request.data)
    data.is_valid(raise_exception=True)
    result = backend_svc.get_backend(request).update_appointment_status(pk, data.validated_data['status'])
    return Response({'ok': True, 'data': result})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsReceptionistRole])
def cancel_appointment(request, pk: str):
    result = backend_svc.get_backend(request).cancel_appointment(pk)
    return Response({'ok': True, 'data': result})
