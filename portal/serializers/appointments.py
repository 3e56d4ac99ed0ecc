import bleach
from rest_framework import serializers

APPOINTMENT_TYPES = ['REGULAR', 'FOLLOW_UP', 'EMERGENCY', 'CONSULTATION']
APPOINTMENT_STATUSES = ['SCHEDULED', 'CHECKED_IN', 'COMPLETED', 'CANCELLED', 'NO_SHOW']


class AvailableSlotsQuerySerializer(serializers.Serializer):
    date = serializers.DateField()
    # Invalid durations fall back to 30 minutes in the calculator
    duration = serializers.CharField(required=False, allow_blank=True)


class ScheduleAppointmentSerializer(serializers.Serializer):
    patientId = serializers.CharField(max_length=64)
    doctorId = serializers.CharField(max_length=64)
    appointmentDate = serializers.DateField()
    appointmentTime = serializers.RegexField(r'^([01]\d|2[0-3]):[0-5]\d$')
    duration = serializers.CharField(required=False, allow_blank=True)
    type = serializers.ChoiceField(choices=APPOINTMENT_TYPES, default='REGULAR')
    notes = serializers.CharField(required=False, allow_blank=True, max_length=2000)

    def validate_notes(self, v):
        return bleach.clean((v or '').strip(), strip=True)


class AppointmentStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=APPOINTMENT_STATUSES)
