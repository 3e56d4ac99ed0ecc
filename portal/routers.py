"""
URL mappings for the hospital portal.

Paths mirror the role pages of the portal: one dashboard per role, the
directory pages and the receptionist appointment workflow.  Trailing
slashes are omitted (``APPEND_SLASH`` is off).
"""
from django.urls import path, include

from .views import health
from .views.appointments import available_slots, cancel_appointment, schedule_appointment, update_appointment_status
from .views.dashboard import role_dashboard
from .views.directories import directory

urlpatterns = [
    path('', include('django_prometheus.urls')),
    path('healthz', health.healthz),

    # Dashboards
    path('api/<str:role>/dashboard', role_dashboard),

    # Directory pages (search / filter / sort / paginate)
    path('api/directory/<str:resource>', directory),

    # Receptionist appointment workflow
    path('api/receptionist/doctors/<str:doctor_id>/available-slots', available_slots),
    path('api/receptionist/appointments', schedule_appointment),
    path('api/receptionist/appointments/<str:pk>/status', update_appointment_status),
    path('api/receptionist/appointments/<str:pk>/cancel', cancel_appointment),
]
