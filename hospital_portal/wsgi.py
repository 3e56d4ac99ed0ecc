"""
WSGI config for the hospital portal.

Exposes the WSGI callable as a module-level variable named ``application``.
WebSocket slot updates need the ASGI entrypoint instead.
"""
import os

from django.core.wsgi import get_wsgi_application  # type: ignore

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'hospital_portal.settings')

application = get_wsgi_application()
