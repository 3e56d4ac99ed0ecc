"""
ASGI config for the hospital portal.

Wires both HTTP (Django) and WebSocket (Channels).
Django must be configured before importing the consumers.
"""
import os

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "hospital_portal.settings")

import django  # noqa: E402
django.setup()  # noqa: E402

from django.core.asgi import get_asgi_application  # noqa: E402
from channels.routing import ProtocolTypeRouter, URLRouter  # noqa: E402
from channels.security.websocket import AllowedHostsOriginValidator  # noqa: E402

from portal.realtime.routing import websocket_urlpatterns  # noqa: E402

django_asgi_app = get_asgi_application()

# WS auth uses the ?token= query param, checked by the consumer itself
application = ProtocolTypeRouter({
    "http": django_asgi_app,
    "websocket": AllowedHostsOriginValidator(URLRouter(websocket_urlpatterns)),
})
