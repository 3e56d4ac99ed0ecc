"""
Bearer token authentication delegated to the external auth service.

The portal does not keep users.  A request's ``Authorization: Bearer``
token is verified against the backend's ``/api/auth/verify`` endpoint;
the verified profile is cached for ``AUTH_VERIFY_CACHE_SECONDS`` so that
a dashboard page does not cost one verification call per widget.
"""
from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from typing import Optional

from django.conf import settings
from django.core.cache import cache
from rest_framework import authentication, exceptions

from portal.services import backend as backend_svc

logger = logging.getLogger(__name__)

ROLES = ('ADMIN', 'DOCTOR', 'PHARMACIST', 'RECEPTIONIST')


def normalize_role(value) -> str:
    role = str(value or '').strip().upper()
    if role.startswith('ROLE_'):
        role = role[len('ROLE_'):]
    return role


@dataclass
class PortalUser:
    """User profile as reported by the auth service."""
    id: Optional[int]
    email: str = ''
    role: str = ''
    first_name: str = ''
    last_name: str = ''
    extra: dict = field(default_factory=dict)

    is_authenticated = True
    is_anonymous = False

    @classmethod
    def from_profile(cls, data: dict) -> 'PortalUser':
        return cls(
            id=data.get('id'),
            email=data.get('email') or '',
            role=normalize_role(data.get('role')),
            first_name=data.get('firstName') or '',
            last_name=data.get('lastName') or '',
            extra={k: v for k, v in data.items() if k not in {'id', 'email', 'role', 'firstName', 'lastName'}},
        )

    def get_full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip() or self.email

    def __str__(self) -> str:
        return f"{self.get_full_name()} ({self.role})"


def _cache_key(token: str) -> str:
    return 'auth:verify:' + hashlib.sha256(token.encode()).hexdigest()


def verify_token(token: str) -> PortalUser:
    key = _cache_key(token)
    profile = cache.get(key)
    if profile is None:
        try:
            profile = backend_svc.BackendClient(token=token).verify_token()
        except backend_svc.BackendUnauthorized:
            raise exceptions.AuthenticationFailed('Invalid token')
        cache.set(key, profile, settings.AUTH_VERIFY_CACHE_SECONDS)
    user = PortalUser.from_profile(profile)
    if user.role not in ROLES:
        logger.warning("Token verified for %s with unknown role %r", user.email, user.role)
    return user


class BackendTokenAuthentication(authentication.BaseAuthentication):
    """``Authorization: Bearer <token>`` verified by the auth service."""

    keyword = 'Bearer'

    def authenticate(self, request):
        auth = authentication.get_authorization_header(request).split()
        if not auth or auth[0].lower() != self.keyword.lower().encode():
            return None
        if len(auth) != 2:
            raise exceptions.AuthenticationFailed('Invalid token header.')
        try:
            token = auth[1].decode()
        except UnicodeError:
            raise exceptions.AuthenticationFailed('Invalid token header.')
        return verify_token(token), token

    def authenticate_header(self, request):
        return self.keyword
