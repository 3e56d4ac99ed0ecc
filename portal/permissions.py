"""
Role based access control for the dashboards.

Roles come from the auth service profile (see
:mod:`portal.authentication`).  Administrators may open every role's
pages.
"""
from rest_framework.permissions import BasePermission

ADMIN = 'ADMIN'
DOCTOR = 'DOCTOR'
PHARMACIST = 'PHARMACIST'
RECEPTIONIST = 'RECEPTIONIST'


def user_role(request) -> str:
    user = getattr(request, "user", None)
    if not (user and getattr(user, "is_authenticated", False)):
        return ''
    return getattr(user, "role", '') or ''


def has_role(request, *roles: str) -> bool:
    role = user_role(request)
    return bool(role) and (role == ADMIN or role in roles)


class HasRole(BasePermission):
    """Base class; subclasses set ``roles``."""
    roles: tuple[str, ...] = ()

    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        return has_role(request, *self.roles)


class IsReceptionistRole(HasRole):
    roles = (RECEPTIONIST,)

