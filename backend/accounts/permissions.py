# accounts/permissions.py
from rest_framework.permissions import BasePermission

from .models import User


class _RolePermission(BasePermission):
    """
    Allows access only to authenticated users whose role is in ``roles``.
    Keeps role check logic centralized.
    """
    roles = ()

    def has_permission(self, request, view):
        user = getattr(request, "user", None)
        if not user or not user.is_authenticated:
            return False
        if user.is_superuser and User.ROLE_ADMIN in self.roles:
            return True
        return getattr(user, "role", None) in self.roles


class IsPassenger(_RolePermission):
    roles = (User.ROLE_PASSENGER,)


class IsDriver(_RolePermission):
    roles = (User.ROLE_DRIVER,)


class IsDispatcherOrAdmin(_RolePermission):
    roles = (User.ROLE_DISPATCHER, User.ROLE_ADMIN)


class IsAdmin(_RolePermission):
    roles = (User.ROLE_ADMIN,)
