# lab_core/permissions.py
from __future__ import annotations

from rest_framework.permissions import BasePermission, SAFE_METHODS

from lab_core.workflows import normalize_role


# ------------------------------------------------------------------
# Role definitions
# ------------------------------------------------------------------
STAFF_ROLES = {"ADMIN", "OPERATOR"}


# ------------------------------------------------------------------
# Utilities
# ------------------------------------------------------------------
def user_role(user) -> str:
    """
    Canonical role of a user: ADMIN, OPERATOR, FIELD_OFFICER, CLIENT or "".

    Superusers are always ADMIN. Users without a profile have no role.
    """
    if not user or not getattr(user, "is_authenticated", False):
        return ""
    if user.is_superuser:
        return "ADMIN"
    profile = getattr(user, "profile", None)
    if profile is None:
        return ""
    return normalize_role(profile.role)


def user_has_any_role(user, allowed_roles: set[str]) -> bool:
    return user_role(user) in {normalize_role(r) for r in allowed_roles}


def is_staff_role(user) -> bool:
    return user_has_any_role(user, STAFF_ROLES)


# ------------------------------------------------------------------
# Permission classes
# ------------------------------------------------------------------
class HasLabRole(BasePermission):
    """
    Grants access to users holding one of view.allowed_roles.

    Views may narrow writes with view.action_write_roles (keyed by
    viewset action) or view.write_roles; reads stay open to every
    allowed role.
    """

    message = "Your role does not allow this action."

    def has_permission(self, request, view):
        user = getattr(request, "user", None)
        if not user or not user.is_authenticated:
            return False

        role = user_role(user)
        allowed = {normalize_role(r) for r in getattr(view, "allowed_roles", STAFF_ROLES)}
        if role not in allowed:
            return False

        if request.method in SAFE_METHODS:
            return True

        write_roles = getattr(view, "action_write_roles", {}).get(getattr(view, "action", None))
        if write_roles is None:
            write_roles = getattr(view, "write_roles", None)
        if write_roles is None:
            return True
        return role in {normalize_role(r) for r in write_roles}


class IsStaffRoleOrReadOnly(BasePermission):
    """
    Read: any authenticated user
    Write: admin or operator
    """

    def has_permission(self, request, view):
        user = getattr(request, "user", None)
        if not user or not user.is_authenticated:
            return False
        if request.method in SAFE_METHODS:
            return True
        return is_staff_role(user)


class IsAdminRole(BasePermission):
    def has_permission(self, request, view):
        return user_role(getattr(request, "user", None)) == "ADMIN"


# ------------------------------------------------------------------
# Row visibility
# ------------------------------------------------------------------
# model label -> role -> lookup that must equal the requesting user
VISIBILITY = {
    "lab_core.quotation": {"CLIENT": "client"},
    "lab_core.joborder": {
        "CLIENT": "quotation__client",
        "FIELD_OFFICER": "sampling_assignment__field_officer",
    },
    "lab_core.samplingassignment": {"FIELD_OFFICER": "field_officer"},
    "lab_core.travelorder": {"FIELD_OFFICER": "assignment__field_officer"},
}


def scope_queryset(qs, user):
    """
    Admins and operators see everything; field officers see their own
    assignments and travel orders; clients see their own quotations and jobs.
    """
    role = user_role(user)
    if not role:
        return qs.none()
    if role in STAFF_ROLES:
        return qs

    lookup = VISIBILITY.get(qs.model._meta.label_lower, {}).get(role)
    if not lookup:
        return qs.none()
    return qs.filter(**{lookup: user})
