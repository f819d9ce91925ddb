# lab_core/workflows/__init__.py
"""
Authoritative workflow definitions for lab entities.

Defines:
- State universes for quotations, job orders and sampling assignments
- Allowed transitions
- Role-based gating
- Introspection helpers used by the API

Pure logic: no Django imports. Do not bypass these rules at model or view level.
"""

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional, Set


# ===============================================================
# Canonical workflow definitions
# ===============================================================

QUOTATION_STATES: Set[str] = {
    "draft",
    "sent",
    "accepted",
    "rejected",
    "paid",
    "completed",
}

QUOTATION_TRANSITIONS: Dict[str, Set[str]] = {
    "draft": {"sent", "accepted", "rejected"},
    "sent": {"accepted", "rejected"},
    "accepted": {"paid", "rejected"},
    "paid": {"completed"},
    "rejected": set(),
    "completed": set(),
}

JOB_STATES: Set[str] = {
    "scheduled",
    "sampling",
    "analysis",
    "reporting",
    "completed",
}

JOB_TRANSITIONS: Dict[str, Set[str]] = {
    "scheduled": {"sampling", "analysis"},
    "sampling": {"analysis"},
    "analysis": {"reporting", "completed"},
    "reporting": {"completed"},
    "completed": set(),
}

SAMPLING_STATES: Set[str] = {
    "pending",
    "in_progress",
    "completed",
    "cancelled",
}

SAMPLING_TRANSITIONS: Dict[str, Set[str]] = {
    "pending": {"in_progress", "completed", "cancelled"},
    "in_progress": {"pending", "completed", "cancelled"},
    "completed": set(),
    "cancelled": set(),
}

KIND_ALIASES: Dict[str, str] = {
    "quotation": "quotation",
    "quote": "quotation",
    "job": "job",
    "job_order": "job",
    "joborder": "job",
    "sampling": "sampling",
    "sampling_assignment": "sampling",
    "assignment": "sampling",
}

_DEFINITIONS = {
    "quotation": (QUOTATION_STATES, QUOTATION_TRANSITIONS),
    "job": (JOB_STATES, JOB_TRANSITIONS),
    "sampling": (SAMPLING_STATES, SAMPLING_TRANSITIONS),
}


# ===============================================================
# Role normalization and permission rules
# ===============================================================
# Examples handled:
# - "Field Officer" -> FIELD_OFFICER
# - "field-officer" -> FIELD_OFFICER
# - "superuser" -> ADMIN
ROLE_ALIASES: Dict[str, str] = {
    "ADMIN": "ADMIN",
    "ADMINISTRATOR": "ADMIN",
    "SYSTEM_ADMIN": "ADMIN",
    "SUPERUSER": "ADMIN",
    "OPERATOR": "OPERATOR",
    "LAB_OPERATOR": "OPERATOR",
    "STAFF": "OPERATOR",
    "FIELD_OFFICER": "FIELD_OFFICER",
    "FIELDOFFICER": "FIELD_OFFICER",
    "FIELD": "FIELD_OFFICER",
    "SAMPLER": "FIELD_OFFICER",
    "CLIENT": "CLIENT",
    "CUSTOMER": "CLIENT",
}

CANONICAL_ROLES = ("ADMIN", "OPERATOR", "FIELD_OFFICER", "CLIENT")


def normalize_state(value: Any) -> str:
    s = str(value or "").strip().lower()
    return re.sub(r"[\s\-]+", "_", s)


def normalize_kind(value: Any) -> str:
    k = normalize_state(value)
    return KIND_ALIASES.get(k, k)


def normalize_role(value: Any) -> str:
    """
    Canonicalize role strings so that small formatting differences
    do not break permission logic.
    """
    r = str(value or "").strip().upper()
    if not r:
        return r
    r = re.sub(r"[\s\-]+", "_", r)
    r = re.sub(r"_+", "_", r)
    return ROLE_ALIASES.get(r, r)


def _definition(kind: str):
    k = normalize_kind(kind)
    if k not in _DEFINITIONS:
        raise ValueError(f"Unknown workflow kind: {kind}")
    return k, _DEFINITIONS[k]


def _role_allows(kind: str, current: str, target: str, role: str) -> bool:
    """
    Centralized role gating. Keep policy decisions here only.

    Ownership of sampling assignments is checked by the service layer;
    this function only answers "may this role ever do this".
    """
    k = normalize_kind(kind)
    cur = normalize_state(current)
    tgt = normalize_state(target)
    r = normalize_role(role)

    if r == "ADMIN":
        return True

    if r == "OPERATOR":
        if k in {"quotation", "job"}:
            return True
        if k == "sampling":
            return tgt == "cancelled"
        return False

    if r == "FIELD_OFFICER":
        if k == "sampling":
            return tgt in {"pending", "in_progress", "completed"}
        return False

    if r == "CLIENT":
        if k == "quotation":
            return cur == "sent" and tgt in {"accepted", "rejected"}
        return False

    return False


# ===============================================================
# Public workflow API
# ===============================================================

def validate_transition(kind: str, current: Optional[str], target: Optional[str]) -> None:
    """
    Raises ValueError if current -> target is not a legal transition.
    Staying in the same state is always legal.
    """
    k, (states, transitions) = _definition(kind)
    cur = normalize_state(current)
    tgt = normalize_state(target)

    if cur not in states:
        raise ValueError(f"Unknown {k} status: {cur or '<empty>'}")

    if tgt not in states:
        raise ValueError(f"Unknown {k} status: {tgt or '<empty>'}")

    if cur == tgt:
        return

    if tgt not in transitions.get(cur, set()):
        raise ValueError(f"Invalid {k} status transition: {cur} -> {tgt}")


def validate_transition_with_role(kind: str, current: Optional[str], target: Optional[str], role: str) -> None:
    """
    Raises ValueError if the transition is invalid OR not permitted for the role.
    """
    validate_transition(kind, current, target)

    k = normalize_kind(kind)
    cur = normalize_state(current)
    tgt = normalize_state(target)

    if cur == tgt:
        return

    if not _role_allows(k, cur, tgt, role):
        r = normalize_role(role) or "ANONYMOUS"
        raise ValueError(f"Role {r} cannot perform {k} transition: {cur} -> {tgt}")


def is_terminal(kind: str, state: str) -> bool:
    _, (_, transitions) = _definition(kind)
    return not transitions.get(normalize_state(state), set())


def allowed_next_states(kind: str, current: str) -> List[str]:
    """
    Canonical next states only, independent of role.
    """
    _, (_, transitions) = _definition(kind)
    return sorted(transitions.get(normalize_state(current), set()))


def allowed_transitions(kind: str, current: Optional[str] = None, role: Optional[str] = None) -> Any:
    """
    allowed_transitions("job") -> Dict[str, List[str]] (full map)
    allowed_transitions("job", "analysis") -> List[str]
    allowed_transitions("job", "analysis", "OPERATOR") -> List[str] (role-aware)
    """
    k, (_, transitions) = _definition(kind)

    if current is None and role is None:
        return {state: sorted(nxt) for state, nxt in transitions.items()}

    cur = normalize_state(current)
    nxt = allowed_next_states(k, cur)
    if role is None:
        return nxt

    return sorted(t for t in nxt if _role_allows(k, cur, t, role))


def required_roles(kind: str, current: str, target: str) -> List[str]:
    """
    Roles that can perform current -> target in the canonical workflow.
    """
    validate_transition(kind, current, target)
    return [r for r in CANONICAL_ROLES if _role_allows(kind, current, target, r)]


def workflow_definition(kind: Optional[str] = None) -> Dict[str, Any]:
    """
    Stable JSON-serializable definition for clients.
    """
    def _one(k: str) -> Dict[str, Any]:
        kk, (states, transitions) = _definition(k)
        return {
            "kind": kk,
            "states": sorted(states),
            "transitions": allowed_transitions(kk),
            "terminal_states": sorted(s for s, nxt in transitions.items() if not nxt),
        }

    if kind is None:
        return {k: _one(k) for k in _DEFINITIONS}
    return _one(kind)


__all__ = [
    "QUOTATION_STATES",
    "QUOTATION_TRANSITIONS",
    "JOB_STATES",
    "JOB_TRANSITIONS",
    "SAMPLING_STATES",
    "SAMPLING_TRANSITIONS",
    "normalize_state",
    "normalize_kind",
    "normalize_role",
    "validate_transition",
    "validate_transition_with_role",
    "is_terminal",
    "allowed_next_states",
    "allowed_transitions",
    "required_roles",
    "workflow_definition",
]
