"""Role and ownership rules for every entity.

Everything here is a pure function of the caller, the caller's resolved
profile ids and the target document; no datastore access. Services fetch
what the rule needs and call ``enforce`` on the resulting ``Decision``.
"""

import logging
from dataclasses import dataclass, field

from medvault.errors import ForbiddenError, NotFoundError, ValidationError
from medvault.models.user import UserRole
from medvault.services.auth import Caller

logger = logging.getLogger(__name__)

PROVIDER_ROLES = (UserRole.PROVIDER, UserRole.ADMIN)


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: str = ""
    filter: dict = field(default_factory=dict)

    @classmethod
    def allow(cls, filter: dict | None = None) -> "Decision":
        return cls(True, "", filter or {})

    @classmethod
    def deny(cls, reason: str) -> "Decision":
        return cls(False, reason)


def enforce(decision: Decision, caller: Caller | None = None) -> dict:
    """Raise ForbiddenError on a denial, otherwise return the decision's filter."""
    if not decision.allowed:
        if caller is not None:
            logger.info("Denied %s (%s): %s", caller.user_id, caller.role.value, decision.reason)
        raise ForbiddenError(decision.reason)
    return decision.filter


def require_role(caller: Caller, *roles: UserRole) -> Decision:
    if caller.role in roles:
        return Decision.allow()
    return Decision.deny(f"User role '{caller.role.value}' is not authorized to access this route")


def is_self_or_admin(caller: Caller, owner_user_id: str) -> bool:
    return caller.is_admin or caller.user_id == owner_user_id


# --- Health records ---


def list_health_records(
    caller: Caller,
    *,
    own_patient_id: str | None,
    own_provider_id: str | None,
    patient_id_param: str | None,
    assigned_patient_ids: list[str] | None = None,
    restrict_provider_queries: bool = False,
) -> Decision:
    """Row filter for ``GET /health-records``.

    Patients see their own records; providers see the records they created
    unless they name a ``patientId``; admins see everything.
    """
    if caller.role == UserRole.PATIENT:
        if own_patient_id is None:
            raise NotFoundError("Patient profile not found")
        return Decision.allow({"patient": own_patient_id})

    if caller.role == UserRole.PROVIDER:
        if patient_id_param:
            if restrict_provider_queries and patient_id_param not in (assigned_patient_ids or []):
                return Decision.deny("Not authorized to view this patient's records")
            return Decision.allow({"patient": patient_id_param})
        if own_provider_id:
            return Decision.allow({"provider": own_provider_id})
        return Decision.allow()

    return Decision.allow()


def read_health_record(caller: Caller, record: dict, own_patient_id: str | None) -> Decision:
    if caller.role == UserRole.PATIENT:
        if own_patient_id is None or record.get("patient") != own_patient_id:
            return Decision.deny("Not authorized to view this record")
    return Decision.allow()


def list_patient_health_records(caller: Caller, patient_id: str, own_patient_id: str | None) -> Decision:
    if caller.role == UserRole.PATIENT and own_patient_id != patient_id:
        return Decision.deny("Not authorized to view these records")
    return Decision.allow()


def resolve_record_provider(
    caller: Caller, own_provider_id: str | None, requested_provider: str | None
) -> str:
    """Provider id a new record is bound to.

    A provider is always bound to their own profile; the body's ``provider``
    is only honoured for admins.
    """
    enforce(require_role(caller, *PROVIDER_ROLES), caller)
    if own_provider_id:
        return own_provider_id
    if not caller.is_admin:
        raise ValidationError("Provider profile required to create health records")
    if not requested_provider:
        raise ValidationError("provider is required when creating a record as admin")
    return requested_provider


def update_health_record(caller: Caller, record: dict, own_provider_id: str | None) -> Decision:
    decision = require_role(caller, *PROVIDER_ROLES)
    if not decision.allowed:
        return decision
    if caller.role == UserRole.PROVIDER:
        if own_provider_id is None or record.get("provider") != own_provider_id:
            return Decision.deny("Not authorized to update this record")
    return Decision.allow()


def delete_health_record(caller: Caller) -> Decision:
    return require_role(caller, UserRole.ADMIN)


# --- Patient and provider profiles ---


def read_patient(caller: Caller, patient: dict) -> Decision:
    if caller.role == UserRole.PATIENT and patient.get("user") != caller.user_id:
        return Decision.deny("Not authorized to view this patient")
    return Decision.allow()


def list_patients(caller: Caller) -> Decision:
    return require_role(caller, *PROVIDER_ROLES)


def update_profile(caller: Caller, profile: dict, kind: str) -> Decision:
    if not is_self_or_admin(caller, profile.get("user", "")):
        return Decision.deny(f"Not authorized to update this {kind}")
    return Decision.allow()


def create_provider_profile(caller: Caller) -> Decision:
    return require_role(caller, *PROVIDER_ROLES)


def assign_patient(caller: Caller) -> Decision:
    return require_role(caller, *PROVIDER_ROLES)


def delete_profile(caller: Caller) -> Decision:
    return require_role(caller, UserRole.ADMIN)


# --- Users ---


def access_user(caller: Caller, user_id: str, action: str = "view") -> Decision:
    if not is_self_or_admin(caller, user_id):
        return Decision.deny(f"Not authorized to {action} this user")
    return Decision.allow()


def list_users(caller: Caller) -> Decision:
    return require_role(caller, UserRole.ADMIN)


def delete_user(caller: Caller) -> Decision:
    return require_role(caller, UserRole.ADMIN)


def sanitize_user_update(caller: Caller, changes: dict) -> dict:
    """Drop ``password`` always and ``role`` unless the caller is an admin."""
    cleaned = {k: v for k, v in changes.items() if k not in ("password", "role")}
    role = changes.get("role")
    if role and caller.is_admin:
        cleaned["role"] = role
    return cleaned
