"""
Role gate for every privileged operation.

This is the only module that looks at ``Profile.role``. Routes resolve the
caller from the JWT, then ask :func:`require` before touching a service.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

from skinportal.errors import AccessDenied
from skinportal.models.diagnosis import DiagnosisRecord, DiagnosisStatus
from skinportal.models.profile import Profile, Role


class Operation(str, enum.Enum):
    CREATE_RECORD = "create_record"
    READ_RECORD = "read_record"
    LIST_OWN = "list_own"
    LIST_PENDING = "list_pending"
    REVIEW = "review"
    COMPLETE = "complete"
    VIEW_OWN_STATS = "view_own_stats"
    VIEW_QUEUE_STATS = "view_queue_stats"
    UPDATE_PROFILE = "update_profile"
    LIST_PATIENTS = "list_patients"


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: str | None = None

    def __bool__(self) -> bool:
        return self.allowed


ALLOWED = Decision(True)


def _deny(reason: str) -> Decision:
    return Decision(False, reason)


def _patient_rules(caller: Profile, operation: Operation, target) -> Decision:
    if operation in (Operation.CREATE_RECORD, Operation.LIST_OWN, Operation.VIEW_OWN_STATS):
        return ALLOWED
    if operation is Operation.READ_RECORD:
        if target is not None and target.patient_id == caller.id:
            return ALLOWED
        return _deny("Patients can only view their own records")
    if operation is Operation.UPDATE_PROFILE:
        return _self_only(caller, target)
    return _deny("Only doctors can perform this action")


def _doctor_rules(caller: Profile, operation: Operation, target) -> Decision:
    if operation in (Operation.LIST_PENDING, Operation.VIEW_QUEUE_STATS, Operation.LIST_PATIENTS):
        return ALLOWED
    if operation is Operation.READ_RECORD:
        if target is not None and (target.status is DiagnosisStatus.PENDING or target.doctor_id == caller.id):
            return ALLOWED
        return _deny("Record is not open for review")
    if operation is Operation.REVIEW:
        # Any doctor may claim a pending case; the workflow decides who wins a race
        return ALLOWED
    if operation is Operation.COMPLETE:
        if target is not None and target.doctor_id == caller.id:
            return ALLOWED
        return _deny("Only the reviewing doctor can complete this record")
    if operation is Operation.UPDATE_PROFILE:
        return _self_only(caller, target)
    return _deny("Only patients can perform this action")


def _self_only(caller: Profile, target) -> Decision:
    if isinstance(target, Profile) and target.id == caller.id:
        return ALLOWED
    return _deny("You can only change your own profile")


def authorize(caller: Profile, operation: Operation, target: DiagnosisRecord | Profile | None = None) -> Decision:
    """Decide whether ``caller`` may run ``operation`` on ``target``."""
    if caller is None:
        return _deny("Not signed in")

    match caller.role:
        case Role.PATIENT:
            return _patient_rules(caller, operation, target)
        case Role.DOCTOR:
            return _doctor_rules(caller, operation, target)
        case _:
            return _deny(f"Unknown role {caller.role!r}")


def require(caller: Profile, operation: Operation, target: DiagnosisRecord | Profile | None = None) -> None:
    decision = authorize(caller, operation, target)
    if not decision:
        raise AccessDenied(decision.reason, {"operation": operation.value})
