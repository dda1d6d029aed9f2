import pytest

from skinportal.errors import AccessDenied
from skinportal.models.diagnosis import DiagnosisRecord, DiagnosisStatus
from skinportal.models.profile import Profile, Role
from skinportal.services.access_control import Operation, authorize, require


def _profile(pid, role):
    return Profile(id=pid, email=f"u{pid}@example.com", name=f"User {pid}", role=role)


def _record(patient_id, status=DiagnosisStatus.PENDING, doctor_id=None):
    return DiagnosisRecord(id=99, patient_id=patient_id, image_urls=["/media/x.png"],
                           status=status, doctor_id=doctor_id)


PATIENT = _profile(1, Role.PATIENT)
OTHER_PATIENT = _profile(2, Role.PATIENT)
DOCTOR = _profile(10, Role.DOCTOR)
OTHER_DOCTOR = _profile(11, Role.DOCTOR)


def test_patient_reads_only_own_records():
    assert authorize(PATIENT, Operation.READ_RECORD, _record(1))
    decision = authorize(PATIENT, Operation.READ_RECORD, _record(2))
    assert not decision
    assert "own records" in decision.reason


@pytest.mark.parametrize("operation", [Operation.LIST_PENDING, Operation.REVIEW,
                                       Operation.COMPLETE, Operation.VIEW_QUEUE_STATS,
                                       Operation.LIST_PATIENTS])
def test_patient_cannot_use_doctor_operations(operation):
    assert not authorize(PATIENT, operation, _record(1))


@pytest.mark.parametrize("operation", [Operation.CREATE_RECORD, Operation.LIST_OWN, Operation.VIEW_OWN_STATS])
def test_doctor_cannot_use_patient_operations(operation):
    assert not authorize(DOCTOR, operation)


def test_doctor_reads_pending_and_own_reviews_only():
    assert authorize(DOCTOR, Operation.READ_RECORD, _record(1))
    assert authorize(DOCTOR, Operation.READ_RECORD, _record(1, DiagnosisStatus.REVIEWED, doctor_id=10))
    assert not authorize(DOCTOR, Operation.READ_RECORD, _record(1, DiagnosisStatus.REVIEWED, doctor_id=11))


def test_any_doctor_may_review_a_pending_record():
    assert authorize(DOCTOR, Operation.REVIEW, _record(1))
    assert authorize(OTHER_DOCTOR, Operation.REVIEW, _record(1))


def test_only_reviewing_doctor_completes():
    reviewed = _record(1, DiagnosisStatus.REVIEWED, doctor_id=10)
    assert authorize(DOCTOR, Operation.COMPLETE, reviewed)
    assert not authorize(OTHER_DOCTOR, Operation.COMPLETE, reviewed)


def test_nobody_updates_someone_elses_profile():
    assert authorize(PATIENT, Operation.UPDATE_PROFILE, PATIENT)
    assert not authorize(PATIENT, Operation.UPDATE_PROFILE, OTHER_PATIENT)
    assert not authorize(DOCTOR, Operation.UPDATE_PROFILE, PATIENT)


def test_anonymous_caller_is_denied():
    assert authorize(None, Operation.LIST_OWN).reason == "Not signed in"


def test_require_raises_access_denied_with_operation():
    with pytest.raises(AccessDenied) as exc:
        require(PATIENT, Operation.LIST_PENDING)
    assert exc.value.status_code == 403
    assert exc.value.details == {"operation": "list_pending"}
