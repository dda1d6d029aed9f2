from datetime import datetime, timedelta

import pytest

from skinportal.errors import ConflictError, NotFound, ValidationError
from skinportal.extensions import db
from skinportal.models.diagnosis import DiagnosisStatus, ReviewDecision
from skinportal.services.record_store import record_store


def test_create_requires_images(patient):
    with pytest.raises(ValidationError):
        record_store.create(patient.id, [], "itchy")


def test_create_starts_pending_without_doctor_fields(patient):
    rec = record_store.create(patient.id, ["/media/1/a.png", "/media/1/b.png"], "  itchy mole ")

    assert rec.status is DiagnosisStatus.PENDING
    assert rec.image_urls == ["/media/1/a.png", "/media/1/b.png"]
    assert rec.symptoms == "itchy mole"
    assert rec.doctor_id is None and rec.doctor_diagnosis is None and rec.doctor_notes is None


def test_get_missing_record(app):
    with pytest.raises(NotFound):
        record_store.get(12345)


def test_lists_are_newest_first(patient, other_patient):
    older = record_store.create(patient.id, ["/media/a.png"])
    older.created_at = datetime.utcnow() - timedelta(days=1)
    db.session.commit()
    newer = record_store.create(patient.id, ["/media/b.png"])
    record_store.create(other_patient.id, ["/media/c.png"])

    assert [r.id for r in record_store.list_by_patient(patient.id)] == [newer.id, older.id]
    assert [r.id for r in record_store.list_pending()][1:] == [newer.id, older.id]


def test_list_pending_skips_reviewed(patient, doctor):
    rec = record_store.create(patient.id, ["/media/a.png"])
    record_store.update(rec.id, {"doctor_id": doctor.id, "doctor_notes": "ok",
                                 "status": DiagnosisStatus.REVIEWED})
    assert record_store.list_pending() == []


def test_update_sets_doctor_fields_and_timestamp_together(patient, doctor):
    rec = record_store.create(patient.id, ["/media/a.png"])
    before = rec.updated_at

    updated = record_store.update(rec.id, {
        "doctor_id": doctor.id,
        "doctor_diagnosis": "nevus",
        "doctor_notes": "monitor",
        "review_decision": ReviewDecision.CONFIRM,
        "status": DiagnosisStatus.REVIEWED,
    })

    assert updated.status is DiagnosisStatus.REVIEWED
    assert (updated.doctor_id, updated.doctor_diagnosis, updated.doctor_notes) == (doctor.id, "nevus", "monitor")
    assert updated.updated_at >= before


def test_doctor_fields_on_reviewed_record_conflict(patient, doctor, second_doctor):
    rec = record_store.create(patient.id, ["/media/a.png"])
    record_store.update(rec.id, {"doctor_id": doctor.id, "doctor_notes": "first",
                                 "status": DiagnosisStatus.REVIEWED})

    with pytest.raises(ConflictError):
        record_store.update(rec.id, {"doctor_id": second_doctor.id, "doctor_notes": "second"})

    assert record_store.get(rec.id).doctor_notes == "first"


def test_doctor_fields_cannot_target_other_status(patient, doctor):
    rec = record_store.create(patient.id, ["/media/a.png"])
    with pytest.raises(ConflictError):
        record_store.update(rec.id, {"doctor_id": doctor.id}, expected_status=DiagnosisStatus.REVIEWED)


def test_update_missing_record(app):
    with pytest.raises(NotFound):
        record_store.update(999, {"ai_diagnosis": "x"})


def test_update_rejects_unknown_fields(patient):
    rec = record_store.create(patient.id, ["/media/a.png"])
    with pytest.raises(ValidationError):
        record_store.update(rec.id, {"patient_id": 42})
