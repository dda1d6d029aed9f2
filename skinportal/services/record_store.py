import logging
from datetime import datetime

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from skinportal.errors import ConflictError, NotFound, StorageError, ValidationError
from skinportal.extensions import db
from skinportal.models.diagnosis import DOCTOR_FIELDS, DiagnosisRecord, DiagnosisStatus

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = DOCTOR_FIELDS | {
    "ai_diagnosis", "ai_confidence", "risk_level", "ai_details", "ai_recommendations", "status",
}


class RecordStore:
    """Diagnosis record table. Every write commits before returning."""

    def create(self, patient_id, image_urls, symptoms=None):
        if not image_urls:
            raise ValidationError("Please upload at least one image")

        rec = DiagnosisRecord(
            patient_id=patient_id,
            image_urls=list(image_urls),
            symptoms=(symptoms or "").strip() or None,
            status=DiagnosisStatus.PENDING,
        )
        db.session.add(rec)
        self._commit()
        return rec

    def get(self, record_id):
        rec = db.session.get(DiagnosisRecord, record_id)
        if rec is None:
            raise NotFound(f"Diagnosis record {record_id} not found")
        return rec

    def list_by_patient(self, patient_id):
        return DiagnosisRecord.query.filter_by(patient_id=patient_id)\
            .order_by(DiagnosisRecord.created_at.desc(), DiagnosisRecord.id.desc()).all()

    def list_pending(self):
        return DiagnosisRecord.query.filter_by(status=DiagnosisStatus.PENDING)\
            .order_by(DiagnosisRecord.created_at.desc(), DiagnosisRecord.id.desc()).all()

    def update(self, record_id, fields, expected_status=None):
        """
        Apply ``fields`` in one conditional UPDATE.

        Doctor fields can only land on a pending record, so touching any of them
        pins ``expected_status`` to pending. When the condition does not hold
        the row is left alone and ConflictError is raised.
        """
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")

        if DOCTOR_FIELDS & set(fields):
            if expected_status not in (None, DiagnosisStatus.PENDING):
                raise ConflictError("Doctor fields can only be set on a pending record")
            expected_status = DiagnosisStatus.PENDING

        values = dict(fields)
        values["updated_at"] = datetime.utcnow()

        stmt = update(DiagnosisRecord).where(DiagnosisRecord.id == record_id)
        if expected_status is not None:
            stmt = stmt.where(DiagnosisRecord.status == expected_status)
        stmt = stmt.values(**values).execution_options(synchronize_session="fetch")

        try:
            result = db.session.execute(stmt)
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.exception("Updating record %s failed", record_id)
            raise StorageError("Could not save the diagnosis record") from e

        if result.rowcount == 0:
            db.session.rollback()
            current = self.get(record_id)  # raises NotFound for a missing row
            raise ConflictError(
                f"Record {record_id} is already {current.status.value}",
                {"status": current.status.value},
            )

        self._commit()
        return self.get(record_id)

    def _commit(self):
        try:
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.exception("Database commit failed")
            raise StorageError("Could not save the diagnosis record") from e


record_store = RecordStore()
