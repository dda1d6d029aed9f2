"""
Diagnosis record lifecycle: pending -> reviewed -> completed.

Every public method takes the resolved caller ``Profile`` explicitly; nothing
here reads request or session state. The AI step is fail-open: a submission
is complete once the pending record exists, whatever the model does later.
"""

from __future__ import annotations

import logging

from flask import current_app

from skinportal.errors import ConflictError, GatewayError, InvalidStateError, NotFound, StorageError, ValidationError
from skinportal.extensions import socketio
from skinportal.models.diagnosis import DiagnosisStatus, ReviewDecision
from skinportal.services.access_control import Operation, require
from skinportal.services.analysis_gateway import normalize_risk
from skinportal.services.media_store import allowed_file, sniff_image
from skinportal.services.record_store import record_store

logger = logging.getLogger(__name__)


def _media_store():
    return current_app.extensions["media_store"]


def _gateway():
    return current_app.extensions["analysis_gateway"]


def patient_room(profile_id):
    return f"patient_{profile_id}"


def notify_patient(record, event="diagnosis_updated"):
    socketio.emit(event, {
        "id": record.id,
        "status": record.status.value,
        "has_ai_result": record.has_ai_result,
    }, to=patient_room(record.patient_id))


class DiagnosisWorkflow:
    def __init__(self, store=record_store):
        self.store = store

    # --- 1. SUBMIT (patient) ---
    def submit(self, caller, uploads, symptoms=None):
        """
        Store the images and create a pending record for ``caller``.

        ``uploads`` is a list of ``(filename, bytes)``. Analysis of the first
        image is scheduled afterwards and never affects the return value.
        """
        require(caller, Operation.CREATE_RECORD)

        uploads = [(name, data) for name, data in uploads if data]
        if not uploads:
            raise ValidationError("Please upload at least one image")

        checked = []
        for name, data in uploads:
            if not allowed_file(name or ""):
                raise ValidationError("File type not allowed. Use PNG, JPG, JPEG or WEBP")
            checked.append((name, data, sniff_image(data)))

        media = _media_store()
        image_urls = [media.put(data, mime, caller.id, name) for name, data, mime in checked]

        rec = self.store.create(caller.id, image_urls, symptoms)
        logger.info("Record %s created by patient %s with %d image(s)", rec.id, caller.id, len(image_urls))

        self._schedule_analysis(rec.id)
        return self.store.get(rec.id)

    def _schedule_analysis(self, record_id):
        app = current_app._get_current_object()
        if app.config.get("ANALYSIS_INLINE"):
            self.run_analysis(record_id)
        else:
            socketio.start_background_task(self._analysis_task, app, record_id)

    def _analysis_task(self, app, record_id):
        with app.app_context():
            self.run_analysis(record_id)

    def run_analysis(self, record_id):
        """Ask the gateway about the record's first image. Returns the updated record or None."""
        try:
            rec = self.store.get(record_id)
            if rec.status is not DiagnosisStatus.PENDING:
                return None
            image = _media_store().get(rec.image_urls[0])
            result = _gateway().analyze(image, rec.symptoms, sniff_image(image))
            return self.attach_ai_result(record_id, result)
        except (GatewayError, NotFound, StorageError, ValidationError) as e:
            logger.warning("AI analysis for record %s skipped: %s", record_id, e)
        except ConflictError:
            logger.info("Record %s was reviewed before the AI result arrived", record_id)
        return None

    # --- 2. AI RESULT ---
    def attach_ai_result(self, record_id, result):
        risk = normalize_risk(result.get("riskLevel"))
        fields = {
            "ai_diagnosis": result.get("diagnosis"),
            "ai_confidence": result.get("confidence"),
            "risk_level": risk,
            "ai_details": result.get("details"),
            "ai_recommendations": result.get("recommendations"),
        }
        try:
            rec = self.store.update(record_id, fields, expected_status=DiagnosisStatus.PENDING)
        except ConflictError as e:
            raise InvalidStateError("AI results can only be attached to a pending record", e.details) from e

        notify_patient(rec)
        return rec

    # --- 3. REVIEW (doctor) ---
    def review(self, caller, record_id, final_diagnosis, notes, decision):
        rec = self.store.get(record_id)
        if rec.status is not DiagnosisStatus.PENDING:
            raise InvalidStateError("This diagnosis has already been reviewed", {"status": rec.status.value})

        require(caller, Operation.REVIEW, rec)

        notes = (notes or "").strip()
        if not notes:
            raise ValidationError("Review notes are required")

        try:
            decision = ReviewDecision(decision)
        except ValueError:
            raise ValidationError("Decision must be 'confirm' or 'modify'")

        final_diagnosis = (final_diagnosis or "").strip() or rec.ai_diagnosis
        if not final_diagnosis:
            raise ValidationError("Final diagnosis is required")

        try:
            rec = self.store.update(record_id, {
                "doctor_id": caller.id,
                "doctor_diagnosis": final_diagnosis,
                "doctor_notes": notes,
                "review_decision": decision,
                "status": DiagnosisStatus.REVIEWED,
            })
        except ConflictError as e:
            raise InvalidStateError("This diagnosis has already been reviewed", e.details) from e

        logger.info("Record %s reviewed by doctor %s (%s)", record_id, caller.id, decision.value)
        notify_patient(rec)
        return rec

    # --- 4. COMPLETE (reviewing doctor) ---
    def complete(self, caller, record_id):
        rec = self.store.get(record_id)
        if rec.status is not DiagnosisStatus.REVIEWED:
            raise InvalidStateError("Only reviewed diagnoses can be completed", {"status": rec.status.value})

        require(caller, Operation.COMPLETE, rec)

        try:
            rec = self.store.update(record_id, {"status": DiagnosisStatus.COMPLETED},
                                    expected_status=DiagnosisStatus.REVIEWED)
        except ConflictError as e:
            raise InvalidStateError("Only reviewed diagnoses can be completed", e.details) from e

        notify_patient(rec)
        return rec

    # --- READS ---
    def get(self, caller, record_id):
        rec = self.store.get(record_id)
        require(caller, Operation.READ_RECORD, rec)
        return rec

    def history(self, caller):
        require(caller, Operation.LIST_OWN)
        return self.store.list_by_patient(caller.id)

    def pending(self, caller):
        require(caller, Operation.LIST_PENDING)
        return self.store.list_pending()


workflow = DiagnosisWorkflow()
