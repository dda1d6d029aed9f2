from flask import Blueprint, request
from flask_jwt_extended import jwt_required

from skinportal.services.diagnosis_workflow import workflow
from skinportal.services.stats import patients_for, stats_for
from skinportal.utils.identity import current_profile
from skinportal.utils.response import isoformat, success

diagnosis_bp = Blueprint('diagnosis', __name__, url_prefix='/api/diagnosis')


def _record_json(rec, with_patient=False):
    data = {
        "id": rec.id,
        "patient_id": rec.patient_id,
        "image_urls": rec.image_urls,
        "symptoms": rec.symptoms,
        "ai_diagnosis": rec.ai_diagnosis,
        "ai_confidence": rec.ai_confidence,
        "risk_level": rec.risk_level.value if rec.risk_level else None,
        "ai_details": rec.ai_details,
        "ai_recommendations": rec.ai_recommendations,
        "status": rec.status.value,
        "doctor_id": rec.doctor_id,
        "doctor_diagnosis": rec.doctor_diagnosis,
        "doctor_notes": rec.doctor_notes,
        "review_decision": rec.review_decision.value if rec.review_decision else None,
        "created_at": isoformat(rec.created_at),
        "updated_at": isoformat(rec.updated_at),
    }
    if with_patient:
        data["patient_name"] = rec.patient.name if rec.patient else None
    return data


# --- 1. SUBMIT CASE (patient) ---
@diagnosis_bp.route('', methods=['POST'])
@jwt_required()
def submit_diagnosis():
    caller = current_profile()

    files = request.files.getlist('images')
    uploads = [(f.filename, f.read()) for f in files if f and f.filename]
    symptoms = request.form.get('symptoms')

    rec = workflow.submit(caller, uploads, symptoms)
    return success(_record_json(rec), "Diagnosis submitted, a doctor will review it", 201)


# --- 2. PATIENT HISTORY ---
@diagnosis_bp.route('/history', methods=['GET'])
@jwt_required()
def get_history():
    records = workflow.history(current_profile())
    return success([_record_json(r) for r in records], "History loaded")


# --- 3. REVIEW QUEUE (doctor) ---
@diagnosis_bp.route('/pending', methods=['GET'])
@jwt_required()
def get_pending():
    records = workflow.pending(current_profile())
    return success([_record_json(r, with_patient=True) for r in records], "Pending diagnoses loaded")


@diagnosis_bp.route('/stats', methods=['GET'])
@jwt_required()
def get_stats():
    return success(stats_for(current_profile()), "Statistics loaded")


@diagnosis_bp.route('/patients', methods=['GET'])
@jwt_required()
def get_patients():
    patients = patients_for(current_profile(), request.args.get('q'))
    for p in patients:
        p["created_at"] = isoformat(p["created_at"])
        p["last_visit"] = isoformat(p["last_visit"])
    return success(patients, "Patients loaded")


@diagnosis_bp.route('/<int:record_id>', methods=['GET'])
@jwt_required()
def get_record(record_id):
    rec = workflow.get(current_profile(), record_id)
    return success(_record_json(rec, with_patient=True), "Diagnosis loaded")


# --- 4. REVIEW (doctor) ---
@diagnosis_bp.route('/<int:record_id>/review', methods=['POST'])
@jwt_required()
def review_record(record_id):
    data = request.get_json(silent=True) or {}
    rec = workflow.review(
        current_profile(),
        record_id,
        final_diagnosis=data.get('final_diagnosis'),
        notes=data.get('notes'),
        decision=data.get('decision', 'confirm'),
    )
    return success(_record_json(rec), "Review saved, the patient has been notified")


# --- 5. COMPLETE (reviewing doctor) ---
@diagnosis_bp.route('/<int:record_id>/complete', methods=['POST'])
@jwt_required()
def complete_record(record_id):
    rec = workflow.complete(current_profile(), record_id)
    return success(_record_json(rec), "Diagnosis completed")
