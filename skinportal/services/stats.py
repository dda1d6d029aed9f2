from datetime import datetime

from sqlalchemy import case, func

from skinportal.extensions import db
from skinportal.models.diagnosis import DiagnosisRecord, DiagnosisStatus, RiskLevel
from skinportal.models.profile import Profile, Role
from skinportal.services.access_control import Operation, authorize, require

# A doctor has answered these records
ANSWERED = (DiagnosisStatus.REVIEWED, DiagnosisStatus.COMPLETED)

RISK_RANK = {RiskLevel.LOW: 0, RiskLevel.MEDIUM: 1, RiskLevel.HIGH: 2}


def _first_day_of_month(now=None):
    now = now or datetime.utcnow()
    return datetime(now.year, now.month, 1)


def patient_stats(patient_id, now=None):
    base = DiagnosisRecord.query.filter_by(patient_id=patient_id)
    return {
        "total_diagnoses": base.count(),
        "monthly_diagnoses": base.filter(DiagnosisRecord.created_at >= _first_day_of_month(now)).count(),
        "confirmed_diagnoses": base.filter(DiagnosisRecord.status.in_(ANSWERED)).count(),
        "pending_diagnoses": base.filter(DiagnosisRecord.status == DiagnosisStatus.PENDING).count(),
    }


def doctor_stats(now=None):
    """Pending queue size, reviews this month, AI/doctor agreement and response time in hours."""
    reviewed = DiagnosisRecord.query.filter(DiagnosisRecord.status.in_(ANSWERED))
    compared = reviewed.filter(
        DiagnosisRecord.doctor_diagnosis.isnot(None),
        DiagnosisRecord.ai_diagnosis.isnot(None),
    ).all()

    accuracy = 0.0
    avg_response_time = 0.0
    if compared:
        agreed = sum(1 for r in compared if r.ai_diagnosis == r.doctor_diagnosis)
        accuracy = agreed / len(compared) * 100
        hours = sum((r.updated_at - r.created_at).total_seconds() / 3600 for r in compared)
        avg_response_time = hours / len(compared)

    return {
        "pending_count": DiagnosisRecord.query.filter_by(status=DiagnosisStatus.PENDING).count(),
        "monthly_reviewed": reviewed.filter(DiagnosisRecord.updated_at >= _first_day_of_month(now)).count(),
        "accuracy": round(accuracy, 1),
        "avg_response_time": round(avg_response_time, 1),
    }


def patient_overview(search=None):
    """
    One row per patient for the doctor's patient list.

    ``risk_level`` is the highest risk any of the patient's records reached
    (``low`` when none was assessed); ``last_visit`` falls back to the sign-up
    date for patients without records.
    """
    risk_rank = case(
        *[(DiagnosisRecord.risk_level == level, rank) for level, rank in RISK_RANK.items()],
        else_=0,
    )
    pending = func.sum(case((DiagnosisRecord.status == DiagnosisStatus.PENDING, 1), else_=0))

    q = db.session.query(
        Profile,
        func.count(DiagnosisRecord.id),
        pending,
        func.max(DiagnosisRecord.created_at),
        func.max(risk_rank),
    ).outerjoin(DiagnosisRecord, DiagnosisRecord.patient_id == Profile.id)\
        .filter(Profile.role == Role.PATIENT)

    if search:
        q = q.filter(Profile.name.ilike(f"%{search.strip()}%"))

    rows = q.group_by(Profile.id).order_by(Profile.name.asc(), Profile.id.asc()).all()

    by_rank = {rank: level for level, rank in RISK_RANK.items()}
    return [
        {
            "id": profile.id,
            "name": profile.name,
            "avatar_url": profile.avatar_url,
            "created_at": profile.created_at,
            "total_diagnoses": total,
            "pending_diagnoses": int(pending_count or 0),
            "last_visit": last_visit or profile.created_at,
            "risk_level": by_rank[int(rank or 0)].value,
        }
        for profile, total, pending_count, last_visit, rank in rows
    ]


def stats_for(caller, now=None):
    """Dashboard numbers: the review queue for doctors, the caller's own records for patients."""
    if authorize(caller, Operation.VIEW_QUEUE_STATS):
        return doctor_stats(now)
    require(caller, Operation.VIEW_OWN_STATS)
    return patient_stats(caller.id, now)


def patients_for(caller, search=None):
    require(caller, Operation.LIST_PATIENTS)
    return patient_overview(search)
