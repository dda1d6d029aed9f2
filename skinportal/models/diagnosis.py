import enum
from datetime import datetime

from skinportal.extensions import db


def _enum_column(enum_cls, **kwargs):
    return db.Column(
        db.Enum(enum_cls, native_enum=False, length=20, values_callable=lambda e: [m.value for m in e]),
        **kwargs,
    )


class DiagnosisStatus(str, enum.Enum):
    PENDING = "pending"
    REVIEWED = "reviewed"
    COMPLETED = "completed"


class RiskLevel(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ReviewDecision(str, enum.Enum):
    CONFIRM = "confirm"
    MODIFY = "modify"


# Columns only the review transition may write
DOCTOR_FIELDS = frozenset({"doctor_id", "doctor_diagnosis", "doctor_notes", "review_decision"})


class DiagnosisRecord(db.Model):
    __tablename__ = 'diagnosis_records'

    id = db.Column(db.Integer, primary_key=True)
    patient_id = db.Column(db.Integer, db.ForeignKey('profiles.id'), nullable=False, index=True)

    # --- SUBMISSION ---
    image_urls = db.Column(db.JSON, nullable=False)       # ordered, never empty
    symptoms = db.Column(db.Text, nullable=True)

    # --- AI RESULT (NULL until the gateway answers) ---
    ai_diagnosis = db.Column(db.String(200), nullable=True)
    ai_confidence = db.Column(db.Float, nullable=True)    # 0-100
    risk_level = _enum_column(RiskLevel, nullable=True)
    ai_details = db.Column(db.JSON, nullable=True)
    ai_recommendations = db.Column(db.JSON, nullable=True)

    status = _enum_column(DiagnosisStatus, nullable=False, default=DiagnosisStatus.PENDING, index=True)

    # --- DOCTOR REVIEW ---
    doctor_id = db.Column(db.Integer, db.ForeignKey('profiles.id'), nullable=True)
    doctor_diagnosis = db.Column(db.String(200), nullable=True)
    doctor_notes = db.Column(db.Text, nullable=True)
    review_decision = _enum_column(ReviewDecision, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow)

    patient = db.relationship('Profile', foreign_keys=[patient_id], backref=db.backref('records', lazy=True))
    doctor = db.relationship('Profile', foreign_keys=[doctor_id])

    @property
    def has_ai_result(self):
        return self.ai_diagnosis is not None

    def __repr__(self):
        return f"<DiagnosisRecord ID: {self.id} - {self.status.value}>"
