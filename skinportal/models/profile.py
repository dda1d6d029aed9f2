import enum
from datetime import datetime

from skinportal.extensions import db, bcrypt


class Role(str, enum.Enum):
    PATIENT = "patient"
    DOCTOR = "doctor"


class Profile(db.Model):
    __tablename__ = 'profiles'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(120), unique=True, nullable=False)
    password_hash = db.Column(db.String(256), nullable=True)  # NULL for Firebase-only accounts
    name = db.Column(db.String(100), nullable=False)

    firebase_uid = db.Column(db.String(128), unique=True, nullable=True)
    auth_provider = db.Column(db.String(20), nullable=True)  # 'firebase' / 'password'

    # Assigned at registration, never updated afterwards
    role = db.Column(
        db.Enum(Role, native_enum=False, length=20, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=Role.PATIENT,
    )
    avatar_url = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def set_password(self, password):
        # bcrypt returns bytes, stored as utf-8 text
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

    def check_password(self, password):
        if not self.password_hash:
            return False
        return bcrypt.check_password_hash(self.password_hash, password)

    def __repr__(self):
        return f"<Profile {self.email} ({self.role.value})>"
