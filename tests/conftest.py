"""
Shared fixtures: an app on in-memory SQLite, images on a tmp folder, the AI
step run inline and the external model replaced by ``StubGateway``.
"""

import pytest

from config import Config
from skinportal import create_app
from skinportal.extensions import db
from skinportal.models.profile import Role

from helpers import StubGateway, auth_headers, image_bytes, make_profile, timeout_error


class PortalTestConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret-key-with-enough-length-for-hs256"
    JWT_SECRET_KEY = "test-jwt-secret-key-with-enough-length-for-hs256"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    BCRYPT_LOG_ROUNDS = 4
    MEDIA_BACKEND = "local"
    FIREBASE_SERVICE_ACCOUNT = None
    GEMINI_API_KEY = "test-key"
    ANALYSIS_INLINE = True
    CHAT_RESPONDER = "rules"
    LOG_LEVEL = "WARNING"


@pytest.fixture
def app(tmp_path):
    config = type("Cfg", (PortalTestConfig,), {"UPLOAD_FOLDER": str(tmp_path / "uploads")})
    app = create_app(config)
    app.extensions["analysis_gateway"] = StubGateway()

    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def gateway(app):
    return app.extensions["analysis_gateway"]


@pytest.fixture
def gateway_down(gateway):
    gateway.error = timeout_error()
    return gateway


@pytest.fixture
def png():
    return image_bytes()


@pytest.fixture
def patient(app):
    return make_profile("patient@example.com", Role.PATIENT, "Pat")


@pytest.fixture
def other_patient(app):
    return make_profile("other@example.com", Role.PATIENT, "Olly")


@pytest.fixture
def doctor(app):
    return make_profile("doctor@example.com", Role.DOCTOR, "Dr. Who")


@pytest.fixture
def second_doctor(app):
    return make_profile("doctor2@example.com", Role.DOCTOR, "Dr. Two")


@pytest.fixture
def patient_headers(client, patient):
    return auth_headers(client, patient.email)


@pytest.fixture
def doctor_headers(client, doctor):
    return auth_headers(client, doctor.email)
