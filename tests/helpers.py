import io

from PIL import Image

from skinportal.errors import GatewayError
from skinportal.extensions import db
from skinportal.models.profile import Profile


GOOD_RESULT = {
    "diagnosis": "benign melanocytic nevus",
    "confidence": 88.0,
    "riskLevel": "low",
    "details": ["Symmetric shape", "Regular border"],
    "recommendations": ["Monitor for changes"],
}


class StubGateway:
    """Stands in for AnalysisGateway; records calls, returns ``result`` or raises ``error``."""

    def __init__(self, result=None, error=None):
        self.result = dict(result or GOOD_RESULT)
        self.error = error
        self.calls = []

    def analyze(self, image_bytes, symptoms=None, mime_type="image/jpeg"):
        self.calls.append({"size": len(image_bytes), "symptoms": symptoms, "mime_type": mime_type})
        if self.error:
            raise self.error
        return dict(self.result)

    def generate_text(self, prompt):
        if self.error:
            raise self.error
        return "Model reply"


def image_bytes(fmt="PNG", color=(180, 120, 90)):
    buf = io.BytesIO()
    Image.new("RGB", (32, 32), color).save(buf, format=fmt)
    return buf.getvalue()


def make_profile(email, role, name=None):
    profile = Profile(email=email, name=name or email.split("@")[0], role=role, auth_provider="password")
    profile.set_password("password123")
    db.session.add(profile)
    db.session.commit()
    return profile


def auth_headers(client, email, password="password123"):
    res = client.post("/api/auth/login", json={"email": email, "password": password})
    assert res.status_code == 200, res.get_json()
    return {"Authorization": f"Bearer {res.get_json()['data']['token']}"}


def timeout_error():
    return GatewayError("Analysis service timed out")
