import base64

import pytest

from skinportal.errors import GatewayError


@pytest.fixture
def post(client, patient_headers):
    def _post(body):
        return client.post("/api/analysis", json=body, headers=patient_headers)
    return _post


def test_analysis_requires_token(client, gateway, png):
    res = client.post("/api/analysis", json={"imageBase64": base64.b64encode(png).decode()})
    assert res.status_code == 401
    assert gateway.calls == []


def test_analysis_returns_result_with_review_flag(post, gateway, png):
    res = post({"imageBase64": base64.b64encode(png).decode(), "symptoms": "itchy"})

    assert res.status_code == 200
    body = res.get_json()
    assert body["diagnosis"] == "benign melanocytic nevus"
    assert body["riskLevel"] == "low"
    assert body["needsDoctorReview"] is True
    assert gateway.calls[0]["symptoms"] == "itchy"
    assert gateway.calls[0]["size"] == len(png)


def test_analysis_accepts_data_url(post, gateway, png):
    data_url = "data:image/png;base64," + base64.b64encode(png).decode()
    assert post({"imageBase64": data_url}).status_code == 200
    assert gateway.calls[0]["size"] == len(png)


def test_analysis_without_image(post):
    res = post({"symptoms": "itchy"})
    assert res.status_code == 400
    assert "error" in res.get_json()


def test_analysis_with_garbage_base64(post):
    res = post({"imageBase64": "!!not base64!!"})
    assert res.status_code == 400
    assert "error" in res.get_json()


def test_analysis_upstream_failure(post, gateway, png):
    gateway.error = GatewayError("Analysis service returned 500", {"upstream_status": 500})
    res = post({"imageBase64": base64.b64encode(png).decode()})

    assert res.status_code == 502
    assert res.get_json() == {"error": "Analysis service returned 500"}
