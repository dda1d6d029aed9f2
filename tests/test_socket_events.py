from skinportal.extensions import socketio
from skinportal.services.diagnosis_workflow import workflow

from helpers import auth_headers


def _token(client, email):
    return auth_headers(client, email)["Authorization"].split(" ", 1)[1]


def _updates(sock):
    return [e["args"][0] for e in sock.get_received() if e["name"] == "diagnosis_updated"]


def test_connect_without_token_is_refused(app):
    assert not socketio.test_client(app).is_connected()
    assert not socketio.test_client(app, auth={"token": "not-a-jwt"}).is_connected()


def test_signed_out_token_is_refused(app, client, patient, patient_headers):
    client.post("/api/auth/logout", headers=patient_headers)
    token = patient_headers["Authorization"].split(" ", 1)[1]
    assert not socketio.test_client(app, auth={"token": token}).is_connected()


def test_patient_receives_own_updates_only(app, client, patient, other_patient, png):
    mine = socketio.test_client(app, auth={"token": _token(client, patient.email)})
    theirs = socketio.test_client(app, auth={"token": _token(client, other_patient.email)})
    assert mine.is_connected() and theirs.is_connected()

    # asking for someone else's room does nothing
    theirs.emit("join", {"room": f"patient_{patient.id}"})

    rec = workflow.submit(patient, [("a.png", png)], "itchy mole")

    assert [u["id"] for u in _updates(mine)] == [rec.id]
    assert _updates(theirs) == []


def test_token_can_come_from_query_string(app, client, patient):
    sock = socketio.test_client(app, query_string=f"token={_token(client, patient.email)}")
    assert sock.is_connected()
