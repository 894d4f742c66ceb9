import pytest
from starlette.websockets import WebSocketDisconnect

from carelink.core.events import ChangeAction, ConsultationChanged, event_bus
from carelink.core.security import create_access_token
from carelink.services.change_feed import change_feed


def _url(user):
    token = create_access_token(subject=str(user.id), roles=[])
    return f"/api/v1/realtime/consultations?token={token}"


def test_invalid_token_is_refused(client):
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect("/api/v1/realtime/consultations?token=garbage"):
            pass
    assert exc_info.value.code == 1008


def test_patient_receives_own_changes_only(client, patient, make_user, make_consultation):
    other = make_user()
    mine = make_consultation(patient)
    theirs = make_consultation(other)

    with client.websocket_connect(_url(patient)) as ws:
        assert ws.receive_json() == {"type": "subscribed", "scope": "own"}

        event_bus.publish(ConsultationChanged(ChangeAction.UPDATE, theirs.id, theirs.patient_id))
        event_bus.publish(ConsultationChanged(ChangeAction.UPDATE, mine.id, mine.patient_id))

        assert ws.receive_json() == {
            "type": "consultations_changed",
            "action": "UPDATE",
            "consultation_id": str(mine.id),
        }


def test_admin_scope_is_all(client, consultation_admin):
    with client.websocket_connect(_url(consultation_admin)) as ws:
        assert ws.receive_json() == {"type": "subscribed", "scope": "all"}


def test_sign_out_closes_the_feed(client, patient, auth_headers):
    with client.websocket_connect(_url(patient)) as ws:
        ws.receive_json()
        assert change_feed.listener_count == 1

        assert client.post("/api/v1/auth/logout", headers=auth_headers(patient)).status_code == 204

        with pytest.raises(WebSocketDisconnect) as exc_info:
            ws.receive_json()
        assert exc_info.value.code == 4001


def test_reconnect_after_sign_out_is_rescoped_from_current_roles(client, patient, auth_headers):
    url = _url(patient)
    with client.websocket_connect(url) as ws:
        ws.receive_json()
        client.post("/api/v1/auth/logout", headers=auth_headers(patient))
        with pytest.raises(WebSocketDisconnect):
            ws.receive_json()

    assert change_feed.listener_count == 0

    # tokens are stateless JWTs: the same token is still accepted until expiry
    with client.websocket_connect(url) as ws:
        assert ws.receive_json() == {"type": "subscribed", "scope": "own"}
        assert change_feed.listener_count == 1
