from dataclasses import replace

import pytest
from fastapi.testclient import TestClient

from relaygate.main import create_app
from relaygate.verifier import verify_event_log

from conftest import BOB, CAROL, OWNER, ZERO, as_caller


def relay_body(to=BOB, message_type=1, data="0xdead"):
    return {"to": to, "message_type": message_type, "data": data}


# Observers
def test_health_and_initial_state(client):
    assert client.get("/health").json() == {"status": "ok", "event_log": "sqlite_hash_chain"}
    assert client.get("/owner").json() == {"owner": OWNER}
    assert client.get("/paused").json() == {"paused": False}
    assert client.get("/state").json() == {"owner": OWNER, "paused": False, "circuit": "ACTIVE"}


# Relay
def test_relay_returns_transfer_record(client):
    r = client.post("/relay", json=relay_body(), headers=as_caller(BOB))
    assert r.status_code == 200
    assert r.json() == {
        "record_type": "Transfer",
        "from": BOB,
        "to": BOB,
        "message_type": "1",
        "data": "0xdead",
    }


def test_relay_accepts_large_message_type_as_string(client):
    big = str(2 ** 256 - 1)
    r = client.post("/relay", json=relay_body(message_type=big, data="0x"), headers=as_caller(BOB))
    assert r.status_code == 200
    assert r.json()["message_type"] == big
    assert r.json()["data"] == "0x"


def test_relay_normalizes_identity_case(client):
    r = client.post("/relay", json=relay_body(to="0x" + "C" * 40), headers=as_caller("0x" + "B" * 40))
    assert r.status_code == 200
    assert r.json()["from"] == BOB
    assert r.json()["to"] == CAROL


def test_relay_requires_caller(client):
    r = client.post("/relay", json=relay_body())
    assert r.status_code == 401
    assert r.json()["detail"] == "MISSING_CALLER"


def test_relay_rejects_bad_inputs(client):
    bad = [
        relay_body(to="0x1234"),
        relay_body(message_type=-1),
        relay_body(message_type=str(2 ** 256)),
        relay_body(data="dead"),
        relay_body(data="0xabc"),
        relay_body(data="0xzz"),
    ]
    for body in bad:
        r = client.post("/relay", json=body, headers=as_caller(BOB))
        assert r.status_code == 400, body
        assert r.json()["error"] == "VALIDATION_ERROR"

    r = client.post("/relay", json=relay_body(), headers=as_caller("not-an-identity"))
    assert r.status_code == 400
    assert r.json()["field"] == "X-Caller-Identity"


def test_relay_blocked_while_paused(client):
    assert client.post("/toggle_pause", headers=as_caller(OWNER)).json() == {
        "record_type": "PauseStateChanged",
        "is_paused": True,
    }
    r = client.post("/relay", json=relay_body(), headers=as_caller(OWNER))
    assert r.status_code == 503
    assert r.json() == {"error": "CIRCUIT_OPEN", "reason": "contract is paused"}
    assert client.get("/event_log/proof").json()["entries"] == 1


# Owner operations
def test_toggle_pause_by_non_owner_forbidden(client):
    r = client.post("/toggle_pause", headers=as_caller(BOB))
    assert r.status_code == 403
    assert r.json() == {"error": "NOT_OWNER", "reason": "caller is not the owner"}
    assert client.get("/paused").json() == {"paused": False}


def test_transfer_ownership(client):
    r = client.post("/transfer_ownership", json={"new_owner": CAROL}, headers=as_caller(OWNER))
    assert r.status_code == 200
    assert r.json() == {"record_type": "OwnershipTransferred", "previous_owner": OWNER, "new_owner": CAROL}
    assert client.get("/owner").json() == {"owner": CAROL}


def test_transfer_to_zero_rejected(client):
    r = client.post("/transfer_ownership", json={"new_owner": ZERO}, headers=as_caller(OWNER))
    assert r.status_code == 400
    assert r.json() == {"error": "INVALID_OWNER", "reason": "new owner is the zero address"}
    assert client.get("/owner").json() == {"owner": OWNER}


def test_transfer_by_non_owner_forbidden(client):
    r = client.post("/transfer_ownership", json={"new_owner": BOB}, headers=as_caller(BOB))
    assert r.status_code == 403
    assert client.get("/owner").json() == {"owner": OWNER}


# Audit log export
def test_event_log_export_verifies(client):
    client.post("/relay", json=relay_body(), headers=as_caller(BOB))
    client.post("/toggle_pause", headers=as_caller(OWNER))
    client.post("/transfer_ownership", json={"new_owner": CAROL}, headers=as_caller(OWNER))

    entries = client.get("/event_log").json()
    assert [e["record_type"] for e in entries] == ["Transfer", "PauseStateChanged", "OwnershipTransferred"]

    assert verify_event_log(entries, client.get("/trust_store").json()).valid


def test_request_id_round_trip(client):
    r = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert r.headers["X-Request-ID"] == "req-123"
    assert client.get("/health").headers["X-Request-ID"]


# Host wiring
def test_rate_limit_per_caller(settings, keys):
    limited = replace(settings, relay_rpm=2)
    app = create_app(settings=limited, keys=keys, configure_logs=False)
    with TestClient(app) as c:
        for _ in range(2):
            assert c.post("/relay", json=relay_body(), headers=as_caller(BOB)).status_code == 200
        r = c.post("/relay", json=relay_body(), headers=as_caller(BOB))
        assert r.status_code == 429
        assert 0 < int(r.headers["Retry-After"]) <= 60
        assert c.post("/relay", json=relay_body(), headers=as_caller(CAROL)).status_code == 200


def test_restart_restores_state(settings, keys):
    app = create_app(settings=settings, keys=keys, configure_logs=False)
    with TestClient(app) as c:
        c.post("/toggle_pause", headers=as_caller(OWNER))
        c.post("/transfer_ownership", json={"new_owner": BOB}, headers=as_caller(OWNER))

    app = create_app(settings=settings, keys=keys, configure_logs=False)
    with TestClient(app) as c:
        assert c.get("/state").json() == {"owner": BOB, "paused": True, "circuit": "SUSPENDED"}
        assert c.post("/toggle_pause", headers=as_caller(OWNER)).status_code == 403


def test_startup_rejects_missing_owner(settings, keys):
    bad = replace(settings, initial_owner=None)
    app = create_app(settings=bad, keys=keys, configure_logs=False)
    with pytest.raises(RuntimeError, match="RELAYGATE_INITIAL_OWNER is required"):
        with TestClient(app):
            pass


def test_log_written_across_restarts_still_verifies(settings):
    for caller in (OWNER, BOB):
        app = create_app(settings=settings, configure_logs=False)
        with TestClient(app) as c:
            assert c.post("/relay", json=relay_body(), headers=as_caller(caller)).status_code == 200

    app = create_app(settings=settings, configure_logs=False)
    with TestClient(app) as c:
        entries = c.get("/event_log").json()
        trust = c.get("/trust_store").json()

    assert [e["seq"] for e in entries] == [1, 2]
    result = verify_event_log(entries, trust)
    assert result.valid, result.reason


def test_startup_rejects_ephemeral_signer_on_durable_log(settings):
    app = create_app(settings=replace(settings, signer="ephemeral"), configure_logs=False)
    with pytest.raises(RuntimeError, match="ephemeral signer cannot sign a durable event log"):
        with TestClient(app):
            pass
