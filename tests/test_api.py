import pytest
from fastapi.testclient import TestClient
from loginguard.api.dependencies import get_store, get_verifier
from loginguard.main import app


@pytest.fixture
def client(store, verifier):
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_verifier] = lambda: verifier
    yield TestClient(app)
    app.dependency_overrides.clear()


def report_failure(client, identifier, ip="10.0.0.1"):
    return client.post("/api/security/attempts", json={
        "identifier": identifier,
        "identifier_type": "email",
        "success": False,
        "ip_address": ip
    })


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_check_allows_clean_login(client):
    response = client.post("/api/security/check", json={"identifier": "a@x.com", "ip_address": "10.0.0.1"})

    assert response.status_code == 200
    assert response.json()["allowed"] is True


def test_locked_account_gets_423(client):
    for _ in range(5):
        assert report_failure(client, "a@x.com").status_code == 200

    response = client.post("/api/security/check", json={"identifier": "a@x.com", "ip_address": "10.0.0.1"})
    assert response.status_code == 423
    body = response.json()
    assert body["allowed"] is False
    assert "Retry-After" in response.headers
    assert "maximum" not in body["message"]


def test_invalid_identifier_type_is_400(client):
    response = client.post("/api/security/locks", json={"identifier": "10.0.0.1", "identifier_type": "ip"})
    assert response.status_code == 400
    assert response.json()["detail"].startswith("Invalid identifier type 'ip';")
    assert "IdentifierType." not in response.json()["detail"]


def test_lock_and_unlock(client):
    response = client.post("/api/security/locks", json={
        "identifier": "a@x.com",
        "identifier_type": "email",
        "duration_minutes": 15,
        "locked_by": "ops"
    })
    assert response.status_code == 201
    assert response.json()["success"] is True

    active = client.get("/api/security/locks").json()
    assert [lock["identifier"] for lock in active] == ["a@x.com"]

    status = client.get("/api/security/locks/email/a@x.com").json()
    assert status["locked"] is True

    assert client.delete("/api/security/locks/email/a@x.com").json()["success"] is True
    assert client.get("/api/security/locks").json() == []


def test_block_and_unblock(client):
    response = client.post("/api/security/blocks", json={
        "identifier": "10.0.0.9",
        "severity": "critical",
        "reason": "botnet",
        "metadata": {"ticket": "SEC-1"}
    })
    assert response.status_code == 201
    assert response.json()["expires_at"] is None

    blocks = client.get("/api/security/blocks", params={"identifier_type": "ip"}).json()
    assert blocks[0]["metadata"] == {"ticket": "SEC-1"}
    assert blocks[0]["severity"] == "critical"

    check = client.post("/api/security/check", json={"identifier": "a@x.com", "ip_address": "10.0.0.9"})
    assert check.status_code == 403

    assert client.delete("/api/security/blocks/ip/10.0.0.9").status_code == 204
    assert client.delete("/api/security/blocks/ip/10.0.0.9").status_code == 404


def test_captcha_issue_and_verify(client):
    issued = client.post("/api/security/captcha/issue", json={"identifier": "a@x.com"})
    assert issued.status_code == 201
    token = issued.json()["token"]

    first = client.post("/api/security/captcha/verify", json={"token": token, "proof": "correct-proof"})
    second = client.post("/api/security/captcha/verify", json={"token": token, "proof": "correct-proof"})

    assert first.json() == {"verified": True, "reason": None}
    assert second.json() == {"verified": False, "reason": "already_used"}


def test_alert_listing_and_review(client):
    for i in range(3):
        report_failure(client, "a@x.com", ip=f"10.0.0.{i}")

    alerts = client.get("/api/security/alerts", params={"reviewed": False}).json()
    assert alerts

    reviewed = client.post(
        f"/api/security/alerts/{alerts[0]['id']}/review",
        json={"reviewed_by": "ops", "action_taken": "none"}
    )
    assert reviewed.status_code == 200
    assert reviewed.json()["reviewed"] is True

    missing = client.post("/api/security/alerts/9999/review", json={"reviewed_by": "ops"})
    assert missing.status_code == 404


def test_overrides(client):
    response = client.put("/api/security/overrides", json={
        "identifier": "key-1",
        "identifier_type": "api_key",
        "max_requests": 1000,
        "window_minutes": 1
    })
    assert response.status_code == 200
    assert response.json()["endpoint_pattern"] == "*"

    effective = client.get("/api/security/overrides/api_key/key-1", params={"endpoint": "/api/login"})
    assert effective.json()["max_requests"] == 1000

    assert client.delete("/api/security/overrides/api_key/key-1").status_code == 204
    assert client.get("/api/security/overrides/api_key/key-1").status_code == 404


def test_sweep_threats_and_stats(client):
    client.post("/api/security/locks", json={"identifier": "a@x.com"})
    report_failure(client, "b@x.com")

    sweep = client.post("/api/security/maintenance/sweep")
    assert sweep.status_code == 200
    assert sweep.json()["locks_expired"] == 0

    threats = client.get("/api/security/threats").json()
    assert threats[0]["threat_type"] == "lock"

    stats = client.get("/api/security/stats/attempts").json()
    assert stats[0]["identifier"] == "b@x.com"
    assert stats[0]["failed_attempts"] == 1


def test_check_accepts_user_id(client):
    response = client.post("/api/security/check", json={
        "identifier": "42",
        "identifier_type": "user_id",
        "ip_address": "10.0.0.9"
    })
    assert response.status_code == 200
    assert response.json()["allowed"] is True
