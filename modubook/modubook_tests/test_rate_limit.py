import pytest

from modubook.modubook.social_service.rate_limit import limiter


@pytest.fixture
def rate_limited(monkeypatch):
    monkeypatch.setattr(limiter, "enabled", True)
    limiter.reset()
    yield limiter
    limiter.reset()


def test_check_email_is_rate_limited(client, rate_limited):
    for _ in range(30):
        resp = client.post("/api/auth/check-email", json={"email": "someone@example.com"})
        assert resp.status_code == 200

    blocked = client.post("/api/auth/check-email", json={"email": "someone@example.com"})
    assert blocked.status_code == 429


def test_signup_is_rate_limited(client, rate_limited):
    statuses = []
    for i in range(6):
        resp = client.post(
            "/api/auth/signup",
            json={"email": f"burst{i}@example.com", "password": "Burst123!", "nickname": f"burst{i}"}
        )
        statuses.append(resp.status_code)

    assert statuses[:5] == [201] * 5
    assert statuses[5] == 429


def test_limits_are_off_when_disabled(client):
    for _ in range(35):
        assert client.post("/api/auth/check-nickname", json={"nickname": "nobody"}).status_code == 200
