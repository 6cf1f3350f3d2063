from callscreen.models import AuditLog, RefreshToken
from callscreen.schemas import TokenPair
from callscreen.services.rate_limit import RateLimiter


def test_login_success(client):
    response = client.post("/auth/login", json={"username": "admin", "password": "adminpassword"})
    assert response.status_code == 200
    data = TokenPair(**response.json())
    assert data.access_token
    assert data.refresh_token


def test_login_failure(client, db):
    response = client.post("/auth/login", json={"username": "admin", "password": "wrong"})
    assert response.status_code == 401
    entry = db.query(AuditLog).filter(AuditLog.action == "login").one()
    assert entry.status == "failed"


def test_refresh_rotates_token(client, db):
    tokens = client.post("/auth/login", json={"username": "admin", "password": "adminpassword"}).json()

    response = client.post("/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert response.status_code == 200
    assert response.json()["refresh_token"] != tokens["refresh_token"]

    reuse = client.post("/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert reuse.status_code == 401
    assert db.query(RefreshToken).filter(RefreshToken.revoked_at.isnot(None)).count() == 1


def test_access_token_is_not_a_refresh_token(client):
    tokens = client.post("/auth/login", json={"username": "admin", "password": "adminpassword"}).json()
    response = client.post("/auth/refresh", json={"refresh_token": tokens["access_token"]})
    assert response.status_code == 400


def test_logout_revokes_refresh_token(client):
    tokens = client.post("/auth/login", json={"username": "admin", "password": "adminpassword"}).json()
    assert client.post("/auth/logout", json={"refresh_token": tokens["refresh_token"]}).json() == {"status": "ok"}
    response = client.post("/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert response.status_code == 401


def test_me_returns_notification_preferences(client, recruiter_headers):
    response = client.get("/users/me", headers=recruiter_headers)
    assert response.status_code == 200
    body = response.json()
    assert body["username"] == "recruiter"
    assert body["role"] == "RECRUITER"
    assert body["email_notifications"] is True
    assert body["receive_notifications"] is True


def test_login_is_rate_limited(client, monkeypatch, rate_limiter):
    monkeypatch.setattr(rate_limiter, "limit", 2)
    for _ in range(2):
        client.post("/auth/login", json={"username": "admin", "password": "wrong"})
    response = client.post("/auth/login", json={"username": "admin", "password": "adminpassword"})
    assert response.status_code == 429


def test_rate_limiter_fails_open_without_redis():
    class BrokenRedis:
        def incr(self, key):
            from redis.exceptions import ConnectionError

            raise ConnectionError("redis down")

    limiter = RateLimiter(client=BrokenRedis(), limit=1)
    assert limiter.hit("127.0.0.1") is True
    assert limiter.hit("127.0.0.1") is True
