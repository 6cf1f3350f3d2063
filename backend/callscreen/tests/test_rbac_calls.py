from callscreen.core.config import settings


def test_recruiter_cannot_create_user(client, recruiter_headers):
    response = client.post(
        "/users",
        headers=recruiter_headers,
        json={"username": "newuser", "password": "password123", "role": "RECRUITER"},
    )
    assert response.status_code == 403


def test_admin_creates_user_with_email(client, admin_headers):
    response = client.post(
        "/users",
        headers=admin_headers,
        json={
            "username": "newuser",
            "password": "password123",
            "role": "RECRUITER",
            "email": "new@example.com",
            "receive_notifications": False,
        },
    )
    assert response.status_code == 200
    body = response.json()
    assert body["email"] == "new@example.com"
    assert body["receive_notifications"] is False
    assert body["must_change_password"] is True


def test_admin_updates_notification_flags(client, admin_headers):
    users = client.get("/users", headers=admin_headers).json()
    recruiter = next(user for user in users if user["username"] == "recruiter")
    response = client.patch(
        f"/users/{recruiter['id']}",
        headers=admin_headers,
        json={"email_notifications": False},
    )
    assert response.status_code == 200
    assert response.json()["email_notifications"] is False
    assert response.json()["receive_notifications"] is True


def test_calls_endpoint_requires_auth(client):
    response = client.get("/calls")
    assert response.status_code == 401


def test_recruiter_cannot_export_by_default(client, recruiter_headers):
    response = client.get("/calls/export", headers=recruiter_headers)
    assert response.status_code == 403


def test_recruiter_export_when_allowed(client, recruiter_headers, monkeypatch):
    monkeypatch.setattr(settings, "allow_csv_export_for_recruiters", True)
    response = client.get("/calls/export", headers=recruiter_headers)
    assert response.status_code == 200


def test_recruiter_cannot_manage_reports(client, recruiter_headers):
    assert client.get("/reports/configs", headers=recruiter_headers).status_code == 403
    assert client.post("/reports/scheduler/run", headers=recruiter_headers).status_code == 403
