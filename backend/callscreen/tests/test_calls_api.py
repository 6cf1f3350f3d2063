from datetime import datetime

from callscreen.core.config import settings
from callscreen.models import CallRecord, Qualification


def _seed(db):
    rows = [
        ("conv-1", "agent-1", "Alice", Qualification.QUALIFIED, datetime(2024, 3, 15, 8, 0)),
        ("conv-2", "agent-2", "Bob", Qualification.PENDING, datetime(2024, 3, 15, 9, 0)),
        ("conv-3", "agent-1", "Carla", Qualification.NOT_QUALIFIED, datetime(2024, 3, 14, 9, 0)),
    ]
    for conversation_id, agent_id, first_name, qualification, created_at in rows:
        db.add(
            CallRecord(
                conversation_id=conversation_id,
                agent_id=agent_id,
                status="done",
                first_name=first_name,
                qualification=qualification,
                raw_data={"conversation_id": conversation_id},
                extracted_data={"call_duration": 60.0},
                created_at=created_at,
                updated_at=created_at,
            )
        )
    db.commit()


def test_list_calls(client, recruiter_headers, db):
    _seed(db)
    response = client.get("/calls", headers=recruiter_headers)
    assert response.status_code == 200
    assert [item["conversation_id"] for item in response.json()] == ["conv-2", "conv-1", "conv-3"]


def test_list_calls_filters(client, recruiter_headers, db):
    _seed(db)
    by_agent = client.get("/calls", headers=recruiter_headers, params={"agent_id": "agent-1"}).json()
    assert [item["conversation_id"] for item in by_agent] == ["conv-1", "conv-3"]
    by_name = client.get("/calls", headers=recruiter_headers, params={"search": "Bob"}).json()
    assert [item["conversation_id"] for item in by_name] == ["conv-2"]
    pending = client.get("/calls", headers=recruiter_headers, params={"qualification": "PENDING"}).json()
    assert [item["qualified"] for item in pending] == [None]


def test_list_calls_limit_bounds(client, recruiter_headers):
    assert client.get("/calls", headers=recruiter_headers, params={"limit": 501}).status_code == 422
    assert client.get("/calls", headers=recruiter_headers, params={"limit": 0}).status_code == 422


def test_stats(client, recruiter_headers, db):
    _seed(db)
    response = client.get("/calls/stats", headers=recruiter_headers)
    assert response.json() == {"today_calls": 2, "qualified": 1, "pending": 1, "qualification_rate": 50}


def test_stats_uses_report_timezone(client, recruiter_headers, db, monkeypatch):
    _seed(db)
    monkeypatch.setattr(settings, "report_timezone", "Pacific/Honolulu")
    response = client.get("/calls/stats", headers=recruiter_headers)
    assert response.json()["today_calls"] == 0


def test_call_detail(client, recruiter_headers, db):
    _seed(db)
    record = db.query(CallRecord).filter(CallRecord.conversation_id == "conv-1").one()
    response = client.get(f"/calls/{record.id}", headers=recruiter_headers)
    assert response.status_code == 200
    assert response.json()["extracted_data"] == {"call_duration": 60.0}
    assert client.get("/calls/999", headers=recruiter_headers).status_code == 404


def test_admin_export_csv(client, admin_headers, db):
    _seed(db)
    response = client.get("/calls/export", headers=admin_headers)
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    lines = response.text.strip().splitlines()
    assert lines[0] == "conversation_id,agent_id,created_at,first_name,last_name,phone,status,qualification,call_duration"
    assert lines[1].startswith("conv-2,agent-2,2024-03-15T09:00:00,Bob,")
    assert len(lines) == 4
