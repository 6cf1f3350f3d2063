import os

os.environ["DATABASE_URL"] = "sqlite:///./test.db"
os.environ["REDIS_URL"] = "redis://localhost:6379/15"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["AUTO_MIGRATE"] = "false"
os.environ["NOTIFICATION_DISPATCH"] = "disabled"
os.environ["ELEVENLABS_API_KEY"] = ""
os.environ["ELEVENLABS_WEBHOOK_SECRET"] = ""
os.environ["ELEVENLABS_AGENT_ID"] = ""
os.environ["POSTMARK_SERVER_TOKEN"] = ""

from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from callscreen.api import auth as auth_api
from callscreen.core.clock import Clock
from callscreen.core.database import Base, SessionLocal, engine
from callscreen.core.security import hash_password
from callscreen.main import app
from callscreen.models import User
from callscreen.services.mailer import SendResult
from callscreen.services.rate_limit import RateLimiter
from callscreen.services.scheduler import ReportScheduler

ADMIN_PASSWORD_HASH = hash_password("adminpassword")
RECRUITER_PASSWORD_HASH = hash_password("recruiterpassword")


class FrozenClock(Clock):
    def __init__(self, current: datetime):
        self.current = current

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


class RecordingMailer:
    """Collects outgoing mail; addresses in ``fail_for`` are rejected and
    addresses in ``raise_for`` raise like a broken transport."""

    def __init__(self):
        self.sent = []
        self.fail_for = set()
        self.raise_for = set()

    def send(self, email):
        if email.to in self.raise_for:
            raise RuntimeError("connection reset by peer")
        if email.to in self.fail_for:
            return SendResult(success=False, error="Inactive recipient")
        self.sent.append(email)
        return SendResult(success=True, message_id=f"msg-{len(self.sent)}")


class FakeRedis:
    def __init__(self):
        self.values = {}

    def incr(self, key):
        self.values[key] = self.values.get(key, 0) + 1
        return self.values[key]

    def expire(self, key, seconds):
        return True

    def delete(self, key):
        self.values.pop(key, None)


@pytest.fixture(autouse=True)
def setup_database():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    admin = User(
        username="admin",
        hashed_password=ADMIN_PASSWORD_HASH,
        role="ADMIN",
        email="admin@example.com",
        must_change_password=True,
    )
    recruiter = User(
        username="recruiter",
        hashed_password=RECRUITER_PASSWORD_HASH,
        role="RECRUITER",
        email="recruiter@example.com",
        must_change_password=False,
    )
    db.add_all([admin, recruiter])
    db.commit()
    db.close()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def rate_limiter(monkeypatch):
    limiter = RateLimiter(client=FakeRedis())
    monkeypatch.setattr(auth_api, "rate_limiter", limiter)
    return limiter


@pytest.fixture()
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def clock():
    return FrozenClock(datetime(2024, 3, 15, 10, 0, 0))


@pytest.fixture()
def mailer():
    return RecordingMailer()


@pytest.fixture()
def scheduler(clock, mailer):
    return ReportScheduler(SessionLocal, mailer, clock=clock, report_stream="reports")


@pytest.fixture()
def client(clock, mailer, scheduler):
    with TestClient(app) as test_client:
        app.state.clock = clock
        app.state.mailer = mailer
        app.state.conversation_provider = None
        app.state.scheduler = scheduler
        yield test_client


def login(client, username, password):
    response = client.post("/auth/login", json={"username": username, "password": password})
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture()
def admin_headers(client):
    return login(client, "admin", "adminpassword")


@pytest.fixture()
def recruiter_headers(client):
    return login(client, "recruiter", "recruiterpassword")


def answer(value, rationale="From the call"):
    return {"value": value, "json_schema": {"type": "boolean"}, "rationale": rationale}


@pytest.fixture()
def make_payload():
    def _make(
        conversation_id="conv-1",
        agent_id="agent-1",
        first_name="Dana",
        last_name="Reyes",
        phone="+15550100",
        cdl=True,
        experience=True,
        violations=False,
        work_eligible=True,
        transcript_secs=(3, 45, 182),
        with_results=True,
    ):
        results = {
            "First_Name": answer(first_name),
            "Last_Name": answer(last_name),
            "Phone_number": answer(phone),
            "question_one": answer(cdl),
            "Question_two": answer(experience),
            "question_five": answer(violations),
        }
        if work_eligible is not None:
            results["question_six"] = answer(work_eligible)
        return {
            "conversation_id": conversation_id,
            "agent_id": agent_id,
            "status": "done",
            "transcript": [
                {"role": "agent" if index % 2 == 0 else "user", "message": "...", "time_in_call_secs": secs}
                for index, secs in enumerate(transcript_secs)
            ],
            "analysis": {
                "call_successful": "success",
                "data_collection_results": results if with_results else {},
            },
        }

    return _make
