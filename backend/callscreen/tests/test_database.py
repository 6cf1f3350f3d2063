from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from callscreen import main
from callscreen.core.database import dialect_insert, engine, ensure_supported_dialect
from callscreen.models import CallRecord


def _bind(name):
    return SimpleNamespace(dialect=SimpleNamespace(name=name))


def test_supported_dialects():
    assert ensure_supported_dialect(engine) == "sqlite"
    assert ensure_supported_dialect(_bind("postgresql")) == "postgresql"


def test_unsupported_dialect_raises():
    with pytest.raises(RuntimeError, match="mysql"):
        ensure_supported_dialect(_bind("mysql"))
    session = SimpleNamespace(get_bind=lambda: _bind("mysql"))
    with pytest.raises(RuntimeError):
        dialect_insert(session, CallRecord)


def test_app_refuses_to_start_on_unsupported_dialect(monkeypatch):
    monkeypatch.setattr(main, "engine", _bind("mysql"))
    with pytest.raises(RuntimeError):
        with TestClient(main.app):
            pass
