from sqlalchemy import create_engine
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from callscreen.core.config import settings

connect_args = {"check_same_thread": False} if settings.database_url.startswith("sqlite") else {}

engine = create_engine(settings.database_url, pool_pre_ping=True, connect_args=connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


UPSERT_DIALECTS = {"postgresql": postgresql.insert, "sqlite": sqlite.insert}


def ensure_supported_dialect(bind) -> str:
    name = bind.dialect.name
    if name not in UPSERT_DIALECTS:
        raise RuntimeError(f"Upsert is not supported on dialect {name!r}")
    return name


def dialect_insert(db: Session, model):
    """Return an INSERT construct that supports ON CONFLICT for the bound dialect."""
    return UPSERT_DIALECTS[ensure_supported_dialect(db.get_bind())](model)
