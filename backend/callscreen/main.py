import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path

from alembic import command
from alembic.config import Config
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import OperationalError

from callscreen.api import auth, calls, health, inbound, reports, users
from callscreen.core.clock import system_clock
from callscreen.core.config import settings
from callscreen.core.database import SessionLocal, engine, ensure_supported_dialect
from callscreen.core.logging_setup import configure_logging
from callscreen.services.elevenlabs import build_conversation_provider
from callscreen.services.mailer import build_mailer
from callscreen.services.scheduler import ReportScheduler

logger = logging.getLogger(__name__)

ALEMBIC_INI = Path(__file__).resolve().parents[1] / "alembic.ini"


async def wait_for_database(max_attempts: int = 8, delay_seconds: float = 1.5) -> None:
    attempt = 0
    delay = delay_seconds
    while attempt < max_attempts:
        attempt += 1
        try:
            with engine.connect():
                return
        except OperationalError as exc:
            if attempt >= max_attempts:
                logger.error("Database connection failed after %s attempts.", attempt, exc_info=exc)
                raise
            logger.warning("Database not ready (attempt %s/%s). Retrying in %.1fs.", attempt, max_attempts, delay)
            await asyncio.sleep(delay)
            delay = min(delay * 1.5, 10.0)


def run_migrations() -> None:
    config = Config(str(ALEMBIC_INI))
    config.set_main_option("script_location", str(ALEMBIC_INI.parent / "alembic"))
    config.set_main_option("sqlalchemy.url", settings.database_url)
    command.upgrade(config, "head")


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.log_level)
    logger.info("Starting %s (%s)", settings.app_name, settings.environment)
    ensure_supported_dialect(engine)
    if settings.auto_migrate:
        await wait_for_database()
        await asyncio.to_thread(run_migrations)

    app.state.clock = system_clock
    app.state.mailer = build_mailer(settings)
    app.state.conversation_provider = build_conversation_provider(settings)
    app.state.scheduler = ReportScheduler(
        SessionLocal,
        app.state.mailer,
        clock=app.state.clock,
        tick_seconds=settings.scheduler_tick_seconds,
        refresh_seconds=settings.scheduler_refresh_seconds,
        report_stream=settings.postmark_report_stream,
    )
    if settings.scheduler_enabled:
        app.state.scheduler.start()
    yield
    if app.state.scheduler.running:
        await app.state.scheduler.stop()
    logger.info("Shutting down.")


app = FastAPI(title=settings.app_name, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(auth.router)
app.include_router(users.router)
app.include_router(calls.router)
app.include_router(inbound.router)
app.include_router(reports.router)
