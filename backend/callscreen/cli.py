from typing import Optional

import typer
from sqlalchemy.orm import Session
from callscreen.core.clock import system_clock
from callscreen.core.config import settings
from callscreen.core.database import SessionLocal
from callscreen.core.logging_setup import configure_logging
from callscreen.core.security import hash_password
from callscreen.models import ReportConfig, User, UserRole
from callscreen.services.mailer import build_mailer
from callscreen.services.report_configs import get_report_config
from callscreen.services.reports import send_test_report
from callscreen.services.scheduler import ReportScheduler

app = typer.Typer()

DEFAULT_REPORT_CONFIGS = [
    {"name": "Daily Summary", "frequency": "daily", "hour_of_day": 8, "report_type": "summary"},
    {"name": "Weekly Summary", "frequency": "weekly", "day_of_week": 1, "hour_of_day": 9, "report_type": "summary"},
    {"name": "Monthly Detailed", "frequency": "monthly", "day_of_month": 1, "hour_of_day": 9, "report_type": "detailed"},
]


@app.callback()
def main(log_level: str = typer.Option(settings.log_level, help="Logging level")):
    configure_logging(log_level)


@app.command()
def create_admin(username: str = "admin", password: str = "admin", email: Optional[str] = None):
    db: Session = SessionLocal()
    try:
        existing = db.query(User).filter(User.username == username).first()
        if existing:
            typer.echo("Admin already exists")
            return
        user = User(
            username=username,
            hashed_password=hash_password(password),
            email=email,
            role=UserRole.ADMIN.value,
            must_change_password=True,
        )
        db.add(user)
        db.commit()
        typer.echo("Admin created")
    finally:
        db.close()


@app.command()
def run_reports():
    """Process every due report config once and exit."""
    scheduler = ReportScheduler(SessionLocal, build_mailer(settings), report_stream=settings.postmark_report_stream)
    results = scheduler.process_due_reports()
    if not results:
        typer.echo("No reports due")
    for config_id, result in results.items():
        typer.echo(f"Report {config_id}: {result.sent} sent, {result.failed} failed")


@app.command(name="send-test-report")
def send_test_report_cmd(email: str, config_id: Optional[int] = None):
    db: Session = SessionLocal()
    try:
        config = None
        if config_id is not None:
            config = get_report_config(db, config_id)
            if not config:
                typer.echo(f"Report config {config_id} not found")
                raise typer.Exit(code=1)
        result = send_test_report(
            db,
            build_mailer(settings),
            email,
            system_clock.now(),
            config=config,
            message_stream=settings.postmark_report_stream,
        )
    finally:
        db.close()
    if not result.success:
        typer.echo(f"Test report failed: {result.error}")
        raise typer.Exit(code=1)
    typer.echo(f"Test report sent, MessageID: {result.message_id}")


@app.command()
def seed_report_configs():
    db: Session = SessionLocal()
    try:
        created = 0
        for values in DEFAULT_REPORT_CONFIGS:
            if db.query(ReportConfig).filter(ReportConfig.name == values["name"]).first():
                continue
            db.add(ReportConfig(**values))
            created += 1
        db.commit()
        typer.echo(f"Created {created} report configs")
    finally:
        db.close()


if __name__ == "__main__":
    app()
