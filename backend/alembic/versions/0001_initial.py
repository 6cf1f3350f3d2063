"""initial

Revision ID: 0001
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

qualification = sa.Enum("QUALIFIED", "NOT_QUALIFIED", "PENDING", name="qualification")


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("username", sa.String(length=150), nullable=False),
        sa.Column("hashed_password", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255)),
        sa.Column("role", sa.String(length=20), nullable=False, server_default="RECRUITER"),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
        sa.Column("must_change_password", sa.Boolean(), server_default=sa.true()),
        sa.Column("email_notifications", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("receive_notifications", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("username", name="uq_users_username"),
    )

    op.create_table(
        "refresh_tokens",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("token_hash", sa.String(length=255), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("revoked_at", sa.DateTime()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("token_hash", name="uq_refresh_tokens_token_hash"),
    )

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer()),
        sa.Column("action", sa.String(length=120), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("message", sa.String(length=255)),
        sa.Column("details", sa.JSON()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "call_records",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("conversation_id", sa.String(length=128), nullable=False),
        sa.Column("agent_id", sa.String(length=128), nullable=False),
        sa.Column("status", sa.String(length=40), nullable=False),
        sa.Column("first_name", sa.String(length=120)),
        sa.Column("last_name", sa.String(length=120)),
        sa.Column("phone", sa.String(length=64)),
        sa.Column("qualification", qualification, nullable=False, server_default="PENDING"),
        sa.Column("raw_data", sa.JSON(), nullable=False),
        sa.Column("extracted_data", sa.JSON()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("conversation_id", name="uq_call_records_conversation_id"),
    )
    op.create_index("ix_call_records_agent_id", "call_records", ["agent_id"])
    op.create_index("ix_call_records_phone", "call_records", ["phone"])
    op.create_index("ix_call_records_qualification", "call_records", ["qualification"])
    op.create_index("ix_call_records_created_at", "call_records", ["created_at"])

    op.create_table(
        "reports_config",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("frequency", sa.String(length=20), nullable=False),
        sa.Column("frequency_value", sa.Integer(), server_default="1"),
        sa.Column("day_of_week", sa.Integer()),
        sa.Column("day_of_month", sa.Integer()),
        sa.Column("hour_of_day", sa.Integer(), server_default="9"),
        sa.Column("report_type", sa.String(length=20), nullable=False, server_default="summary"),
        sa.Column("include_metrics", sa.JSON()),
        sa.Column("include_call_details", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("subject_template", sa.String(length=255)),
        sa.Column("template_data", sa.JSON()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.Column("last_sent_at", sa.DateTime()),
        sa.Column("next_send_at", sa.DateTime()),
        sa.UniqueConstraint("name", name="uq_reports_config_name"),
    )
    op.create_index("ix_reports_config_next_send_at", "reports_config", ["next_send_at"])

    op.create_table(
        "email_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("report_config_id", sa.Integer(), sa.ForeignKey("reports_config.id", ondelete="SET NULL")),
        sa.Column("recipient_email", sa.String(length=255), nullable=False),
        sa.Column("recipient_user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL")),
        sa.Column("subject", sa.String(length=255), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("provider_message_id", sa.String(length=128)),
        sa.Column("error_message", sa.Text()),
        sa.Column("sent_at", sa.DateTime(), nullable=False),
        sa.Column("report_period_start", sa.DateTime()),
        sa.Column("report_period_end", sa.DateTime()),
        sa.Column("report_data", sa.JSON()),
    )
    op.create_index("ix_email_logs_report_config_id", "email_logs", ["report_config_id"])
    op.create_index("ix_email_logs_sent_at", "email_logs", ["sent_at"])

    op.create_table(
        "notification_outbox",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("call_record_id", sa.Integer(), sa.ForeignKey("call_records.id", ondelete="CASCADE"), nullable=False),
        sa.Column("kind", sa.String(length=40), nullable=False, server_default="qualified"),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_error", sa.Text()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("sent_at", sa.DateTime()),
        sa.UniqueConstraint("call_record_id", "kind", name="uq_notification_outbox_call_kind"),
    )
    op.create_index("ix_notification_outbox_status", "notification_outbox", ["status"])


def downgrade() -> None:
    op.drop_index("ix_notification_outbox_status", table_name="notification_outbox")
    op.drop_table("notification_outbox")
    op.drop_index("ix_email_logs_sent_at", table_name="email_logs")
    op.drop_index("ix_email_logs_report_config_id", table_name="email_logs")
    op.drop_table("email_logs")
    op.drop_index("ix_reports_config_next_send_at", table_name="reports_config")
    op.drop_table("reports_config")
    op.drop_index("ix_call_records_created_at", table_name="call_records")
    op.drop_index("ix_call_records_qualification", table_name="call_records")
    op.drop_index("ix_call_records_phone", table_name="call_records")
    op.drop_index("ix_call_records_agent_id", table_name="call_records")
    op.drop_table("call_records")
    qualification.drop(op.get_bind(), checkfirst=True)
    op.drop_table("audit_logs")
    op.drop_table("refresh_tokens")
    op.drop_table("users")
