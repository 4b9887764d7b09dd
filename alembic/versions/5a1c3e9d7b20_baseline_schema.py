"""baseline_schema

Revision ID: 5a1c3e9d7b20
Revises:
Create Date: 2026-10-12 09:14:22.418305

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "5a1c3e9d7b20"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
  """Upgrade schema."""
  op.create_table(
    "users",
    sa.Column("user_id", sa.String(), nullable=False),
    sa.Column("email", sa.String(), nullable=True),
    sa.Column("subscription_tier", sa.String(), nullable=False, server_default="free"),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.CheckConstraint("subscription_tier IN ('free', 'pro', 'lifetime')", name="ck_users_subscription_tier"),
    sa.PrimaryKeyConstraint("user_id"),
  )
  op.create_index(op.f("ix_users_email"), "users", ["email"], unique=False)

  op.create_table(
    "jobs",
    sa.Column("job_id", sa.String(), nullable=False),
    sa.Column("owner_id", sa.String(), nullable=False),
    sa.Column("input_content", sa.Text(), nullable=False),
    sa.Column("content_type", sa.String(), nullable=False),
    sa.Column("regenerate", sa.Boolean(), nullable=False, server_default=sa.false()),
    sa.Column("status", sa.String(), nullable=False),
    sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
    sa.Column("result_json", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
    sa.Column("error_message", sa.Text(), nullable=True),
    sa.Column("retryable", sa.Boolean(), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
    sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
    sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.CheckConstraint("status IN ('pending', 'processing', 'completed', 'failed')", name="ck_jobs_status"),
    sa.CheckConstraint("content_type IN ('text', 'url')", name="ck_jobs_content_type"),
    sa.PrimaryKeyConstraint("job_id"),
  )
  op.create_index(op.f("ix_jobs_owner_id"), "jobs", ["owner_id"], unique=False)
  op.create_index("ix_jobs_status_created_at", "jobs", ["status", "created_at"], unique=False)

  op.create_table(
    "job_dispatches",
    sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
    sa.Column("job_id", sa.String(), nullable=False),
    sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
    sa.Column("last_error", sa.Text(), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.Column("dispatched_at", sa.DateTime(timezone=True), nullable=True),
    sa.ForeignKeyConstraint(["job_id"], ["jobs.job_id"], ondelete="CASCADE"),
    sa.PrimaryKeyConstraint("id"),
  )
  op.create_index(op.f("ix_job_dispatches_job_id"), "job_dispatches", ["job_id"], unique=False)
  op.create_index(op.f("ix_job_dispatches_dispatched_at"), "job_dispatches", ["dispatched_at"], unique=False)

  op.create_table(
    "courses",
    sa.Column("course_id", sa.String(), nullable=False),
    sa.Column("owner_id", sa.String(), nullable=False),
    sa.Column("job_id", sa.String(), nullable=True),
    sa.Column("title", sa.String(), nullable=False),
    sa.Column("original_content", sa.Text(), nullable=False),
    sa.Column("modules_json", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
    sa.Column("metadata_json", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.PrimaryKeyConstraint("course_id"),
  )
  op.create_index(op.f("ix_courses_owner_id"), "courses", ["owner_id"], unique=False)
  op.create_index(op.f("ix_courses_job_id"), "courses", ["job_id"], unique=False)

  op.create_table(
    "usage_buckets",
    sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
    sa.Column("owner_id", sa.String(), nullable=False),
    sa.Column("period_start", sa.Date(), nullable=False),
    sa.Column("used", sa.Integer(), nullable=False, server_default="0"),
    sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.PrimaryKeyConstraint("id"),
    sa.UniqueConstraint("owner_id", "period_start", name="ux_usage_buckets_owner_period"),
  )
  op.create_index(op.f("ix_usage_buckets_owner_id"), "usage_buckets", ["owner_id"], unique=False)

  op.create_table(
    "usage_logs",
    sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
    sa.Column("owner_id", sa.String(), nullable=False),
    sa.Column("action", sa.String(), nullable=False),
    sa.Column("metadata_json", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.PrimaryKeyConstraint("id"),
  )
  op.create_index(op.f("ix_usage_logs_owner_id"), "usage_logs", ["owner_id"], unique=False)

  op.create_table(
    "rate_limit_windows",
    sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
    sa.Column("owner_id", sa.String(), nullable=False),
    sa.Column("window_start", sa.DateTime(timezone=True), nullable=False),
    sa.Column("request_count", sa.Integer(), nullable=False, server_default="0"),
    sa.PrimaryKeyConstraint("id"),
    sa.UniqueConstraint("owner_id", "window_start", name="ux_rate_limit_windows_owner_window"),
  )
  op.create_index(op.f("ix_rate_limit_windows_owner_id"), "rate_limit_windows", ["owner_id"], unique=False)


def downgrade() -> None:
  """Downgrade schema."""
  op.drop_index(op.f("ix_rate_limit_windows_owner_id"), table_name="rate_limit_windows")
  op.drop_table("rate_limit_windows")
  op.drop_index(op.f("ix_usage_logs_owner_id"), table_name="usage_logs")
  op.drop_table("usage_logs")
  op.drop_index(op.f("ix_usage_buckets_owner_id"), table_name="usage_buckets")
  op.drop_table("usage_buckets")
  op.drop_index(op.f("ix_courses_job_id"), table_name="courses")
  op.drop_index(op.f("ix_courses_owner_id"), table_name="courses")
  op.drop_table("courses")
  op.drop_index(op.f("ix_job_dispatches_dispatched_at"), table_name="job_dispatches")
  op.drop_index(op.f("ix_job_dispatches_job_id"), table_name="job_dispatches")
  op.drop_table("job_dispatches")
  op.drop_index("ix_jobs_status_created_at", table_name="jobs")
  op.drop_index(op.f("ix_jobs_owner_id"), table_name="jobs")
  op.drop_table("jobs")
  op.drop_index(op.f("ix_users_email"), table_name="users")
  op.drop_table("users")
