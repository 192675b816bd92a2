"""
Initial QuizForge schema.

Creates users, organizations (members, invitations), plans and
subscriptions, templates, quiz batches, quizzes, scheduled posts,
auto-schedule slots, Facebook settings, usage records, word usage, the
content library and its collections, generation logs and admin alerts.

Revision ID: 001
Revises:
Create Date: 2026-10-18
"""

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def _id() -> sa.Column:
    return sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True, nullable=False)


def _fk(name: str, target: str, ondelete: str = "CASCADE", nullable: bool = False) -> sa.Column:
    return sa.Column(
        name,
        postgresql.UUID(as_uuid=False),
        sa.ForeignKey(target, ondelete=ondelete),
        nullable=nullable,
    )


def _timestamps() -> list:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    # ------------------------------------------------------------------
    # Users and organizations
    # ------------------------------------------------------------------
    op.create_table(
        "users",
        _id(),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("role", sa.String(50), nullable=False, server_default="user"),
        sa.Column("status", sa.String(50), nullable=False, server_default="active"),
        sa.Column("language", sa.String(10), nullable=False, server_default="en"),
        sa.Column("last_login", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_email_status", "users", ["email", "status"])
    op.create_index("ix_users_role", "users", ["role"])

    op.create_table(
        "organizations",
        _id(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("slug", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("website", sa.String(500), nullable=True),
        sa.Column("logo_url", sa.String(500), nullable=True),
        _fk("owner_id", "users.id"),
        *_timestamps(),
    )
    op.create_index("ix_organizations_slug", "organizations", ["slug"], unique=True)
    op.create_index("ix_organizations_owner_id", "organizations", ["owner_id"])

    op.create_table(
        "organization_members",
        _id(),
        _fk("organization_id", "organizations.id"),
        _fk("user_id", "users.id"),
        sa.Column("role", sa.String(50), nullable=False, server_default="MEMBER"),
        sa.Column("status", sa.String(50), nullable=False, server_default="ACCEPTED"),
        *_timestamps(),
    )
    op.create_index(
        "ix_organization_members_organization_id", "organization_members", ["organization_id"]
    )
    op.create_index("ix_organization_members_user_id", "organization_members", ["user_id"])
    op.create_index(
        "ix_organization_members_org_user",
        "organization_members",
        ["organization_id", "user_id"],
        unique=True,
    )

    op.create_table(
        "organization_invitations",
        _id(),
        _fk("organization_id", "organizations.id"),
        _fk("invited_by", "users.id", ondelete="SET NULL", nullable=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("role", sa.String(50), nullable=False, server_default="MEMBER"),
        sa.Column("token", sa.String(255), nullable=False),
        sa.Column("status", sa.String(50), nullable=False, server_default="PENDING"),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("accepted_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index(
        "ix_organization_invitations_organization_id",
        "organization_invitations",
        ["organization_id"],
    )
    op.create_index("ix_organization_invitations_email", "organization_invitations", ["email"])
    op.create_index(
        "ix_organization_invitations_token", "organization_invitations", ["token"], unique=True
    )
    op.create_index(
        "ix_organization_invitations_status",
        "organization_invitations",
        ["organization_id", "status"],
    )

    # ------------------------------------------------------------------
    # Plans and subscriptions
    # ------------------------------------------------------------------
    op.create_table(
        "plans",
        _id(),
        sa.Column("name", sa.String(100), nullable=False, unique=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("price_monthly", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("limits", sa.JSON(), nullable=False),
        sa.Column("max_members", sa.Integer(), nullable=False, server_default="5"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    op.create_table(
        "subscriptions",
        _id(),
        sa.Column(
            "organization_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("organizations.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        _fk("plan_id", "plans.id", ondelete="RESTRICT"),
        sa.Column("status", sa.String(50), nullable=False, server_default="ACTIVE"),
        sa.Column("current_period_start", sa.DateTime(timezone=True), nullable=False),
        sa.Column("current_period_end", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "cancel_at_period_end", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column("max_members", sa.Integer(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_subscriptions_plan_id", "subscriptions", ["plan_id"])

    # ------------------------------------------------------------------
    # Templates, batches and quizzes
    # ------------------------------------------------------------------
    op.create_table(
        "templates",
        _id(),
        _fk("user_id", "users.id"),
        _fk("organization_id", "organizations.id", nullable=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("html", sa.Text(), nullable=False),
        sa.Column("css", sa.Text(), nullable=True),
        sa.Column("quiz_type", sa.String(50), nullable=False),
        sa.Column("variables", sa.JSON(), nullable=False),
        sa.Column("preview_image_url", sa.String(2048), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_templates_user_id", "templates", ["user_id"])
    op.create_index("ix_templates_organization_id", "templates", ["organization_id"])
    op.create_index("ix_templates_user_created", "templates", ["user_id", "created_at"])

    op.create_table(
        "quiz_batches",
        _id(),
        _fk("user_id", "users.id"),
        sa.Column("status", sa.String(50), nullable=False, server_default="PROCESSING"),
        sa.Column("current_stage", sa.String(50), nullable=False, server_default="preparing"),
        sa.Column("template_ids", sa.JSON(), nullable=False),
        sa.Column("current_template_id", postgresql.UUID(as_uuid=False), nullable=True),
        sa.Column("total_count", sa.Integer(), nullable=False),
        sa.Column("completed_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("images_completed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("theme", sa.String(255), nullable=True),
        sa.Column("difficulty", sa.String(20), nullable=False, server_default="medium"),
        sa.Column("language", sa.String(10), nullable=False, server_default="en"),
        sa.Column("variety", sa.Integer(), nullable=False, server_default="50"),
        sa.Column("time_slot_distribution", sa.JSON(), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_quiz_batches_user_id", "quiz_batches", ["user_id"])
    op.create_index("ix_quiz_batches_user_status", "quiz_batches", ["user_id", "status"])

    op.create_table(
        "quizzes",
        _id(),
        _fk("user_id", "users.id"),
        _fk("organization_id", "organizations.id", nullable=True),
        _fk("template_id", "templates.id"),
        _fk("batch_id", "quiz_batches.id", ondelete="SET NULL", nullable=True),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("quiz_type", sa.String(50), nullable=False),
        sa.Column("variables", sa.JSON(), nullable=False),
        sa.Column("answer", sa.String(500), nullable=False),
        sa.Column("solution", sa.Text(), nullable=True),
        sa.Column("language", sa.String(10), nullable=False, server_default="en"),
        sa.Column("image_url", sa.String(2048), nullable=True),
        sa.Column("status", sa.String(50), nullable=False, server_default="DRAFT"),
        *_timestamps(),
    )
    op.create_index("ix_quizzes_user_id", "quizzes", ["user_id"])
    op.create_index("ix_quizzes_organization_id", "quizzes", ["organization_id"])
    op.create_index("ix_quizzes_template_id", "quizzes", ["template_id"])
    op.create_index("ix_quizzes_batch_id", "quizzes", ["batch_id"])
    op.create_index("ix_quizzes_user_status", "quizzes", ["user_id", "status"])
    op.create_index("ix_quizzes_user_created", "quizzes", ["user_id", "created_at"])

    # ------------------------------------------------------------------
    # Scheduling and Facebook
    # ------------------------------------------------------------------
    op.create_table(
        "scheduled_posts",
        _id(),
        _fk("user_id", "users.id"),
        _fk("quiz_id", "quizzes.id"),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(50), nullable=False, server_default="PENDING"),
        sa.Column("caption", sa.Text(), nullable=True),
        sa.Column("fb_post_id", sa.String(255), nullable=True),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("retry_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_retry_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_scheduled_posts_user_id", "scheduled_posts", ["user_id"])
    op.create_index("ix_scheduled_posts_quiz_id", "scheduled_posts", ["quiz_id"])
    op.create_index(
        "ix_scheduled_posts_quiz_time",
        "scheduled_posts",
        ["quiz_id", "scheduled_at"],
        unique=True,
    )
    op.create_index(
        "ix_scheduled_posts_status_time", "scheduled_posts", ["status", "scheduled_at"]
    )
    op.create_index("ix_scheduled_posts_user_status", "scheduled_posts", ["user_id", "status"])

    op.create_table(
        "auto_schedule_slots",
        _id(),
        _fk("user_id", "users.id"),
        sa.Column("day_of_week", sa.Integer(), nullable=False),
        sa.Column("time_of_day", sa.String(5), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("ix_auto_schedule_slots_user_id", "auto_schedule_slots", ["user_id"])
    op.create_index(
        "ix_auto_schedule_slots_user_day_time",
        "auto_schedule_slots",
        ["user_id", "day_of_week", "time_of_day"],
        unique=True,
    )

    op.create_table(
        "facebook_settings",
        _id(),
        _fk("user_id", "users.id"),
        sa.Column("page_id", sa.String(255), nullable=False),
        sa.Column("page_name", sa.String(255), nullable=True),
        sa.Column("page_access_token_encrypted", sa.Text(), nullable=False),
        sa.Column("is_connected", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("ix_facebook_settings_user_id", "facebook_settings", ["user_id"])

    # ------------------------------------------------------------------
    # Usage
    # ------------------------------------------------------------------
    op.create_table(
        "usage_records",
        _id(),
        _fk("user_id", "users.id"),
        sa.Column("resource_type", sa.String(50), nullable=False),
        sa.Column("period", sa.String(10), nullable=False),
        sa.Column("count", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
    )
    op.create_index("ix_usage_records_user_id", "usage_records", ["user_id"])
    op.create_index(
        "ix_usage_records_user_resource_period",
        "usage_records",
        ["user_id", "resource_type", "period"],
        unique=True,
    )

    op.create_table(
        "word_usages",
        _id(),
        _fk("user_id", "users.id"),
        sa.Column("word", sa.String(100), nullable=False),
        sa.Column("language", sa.String(10), nullable=False, server_default="fr"),
        sa.Column("is_used", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_word_usages_user_id", "word_usages", ["user_id"])
    op.create_index(
        "ix_word_usages_user_word_lang",
        "word_usages",
        ["user_id", "word", "language"],
        unique=True,
    )

    # ------------------------------------------------------------------
    # Content library
    # ------------------------------------------------------------------
    op.create_table(
        "content_usages",
        _id(),
        _fk("user_id", "users.id"),
        sa.Column("content_type", sa.String(20), nullable=False),
        sa.Column("value", sa.Text(), nullable=False),
        sa.Column("format", sa.String(100), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=False),
        sa.Column("is_used", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_content_usages_user_id", "content_usages", ["user_id"])
    op.create_index(
        "ix_content_usages_user_type_value_format",
        "content_usages",
        ["user_id", "content_type", "value", "format"],
        unique=True,
    )
    op.create_index("ix_content_usages_user_used", "content_usages", ["user_id", "is_used"])

    op.create_table(
        "collections",
        _id(),
        _fk("user_id", "users.id"),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_collections_user_id", "collections", ["user_id"])

    op.create_table(
        "collection_items",
        _id(),
        _fk("collection_id", "collections.id"),
        _fk("content_id", "content_usages.id"),
        *_timestamps(),
    )
    op.create_index("ix_collection_items_collection_id", "collection_items", ["collection_id"])
    op.create_index(
        "ix_collection_items_collection_content",
        "collection_items",
        ["collection_id", "content_id"],
        unique=True,
    )

    # ------------------------------------------------------------------
    # Generation tracking and admin alerts
    # ------------------------------------------------------------------
    op.create_table(
        "generation_logs",
        _id(),
        _fk("user_id", "users.id"),
        sa.Column("resource_type", sa.String(50), nullable=False),
        sa.Column("resource_id", sa.String(64), nullable=True),
        sa.Column("status", sa.String(50), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("ai_model", sa.String(100), nullable=True),
        sa.Column("duration_ms", sa.Integer(), nullable=True),
        sa.Column("input_metadata", sa.JSON(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_generation_logs_user_id", "generation_logs", ["user_id"])
    op.create_index("ix_generation_logs_resource_type", "generation_logs", ["resource_type"])
    op.create_index("ix_generation_logs_status", "generation_logs", ["status"])
    op.create_index(
        "ix_generation_logs_user_resource", "generation_logs", ["user_id", "resource_type"]
    )
    op.create_index("ix_generation_logs_created", "generation_logs", ["created_at"])
    op.create_index(
        "ix_generation_logs_status_type", "generation_logs", ["status", "resource_type"]
    )

    op.create_table(
        "admin_alerts",
        _id(),
        sa.Column("alert_type", sa.String(50), nullable=False),
        sa.Column("severity", sa.String(20), nullable=False, server_default="warning"),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("resource_type", sa.String(50), nullable=True),
        sa.Column("resource_id", sa.String(64), nullable=True),
        _fk("user_id", "users.id", ondelete="SET NULL", nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_resolved", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
    )
    op.create_index("ix_admin_alerts_alert_type", "admin_alerts", ["alert_type"])
    op.create_index("ix_admin_alerts_unread", "admin_alerts", ["is_read", "created_at"])
    op.create_index(
        "ix_admin_alerts_type_severity", "admin_alerts", ["alert_type", "severity"]
    )


def downgrade() -> None:
    for table in (
        "admin_alerts",
        "generation_logs",
        "collection_items",
        "collections",
        "content_usages",
        "word_usages",
        "usage_records",
        "facebook_settings",
        "auto_schedule_slots",
        "scheduled_posts",
        "quizzes",
        "quiz_batches",
        "templates",
        "subscriptions",
        "plans",
        "organization_invitations",
        "organization_members",
        "organizations",
        "users",
    ):
        op.drop_table(table)
