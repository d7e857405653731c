"""Create mentor program tables

Revision ID: a7c3e9d1b2f4
Revises:
Create Date: 2026-10-19

Creates users and preferences, mentor and student entities, and the mentor
application tables. The partial unique index
ux_mentor_applications_active_email allows at most one pending or approved
application per email.
"""

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "a7c3e9d1b2f4"
down_revision = None
branch_labels = None
depends_on = None

user_role = sa.Enum("student", "mentor", "both", "unset", name="user_role")
preference_scope = sa.Enum("mentor", "student", "shared", name="preference_scope")
verification_status = sa.Enum("pending", "verified", name="mentor_verification_status")
content_kind = sa.Enum("video", "advice_session", "pass", "comment", name="mentor_content_kind")
application_source = sa.Enum("form", "api", "import", name="application_source")
application_status = sa.Enum("pending", "approved", "rejected", name="mentor_application_status")
note_kind = sa.Enum("reviewer", "system", "provisioning_error", name="application_note_kind")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("full_name", sa.String(200), nullable=True),
        sa.Column("role", user_role, nullable=False, server_default="unset"),
        sa.Column(
            "role_selection_completed", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column("interests", sa.JSON(), nullable=True),
        sa.Column("bio", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "user_preferences",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "user_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("scope", preference_scope, nullable=False),
        sa.Column("key", sa.String(100), nullable=False),
        sa.Column("value", sa.Text(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "key", name="uq_user_preferences_user_key"),
    )
    op.create_index("ix_user_preferences_user_id", "user_preferences", ["user_id"])

    op.create_table(
        "mentor_profiles",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "user_id",
            sa.Uuid(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("application_id", sa.Uuid(), nullable=True),
        sa.Column("verification_status", verification_status, nullable=False),
        sa.Column("institution", sa.String(200), nullable=True),
        sa.Column("graduation_year", sa.Integer(), nullable=True),
        sa.Column("topics", sa.JSON(), nullable=False),
        sa.Column("session_formats", sa.JSON(), nullable=False),
        sa.Column("hours_per_week", sa.String(200), nullable=True),
        sa.Column("languages", sa.JSON(), nullable=False),
        sa.Column("bio", sa.Text(), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "mentor_expertise",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "mentor_profile_id",
            sa.Uuid(),
            sa.ForeignKey("mentor_profiles.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("topic", sa.String(100), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint(
            "mentor_profile_id", "topic", name="uq_mentor_expertise_profile_topic"
        ),
    )
    op.create_index(
        "ix_mentor_expertise_mentor_profile_id", "mentor_expertise", ["mentor_profile_id"]
    )

    op.create_table(
        "mentor_content",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "mentor_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("kind", content_kind, nullable=False),
        sa.Column("title", sa.String(200), nullable=True),
        sa.Column("body", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_mentor_content_mentor_id", "mentor_content", ["mentor_id"])

    op.create_table(
        "student_saved_items",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "student_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("item_type", sa.String(50), nullable=False),
        sa.Column("item_id", sa.String(100), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("student_id", "item_type", "item_id", name="uq_student_saved_items"),
    )
    op.create_index("ix_student_saved_items_student_id", "student_saved_items", ["student_id"])

    op.create_table(
        "student_questions",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "student_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("body", sa.Text(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_student_questions_student_id", "student_questions", ["student_id"])

    op.create_table(
        "mentor_applications",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("full_name", sa.String(200), nullable=False),
        sa.Column("institution", sa.String(200), nullable=False),
        sa.Column("graduation_year", sa.Integer(), nullable=True),
        sa.Column("age_confirmed", sa.Boolean(), nullable=False),
        sa.Column("agreement_accepted", sa.Boolean(), nullable=False),
        sa.Column("perspective_confirmed", sa.Boolean(), nullable=False),
        sa.Column("topics", sa.JSON(), nullable=False),
        sa.Column("session_formats", sa.JSON(), nullable=False),
        sa.Column("hours_per_week", sa.String(200), nullable=True),
        sa.Column("languages", sa.JSON(), nullable=False),
        sa.Column("prior_experience", sa.Text(), nullable=True),
        sa.Column("motivation", sa.Text(), nullable=True),
        sa.Column("intro_video_url", sa.String(500), nullable=True),
        sa.Column("social_links", sa.Text(), nullable=True),
        sa.Column("referral_source", sa.String(200), nullable=True),
        sa.Column("source", application_source, nullable=False),
        sa.Column("status", application_status, nullable=False, server_default="pending"),
        sa.Column(
            "submitted_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reviewed_by", sa.String(255), nullable=True),
        sa.Column("provisioned_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_mentor_applications_email", "mentor_applications", ["email"])
    op.create_index("ix_mentor_applications_status", "mentor_applications", ["status"])
    op.create_index(
        "ux_mentor_applications_active_email",
        "mentor_applications",
        ["email"],
        unique=True,
        postgresql_where=sa.text("status <> 'rejected'"),
    )

    op.create_table(
        "mentor_application_notes",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "application_id",
            sa.Uuid(),
            sa.ForeignKey("mentor_applications.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("kind", note_kind, nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("author", sa.String(255), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
    )
    op.create_index(
        "ix_mentor_application_notes_application_id",
        "mentor_application_notes",
        ["application_id"],
    )


def downgrade() -> None:
    op.drop_table("mentor_application_notes")
    op.drop_index("ux_mentor_applications_active_email", table_name="mentor_applications")
    op.drop_table("mentor_applications")
    op.drop_table("student_questions")
    op.drop_table("student_saved_items")
    op.drop_table("mentor_content")
    op.drop_table("mentor_expertise")
    op.drop_table("mentor_profiles")
    op.drop_table("user_preferences")
    op.drop_table("users")

    bind = op.get_bind()
    for enum_type in (
        note_kind,
        application_status,
        application_source,
        content_kind,
        verification_status,
        preference_scope,
        user_role,
    ):
        enum_type.drop(bind, checkfirst=True)
