"""initial_declaration_workflow

Creates the declaration workflow schema:
  - departments → tracks → levels → semesters → course_units → course_elements
  - profiles          - one role per identity, department for heads
  - declarations      - teaching-hour declarations with stage audit + version
  - notifications     - in-app inbox
  - email_logs        - outbound email audit

Tables created conditionally (IF NOT EXISTS semantics) to support idempotent
execution against databases that already received these tables via
db.create_all() in a development environment.

Revision ID: 5d1c0a7e9b42
Revises:
Create Date: 2026-10-19 09:12:40.118204
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = '5d1c0a7e9b42'
down_revision = None
branch_labels = None
depends_on = None

_STATUSES = ("pending", "registrar_verified", "department_approved", "director_validated", "rejected")
_ROLES = ("teacher", "registrar", "department_head", "director_of_studies", "admin")


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    ]


def _org_table(name, parent_table=None, parent_col=None, parent_nullable=False, ondelete="CASCADE"):
    cols = [
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
    ]
    constraints = [sa.PrimaryKeyConstraint("id")]
    if parent_table:
        cols.append(sa.Column(parent_col, sa.Integer(), nullable=parent_nullable))
        constraints.append(sa.ForeignKeyConstraint([parent_col], [f"{parent_table}.id"], ondelete=ondelete))
    op.create_table(name, *cols, *_timestamps(), *constraints)
    if parent_col:
        op.create_index(f"ix_{name}_{parent_col}", name, [parent_col])


def upgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing = set(inspector.get_table_names())

    # ── Organisational hierarchy ──────────────────────────────────────────
    if "departments" not in existing:
        _org_table("departments")
    if "tracks" not in existing:
        _org_table("tracks", "departments", "department_id")
    if "levels" not in existing:
        _org_table("levels", "tracks", "track_id", parent_nullable=True, ondelete="SET NULL")
    if "semesters" not in existing:
        _org_table("semesters", "levels", "level_id")
    if "course_units" not in existing:
        _org_table("course_units", "semesters", "semester_id")
    if "course_elements" not in existing:
        _org_table("course_elements", "course_units", "course_unit_id")

    # ── Profiles ──────────────────────────────────────────────────────────
    if "profiles" not in existing:
        op.create_table(
            "profiles",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("first_name", sa.String(length=100), nullable=False),
            sa.Column("last_name", sa.String(length=100), nullable=False),
            sa.Column("email", sa.String(length=200), nullable=False),
            sa.Column("role", sa.Enum(*_ROLES, name="role", native_enum=False, length=30), nullable=False),
            sa.Column("department_id", sa.Integer(), nullable=True),
            sa.Column("grade", sa.String(length=100), nullable=True),
            *_timestamps(),
            sa.ForeignKeyConstraint(["department_id"], ["departments.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("email"),
        )
        op.create_index("ix_profiles_department_id", "profiles", ["department_id"])
        op.create_index("ix_profiles_role_department", "profiles", ["role", "department_id"])

    # ── Declarations ──────────────────────────────────────────────────────
    if "declarations" not in existing:
        op.create_table(
            "declarations",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("author_id", sa.String(length=36), nullable=False),
            sa.Column("department_id", sa.Integer(), nullable=False),
            sa.Column("track_id", sa.Integer(), nullable=True),
            sa.Column("level_id", sa.Integer(), nullable=True),
            sa.Column("semester_id", sa.Integer(), nullable=True),
            sa.Column("course_unit_id", sa.Integer(), nullable=True),
            sa.Column("course_element_id", sa.Integer(), nullable=False),
            sa.Column("date", sa.Date(), nullable=False),
            sa.Column("hours_cm", sa.Float(), nullable=False),
            sa.Column("hours_td", sa.Float(), nullable=False),
            sa.Column("hours_tp", sa.Float(), nullable=False),
            sa.Column("hours", sa.Float(), nullable=False),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("payment_status", sa.String(length=50), nullable=True),
            sa.Column("status", sa.Enum(*_STATUSES, name="declarationstatus", native_enum=False, length=30),
                      nullable=False, server_default="pending"),
            sa.Column("registrar_verified_by", sa.String(length=36), nullable=True),
            sa.Column("registrar_verified_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("department_approved_by", sa.String(length=36), nullable=True),
            sa.Column("department_approved_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("director_validated_by", sa.String(length=36), nullable=True),
            sa.Column("director_validated_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("rejected_by", sa.String(length=36), nullable=True),
            sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("rejection_reason", sa.Text(), nullable=True),
            sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
            *_timestamps(),
            sa.CheckConstraint("hours_cm >= 0 AND hours_td >= 0 AND hours_tp >= 0",
                               name="ck_declarations_hours_non_negative"),
            sa.ForeignKeyConstraint(["author_id"], ["profiles.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["department_id"], ["departments.id"]),
            sa.ForeignKeyConstraint(["track_id"], ["tracks.id"]),
            sa.ForeignKeyConstraint(["level_id"], ["levels.id"]),
            sa.ForeignKeyConstraint(["semester_id"], ["semesters.id"]),
            sa.ForeignKeyConstraint(["course_unit_id"], ["course_units.id"]),
            sa.ForeignKeyConstraint(["course_element_id"], ["course_elements.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_declarations_author_id", "declarations", ["author_id"])
        op.create_index("ix_declarations_department_id", "declarations", ["department_id"])
        op.create_index("ix_declarations_status", "declarations", ["status"])
        op.create_index("ix_declarations_status_department", "declarations", ["status", "department_id"])

    # ── Notifications ─────────────────────────────────────────────────────
    if "notifications" not in existing:
        op.create_table(
            "notifications",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("recipient_id", sa.String(length=36), nullable=True),
            sa.Column("recipient_email", sa.String(length=200), nullable=False),
            sa.Column("title", sa.String(length=300), nullable=False),
            sa.Column("message", sa.Text(), nullable=True),
            sa.Column("type", sa.String(length=20), nullable=True),
            sa.Column("template_id", sa.String(length=60), nullable=True),
            sa.Column("declaration_id", sa.String(length=36), nullable=True),
            sa.Column("is_read", sa.Boolean(), nullable=True),
            sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_notifications_recipient_id", "notifications", ["recipient_id"])
        op.create_index("ix_notifications_recipient_email", "notifications", ["recipient_email"])
        op.create_index("ix_notifications_declaration_id", "notifications", ["declaration_id"])

    # ── Email log ─────────────────────────────────────────────────────────
    if "email_logs" not in existing:
        op.create_table(
            "email_logs",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("recipient_email", sa.String(length=255), nullable=False),
            sa.Column("recipient_name", sa.String(length=150), nullable=True),
            sa.Column("subject", sa.String(length=500), nullable=False),
            sa.Column("template_name", sa.String(length=100), nullable=True, comment="Template used"),
            sa.Column("status", sa.String(length=20), nullable=True, comment="queued, sent, failed"),
            sa.Column("error_message", sa.Text(), nullable=True),
            sa.Column("notification_id", sa.Integer(), nullable=True, comment="Related in-app notification"),
            sa.Column("declaration_id", sa.String(length=36), nullable=True),
            sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_email_logs_recipient_email", "email_logs", ["recipient_email"])
        op.create_index("ix_email_logs_declaration_id", "email_logs", ["declaration_id"])


def downgrade():
    for table in (
        "email_logs",
        "notifications",
        "declarations",
        "profiles",
        "course_elements",
        "course_units",
        "semesters",
        "levels",
        "tracks",
        "departments",
    ):
        op.drop_table(table)
