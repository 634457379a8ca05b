"""
Declaration domain model.

One record per dated block of teaching hours for a single course element.

Business rules (enforced by the workflow services, mirrored here as columns):
- hours == hours_cm + hours_td + hours_tp, recomputed on every write.
- 0 < hours <= DAILY_HOURS_CAP (8 by default).
- rejection_reason is present iff status == rejected.
- ``version`` is the optimistic-concurrency token. Every write goes through
  a compare-and-set on it and bumps it by one.
"""

import enum
import uuid
from datetime import datetime, timezone

from hours_workflow.models import db


class DeclarationStatus(str, enum.Enum):
    """Closed, ordered set of workflow states.

    The values are the persisted wire tokens and must never change.
    """

    PENDING = "pending"
    REGISTRAR_VERIFIED = "registrar_verified"
    DEPARTMENT_APPROVED = "department_approved"
    DIRECTOR_VALIDATED = "director_validated"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({DeclarationStatus.DIRECTOR_VALIDATED, DeclarationStatus.REJECTED})

IN_FLIGHT_STATUSES = frozenset({
    DeclarationStatus.PENDING,
    DeclarationStatus.REGISTRAR_VERIFIED,
    DeclarationStatus.DEPARTMENT_APPROVED,
})

# Only these allow the author to edit or delete.
EDITABLE_STATUSES = frozenset({DeclarationStatus.PENDING, DeclarationStatus.REJECTED})

# Stage audit columns in pipeline order: (by, at).
STAGE_AUDIT_FIELDS = (
    ("registrar_verified_by", "registrar_verified_at"),
    ("department_approved_by", "department_approved_at"),
    ("director_validated_by", "director_validated_at"),
)
REJECTION_FIELDS = ("rejected_by", "rejected_at", "rejection_reason")

# Fields the author may set on create / edit.
EDITABLE_FIELDS = (
    "department_id", "track_id", "level_id", "semester_id",
    "course_unit_id", "course_element_id",
    "date", "hours_cm", "hours_td", "hours_tp", "notes",
)


def _status_enum():
    return db.Enum(
        DeclarationStatus,
        native_enum=False,
        length=30,
        values_callable=lambda e: [m.value for m in e],
        validate_strings=True,
    )


class Declaration(db.Model):
    __tablename__ = "declarations"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    author_id = db.Column(
        db.String(36), db.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True,
    )

    # Organisational path
    department_id = db.Column(db.Integer, db.ForeignKey("departments.id"), nullable=False, index=True)
    track_id = db.Column(db.Integer, db.ForeignKey("tracks.id"), nullable=True)
    level_id = db.Column(db.Integer, db.ForeignKey("levels.id"), nullable=True)
    semester_id = db.Column(db.Integer, db.ForeignKey("semesters.id"), nullable=True)
    course_unit_id = db.Column(db.Integer, db.ForeignKey("course_units.id"), nullable=True)
    course_element_id = db.Column(db.Integer, db.ForeignKey("course_elements.id"), nullable=False)

    date = db.Column(db.Date, nullable=False)
    hours_cm = db.Column(db.Float, nullable=False, default=0)
    hours_td = db.Column(db.Float, nullable=False, default=0)
    hours_tp = db.Column(db.Float, nullable=False, default=0)
    hours = db.Column(db.Float, nullable=False)
    notes = db.Column(db.Text, default="")
    payment_status = db.Column(db.String(50), nullable=True)

    status = db.Column(_status_enum(), nullable=False, default=DeclarationStatus.PENDING, index=True)

    # Stage audit trail
    registrar_verified_by = db.Column(db.String(36), nullable=True)
    registrar_verified_at = db.Column(db.DateTime(timezone=True), nullable=True)
    department_approved_by = db.Column(db.String(36), nullable=True)
    department_approved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    director_validated_by = db.Column(db.String(36), nullable=True)
    director_validated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    rejected_by = db.Column(db.String(36), nullable=True)
    rejected_at = db.Column(db.DateTime(timezone=True), nullable=True)
    rejection_reason = db.Column(db.Text, nullable=True)

    version = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    author = db.relationship("Profile", lazy="joined")

    __table_args__ = (
        db.Index("ix_declarations_status_department", "status", "department_id"),
        db.CheckConstraint("hours_cm >= 0 AND hours_td >= 0 AND hours_tp >= 0", name="ck_declarations_hours_non_negative"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "author_id": self.author_id,
            "author_name": self.author.full_name if self.author else None,
            "department_id": self.department_id,
            "track_id": self.track_id,
            "level_id": self.level_id,
            "semester_id": self.semester_id,
            "course_unit_id": self.course_unit_id,
            "course_element_id": self.course_element_id,
            "date": self.date.isoformat() if self.date else None,
            "hours_cm": self.hours_cm,
            "hours_td": self.hours_td,
            "hours_tp": self.hours_tp,
            "hours": self.hours,
            "notes": self.notes,
            "payment_status": self.payment_status,
            "status": DeclarationStatus(self.status).value,
            "registrar_verified_by": self.registrar_verified_by,
            "registrar_verified_at": _iso(self.registrar_verified_at),
            "department_approved_by": self.department_approved_by,
            "department_approved_at": _iso(self.department_approved_at),
            "director_validated_by": self.director_validated_by,
            "director_validated_at": _iso(self.director_validated_at),
            "rejected_by": self.rejected_by,
            "rejected_at": _iso(self.rejected_at),
            "rejection_reason": self.rejection_reason,
            "version": self.version,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    def __repr__(self):
        return f"<Declaration {self.id} {DeclarationStatus(self.status).value} v{self.version}>"


def _iso(value):
    return value.isoformat() if value else None
