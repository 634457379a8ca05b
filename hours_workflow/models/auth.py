"""
Identity models - roles, stored profiles and the in-memory Actor value.

A profile has exactly one role. Department heads carry exactly one
department affiliation; for every other role the department is optional
(teachers keep theirs for display only).
"""

import enum
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

from hours_workflow.models import db


class Role(str, enum.Enum):
    """Closed set of roles; values are the stable wire tokens."""

    TEACHER = "teacher"
    REGISTRAR = "registrar"
    DEPARTMENT_HEAD = "department_head"
    DIRECTOR_OF_STUDIES = "director_of_studies"
    ADMIN = "admin"


@dataclass(frozen=True)
class Actor:
    """The identity on whose behalf a workflow call runs.

    Passed explicitly into every engine and filter call.
    """

    id: str
    role: Role
    department_id: int | None = None
    name: str = ""
    email: str = ""


class Profile(db.Model):
    __tablename__ = "profiles"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(200), nullable=False, unique=True)
    role = db.Column(
        db.Enum(Role, native_enum=False, length=30, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=Role.TEACHER,
    )
    department_id = db.Column(
        db.Integer, db.ForeignKey("departments.id", ondelete="SET NULL"), nullable=True, index=True,
    )
    grade = db.Column(db.String(100), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.Index("ix_profiles_role_department", "role", "department_id"),
    )

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()

    def to_actor(self) -> Actor:
        return Actor(
            id=self.id,
            role=Role(self.role),
            department_id=self.department_id,
            name=self.full_name,
            email=self.email,
        )

    def to_dict(self):
        return {
            "id": self.id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "full_name": self.full_name,
            "email": self.email,
            "role": Role(self.role).value,
            "department_id": self.department_id,
            "grade": self.grade,
        }

    def __repr__(self):
        return f"<Profile {self.email} ({Role(self.role).value})>"
