"""
Organisational hierarchy reference models.

    Department → Track → Level → Semester → CourseUnit → CourseElement

Each record has a name and a single parent reference. Levels may exist
without a track (shared first-year levels), every other link is mandatory.
The workflow only reads these tables; they are maintained by administrative
tooling.
"""

from datetime import datetime, timezone

from hours_workflow.models import db


def _utcnow():
    return datetime.now(timezone.utc)


class _OrgNode:
    """Common columns and serialisation for hierarchy records."""

    PARENT_FIELD: str | None = None

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    @property
    def parent_id(self):
        return getattr(self, self.PARENT_FIELD) if self.PARENT_FIELD else None

    def to_dict(self):
        d = {"id": self.id, "name": self.name}
        if self.PARENT_FIELD:
            d[self.PARENT_FIELD] = self.parent_id
        return d

    def __repr__(self):
        return f"<{type(self).__name__} {self.id}: {self.name}>"


class Department(_OrgNode, db.Model):
    __tablename__ = "departments"


class Track(_OrgNode, db.Model):
    __tablename__ = "tracks"
    PARENT_FIELD = "department_id"

    department_id = db.Column(
        db.Integer, db.ForeignKey("departments.id", ondelete="CASCADE"), nullable=False, index=True,
    )


class Level(_OrgNode, db.Model):
    __tablename__ = "levels"
    PARENT_FIELD = "track_id"

    track_id = db.Column(
        db.Integer, db.ForeignKey("tracks.id", ondelete="SET NULL"), nullable=True, index=True,
    )


class Semester(_OrgNode, db.Model):
    __tablename__ = "semesters"
    PARENT_FIELD = "level_id"

    level_id = db.Column(
        db.Integer, db.ForeignKey("levels.id", ondelete="CASCADE"), nullable=False, index=True,
    )


class CourseUnit(_OrgNode, db.Model):
    __tablename__ = "course_units"
    PARENT_FIELD = "semester_id"

    semester_id = db.Column(
        db.Integer, db.ForeignKey("semesters.id", ondelete="CASCADE"), nullable=False, index=True,
    )


class CourseElement(_OrgNode, db.Model):
    __tablename__ = "course_elements"
    PARENT_FIELD = "course_unit_id"

    course_unit_id = db.Column(
        db.Integer, db.ForeignKey("course_units.id", ondelete="CASCADE"), nullable=False, index=True,
    )


# Path order, top to bottom. Keys are the declaration's foreign-key columns.
ORG_PATH = (
    ("department_id", Department),
    ("track_id", Track),
    ("level_id", Level),
    ("semester_id", Semester),
    ("course_unit_id", CourseUnit),
    ("course_element_id", CourseElement),
)

ORG_MODELS = {
    "departments": Department,
    "tracks": Track,
    "levels": Level,
    "semesters": Semester,
    "course_units": CourseUnit,
    "course_elements": CourseElement,
}
