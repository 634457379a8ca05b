"""
Shared pytest fixtures for the declaration workflow test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - org: Two departments, each with one full hierarchy branch
    - teacher, registrar, other_registrar, head_cs, head_math, director, admin:
      one Profile per role
    - auth: builds the identity header for a profile
"""

from types import SimpleNamespace

import pytest

from hours_workflow import create_app
from hours_workflow.models import db as _db
from hours_workflow.models.auth import Profile, Role
from hours_workflow.models.org import (
    CourseElement,
    CourseUnit,
    Department,
    Level,
    Semester,
    Track,
)


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Organisational hierarchy ─────────────────────────────────────────────


def _branch(dept_name, prefix):
    dept = Department(name=dept_name)
    _db.session.add(dept)
    _db.session.flush()
    track = Track(name=f"{prefix} Track", department_id=dept.id)
    _db.session.add(track)
    _db.session.flush()
    level = Level(name=f"{prefix} L3", track_id=track.id)
    _db.session.add(level)
    _db.session.flush()
    semester = Semester(name=f"{prefix} S5", level_id=level.id)
    _db.session.add(semester)
    _db.session.flush()
    unit = CourseUnit(name=f"{prefix} Unit", semester_id=semester.id)
    _db.session.add(unit)
    _db.session.flush()
    element = CourseElement(name=f"{prefix} Element", course_unit_id=unit.id)
    _db.session.add(element)
    _db.session.flush()
    return SimpleNamespace(
        department=dept, track=track, level=level, semester=semester,
        course_unit=unit, course_element=element,
    )


@pytest.fixture()
def org():
    """Two departments (cs, math), each with a single complete branch."""
    cs = _branch("Computer Science", "CS")
    math = _branch("Mathematics", "MA")
    _db.session.commit()
    return SimpleNamespace(cs=cs, math=math)


def declaration_payload(branch, **overrides):
    """A valid create body for the given hierarchy branch."""
    data = {
        "date": "2026-03-02",
        "department_id": branch.department.id,
        "track_id": branch.track.id,
        "level_id": branch.level.id,
        "semester_id": branch.semester.id,
        "course_unit_id": branch.course_unit.id,
        "course_element_id": branch.course_element.id,
        "hours_cm": 2,
        "hours_td": 1.5,
        "hours_tp": 0,
        "notes": "Week 9",
    }
    data.update(overrides)
    return data


# ── Profiles ─────────────────────────────────────────────────────────────


def _profile(first, last, email, role, department_id=None):
    p = Profile(first_name=first, last_name=last, email=email, role=role, department_id=department_id)
    _db.session.add(p)
    _db.session.commit()
    return p


@pytest.fixture()
def teacher(org):
    return _profile("Amina", "Diallo", "teacher@example.edu", Role.TEACHER, org.cs.department.id)


@pytest.fixture()
def registrar(org):
    return _profile("Jean", "Martin", "registrar@example.edu", Role.REGISTRAR)


@pytest.fixture()
def other_registrar(org):
    return _profile("Lina", "Moreau", "registrar2@example.edu", Role.REGISTRAR)


@pytest.fixture()
def head_cs(org):
    return _profile("Fatou", "Ndiaye", "head.cs@example.edu", Role.DEPARTMENT_HEAD, org.cs.department.id)


@pytest.fixture()
def head_math(org):
    return _profile("Paul", "Bernard", "head.math@example.edu", Role.DEPARTMENT_HEAD, org.math.department.id)


@pytest.fixture()
def director(org):
    return _profile("Claire", "Dubois", "director@example.edu", Role.DIRECTOR_OF_STUDIES)


@pytest.fixture()
def admin(org):
    return _profile("Admin", "Account", "admin@example.edu", Role.ADMIN)


@pytest.fixture()
def auth(app):
    """``auth(profile)`` → headers identifying the profile."""
    header = app.config["IDENTITY_HEADER"]

    def _headers(profile):
        return {header: profile.id}

    return _headers


@pytest.fixture()
def make_payload():
    """``make_payload(branch, **overrides)`` → a valid create body."""
    return declaration_payload
