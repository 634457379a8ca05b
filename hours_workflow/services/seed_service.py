"""
Demo data loader for local development (``flask seed-demo``).

Creates a small organisational hierarchy and one profile per role. Safe to
run twice: existing departments or e-mail addresses are left untouched.
"""

from __future__ import annotations

import logging

from hours_workflow.models import db
from hours_workflow.models.auth import Profile, Role
from hours_workflow.models.org import (
    CourseElement,
    CourseUnit,
    Department,
    Level,
    Semester,
    Track,
)

logger = logging.getLogger(__name__)

DEMO_HIERARCHY = {
    "Computer Science": {
        "Software Engineering": {
            "Bachelor 3": {
                "Semester 5": {
                    "Databases": ["Relational Modelling", "SQL Lab"],
                    "Networks": ["TCP/IP Fundamentals"],
                },
            },
        },
    },
    "Mathematics": {
        "Applied Mathematics": {
            "Bachelor 2": {
                "Semester 3": {
                    "Analysis": ["Real Analysis", "Series and Sequences"],
                },
            },
        },
    },
}

DEMO_PROFILES = (
    ("Amina", "Diallo", "teacher@example.edu", Role.TEACHER, "Computer Science", "Maitre-assistant"),
    ("Jean", "Martin", "registrar@example.edu", Role.REGISTRAR, None, None),
    ("Fatou", "Ndiaye", "head.cs@example.edu", Role.DEPARTMENT_HEAD, "Computer Science",
     "Maitre de Conférences Titulaire"),
    ("Paul", "Bernard", "head.math@example.edu", Role.DEPARTMENT_HEAD, "Mathematics",
     "Professeur Titulaire des Universités"),
    ("Claire", "Dubois", "director@example.edu", Role.DIRECTOR_OF_STUDIES, None, None),
    ("Admin", "Account", "admin@example.edu", Role.ADMIN, None, None),
)


def _seed_hierarchy() -> int:
    created = 0
    for dept_name, tracks in DEMO_HIERARCHY.items():
        if Department.query.filter_by(name=dept_name).first():
            continue
        dept = Department(name=dept_name)
        db.session.add(dept)
        db.session.flush()
        created += 1
        for track_name, levels in tracks.items():
            track = Track(name=track_name, department_id=dept.id)
            db.session.add(track)
            db.session.flush()
            for level_name, semesters in levels.items():
                level = Level(name=level_name, track_id=track.id)
                db.session.add(level)
                db.session.flush()
                for sem_name, units in semesters.items():
                    sem = Semester(name=sem_name, level_id=level.id)
                    db.session.add(sem)
                    db.session.flush()
                    for unit_name, elements in units.items():
                        unit = CourseUnit(name=unit_name, semester_id=sem.id)
                        db.session.add(unit)
                        db.session.flush()
                        for element_name in elements:
                            db.session.add(CourseElement(name=element_name, course_unit_id=unit.id))
    return created


def _seed_profiles() -> int:
    created = 0
    for first, last, email, role, dept_name, grade in DEMO_PROFILES:
        if Profile.query.filter_by(email=email).first():
            continue
        dept = Department.query.filter_by(name=dept_name).first() if dept_name else None
        db.session.add(Profile(
            first_name=first,
            last_name=last,
            email=email,
            role=role,
            department_id=dept.id if dept else None,
            grade=grade,
        ))
        created += 1
    return created


def seed_demo() -> dict:
    """Load the demo data. Caller commits."""
    departments = _seed_hierarchy()
    db.session.flush()
    profiles = _seed_profiles()
    db.session.flush()
    logger.info("Demo data seeded: %d departments, %d profiles", departments, profiles)
    return {"departments": departments, "profiles": profiles}
