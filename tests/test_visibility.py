"""
Visibility filter tests - pending queues, editable sets and role-scoped stats.

Pure tests over stand-in declarations.
"""

from types import SimpleNamespace

import pytest

from hours_workflow.models.auth import Actor, Role
from hours_workflow.models.declaration import DeclarationStatus as S
from hours_workflow.services.visibility import (
    can_delete,
    can_edit,
    owned_editable,
    pending_for_actor,
    review_scope,
    stats_for_actor,
)

TEACHER = Actor(id="t-1", role=Role.TEACHER, department_id=1)
OTHER_TEACHER = Actor(id="t-2", role=Role.TEACHER, department_id=2)
REGISTRAR = Actor(id="r-1", role=Role.REGISTRAR)
HEAD_1 = Actor(id="h-1", role=Role.DEPARTMENT_HEAD, department_id=1)
HEAD_2 = Actor(id="h-2", role=Role.DEPARTMENT_HEAD, department_id=2)
DIRECTOR = Actor(id="d-1", role=Role.DIRECTOR_OF_STUDIES)
ADMIN = Actor(id="a-1", role=Role.ADMIN)


def _d(ident, status, author="t-1", dept=1, hours=2.0):
    return SimpleNamespace(id=ident, status=status, author_id=author, department_id=dept, hours=hours)


@pytest.fixture()
def population():
    return [
        _d("p1", S.PENDING),
        _d("p2", S.PENDING, author="t-2", dept=2),
        _d("v1", S.REGISTRAR_VERIFIED),
        _d("v2", S.REGISTRAR_VERIFIED, author="t-2", dept=2),
        _d("a1", S.DEPARTMENT_APPROVED),
        _d("ok1", S.DIRECTOR_VALIDATED, hours=3.0),
        _d("ok2", S.DIRECTOR_VALIDATED, author="t-2", dept=2, hours=4.5),
        _d("x1", S.REJECTED),
        _d("hv", S.REGISTRAR_VERIFIED, author="h-1", dept=1),
    ]


def _ids(items):
    return sorted(d.id for d in items)


class TestPendingForActor:
    def test_registrar_sees_all_pending(self, population):
        assert _ids(pending_for_actor(population, REGISTRAR)) == ["p1", "p2"]

    def test_head_sees_own_department_verified(self, population):
        assert _ids(pending_for_actor(population, HEAD_1)) == ["hv", "v1"]
        assert _ids(pending_for_actor(population, HEAD_2)) == ["v2"]

    def test_director_sees_department_approved(self, population):
        assert _ids(pending_for_actor(population, DIRECTOR)) == ["a1"]

    @pytest.mark.parametrize("actor", [TEACHER, ADMIN])
    def test_non_reviewers_see_nothing(self, population, actor):
        assert pending_for_actor(population, actor) == []

    def test_queue_matches_transition_authority(self, population):
        from hours_workflow.services.workflow_engine import can_process

        for actor in (REGISTRAR, HEAD_1, HEAD_2, DIRECTOR, TEACHER, ADMIN):
            queue = {d.id for d in pending_for_actor(population, actor)}
            assert queue == {d.id for d in population if can_process(d, actor)}


class TestEditability:
    def test_author_can_edit_pending_and_rejected(self, population):
        assert _ids(owned_editable(population, TEACHER)) == ["p1", "x1"]

    @pytest.mark.parametrize("status", [S.REGISTRAR_VERIFIED, S.DEPARTMENT_APPROVED, S.DIRECTOR_VALIDATED])
    def test_in_review_or_validated_is_locked(self, status):
        assert can_edit(_d("z", status), TEACHER) is False
        assert can_delete(_d("z", status), TEACHER) is False

    def test_non_author_cannot_edit(self):
        assert can_edit(_d("z", S.PENDING), OTHER_TEACHER) is False
        assert can_edit(_d("z", S.PENDING), REGISTRAR) is False


class TestStats:
    def test_teacher_stats_cover_own_declarations(self, population):
        stats = stats_for_actor(population, TEACHER)
        assert stats.to_dict() == {"total_hours": 3.0, "pending": 3, "approved": 1, "rejected": 1}

    def test_registrar_stats_cover_everything(self, population):
        stats = stats_for_actor(population, REGISTRAR)
        assert stats.pending == 2
        assert stats.approved == 6
        assert stats.rejected == 1
        assert stats.total_hours == pytest.approx(7.5)

    def test_head_stats_cover_department(self, population):
        stats = stats_for_actor(population, HEAD_1)
        assert stats.pending == 2
        assert stats.approved == 2
        assert stats.rejected == 1
        assert stats.total_hours == pytest.approx(3.0)

    def test_head_as_submitter_counts_own_only(self, population):
        stats = stats_for_actor(population, HEAD_1, as_submitter=True)
        assert stats.to_dict() == {"total_hours": 0.0, "pending": 1, "approved": 0, "rejected": 0}

    def test_director_stats(self, population):
        stats = stats_for_actor(population, DIRECTOR)
        assert stats.pending == 1
        assert stats.approved == 2
        assert stats.rejected == 1

    def test_admin_gets_zeros(self, population):
        assert stats_for_actor(population, ADMIN).to_dict() == {
            "total_hours": 0.0, "pending": 0, "approved": 0, "rejected": 0,
        }

    def test_scope_for_head_without_department_is_empty(self, population):
        orphan = Actor(id="h-x", role=Role.DEPARTMENT_HEAD, department_id=None)
        assert review_scope(population, orphan) == []
