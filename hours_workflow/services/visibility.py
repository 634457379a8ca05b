"""
Visibility Filter - which declarations an actor sees, may touch, and counts.

Pure functions over ``(declarations, actor)``; no hidden state. The
populations match the transition authority in workflow_engine: a
reviewer's queue and stats cover exactly what that reviewer can act on.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Iterable

from hours_workflow.models.auth import Actor, Role
from hours_workflow.models.declaration import (
    DeclarationStatus,
    EDITABLE_STATUSES,
    IN_FLIGHT_STATUSES,
)
from hours_workflow.services.workflow_engine import can_process


@dataclass
class DeclarationStats:
    total_hours: float = 0.0
    pending: int = 0
    approved: int = 0
    rejected: int = 0

    def to_dict(self):
        return asdict(self)


# Per reviewing role: which statuses count as "pending my action" and which
# as "approved from my point of view".
_REVIEWER_BUCKETS = {
    Role.REGISTRAR: (
        {DeclarationStatus.PENDING},
        {
            DeclarationStatus.REGISTRAR_VERIFIED,
            DeclarationStatus.DEPARTMENT_APPROVED,
            DeclarationStatus.DIRECTOR_VALIDATED,
        },
    ),
    Role.DEPARTMENT_HEAD: (
        {DeclarationStatus.REGISTRAR_VERIFIED},
        {DeclarationStatus.DEPARTMENT_APPROVED, DeclarationStatus.DIRECTOR_VALIDATED},
    ),
    Role.DIRECTOR_OF_STUDIES: (
        {DeclarationStatus.DEPARTMENT_APPROVED},
        {DeclarationStatus.DIRECTOR_VALIDATED},
    ),
}

_SUBMITTER_BUCKETS = (IN_FLIGHT_STATUSES, {DeclarationStatus.DIRECTOR_VALIDATED})


def pending_for_actor(declarations: Iterable, actor: Actor) -> list:
    """Declarations waiting for this actor's decision."""
    return [d for d in declarations if can_process(d, actor)]


def is_author(declaration, actor: Actor) -> bool:
    return declaration.author_id == actor.id


def can_edit(declaration, actor: Actor) -> bool:
    return is_author(declaration, actor) and DeclarationStatus(declaration.status) in EDITABLE_STATUSES


# Delete and edit share the same rule; kept separate for call-site clarity.
can_delete = can_edit


def owned_editable(declarations: Iterable, actor: Actor) -> list:
    """Declarations the actor authored and may still edit or delete."""
    return [d for d in declarations if can_edit(d, actor)]


def review_scope(declarations: Iterable, actor: Actor, *, as_submitter: bool = False) -> list:
    """The population an actor's stats are computed over."""
    role = Role(actor.role)
    if as_submitter or role == Role.TEACHER:
        return [d for d in declarations if is_author(d, actor)]
    if role == Role.DEPARTMENT_HEAD:
        if actor.department_id is None:
            return []
        return [d for d in declarations if d.department_id == actor.department_id]
    if role in (Role.REGISTRAR, Role.DIRECTOR_OF_STUDIES):
        return list(declarations)
    return []


def stats_for_actor(declarations: Iterable, actor: Actor, *, as_submitter: bool = False) -> DeclarationStats:
    """Role-scoped aggregate counts.

    ``total_hours`` sums the hours of director-validated declarations in
    scope. ``pending`` / ``approved`` follow the actor's stage: for a
    reviewer, "approved" means "past my stage".
    """
    role = Role(actor.role)
    population = review_scope(declarations, actor, as_submitter=as_submitter)
    if as_submitter or role == Role.TEACHER:
        pending_set, approved_set = _SUBMITTER_BUCKETS
    elif role in _REVIEWER_BUCKETS:
        pending_set, approved_set = _REVIEWER_BUCKETS[role]
    else:
        return DeclarationStats()

    stats = DeclarationStats()
    for d in population:
        status = DeclarationStatus(d.status)
        if status == DeclarationStatus.DIRECTOR_VALIDATED:
            stats.total_hours += float(d.hours or 0)
        if status in pending_set:
            stats.pending += 1
        elif status in approved_set:
            stats.approved += 1
        elif status == DeclarationStatus.REJECTED:
            stats.rejected += 1
    return stats
