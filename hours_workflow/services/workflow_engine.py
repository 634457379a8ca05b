"""
Declaration Workflow Engine - the status state machine.

Pure decision logic: given a declaration's current status and the acting
user's role/department, decides whether a transition is legal, what the
new status is, which audit fields change and which notifications should
follow. No database access, no session, no clock other than the
injectable ``now``. Persistence and dispatch belong to the caller
(see declaration_service).

States (terminal marked *):

    pending → registrar_verified → department_approved → director_validated*
    any non-terminal state → rejected*

Transition table (one row per reviewing role):

    Role                  From                  Approve →             Reject →
    registrar             pending               registrar_verified    rejected
    department_head (*)   registrar_verified    department_approved   rejected
    director_of_studies   department_approved   director_validated    rejected

    (*) only for declarations of the head's own department

Usage:
    from hours_workflow.services.workflow_engine import Action, apply_transition

    result = apply_transition(declaration, actor, Action.REJECT, reason="duplicate")
    result.patch          # column → value changes to write through the store
    result.notifications  # NotificationIntent list for the dispatcher
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from hours_workflow.core.exceptions import UnauthorizedError, ValidationError
from hours_workflow.models.auth import Actor, Role
from hours_workflow.models.declaration import DeclarationStatus, STAGE_AUDIT_FIELDS


class Action(str, enum.Enum):
    APPROVE = "approve"
    REJECT = "reject"


@dataclass(frozen=True)
class TransitionRule:
    role: Role
    from_status: DeclarationStatus
    approve_to: DeclarationStatus
    reject_to: DeclarationStatus
    audit_by: str
    audit_at: str
    approve_template: str
    reject_template: str
    next_reviewer: RecipientSelector | None = None
    next_reviewer_template: str | None = None


class RecipientKind(str, enum.Enum):
    AUTHOR = "author"
    ROLE = "role"
    DEPARTMENT_HEADS = "department_heads"


@dataclass(frozen=True)
class RecipientSelector:
    """Who should receive a notification.

    Resolved to concrete profiles by the store, not by the engine.
    ``value`` is the author id, the Role, or the department id depending on
    ``kind``. A ``None`` department value means "the declaration's
    department" and is bound by :func:`_bind`.
    """

    kind: RecipientKind
    value: Any = None

    @classmethod
    def author(cls, author_id: str) -> RecipientSelector:
        return cls(RecipientKind.AUTHOR, author_id)

    @classmethod
    def role(cls, role: Role) -> RecipientSelector:
        return cls(RecipientKind.ROLE, role)

    @classmethod
    def department_heads(cls, department_id: int | None = None) -> RecipientSelector:
        return cls(RecipientKind.DEPARTMENT_HEADS, department_id)


@dataclass(frozen=True)
class NotificationIntent:
    recipient: RecipientSelector
    template_id: str
    payload: dict = field(default_factory=dict)


@dataclass
class TransitionResult:
    previous_status: DeclarationStatus
    status: DeclarationStatus
    action: Action
    patch: dict
    notifications: list[NotificationIntent]


@dataclass
class InitialState:
    status: DeclarationStatus
    fast_tracked: bool
    audit: dict


# ── Notification template ids ────────────────────────────────────────────

TEMPLATE_SUBMITTED = "declaration_submitted"
TEMPLATE_PENDING_VERIFICATION = "pending_verification"
TEMPLATE_PENDING_DEPARTMENT_APPROVAL = "pending_department_approval"
TEMPLATE_PENDING_DIRECTOR_VALIDATION = "pending_director_validation"


# ── Transition table ─────────────────────────────────────────────────────

WORKFLOW_TRANSITIONS: dict[Role, TransitionRule] = {
    Role.REGISTRAR: TransitionRule(
        role=Role.REGISTRAR,
        from_status=DeclarationStatus.PENDING,
        approve_to=DeclarationStatus.REGISTRAR_VERIFIED,
        reject_to=DeclarationStatus.REJECTED,
        audit_by="registrar_verified_by",
        audit_at="registrar_verified_at",
        approve_template="declaration_verified",
        reject_template="declaration_rejected_by_registrar",
        next_reviewer=RecipientSelector.department_heads(),
        next_reviewer_template=TEMPLATE_PENDING_DEPARTMENT_APPROVAL,
    ),
    Role.DEPARTMENT_HEAD: TransitionRule(
        role=Role.DEPARTMENT_HEAD,
        from_status=DeclarationStatus.REGISTRAR_VERIFIED,
        approve_to=DeclarationStatus.DEPARTMENT_APPROVED,
        reject_to=DeclarationStatus.REJECTED,
        audit_by="department_approved_by",
        audit_at="department_approved_at",
        approve_template="declaration_department_approved",
        reject_template="declaration_rejected_by_department_head",
        next_reviewer=RecipientSelector.role(Role.DIRECTOR_OF_STUDIES),
        next_reviewer_template=TEMPLATE_PENDING_DIRECTOR_VALIDATION,
    ),
    Role.DIRECTOR_OF_STUDIES: TransitionRule(
        role=Role.DIRECTOR_OF_STUDIES,
        from_status=DeclarationStatus.DEPARTMENT_APPROVED,
        approve_to=DeclarationStatus.DIRECTOR_VALIDATED,
        reject_to=DeclarationStatus.REJECTED,
        audit_by="director_validated_by",
        audit_at="director_validated_at",
        approve_template="declaration_director_validated",
        reject_template="declaration_rejected_by_director",
    ),
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _status_of(declaration) -> DeclarationStatus:
    return DeclarationStatus(declaration.status)


def _rule_for(actor: Actor) -> TransitionRule | None:
    return WORKFLOW_TRANSITIONS.get(Role(actor.role))


# ── Decisions ────────────────────────────────────────────────────────────


def can_process(declaration, actor: Actor) -> bool:
    """True iff the actor's role owns the row whose From equals the status.

    Department heads additionally need the declaration's department to be
    their own.
    """
    rule = _rule_for(actor)
    if rule is None or _status_of(declaration) != rule.from_status:
        return False
    if rule.role == Role.DEPARTMENT_HEAD:
        return actor.department_id is not None and actor.department_id == declaration.department_id
    return True


def next_status(declaration, actor: Actor) -> DeclarationStatus | None:
    if not can_process(declaration, actor):
        return None
    return _rule_for(actor).approve_to


def reject_status(declaration, actor: Actor) -> DeclarationStatus | None:
    if not can_process(declaration, actor):
        return None
    return _rule_for(actor).reject_to


def available_actions(declaration, actor: Actor) -> list[Action]:
    """Actions to offer the actor for this declaration (UI helper)."""
    if not can_process(declaration, actor):
        return []
    return [Action.APPROVE, Action.REJECT]


def validate_rejection_reason(reason: str | None) -> str:
    cleaned = reason.strip() if isinstance(reason, str) else ""
    if not cleaned:
        raise ValidationError(
            "A rejection reason is required",
            details={"rejection_reason": "must not be empty"},
        )
    return cleaned


def apply_transition(
    declaration,
    actor: Actor,
    action: Action | str,
    reason: str | None = None,
    *,
    now: datetime | None = None,
) -> TransitionResult:
    """Decide one approve/reject step for ``declaration``.

    Does not mutate ``declaration``. The returned patch is meant to be
    written through a compare-and-set against the version the caller read.

    Raises:
        UnauthorizedError: the actor cannot act on the declaration's status.
        ValidationError: reject without a reason, or unknown action.
    """
    try:
        action = Action(action)
    except ValueError:
        raise ValidationError(f"Unknown action: {action}", details={"action": "must be approve or reject"})

    previous = _status_of(declaration)
    if not can_process(declaration, actor):
        raise UnauthorizedError(
            actor.id, action.value,
            f"role {Role(actor.role).value} cannot act on a '{previous.value}' declaration",
        )

    rule = _rule_for(actor)
    now = now or _utcnow()

    if action == Action.REJECT:
        cleaned = validate_rejection_reason(reason)
        new_status = reject_status(declaration, actor)
        patch = {
            "status": new_status,
            "rejected_by": actor.id,
            "rejected_at": now,
            "rejection_reason": cleaned,
        }
        # Stages from the acting one onward cannot hold a stamp any more.
        for by_field, at_field in _forward_stages(rule):
            patch[by_field] = None
            patch[at_field] = None
        notifications = [
            NotificationIntent(
                RecipientSelector.author(declaration.author_id),
                rule.reject_template,
                _payload(declaration, actor, rejection_reason=cleaned),
            ),
        ]
    else:
        new_status = next_status(declaration, actor)
        patch = {
            "status": new_status,
            rule.audit_by: actor.id,
            rule.audit_at: now,
        }
        notifications = [
            NotificationIntent(
                RecipientSelector.author(declaration.author_id),
                rule.approve_template,
                _payload(declaration, actor),
            ),
        ]
        if rule.next_reviewer is not None:
            notifications.append(NotificationIntent(
                _bind(rule.next_reviewer, declaration),
                rule.next_reviewer_template,
                _payload(declaration, actor),
            ))

    return TransitionResult(
        previous_status=previous,
        status=new_status,
        action=action,
        patch=patch,
        notifications=notifications,
    )


def _forward_stages(rule: TransitionRule):
    names = [by for by, _ in STAGE_AUDIT_FIELDS]
    start = names.index(rule.audit_by)
    return STAGE_AUDIT_FIELDS[start:]


def _bind(selector: RecipientSelector, declaration) -> RecipientSelector:
    if selector.kind == RecipientKind.DEPARTMENT_HEADS and selector.value is None:
        return RecipientSelector.department_heads(declaration.department_id)
    return selector


def _payload(declaration, actor: Actor | None = None, **extra) -> dict:
    payload = {
        "declaration_id": declaration.id,
        "author_id": declaration.author_id,
        "department_id": declaration.department_id,
        "course_element_id": declaration.course_element_id,
        "date": declaration.date.isoformat() if declaration.date else None,
        "hours": declaration.hours,
    }
    if actor is not None:
        payload["actor_id"] = actor.id
        payload["actor_role"] = Role(actor.role).value
    payload.update(extra)
    return payload


# ── Creation / fast-track ────────────────────────────────────────────────


def initial_state(author: Actor, department_id: int, *, now: datetime | None = None) -> InitialState:
    """Starting status for a new (or resubmitted) declaration.

    A department head declaring hours for their own department skips the
    registrar: the declaration starts as ``registrar_verified`` with the
    author stamped as verifier. Everyone else starts at ``pending`` with no
    stamp.
    """
    empty_audit = {f: None for pair in STAGE_AUDIT_FIELDS for f in pair}
    if (
        Role(author.role) == Role.DEPARTMENT_HEAD
        and author.department_id is not None
        and author.department_id == department_id
    ):
        empty_audit["registrar_verified_by"] = author.id
        empty_audit["registrar_verified_at"] = now or _utcnow()
        return InitialState(DeclarationStatus.REGISTRAR_VERIFIED, True, empty_audit)
    return InitialState(DeclarationStatus.PENDING, False, empty_audit)


def creation_notifications(declaration, fast_tracked: bool) -> list[NotificationIntent]:
    """Intents to emit once a declaration has entered the pipeline.

    Regular submissions alert the registrars. Fast-tracked ones skip the
    registrar and alert the directors of studies directly.
    """
    intents = [
        NotificationIntent(
            RecipientSelector.author(declaration.author_id),
            TEMPLATE_SUBMITTED,
            _payload(declaration, fast_tracked=fast_tracked),
        ),
    ]
    if fast_tracked:
        intents.append(NotificationIntent(
            RecipientSelector.role(Role.DIRECTOR_OF_STUDIES),
            TEMPLATE_PENDING_DIRECTOR_VALIDATION,
            _payload(declaration, fast_tracked=True),
        ))
    else:
        intents.append(NotificationIntent(
            RecipientSelector.role(Role.REGISTRAR),
            TEMPLATE_PENDING_VERIFICATION,
            _payload(declaration),
        ))
    return intents
