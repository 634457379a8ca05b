"""
Declaration Service - create / edit / resubmit / delete / process.

Ties the pure workflow engine and visibility filter to the store and the
notification dispatcher. Business rules are enforced here, never in the
blueprint; the blueprint only parses the request and maps exceptions.

Every write is a compare-and-set on the declaration's version: either the
version the client sent (stale clients get a ConflictError) or the one read
at the start of the call. Notification intents are dispatched only after
the write has committed, and a dispatch failure never reaches the caller.

Usage:
    from hours_workflow.services.declaration_service import DeclarationService

    svc = DeclarationService()
    decl = svc.process_declaration(decl_id, actor, "reject", reason="duplicate")
"""

from __future__ import annotations

import logging

from flask import current_app

from hours_workflow.core.exceptions import ConflictError, UnauthorizedError, ValidationError
from hours_workflow.models import db
from hours_workflow.models.auth import Actor, Role
from hours_workflow.models.declaration import (
    Declaration,
    DeclarationStatus,
    EDITABLE_FIELDS,
    IN_FLIGHT_STATUSES,
    REJECTION_FIELDS,
)
from hours_workflow.models.org import ORG_PATH
from hours_workflow.services import visibility
from hours_workflow.services.declaration_store import DeclarationStore
from hours_workflow.services.notification import NotificationDispatcher
from hours_workflow.services.validation import (
    DEFAULT_DAILY_HOURS_CAP,
    validate_hours,
    validate_org_path,
    validate_required,
)
from hours_workflow.services.workflow_engine import (
    apply_transition,
    creation_notifications,
    initial_state,
)
from hours_workflow.utils.helpers import parse_date_input

logger = logging.getLogger(__name__)

# Roles that declare hours. Department heads also submit like teachers.
SUBMITTER_ROLES = frozenset({Role.TEACHER, Role.DEPARTMENT_HEAD})


def _id_from(key: str, value) -> int:
    """Strict id parsing: ints, whole floats and digit strings only."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    raise ValidationError(f"{key} must be an integer id", details={key: "not an integer"})


def _path_from(data: dict) -> dict:
    path = {}
    for key, _model in ORG_PATH:
        value = data.get(key)
        path[key] = None if value in (None, "") else _id_from(key, value)
    return path


def _date_from(value):
    try:
        return parse_date_input(value)
    except ValueError as exc:
        raise ValidationError(str(exc), details={"date": "invalid date"})


class DeclarationService:
    """Orchestrates one workflow operation per call.

    Args:
        store: persistence boundary (defaults to DeclarationStore).
        dispatcher: executes notification intents after commit.
    """

    def __init__(self, store=None, dispatcher=None):
        self.store = store or DeclarationStore()
        self.dispatcher = dispatcher or NotificationDispatcher(self.store)

    # ── Helpers ──────────────────────────────────────────────────────────

    def _daily_cap(self) -> float:
        return float(current_app.config.get("DAILY_HOURS_CAP", DEFAULT_DAILY_HOURS_CAP))

    def _validated_fields(self, data: dict) -> dict:
        """Validate a full set of author-editable fields; return column values."""
        validate_required(data)
        path = _path_from(data)
        validate_org_path(self.store.get_org, path)
        hours = validate_hours(
            data.get("hours_cm"), data.get("hours_td"), data.get("hours_tp"), cap=self._daily_cap(),
        )
        notes = data.get("notes") or ""
        if not isinstance(notes, str):
            raise ValidationError("notes must be text", details={"notes": "not a string"})
        return {**path, **hours, "date": _date_from(data.get("date")), "notes": notes.strip()}

    def _dispatch(self, intents, declaration) -> None:
        if not intents or not current_app.config.get("NOTIFICATIONS_ENABLED", True):
            return
        try:
            self.dispatcher.dispatch(intents, declaration)
        except Exception:
            # The declaration write is already committed; delivery is best-effort.
            db.session.rollback()
            logger.exception(
                "Notification dispatch raised",
                extra={"declaration_id": declaration.id},
            )

    def _load(self, declaration_id: str, expected_version: int | None):
        """Fetch the declaration and refuse a stale client version up front.

        Returns the declaration and the version to compare-and-set against.
        """
        decl = self.store.get_or_raise(declaration_id)
        if expected_version is not None and expected_version != decl.version:
            raise ConflictError("Declaration", declaration_id, expected_version)
        return decl, decl.version

    def _require_editable(self, declaration, actor: Actor, action: str) -> None:
        if not visibility.is_author(declaration, actor):
            raise UnauthorizedError(actor.id, action, "only the author can do this")
        if not visibility.can_edit(declaration, actor):
            raise UnauthorizedError(
                actor.id, action,
                f"declaration is '{DeclarationStatus(declaration.status).value}'",
            )

    # ── Creation ─────────────────────────────────────────────────────────

    def create_declaration(self, actor: Actor, data: dict) -> Declaration:
        """Validate and insert a new declaration, then notify.

        A department head declaring for their own department is fast-tracked
        past the registrar (see workflow_engine.initial_state).

        Raises:
            UnauthorizedError: the actor's role does not submit hours.
            ValidationError: missing field, bad hours or inconsistent path.
        """
        if Role(actor.role) not in SUBMITTER_ROLES:
            raise UnauthorizedError(actor.id, "create", f"role {Role(actor.role).value} does not declare hours")

        fields = self._validated_fields(data)
        start = initial_state(actor, fields["department_id"])

        decl = Declaration(author_id=actor.id, status=start.status, **fields, **start.audit)
        self.store.insert(decl)
        logger.info(
            "Declaration created",
            extra={
                "declaration_id": decl.id,
                "actor_id": actor.id,
                "role": Role(actor.role).value,
                "to_status": start.status.value,
            },
        )
        self._dispatch(creation_notifications(decl, start.fast_tracked), decl)
        return decl

    # ── Author edits ─────────────────────────────────────────────────────

    def update_declaration(
        self,
        declaration_id: str,
        actor: Actor,
        data: dict,
        expected_version: int | None = None,
    ) -> Declaration:
        """Edit the author's own pending or rejected declaration.

        Fields not present in ``data`` keep their stored value; the total is
        recomputed and the whole record re-validated. The status does not
        change: a rejected declaration re-enters the pipeline only through
        :meth:`resubmit_declaration`.
        """
        decl, expected = self._load(declaration_id, expected_version)
        self._require_editable(decl, actor, "edit")

        merged = {field: getattr(decl, field) for field in EDITABLE_FIELDS}
        if "department_id" in data and "track_id" not in data:
            # A new department invalidates the stored intermediate levels.
            for key in ("track_id", "level_id", "semester_id", "course_unit_id"):
                merged[key] = None
        merged.update({field: data[field] for field in EDITABLE_FIELDS if field in data})

        patch = self._validated_fields(merged)
        updated = self.store.compare_and_update(declaration_id, expected, patch)
        logger.info(
            "Declaration edited",
            extra={"declaration_id": declaration_id, "actor_id": actor.id,
                   "to_status": DeclarationStatus(updated.status).value},
        )
        return updated

    def resubmit_declaration(
        self,
        declaration_id: str,
        actor: Actor,
        expected_version: int | None = None,
    ) -> Declaration:
        """Send a rejected declaration back into the pipeline.

        Clears the rejection and every stage stamp, then re-applies the
        creation rule (fast-track included) and re-sends the creation
        notifications.
        """
        decl, expected = self._load(declaration_id, expected_version)
        if not visibility.is_author(decl, actor):
            raise UnauthorizedError(actor.id, "resubmit", "only the author can do this")
        current = DeclarationStatus(decl.status)
        if current != DeclarationStatus.REJECTED:
            raise UnauthorizedError(actor.id, "resubmit", f"declaration is '{current.value}'")

        start = initial_state(actor, decl.department_id)
        patch = {"status": start.status, **start.audit}
        patch.update({f: None for f in REJECTION_FIELDS})

        updated = self.store.compare_and_update(declaration_id, expected, patch)
        logger.info(
            "Declaration resubmitted",
            extra={
                "declaration_id": declaration_id,
                "actor_id": actor.id,
                "from_status": current.value,
                "to_status": start.status.value,
            },
        )
        self._dispatch(creation_notifications(updated, start.fast_tracked), updated)
        return updated

    def delete_declaration(
        self,
        declaration_id: str,
        actor: Actor,
        expected_version: int | None = None,
    ) -> bool:
        """Delete the author's own pending or rejected declaration."""
        decl, expected = self._load(declaration_id, expected_version)
        self._require_editable(decl, actor, "delete")
        self.store.delete(declaration_id, expected)
        logger.info(
            "Declaration deleted",
            extra={"declaration_id": declaration_id, "actor_id": actor.id},
        )
        return True

    # ── Review ───────────────────────────────────────────────────────────

    def process_declaration(
        self,
        declaration_id: str,
        actor: Actor,
        action,
        reason: str | None = None,
        expected_version: int | None = None,
    ) -> Declaration:
        """Approve or reject one stage.

        Raises:
            NotFoundError: unknown id.
            UnauthorizedError: the actor cannot act on the current status.
            ValidationError: reject without a reason, or unknown action.
            ConflictError: the client version is stale or another write landed first.
        """
        decl, expected = self._load(declaration_id, expected_version)
        result = apply_transition(decl, actor, action, reason)
        updated = self.store.compare_and_update(declaration_id, expected, result.patch)
        logger.info(
            "Declaration transition",
            extra={
                "declaration_id": declaration_id,
                "actor_id": actor.id,
                "role": Role(actor.role).value,
                "action": result.action.value,
                "from_status": result.previous_status.value,
                "to_status": result.status.value,
            },
        )
        self._dispatch(result.notifications, updated)
        return updated

    # ── Queries ──────────────────────────────────────────────────────────

    def get_declaration(self, declaration_id: str) -> Declaration:
        return self.store.get_or_raise(declaration_id)

    def list_pending(self, actor: Actor) -> list[Declaration]:
        """Declarations waiting for this actor's decision."""
        candidates = self.store.query_all(statuses=IN_FLIGHT_STATUSES)
        return visibility.pending_for_actor(candidates, actor)

    def list_owned(self, actor: Actor) -> list[Declaration]:
        return self.store.query_all(author_id=actor.id)

    def get_stats(self, actor: Actor, as_submitter: bool = False) -> visibility.DeclarationStats:
        return visibility.stats_for_actor(self.store.query_all(), actor, as_submitter=as_submitter)
