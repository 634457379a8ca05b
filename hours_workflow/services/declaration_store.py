"""
Declaration Store - Flask-SQLAlchemy persistence boundary.

The only module that touches ``db.session`` for declarations. Every write
is a compare-and-set on ``Declaration.version``:

    UPDATE declarations SET ..., version = version + 1
     WHERE id = :id AND version = :expected

A zero row count means someone else wrote first (ConflictError) or the
row is gone (NotFoundError). At most one writer per version wins.

Usage:
    from hours_workflow.services.declaration_store import DeclarationStore

    store = DeclarationStore()
    decl = store.compare_and_update(decl_id, expected_version=3, patch={...})
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import delete, select, update
from sqlalchemy.orm.util import identity_key

from hours_workflow.core.exceptions import ConflictError, NotFoundError
from hours_workflow.models import db
from hours_workflow.models.auth import Profile, Role
from hours_workflow.models.declaration import Declaration, DeclarationStatus
from hours_workflow.services.workflow_engine import RecipientKind, RecipientSelector

logger = logging.getLogger(__name__)


class DeclarationStore:
    """SQLAlchemy-backed store. Stateless apart from the scoped session."""

    # ── Declarations ─────────────────────────────────────────────────────

    def get_by_id(self, declaration_id: str) -> Declaration | None:
        return db.session.get(Declaration, declaration_id)

    def get_or_raise(self, declaration_id: str) -> Declaration:
        decl = self.get_by_id(declaration_id)
        if decl is None:
            raise NotFoundError(resource="Declaration", resource_id=declaration_id)
        return decl

    def insert(self, declaration: Declaration) -> str:
        declaration.version = 1
        db.session.add(declaration)
        db.session.commit()
        logger.info(
            "Declaration inserted",
            extra={"declaration_id": declaration.id, "to_status": DeclarationStatus(declaration.status).value},
        )
        return declaration.id

    def compare_and_update(self, declaration_id: str, expected_version: int, patch: dict) -> Declaration:
        """Apply ``patch`` only if the stored version still equals ``expected_version``.

        Raises:
            ConflictError: the row exists with another version.
            NotFoundError: the row does not exist.
        """
        values = dict(patch)
        values["version"] = Declaration.version + 1
        values["updated_at"] = datetime.now(timezone.utc)
        result = db.session.execute(
            update(Declaration)
            .where(Declaration.id == declaration_id, Declaration.version == expected_version)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            db.session.rollback()
            self._raise_missing_or_conflict(declaration_id, expected_version)
        db.session.commit()
        # commit() expired the identity map; this reloads the fresh row.
        return self.get_or_raise(declaration_id)

    def delete(self, declaration_id: str, expected_version: int | None = None) -> bool:
        stmt = delete(Declaration).where(Declaration.id == declaration_id)
        if expected_version is not None:
            stmt = stmt.where(Declaration.version == expected_version)
        result = db.session.execute(stmt.execution_options(synchronize_session=False))
        if result.rowcount != 1:
            db.session.rollback()
            if expected_version is None:
                return False
            self._raise_missing_or_conflict(declaration_id, expected_version)
        cached = db.session.identity_map.get(identity_key(Declaration, declaration_id))
        if cached is not None:
            db.session.expunge(cached)
        db.session.commit()
        return True

    def query_all(
        self,
        *,
        author_id: str | None = None,
        department_id: int | None = None,
        statuses=None,
    ) -> list[Declaration]:
        stmt = select(Declaration)
        if author_id is not None:
            stmt = stmt.where(Declaration.author_id == author_id)
        if department_id is not None:
            stmt = stmt.where(Declaration.department_id == department_id)
        if statuses:
            stmt = stmt.where(Declaration.status.in_([DeclarationStatus(s) for s in statuses]))
        stmt = stmt.order_by(Declaration.date.desc(), Declaration.created_at.desc())
        return list(db.session.execute(stmt).unique().scalars())

    def _raise_missing_or_conflict(self, declaration_id: str, expected_version: int):
        exists = db.session.execute(
            select(Declaration.id).where(Declaration.id == declaration_id)
        ).scalar_one_or_none()
        if exists is None:
            raise NotFoundError(resource="Declaration", resource_id=declaration_id)
        logger.warning(
            "Stale write rejected",
            extra={"declaration_id": declaration_id},
        )
        raise ConflictError("Declaration", declaration_id, expected_version)

    # ── Reference data ───────────────────────────────────────────────────

    def get_org(self, model, ident):
        try:
            ident = int(ident)
        except (TypeError, ValueError):
            return None
        return db.session.get(model, ident)

    # ── Identities ───────────────────────────────────────────────────────

    def get_profile(self, profile_id: str) -> Profile | None:
        return db.session.get(Profile, profile_id)

    def find_recipients(self, selector: RecipientSelector) -> list[Profile]:
        """Resolve a recipient selector to concrete profiles."""
        if selector.kind == RecipientKind.AUTHOR:
            profile = self.get_profile(selector.value)
            return [profile] if profile else []
        stmt = select(Profile)
        if selector.kind == RecipientKind.ROLE:
            stmt = stmt.where(Profile.role == Role(selector.value))
        elif selector.kind == RecipientKind.DEPARTMENT_HEADS:
            stmt = stmt.where(
                Profile.role == Role.DEPARTMENT_HEAD,
                Profile.department_id == selector.value,
            )
        return list(db.session.execute(stmt.order_by(Profile.email)).scalars())
