"""
Teaching-Hours Declaration Workflow
Blueprint registry and shared request plumbing.
"""

import logging

from flask import request

from hours_workflow.core.exceptions import (
    ConflictError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from hours_workflow.services.declaration_store import DeclarationStore
from hours_workflow.services.identity import IdentityProvider
from hours_workflow.utils.errors import error_for_exception

logger = logging.getLogger(__name__)


def current_actor():
    """Actor for the current request (raises UnauthorizedError)."""
    return IdentityProvider(DeclarationStore()).current_actor()


def json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def register_error_handlers(bp):
    """Answer workflow exceptions raised inside ``bp`` with the error envelope."""

    def _handle(error):
        if isinstance(error, UnauthorizedError) and error.actor_id is not None:
            logger.info(
                "Action refused",
                extra={"actor_id": error.actor_id, "action": error.action, "path": request.path},
            )
        return error_for_exception(error)

    for exc_type in (ValidationError, UnauthorizedError, ConflictError, NotFoundError):
        bp.register_error_handler(exc_type, _handle)
    return bp
