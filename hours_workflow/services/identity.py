"""
Identity Provider - resolves the acting user of the current request.

Authentication itself happens upstream (reverse proxy / SSO gateway). The
gateway forwards the authenticated profile id in a header, by default
``X-User-Id`` (configurable as ``IDENTITY_HEADER``). This module only turns
that id into an :class:`~hours_workflow.models.auth.Actor`.
"""

from __future__ import annotations

import logging

from flask import current_app, request

from hours_workflow.core.exceptions import UnauthorizedError
from hours_workflow.models.auth import Actor

logger = logging.getLogger(__name__)


class IdentityProvider:
    def __init__(self, store):
        self.store = store

    def header_name(self) -> str:
        return current_app.config.get("IDENTITY_HEADER", "X-User-Id")

    def current_actor(self) -> Actor:
        """Return the Actor for the current request.

        Raises:
            UnauthorizedError: header missing, or no profile with that id.
                ``actor_id`` is None in both cases.
        """
        header = self.header_name()
        profile_id = (request.headers.get(header) or "").strip()
        if not profile_id:
            raise UnauthorizedError(None, "authenticate", f"missing {header} header")
        profile = self.store.get_profile(profile_id)
        if profile is None:
            logger.warning("Unknown identity presented", extra={"actor_id": profile_id})
            raise UnauthorizedError(None, "authenticate", "unknown user")
        return profile.to_actor()
