"""
Declaration Blueprint - submission, author edits and stage review.

Routes:
  POST   /declarations                    – submit a declaration
  GET    /declarations                    – my declarations (?editable=true)
  GET    /declarations/pending            – declarations awaiting my decision
  GET    /declarations/stats              – role-scoped counts (?as=submitter)
  GET    /declarations/<id>               – one declaration + my available actions
  PUT    /declarations/<id>               – edit my pending/rejected declaration
  DELETE /declarations/<id>               – delete my pending/rejected declaration
  POST   /declarations/<id>/transition    – approve / reject the current stage
  POST   /declarations/<id>/resubmit      – send a rejected declaration back in

Clients pass the version they read as ``version`` in the body (or an
``If-Match`` header); a stale version answers 409.
"""

import logging

from flask import Blueprint, jsonify, request

from hours_workflow.blueprints import current_actor, json_body, register_error_handlers
from hours_workflow.core.exceptions import ValidationError
from hours_workflow.models.declaration import DeclarationStatus
from hours_workflow.services import visibility
from hours_workflow.services.declaration_service import DeclarationService
from hours_workflow.services.workflow_engine import available_actions
from hours_workflow.utils.errors import E, api_error
from hours_workflow.utils.helpers import parse_expected_version

logger = logging.getLogger(__name__)

declaration_bp = register_error_handlers(
    Blueprint("declaration_bp", __name__, url_prefix="/api/v1")
)


def _service():
    return DeclarationService()


def _expected_version(data):
    try:
        return parse_expected_version(data, request.headers)
    except ValueError as exc:
        raise ValidationError(str(exc), details={"version": "not an integer"})


def _serialize(declaration, actor):
    d = declaration.to_dict()
    d["available_actions"] = [a.value for a in available_actions(declaration, actor)]
    d["can_edit"] = visibility.can_edit(declaration, actor)
    return d


# ═════════════════════════════════════════════════════════════════════════════
# SUBMITTER
# ═════════════════════════════════════════════════════════════════════════════

@declaration_bp.route("/declarations", methods=["POST"])
def create_declaration():
    """Submit a declaration.

    Body: { date, department_id, [track_id, level_id, semester_id,
            course_unit_id], course_element_id, hours_cm, hours_td,
            hours_tp, notes }
    """
    actor = current_actor()
    data = json_body()
    if not data:
        return api_error(E.BAD_REQUEST, "JSON body is required")
    decl = _service().create_declaration(actor, data)
    return jsonify(_serialize(decl, actor)), 201


@declaration_bp.route("/declarations", methods=["GET"])
def list_my_declarations():
    """The caller's own declarations, newest date first."""
    actor = current_actor()
    items = _service().list_owned(actor)
    if request.args.get("editable") == "true":
        items = visibility.owned_editable(items, actor)
    status = request.args.get("status")
    if status:
        items = [d for d in items if DeclarationStatus(d.status).value == status]
    return jsonify({"items": [_serialize(d, actor) for d in items], "total": len(items)})


@declaration_bp.route("/declarations/<string:declaration_id>", methods=["PUT"])
def update_declaration(declaration_id):
    actor = current_actor()
    data = json_body()
    decl = _service().update_declaration(
        declaration_id, actor, data, expected_version=_expected_version(data),
    )
    return jsonify(_serialize(decl, actor))


@declaration_bp.route("/declarations/<string:declaration_id>", methods=["DELETE"])
def delete_declaration(declaration_id):
    actor = current_actor()
    data = json_body()
    _service().delete_declaration(declaration_id, actor, expected_version=_expected_version(data))
    return jsonify({"deleted": True, "id": declaration_id})


@declaration_bp.route("/declarations/<string:declaration_id>/resubmit", methods=["POST"])
def resubmit_declaration(declaration_id):
    actor = current_actor()
    data = json_body()
    decl = _service().resubmit_declaration(
        declaration_id, actor, expected_version=_expected_version(data),
    )
    return jsonify(_serialize(decl, actor))


# ═════════════════════════════════════════════════════════════════════════════
# REVIEWER
# ═════════════════════════════════════════════════════════════════════════════

@declaration_bp.route("/declarations/pending", methods=["GET"])
def list_pending():
    """Declarations the caller can approve or reject right now."""
    actor = current_actor()
    items = _service().list_pending(actor)
    return jsonify({"items": [_serialize(d, actor) for d in items], "total": len(items)})


@declaration_bp.route("/declarations/stats", methods=["GET"])
def declaration_stats():
    actor = current_actor()
    as_submitter = request.args.get("as") == "submitter"
    stats = _service().get_stats(actor, as_submitter=as_submitter)
    return jsonify(stats.to_dict())


@declaration_bp.route("/declarations/<string:declaration_id>", methods=["GET"])
def get_declaration(declaration_id):
    actor = current_actor()
    decl = _service().get_declaration(declaration_id)
    return jsonify(_serialize(decl, actor))


@declaration_bp.route("/declarations/<string:declaration_id>/transition", methods=["POST"])
def transition_declaration(declaration_id):
    """Approve or reject the current stage.

    Body: { action: "approve" | "reject", reason?: str, version?: int }
    """
    actor = current_actor()
    data = json_body()
    action = data.get("action")
    if action is not None and not isinstance(action, str):
        raise ValidationError("action must be a string", details={"action": "not a string"})
    action = (action or "").strip().lower()
    if not action:
        return api_error(E.VALIDATION_REQUIRED, "action is required", details={"action": "is required"})
    decl = _service().process_declaration(
        declaration_id,
        actor,
        action,
        reason=data.get("reason"),
        expected_version=_expected_version(data),
    )
    return jsonify(_serialize(decl, actor))
