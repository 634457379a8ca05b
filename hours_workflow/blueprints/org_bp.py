"""
Organisation Blueprint - read-only listing of the hierarchy.

Routes:
  GET /org/<kind>?parent_id=<id>   – departments, tracks, levels, semesters,
                                     course_units or course_elements
"""

from flask import Blueprint, jsonify, request

from hours_workflow.blueprints import current_actor, register_error_handlers
from hours_workflow.core.exceptions import NotFoundError, ValidationError
from hours_workflow.models.org import ORG_MODELS
from hours_workflow.utils.helpers import parse_int

org_bp = register_error_handlers(Blueprint("org_bp", __name__, url_prefix="/api/v1"))


@org_bp.route("/org/<string:kind>", methods=["GET"])
def list_org(kind):
    """List one level of the hierarchy, optionally under a given parent."""
    current_actor()
    model = ORG_MODELS.get(kind)
    if model is None:
        raise NotFoundError(resource="Organisation level", resource_id=kind)

    q = model.query
    raw_parent = request.args.get("parent_id")
    if raw_parent:
        if model.PARENT_FIELD is None:
            raise ValidationError(f"{kind} have no parent", details={"parent_id": "not supported"})
        parent_id = parse_int(raw_parent)
        if parent_id is None:
            raise ValidationError("parent_id must be an integer", details={"parent_id": "not an integer"})
        q = q.filter(getattr(model, model.PARENT_FIELD) == parent_id)
    items = q.order_by(model.name, model.id).all()
    return jsonify({"items": [i.to_dict() for i in items], "total": len(items)})
