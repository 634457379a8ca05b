"""
Notification Blueprint - the caller's in-app inbox.

Routes:
  GET    /notifications                – list (?unread_only=true, limit, offset)
  GET    /notifications/unread-count   – badge counter
  POST   /notifications/<id>/read      – mark one as read
  POST   /notifications/read-all       – mark all as read
  DELETE /notifications/<id>           – delete one
"""

from flask import Blueprint, jsonify, request

from hours_workflow.blueprints import current_actor, register_error_handlers
from hours_workflow.core.exceptions import NotFoundError
from hours_workflow.services.notification import NotificationService
from hours_workflow.utils.helpers import parse_int

notification_bp = register_error_handlers(
    Blueprint("notification_bp", __name__, url_prefix="/api/v1")
)


@notification_bp.route("/notifications", methods=["GET"])
def list_notifications():
    actor = current_actor()
    unread_only = request.args.get("unread_only", "false").lower() == "true"
    limit = min(max(parse_int(request.args.get("limit"), 50), 1), 200)
    offset = max(parse_int(request.args.get("offset"), 0), 0)

    items, total = NotificationService.list_for_recipient(
        actor.email, unread_only=unread_only, limit=limit, offset=offset,
    )
    return jsonify({
        "items": [n.to_dict() for n in items],
        "total": total,
        "unread_count": NotificationService.unread_count(actor.email),
    })


@notification_bp.route("/notifications/unread-count", methods=["GET"])
def unread_count():
    actor = current_actor()
    return jsonify({"unread_count": NotificationService.unread_count(actor.email)})


@notification_bp.route("/notifications/<int:nid>/read", methods=["POST"])
def mark_read(nid):
    actor = current_actor()
    notif = NotificationService.mark_read(nid, actor.email)
    if not notif:
        raise NotFoundError(resource="Notification", resource_id=nid)
    return jsonify(notif.to_dict())


@notification_bp.route("/notifications/read-all", methods=["POST"])
def mark_all_read():
    actor = current_actor()
    count = NotificationService.mark_all_read(actor.email)
    return jsonify({"marked_read": count})


@notification_bp.route("/notifications/<int:nid>", methods=["DELETE"])
def delete_notification(nid):
    actor = current_actor()
    if not NotificationService.delete(nid, actor.email):
        raise NotFoundError(resource="Notification", resource_id=nid)
    return jsonify({"deleted": True, "id": nid})
