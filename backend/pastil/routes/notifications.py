# Overview: Flask API routes for UI notifications; drains the in-memory event queue.

from flask import Blueprint, request, jsonify, current_app

from ..services import storage_service
from ..services.notification_service import get_notification_sink


notifications_bp = Blueprint("notifications", __name__, url_prefix="/api/notifications")


@notifications_bp.get("")
def list_notifications_route():
    """
    Events emitted since the last drain.

    Pass ?peek=1 to read without draining.
    """
    sink = get_notification_sink()
    events = sink.peek() if request.args.get("peek") == "1" else sink.drain()
    return jsonify({"events": [event.to_dict() for event in events]}), 200


@notifications_bp.post("/storage-check")
def storage_check_route():
    try:
        warning = storage_service.check_storage()
    except Exception:
        current_app.logger.exception("Failed to check storage")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify({"warning": warning.to_dict() if warning else None}), 200
