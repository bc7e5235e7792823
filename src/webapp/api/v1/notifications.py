"""
Notification API endpoints (v1).

Example usage:
    GET  /api/v1/notifications/?unit=compliance&unread=true
    GET  /api/v1/notifications/                 (current user's own)
    POST /api/v1/notifications/42/read
    POST /api/v1/notifications/read-all         {"unit": "compliance"}
"""

from flask import Blueprint, jsonify, request
from flask_login import login_required

from permits.manage.notifications import list_notifications, unread_count
from permits.schemas import NotificationSchema
from permits.service import ReviewService
from webapp.api.helpers import register_error_handlers, json_body
from webapp.extensions import db
from webapp.utils.rbac import current_identity

bp = Blueprint('api_notifications', __name__)
register_error_handlers(bp)


def _scope(source):
    """(unit, user_id) from request data; defaults to the current user."""
    unit = source.get('unit')
    user_id = source.get('user_id')
    if unit is None and user_id is None:
        return None, current_identity().user_id
    return unit, int(user_id) if user_id is not None else None


@bp.route('/', methods=['GET'])
@login_required
def list_scope():
    """
    GET /api/v1/notifications/ - Notifications for a unit or user, newest first.

    Query Parameters:
        unit (str): Staff unit scope
        user_id (int): User scope (default: current user)
        unread (bool): Only unread notifications
        limit (int): Maximum rows
    """
    unit, user_id = _scope(request.args)
    identity = current_identity()
    unread_only = request.args.get('unread', 'false').lower() in ('true', '1', 'yes')
    rows = list_notifications(db.session, identity, unit=unit, user_id=user_id,
                              unread_only=unread_only, limit=request.args.get('limit', type=int))
    return jsonify({
        'notifications': NotificationSchema(many=True).dump(rows),
        'unread_count': unread_count(db.session, identity, unit=unit, user_id=user_id),
    })


@bp.route('/<int:notification_id>/read', methods=['POST'])
@login_required
def mark_read(notification_id):
    notification = ReviewService(db.session).mark_as_read(notification_id, current_identity())
    return jsonify(NotificationSchema().dump(notification))


@bp.route('/read-all', methods=['POST'])
@login_required
def mark_all_read():
    data = json_body() or request.args
    unit, user_id = _scope(data)
    marked = ReviewService(db.session).mark_all_as_read(current_identity(), unit=unit, user_id=user_id)
    return jsonify({'marked': marked})
