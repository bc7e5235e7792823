"""
Application API endpoints (v1).

Example usage:
    POST /api/v1/applications/                         create a draft
    GET  /api/v1/applications/<id>
    POST /api/v1/applications/<id>/transitions         {"action": "assess_pass", "expected_version": 2}
    POST /api/v1/applications/<id>/assignee            {"reviewer_id": 12}
    GET  /api/v1/applications/<id>/history
    GET  /api/v1/applications/queue/compliance?unassigned=true
"""

from flask import Blueprint, abort, jsonify, request
from flask_login import login_required

from permits.core.identity import StaffUnit
from permits.manage.workflow import get_application, get_review_records, get_transition_history
from permits.queries import get_unit_queue
from permits.schemas import (
    ApplicationSchema, ApplicationSummarySchema, NotificationSchema, ReviewRecordSchema, TransitionSchema
)
from permits.service import ReviewService
from webapp.api.helpers import register_error_handlers, json_body, require_int
from webapp.extensions import db
from webapp.utils.rbac import current_identity, has_policy, require_policy

bp = Blueprint('api_applications', __name__)
register_error_handlers(bp)

TRANSITION_FIELDS = ('notes', 'recommendations', 'requires_eia', 'requires_workplan')


def _load_visible(application_id):
    """Application the current user may see: their own, or any for staff and admins."""
    application = get_application(db.session, application_id)
    identity = current_identity()
    if application.submitted_by != identity.user_id and not has_policy('staff_dashboard'):
        abort(403)
    return application


# ============================================================================
# Routes
# ============================================================================

@bp.route('/', methods=['POST'])
@login_required
@require_policy('submit_application')
def create():
    """
    POST /api/v1/applications/ - Create a draft application.

    JSON body: title, application_type, entity_name (optional), description (optional)
    """
    data = json_body()
    application = ReviewService(db.session).create_application(
        current_identity(),
        title=data.get('title') or '',
        application_type=data.get('application_type'),
        entity_name=data.get('entity_name'),
        description=data.get('description'),
        ip_address=request.remote_addr,
    )
    return jsonify(ApplicationSchema().dump(application)), 201


@bp.route('/<application_id>', methods=['GET'])
@login_required
def get_one(application_id):
    return jsonify(ApplicationSchema().dump(_load_visible(application_id)))


@bp.route('/<application_id>/transitions', methods=['POST'])
@login_required
def post_transition(application_id):
    """
    POST /api/v1/applications/<id>/transitions - Apply a workflow action.

    JSON body: action, expected_version, and optionally notes,
    recommendations, requires_eia, requires_workplan.

    Returns:
        JSON with the application, whether anything was applied, the
        transition event and the notifications it created.
    """
    data = json_body()
    action = data.get('action')
    if not action:
        raise ValueError("'action' is required")
    expected_version = require_int(data, 'expected_version')
    options = {k: data[k] for k in TRANSITION_FIELDS if k in data}

    result = ReviewService(db.session).apply_transition(
        application_id, action, current_identity(), expected_version,
        ip_address=request.remote_addr, **options
    )
    return jsonify({
        'application': ApplicationSchema().dump(result.application),
        'applied': result.applied,
        'event': result.event.to_dict() if result.event else None,
        'notifications': NotificationSchema(many=True).dump(result.notifications),
    })


@bp.route('/<application_id>/assignee', methods=['POST'])
@login_required
@require_policy('staff_dashboard')
def post_assignee(application_id):
    data = json_body()
    application = ReviewService(db.session).assign_reviewer(
        application_id, require_int(data, 'reviewer_id'), current_identity(),
        ip_address=request.remote_addr,
    )
    return jsonify(ApplicationSchema().dump(application))


@bp.route('/<application_id>/history', methods=['GET'])
@login_required
def get_history(application_id):
    _load_visible(application_id)
    return jsonify({
        'transitions': TransitionSchema(many=True).dump(get_transition_history(db.session, application_id)),
        'review_records': ReviewRecordSchema(many=True).dump(get_review_records(db.session, application_id)),
    })


@bp.route('/queue/<unit>', methods=['GET'])
@login_required
@require_policy('application_queues')
def unit_queue(unit):
    """
    GET /api/v1/applications/queue/<unit> - Applications waiting on a unit.

    Staff see only their own unit's queue; admins see any.

    Query Parameters:
        unassigned (bool): Only applications without a reviewer
        limit (int): Maximum rows
    """
    unit = StaffUnit(unit)
    identity = current_identity()
    if identity.is_staff and identity.staff_unit != unit:
        abort(403)

    unassigned = request.args.get('unassigned', 'false').lower() in ('true', '1', 'yes')
    limit = request.args.get('limit', type=int)
    applications = get_unit_queue(db.session, unit, unassigned_only=unassigned, limit=limit)
    return jsonify({
        'unit': unit.value,
        'applications': ApplicationSummarySchema(many=True).dump(applications),
        'total': len(applications),
    })
