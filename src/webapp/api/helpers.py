"""
API helper utilities for common patterns.

This module provides reusable helpers for:
- Error handler registration (HTTP errors and PermitsError subclasses)
- JSON body parsing
- Standard response wrappers
"""

import logging
from typing import Any, Dict, Optional, Tuple

from flask import jsonify, request

from permits.exceptions import PermitsError

logger = logging.getLogger(__name__)


def register_error_handlers(blueprint):
    """
    Register standard API error handlers on a blueprint.

    PermitsError subclasses map onto their status code with a body of
    {'error', 'code', 'retryable'[, 'details']}.

    Usage:
        from webapp.api.helpers import register_error_handlers
        bp = Blueprint('api_name', __name__)
        register_error_handlers(bp)
    """

    @blueprint.errorhandler(400)
    def bad_request(e):
        return jsonify({'error': str(e.description) if hasattr(e, 'description') else 'Bad request'}), 400

    @blueprint.errorhandler(401)
    def unauthorized(e):
        return jsonify({'error': 'Unauthorized - authentication required'}), 401

    @blueprint.errorhandler(403)
    def forbidden(e):
        return jsonify({'error': 'Forbidden - insufficient permissions'}), 403

    @blueprint.errorhandler(404)
    def not_found(e):
        return jsonify({'error': 'Resource not found'}), 404

    @blueprint.errorhandler(PermitsError)
    def permits_error(e):
        if e.status_code >= 500:
            logger.error(f"{e.code}: {e}")
        return jsonify(e.to_dict()), e.status_code

    @blueprint.errorhandler(ValueError)
    def invalid_value(e):
        return error_response(str(e), 400, code='INVALID_REQUEST')


def json_body() -> Dict[str, Any]:
    """Request JSON object, or {} when the body is empty."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def require_int(data: Dict[str, Any], key: str) -> int:
    """
    Raises:
        ValueError: If the key is missing or not an integer
    """
    value = data.get(key)
    if value is None:
        raise ValueError(f"'{key}' is required")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValueError(f"'{key}' must be an integer")


# ============================================================================
# Standard Response Helpers
# ============================================================================

def success_response(data: Any, message: Optional[str] = None, status_code: int = 200) -> Tuple[Any, int]:
    """
    Create a standard success response wrapper.

    Usage:
        return success_response({'marked': 3}, 'Notifications marked read')
        # Returns: {'success': True, 'data': {...}, 'message': '...'}
    """
    response = {'success': True, 'data': data}
    if message:
        response['message'] = message
    return jsonify(response), status_code


def error_response(
    message: str,
    status_code: int = 400,
    code: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None
) -> Tuple[Any, int]:
    """
    Create a standard error response wrapper.

    Usage:
        return error_response('Unknown unit', 400, code='INVALID_REQUEST')
        # Returns: {'error': 'Unknown unit', 'code': 'INVALID_REQUEST'}
    """
    response = {'error': message}
    if code:
        response['code'] = code
    if details:
        response['details'] = details
    return jsonify(response), status_code
