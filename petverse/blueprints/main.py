"""Main blueprint: health checks and the CSRF token endpoint."""
import logging
from flask import Blueprint, jsonify
from flask_wtf.csrf import generate_csrf
from sqlalchemy import text
from petverse.database import get_session
from petverse.services.otp_service import RedisOtpStore, get_otp_gateway

logger = logging.getLogger(__name__)

main_bp = Blueprint('main', __name__)


def _ping_database():
    """Return (ok, detail) for a trivial round trip to the database."""
    try:
        value = get_session().execute(text("SELECT 1")).scalar()
    except Exception as e:
        logger.error(f"[HEALTH] Database check failed: {e}")
        return False, str(e)
    return value == 1, None


@main_bp.route('/health')
def health():
    """
    Liveness plus database connectivity.

    Returns:
        200: database reachable
        500: database unreachable or returned something unexpected
    """
    ok, error = _ping_database()
    if ok:
        return jsonify({'status': 'healthy', 'database': 'connected'}), 200

    body = {'status': 'unhealthy', 'database': 'disconnected' if error else 'error'}
    if error:
        body['error'] = error
    return jsonify(body), 500


@main_bp.route('/health/otp')
def health_otp():
    """
    OTP store health. Never returns 500; a memory store is reported as degraded.
    """
    store = get_otp_gateway().store
    if isinstance(store, RedisOtpStore):
        try:
            store.client.ping()
            return jsonify({'status': 'ok', 'backend': 'redis'}), 200
        except Exception as e:
            return jsonify({'status': 'degraded', 'backend': 'redis', 'error': str(e)}), 200
    return jsonify({'status': 'degraded', 'backend': 'memory',
                    'message': 'Codes are held in process memory'}), 200


@main_bp.route('/csrf-token')
def csrf_token():
    """Token for clients that post with the session cookie."""
    return jsonify({'csrfToken': generate_csrf()})
