"""Loyalty blueprint."""
from flask import Blueprint, jsonify, current_app, g
from petverse.database import get_session
from petverse.middleware import require_login
from petverse.services import loyalty_service

loyalty_bp = Blueprint('loyalty', __name__, url_prefix='/loyalty')


@loyalty_bp.route('/balance', methods=['GET'])
@require_login
def balance():
    points = loyalty_service.get_balance(get_session(), g.user_id)
    point_value = current_app.config.get('POINT_VALUE', 10)
    return jsonify({
        'success': True,
        'loyaltyPoints': points,
        'pointValue': point_value,
        'redeemableValue': points * point_value,
    })
