"""Orders blueprint - checkout and order history."""
from flask import Blueprint, jsonify, request, g, current_app
from petverse.database import get_session
from petverse.middleware import require_login
from petverse.decorators.permissions import require_role
from petverse.models import UserRole
from petverse.services import order_service

orders_bp = Blueprint('orders', __name__, url_prefix='/orders')


@orders_bp.route('', methods=['POST'])
@require_role(UserRole.PET_OWNER.value)
def create_order():
    """
    Checkout the current cart.

    Lines that cannot be fulfilled are left out and reported in
    `outOfStockItems`; partially available lines are reduced.
    """
    payload = request.get_json(silent=True) or {}
    db_session = get_session()
    try:
        result = order_service.checkout(db_session, g.user_id, payload)
        response = {
            'success': True,
            'message': result.message,
            'order': result.order.to_dict(),
        }
        if result.out_of_stock_items:
            response['outOfStockItems'] = result.out_of_stock_items
        if result.reduced_items:
            response['reducedItems'] = result.reduced_items
        db_session.commit()
    except Exception:
        db_session.rollback()
        raise

    current_app.logger.info(f"Order {response['order']['id']} placed by user {g.user_id}")
    return jsonify(response), 201


@orders_bp.route('', methods=['GET'])
@require_login
def list_my_orders():
    db_session = get_session()
    orders = order_service.list_user_orders(db_session, g.user_id)
    return jsonify({'success': True, 'orders': [o.to_dict() for o in orders]})


@orders_bp.route('/admin/all', methods=['GET'])
@require_role(UserRole.ADMIN.value)
def list_all_orders():
    db_session = get_session()
    orders = order_service.list_all_orders(db_session)
    return jsonify({'success': True, 'orders': [o.to_dict() for o in orders]})


@orders_bp.route('/<int:order_id>', methods=['GET'])
@require_login
def get_order(order_id):
    db_session = get_session()
    order = order_service.get_order(db_session, order_id, g.user)
    return jsonify({'success': True, 'order': order.to_dict()})


@orders_bp.route('/<int:order_id>/status', methods=['PUT'])
@require_role(UserRole.ADMIN.value, UserRole.SERVICE_PROVIDER.value)
def update_order_status(order_id):
    payload = request.get_json(silent=True) or {}
    db_session = get_session()
    try:
        order = order_service.update_fulfillment_status(db_session, order_id, payload.get('status'))
        data = order.to_dict()
        db_session.commit()
    except Exception:
        db_session.rollback()
        raise
    return jsonify({'success': True, 'message': 'Order status updated', 'order': data})
