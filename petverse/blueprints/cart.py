"""Cart blueprint - per-user persistent cart."""
from flask import Blueprint, jsonify, request, g
from petverse.database import get_session
from petverse.decorators.permissions import require_role
from petverse.models import UserRole
from petverse.services import cart_service

cart_bp = Blueprint('cart', __name__, url_prefix='/cart')


@cart_bp.route('', methods=['GET'])
@require_role(UserRole.PET_OWNER.value)
def get_cart():
    """Current user's cart; a cart is created on first access."""
    db_session = get_session()
    try:
        cart = cart_service.get_or_create_cart(db_session, g.user_id)
        data = cart_service.cart_to_dict(cart)
        db_session.commit()
    except Exception:
        db_session.rollback()
        raise
    return jsonify({'success': True, **data})


@cart_bp.route('/add', methods=['POST'])
@require_role(UserRole.PET_OWNER.value)
def add_to_cart():
    payload = request.get_json(silent=True) or {}
    db_session = get_session()
    try:
        cart = cart_service.add_item(
            db_session, g.user_id, payload.get('productId'), payload.get('quantity', 1)
        )
        data = cart_service.cart_to_dict(cart)
        db_session.commit()
    except Exception:
        db_session.rollback()
        raise
    return jsonify({'success': True, 'message': 'Item added to cart', **data})


@cart_bp.route('/<product_code>', methods=['PUT'])
@require_role(UserRole.PET_OWNER.value)
def update_cart_item(product_code):
    payload = request.get_json(silent=True) or {}
    db_session = get_session()
    try:
        cart = cart_service.update_item(db_session, g.user_id, product_code, payload.get('quantity'))
        data = cart_service.cart_to_dict(cart)
        db_session.commit()
    except Exception:
        db_session.rollback()
        raise
    return jsonify({'success': True, 'message': 'Cart updated', **data})


@cart_bp.route('/<product_code>', methods=['DELETE'])
@require_role(UserRole.PET_OWNER.value)
def remove_cart_item(product_code):
    db_session = get_session()
    try:
        cart = cart_service.remove_item(db_session, g.user_id, product_code)
        data = cart_service.cart_to_dict(cart)
        db_session.commit()
    except Exception:
        db_session.rollback()
        raise
    return jsonify({'success': True, 'message': 'Item removed', **data})


@cart_bp.route('/clear', methods=['DELETE'])
@require_role(UserRole.PET_OWNER.value)
def clear_cart():
    db_session = get_session()
    try:
        cart = cart_service.get_or_create_cart(db_session, g.user_id)
        cart_service.clear_cart(db_session, cart)
        db_session.commit()
    except Exception:
        db_session.rollback()
        raise
    return jsonify({'success': True, 'message': 'Cart cleared', 'cart': [], 'subtotal': 0.0, 'total': 0.0})
