"""Products blueprint - catalog reads and admin inventory maintenance."""
from flask import Blueprint, jsonify, request, g
from petverse.database import get_session
from petverse.decorators.permissions import require_role
from petverse.models import UserRole
from petverse.services import inventory_service

products_bp = Blueprint('products', __name__, url_prefix='/products')


@products_bp.route('', methods=['GET'])
def list_products():
    """Active products. Admins may pass ?all=1 to include deactivated ones."""
    include_inactive = (
        request.args.get('all') in ('1', 'true')
        and g.get('user') is not None
        and g.user.is_admin
    )
    products = inventory_service.list_products(get_session(), include_inactive=include_inactive)
    return jsonify({'success': True, 'products': [p.to_dict() for p in products]})


@products_bp.route('/<product_code>', methods=['GET'])
def get_product(product_code):
    product = inventory_service.get_product(get_session(), product_code)
    return jsonify({'success': True, 'product': product.to_dict()})


@products_bp.route('', methods=['POST'])
@require_role(UserRole.ADMIN.value)
def create_product():
    payload = request.get_json(silent=True) or {}
    db_session = get_session()
    try:
        product = inventory_service.create_product(db_session, payload)
        data = product.to_dict()
        db_session.commit()
    except Exception:
        db_session.rollback()
        raise
    return jsonify({'success': True, 'message': 'Product created', 'product': data}), 201


@products_bp.route('/<product_code>', methods=['PUT'])
@require_role(UserRole.ADMIN.value)
def update_product(product_code):
    payload = request.get_json(silent=True) or {}
    db_session = get_session()
    try:
        product = inventory_service.update_product(db_session, product_code, payload)
        data = product.to_dict()
        db_session.commit()
    except Exception:
        db_session.rollback()
        raise
    return jsonify({'success': True, 'message': 'Product updated', 'product': data})


@products_bp.route('/<product_code>', methods=['DELETE'])
@require_role(UserRole.ADMIN.value)
def delete_product(product_code):
    """Soft delete."""
    db_session = get_session()
    try:
        inventory_service.deactivate_product(db_session, product_code)
        db_session.commit()
    except Exception:
        db_session.rollback()
        raise
    return jsonify({'success': True, 'message': 'Product deactivated'})
