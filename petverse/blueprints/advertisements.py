"""Advertisements blueprint - provider submissions and admin moderation."""
from flask import Blueprint, jsonify, request, g
from petverse.database import get_session
from petverse.decorators.permissions import require_role
from petverse.models import UserRole
from petverse.services import advertisement_service

advertisements_bp = Blueprint('advertisements', __name__, url_prefix='/advertisements')


def _commit_ad(action):
    db_session = get_session()
    try:
        ad = action(db_session)
        data = ad.to_dict()
        db_session.commit()
    except Exception:
        db_session.rollback()
        raise
    return data


@advertisements_bp.route('', methods=['POST'])
@require_role(UserRole.SERVICE_PROVIDER.value)
def create_advertisement():
    """Submit `{title, description?, duration}`; the ad starts pending and unpaid."""
    payload = request.get_json(silent=True) or {}
    data = _commit_ad(lambda s: advertisement_service.create_advertisement(s, g.user, payload))
    return jsonify({'success': True, 'message': 'Advertisement submitted', 'ad': data}), 201


@advertisements_bp.route('/published', methods=['GET'])
def list_published():
    ads = advertisement_service.list_published(get_session())
    return jsonify({'success': True, 'ads': [ad.to_dict() for ad in ads]})


@advertisements_bp.route('/by-provider', methods=['GET'])
@require_role(UserRole.SERVICE_PROVIDER.value)
def list_mine():
    ads = advertisement_service.list_provider_ads(get_session(), g.user_id)
    return jsonify({'success': True, 'ads': [ad.to_dict() for ad in ads]})


@advertisements_bp.route('', methods=['GET'])
@require_role(UserRole.ADMIN.value)
def list_all():
    """Admin listing, optionally filtered with ?status=pending|approved|rejected."""
    ads = advertisement_service.list_by_status(get_session(), request.args.get('status'))
    return jsonify({'success': True, 'ads': [ad.to_dict() for ad in ads]})


@advertisements_bp.route('/<int:ad_id>/approve', methods=['PUT'])
@require_role(UserRole.ADMIN.value)
def approve(ad_id):
    data = _commit_ad(lambda s: advertisement_service.approve_advertisement(s, ad_id))
    return jsonify({'success': True, 'message': 'Advertisement approved', 'ad': data})


@advertisements_bp.route('/<int:ad_id>/reject', methods=['PUT'])
@require_role(UserRole.ADMIN.value)
def reject(ad_id):
    payload = request.get_json(silent=True) or {}
    data = _commit_ad(
        lambda s: advertisement_service.reject_advertisement(s, ad_id, payload.get('reason'))
    )
    return jsonify({'success': True, 'message': 'Advertisement rejected', 'ad': data})
