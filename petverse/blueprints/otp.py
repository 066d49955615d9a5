"""OTP blueprint - one-time password challenge before payment."""
from flask import Blueprint, jsonify, request, g, current_app
from petverse.database import get_session
from petverse.middleware import require_login
from petverse.exceptions import NotFoundError, ValidationError
from petverse.models import PaymentReference, ReferenceKind
from petverse.services.otp_service import OtpResult, get_otp_gateway
from petverse.services import payment_ledger
from petverse.metrics import otp_verifications_total

otp_bp = Blueprint('otp', __name__, url_prefix='/otp')


def _resource_from(payload):
    resource_type = payload.get('resourceType')
    resource_id = payload.get('resourceID')
    if not resource_type or resource_id in (None, ''):
        raise ValidationError('resourceType and resourceID are required')
    try:
        resource_id = int(resource_id)
    except (TypeError, ValueError):
        raise ValidationError('Invalid resourceID')
    return resource_type, resource_id


def _authorize(db_session, resource_type, resource_id):
    """Only the owner of the resource, or an admin, may request or use its codes."""
    try:
        reference = PaymentReference(ReferenceKind(resource_type), resource_id)
    except ValueError:
        raise ValidationError(f'Unsupported resourceType: {resource_type}')
    try:
        payment_ledger.authorize_reference(db_session, reference, g.user)
    except NotFoundError:
        # verify reports success without a payment for missing resources
        current_app.logger.info(f"[OTP] {resource_type} #{resource_id} not found, ownership not checked")


@otp_bp.route('/send-otp', methods=['POST'])
@require_login
def send_otp():
    payload = request.get_json(silent=True) or {}
    resource_type, resource_id = _resource_from(payload)
    destination = payload.get('email') or g.user.email
    _authorize(get_session(), resource_type, resource_id)

    get_otp_gateway().issue(resource_type, resource_id, destination)
    return jsonify({
        'success': True,
        'message': 'OTP sent successfully',
        'resourceType': resource_type,
        'resourceID': resource_id,
    })


@otp_bp.route('/resend-otp', methods=['POST'])
@require_login
def resend_otp():
    payload = request.get_json(silent=True) or {}
    resource_type, resource_id = _resource_from(payload)
    destination = payload.get('email') or g.user.email
    _authorize(get_session(), resource_type, resource_id)

    get_otp_gateway().resend(resource_type, resource_id, destination)
    return jsonify({
        'success': True,
        'message': 'OTP resent successfully',
        'resourceType': resource_type,
        'resourceID': resource_id,
    })


@otp_bp.route('/verify-otp', methods=['POST'])
@require_login
def verify_otp():
    """
    Verify a code. On success orders are paid immediately; appointments and
    advertisements receive a pending payment id for the final payment call.
    """
    payload = request.get_json(silent=True) or {}
    resource_type, resource_id = _resource_from(payload)
    code = payload.get('otp')
    if code in (None, ''):
        raise ValidationError('otp is required')

    db_session = get_session()
    _authorize(db_session, resource_type, resource_id)

    result = get_otp_gateway().verify(resource_type, resource_id, code)
    otp_verifications_total.labels(result=result.value).inc()
    if result != OtpResult.OK:
        return jsonify({'success': False, 'status': 'error', 'message': result.message}), 400

    try:
        payment = payment_ledger.open_payment_for_otp(db_session, resource_type, resource_id)
        response = {
            'success': True,
            'message': result.message,
            'resourceType': resource_type,
            'resourceID': resource_id,
        }
        if payment is not None:
            response['paymentID'] = payment.payment_code
            response['payment'] = payment.to_dict()
        db_session.commit()
    except Exception:
        db_session.rollback()
        current_app.logger.error(f"OTP for {resource_type} #{resource_id} consumed but payment step failed")
        raise

    return jsonify(response)
