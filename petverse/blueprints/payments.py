"""Payments blueprint - order, appointment, advertisement and demo payments."""
from flask import Blueprint, jsonify, request, g
from petverse.database import get_session
from petverse.middleware import require_login
from petverse.decorators.permissions import require_role
from petverse.exceptions import ValidationError
from petverse.models import PaymentReference, PaymentStatus, UserRole
from petverse.services import payment_ledger

payments_bp = Blueprint('payments', __name__, url_prefix='/payments')


def _require_amount(payload):
    if payload.get('amount') in (None, ''):
        raise ValidationError('Missing required fields: amount')
    return payload['amount']


def _payment_response(payment, status_code=201, applied=None):
    body = {
        'success': payment.status == PaymentStatus.SUCCESS.value,
        'message': f'Payment {payment.status}',
        'payment': payment.to_dict(),
    }
    if applied is not None:
        body['applied'] = applied
    return jsonify(body), status_code


@payments_bp.route('', methods=['POST'])
@require_login
def create_order_payment():
    """Card payment for an order. `simulate: "failed"` records a declined charge."""
    payload = request.get_json(silent=True) or {}
    amount = _require_amount(payload)
    db_session = get_session()
    try:
        reference = PaymentReference.from_fields(order_id=payload.get('orderID'))
        payment_ledger.authorize_reference(db_session, reference, g.user)
        payment = payment_ledger.settle_order_payment(
            db_session,
            reference.id,
            amount,
            payment_type=payload.get('paymentType', 'card'),
            transaction_id=payload.get('referenceId'),
            simulate=payload.get('simulate'),
        )
        response = _payment_response(payment)
        db_session.commit()
    except Exception:
        db_session.rollback()
        raise
    return response


@payments_bp.route('/appointment', methods=['POST'])
@require_login
def create_appointment_payment():
    payload = request.get_json(silent=True) or {}
    amount = _require_amount(payload)
    db_session = get_session()
    try:
        reference = PaymentReference.from_fields(appointment_id=payload.get('appointmentID'))
        payment_ledger.authorize_reference(db_session, reference, g.user)
        confirmation = payment_ledger.settle_appointment_payment(
            db_session,
            reference.id,
            amount,
            payment_type=payload.get('paymentType', 'card'),
            transaction_id=payload.get('referenceId'),
            payment_id=payload.get('paymentID'),
        )
        response = _payment_response(confirmation.payment, applied=confirmation.applied)
        db_session.commit()
    except Exception:
        db_session.rollback()
        raise
    return response


@payments_bp.route('/advertisement', methods=['POST'])
@require_login
def create_advertisement_payment():
    payload = request.get_json(silent=True) or {}
    amount = _require_amount(payload)
    db_session = get_session()
    try:
        reference = PaymentReference.from_fields(advertisement_id=payload.get('adId'))
        payment_ledger.authorize_reference(db_session, reference, g.user)
        confirmation = payment_ledger.settle_advertisement_payment(
            db_session,
            reference.id,
            amount,
            payment_type=payload.get('paymentType', 'card'),
            transaction_id=payload.get('referenceId'),
            payment_id=payload.get('paymentID'),
        )
        response = _payment_response(confirmation.payment, applied=confirmation.applied)
        db_session.commit()
    except Exception:
        db_session.rollback()
        raise
    return response


@payments_bp.route('/demo/pay', methods=['POST'])
@require_login
def demo_pay():
    """Instant success for demos; pays either an order or an appointment."""
    payload = request.get_json(silent=True) or {}
    amount = _require_amount(payload)
    db_session = get_session()
    try:
        reference = PaymentReference.from_fields(
            order_id=payload.get('orderID'),
            appointment_id=payload.get('appointmentID'),
        )
        payment_ledger.authorize_reference(db_session, reference, g.user)
        confirmation = payment_ledger.settle_demo_payment(
            db_session,
            amount,
            order_id=payload.get('orderID'),
            appointment_id=payload.get('appointmentID'),
            transaction_id=payload.get('referenceId'),
        )
        response = _payment_response(confirmation.payment, applied=confirmation.applied)
        db_session.commit()
    except Exception:
        db_session.rollback()
        raise
    return response


@payments_bp.route('/admin/all', methods=['GET'])
@require_role(UserRole.ADMIN.value)
def list_payments():
    db_session = get_session()
    payments = payment_ledger.list_payments(db_session)
    return jsonify({'success': True, 'payments': [p.to_dict() for p in payments]})


@payments_bp.route('/<payment_ref>', methods=['GET'])
@require_login
def get_payment(payment_ref):
    db_session = get_session()
    payment = payment_ledger.get_payment(db_session, payment_ref)
    payment_ledger.authorize_reference(db_session, payment.reference, g.user)
    return jsonify({'success': True, 'payment': payment.to_dict()})


@payments_bp.route('/<payment_ref>', methods=['PUT'])
@require_login
def update_payment(payment_ref):
    """Move a payment to success or failed. Confirming twice is a no-op."""
    payload = request.get_json(silent=True) or {}
    if not payload.get('status'):
        raise ValidationError('status is required')

    db_session = get_session()
    try:
        payment = payment_ledger.get_payment(db_session, payment_ref)
        payment_ledger.authorize_reference(db_session, payment.reference, g.user)
        confirmation = payment_ledger.update_payment_status(db_session, payment.id, payload['status'])
        response = _payment_response(confirmation.payment, status_code=200, applied=confirmation.applied)
        db_session.commit()
    except Exception:
        db_session.rollback()
        raise
    return response
