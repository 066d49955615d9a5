"""
Payment ledger.

Every payment, whatever it pays for, becomes successful through
`confirm_payment`. The pending -> success move is a conditional UPDATE; the
caller whose update took effect is the only one that settles the referenced
resource and moves loyalty points, so retries, duplicate webhooks and the
OTP + direct-update double path cannot apply side effects twice.
"""
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Optional

from sqlalchemy import update

from petverse.models import (
    Advertisement, AdvertisementPaymentStatus,
    Appointment, AppointmentPaymentStatus,
    Order, OrderPaymentStatus,
    Payment, PaymentReference, PaymentStatus, ReferenceKind,
)
from petverse.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from petverse.services import loyalty_service
from petverse.metrics import payments_confirmed_total

logger = logging.getLogger(__name__)

SIMULATED_DECLINES = frozenset({'fail', 'failed', 'decline', 'declined'})

_TRANSACTION_PREFIXES = {
    ReferenceKind.ORDER: 'TXN',
    ReferenceKind.APPOINTMENT: 'TXN-APPT',
    ReferenceKind.ADVERTISEMENT: 'TXN-AD',
}

_TARGET_MODELS = {
    ReferenceKind.ORDER: Order,
    ReferenceKind.APPOINTMENT: Appointment,
    ReferenceKind.ADVERTISEMENT: Advertisement,
}


@dataclass(frozen=True)
class Confirmation:
    payment: Payment
    applied: bool


def simulate_card_outcome(simulate) -> PaymentStatus:
    """Deterministic stand-in for a card processor."""
    if isinstance(simulate, str) and simulate.strip().lower() in SIMULATED_DECLINES:
        return PaymentStatus.FAILED
    return PaymentStatus.SUCCESS


def generate_transaction_id(prefix: str = 'TXN') -> str:
    return f"{prefix}-{int(time.time() * 1000)}"


def parse_amount(value, allow_zero: bool = False) -> Decimal:
    try:
        amount = Decimal(str(value)).quantize(Decimal('0.01'))
    except (InvalidOperation, ValueError):
        raise ValidationError('Amount must be a number')
    if amount < 0 or (amount == 0 and not allow_zero):
        raise ValidationError('Amount must be greater than zero')
    return amount


def load_target(session, reference: PaymentReference):
    """Return the order, appointment or advertisement a reference points at."""
    model = _TARGET_MODELS[reference.kind]
    target = session.get(model, reference.id)
    if target is None:
        raise NotFoundError(f'{reference.kind.value.capitalize()} not found')
    return target


def authorize_reference(session, reference: PaymentReference, user) -> None:
    """Only the owner of the referenced resource, or an admin, may pay for it."""
    target = load_target(session, reference)
    if user.is_admin:
        return
    if reference.kind == ReferenceKind.ORDER:
        owner_matches = target.user_id == user.id
    elif reference.kind == ReferenceKind.APPOINTMENT:
        owner_matches = target.user_uid == user.external_uid
    else:
        owner_matches = target.provider_id == user.id
    if not owner_matches:
        raise ForbiddenError('You do not have access to this resource')


# =====================================================
# LEDGER PRIMITIVES
# =====================================================

def create_payment(session, reference: PaymentReference, amount, payment_type: str = 'card',
                   transaction_id: Optional[str] = None, prefix: str = 'TXN') -> Payment:
    """Record a pending payment against an existing resource."""
    load_target(session, reference)
    payment = Payment(
        reference,
        amount=amount,
        payment_type=payment_type or 'card',
        transaction_id=transaction_id or generate_transaction_id(prefix),
    )
    session.add(payment)
    session.flush()
    logger.info(
        f"[PAYMENT] Created {payment.payment_code} for {reference.kind.value} #{reference.id} "
        f"amount={payment.amount}"
    )
    return payment


def get_payment(session, payment_ref) -> Payment:
    """Look a payment up by numeric id or by its PAY-... code."""
    payment = None
    if isinstance(payment_ref, int) or str(payment_ref).isdigit():
        payment = session.get(Payment, int(payment_ref))
    if payment is None:
        payment = session.query(Payment).filter(Payment.payment_code == str(payment_ref)).first()
    if payment is None:
        raise NotFoundError('Payment not found')
    return payment


def list_payments(session):
    return session.query(Payment).order_by(Payment.created_at.desc(), Payment.id.desc()).all()


def confirm_payment(session, payment_id: int) -> Confirmation:
    """
    Move a payment to success and settle what it pays for.

    Idempotent: confirming an already successful payment returns it with
    `applied=False` and changes nothing. A failed payment cannot be confirmed.
    """
    result = session.execute(
        update(Payment)
        .where(Payment.id == payment_id, Payment.status == PaymentStatus.PENDING.value)
        .values(status=PaymentStatus.SUCCESS.value, paid_at=datetime.now(timezone.utc))
    )
    payment = session.get(Payment, payment_id)
    if payment is None:
        raise NotFoundError('Payment not found')

    if result.rowcount != 1:
        session.refresh(payment)
        if payment.status == PaymentStatus.FAILED.value:
            raise ConflictError('Payment has already failed')
        logger.info(f"[PAYMENT] {payment.payment_code} already confirmed, no side effects applied")
        return Confirmation(payment, applied=False)

    reference = payment.reference
    if reference.kind == ReferenceKind.ORDER:
        _settle_order(session, reference.id)
    elif reference.kind == ReferenceKind.APPOINTMENT:
        _settle_appointment(session, reference.id)
    else:
        _settle_advertisement(session, reference.id)

    payments_confirmed_total.labels(reference=reference.kind.value).inc()
    logger.info(f"[PAYMENT] ✓ {payment.payment_code} confirmed for {reference.kind.value} #{reference.id}")
    return Confirmation(payment, applied=True)


def fail_payment(session, payment_id: int) -> Payment:
    result = session.execute(
        update(Payment)
        .where(Payment.id == payment_id, Payment.status == PaymentStatus.PENDING.value)
        .values(status=PaymentStatus.FAILED.value)
    )
    payment = session.get(Payment, payment_id)
    if payment is None:
        raise NotFoundError('Payment not found')
    if result.rowcount != 1:
        session.refresh(payment)
        if payment.status == PaymentStatus.SUCCESS.value:
            raise ConflictError('Payment has already succeeded')
        return payment
    logger.info(f"[PAYMENT] ✗ {payment.payment_code} marked failed")
    return payment


def update_payment_status(session, payment_id: int, status) -> Confirmation:
    """Generic status update; success goes through confirm_payment."""
    try:
        target = PaymentStatus(status)
    except ValueError:
        raise ValidationError(f'Invalid payment status: {status}')

    if target == PaymentStatus.SUCCESS:
        return confirm_payment(session, payment_id)
    if target == PaymentStatus.FAILED:
        return Confirmation(fail_payment(session, payment_id), applied=False)

    payment = session.get(Payment, payment_id)
    if payment is None:
        raise NotFoundError('Payment not found')
    if payment.status != PaymentStatus.PENDING.value:
        raise ConflictError(f'Payment is already {payment.status}')
    return Confirmation(payment, applied=False)


# =====================================================
# SIDE EFFECTS (winner of the payment update only)
# =====================================================

def _run_loyalty(session, action, description: str) -> None:
    """Loyalty failures are logged; the confirmation stands."""
    try:
        with session.begin_nested():
            action()
    except Exception as e:
        logger.exception(f"[LOYALTY] ✗ {description} failed: {e}")


def _settle_order(session, order_id: int) -> None:
    moved = session.execute(
        update(Order)
        .where(Order.id == order_id, Order.payment_status != OrderPaymentStatus.SUCCESS.value)
        .values(payment_status=OrderPaymentStatus.SUCCESS.value)
    ).rowcount == 1
    if not moved:
        logger.info(f"[PAYMENT] Order #{order_id} already paid, skipping loyalty debit")
        return

    order = session.get(Order, order_id)
    _run_loyalty(session, lambda: loyalty_service.debit_for_order(session, order),
                 f"Debit for order #{order_id}")


def _settle_appointment(session, appointment_id: int) -> None:
    session.execute(
        update(Appointment)
        .where(Appointment.id == appointment_id,
               Appointment.payment_status != AppointmentPaymentStatus.PAID.value)
        .values(payment_status=AppointmentPaymentStatus.PAID.value)
    )
    appointment = session.get(Appointment, appointment_id)
    _run_loyalty(session, lambda: loyalty_service.credit_for_appointment(session, appointment),
                 f"Credit for appointment #{appointment_id}")


def _settle_advertisement(session, advertisement_id: int) -> None:
    session.execute(
        update(Advertisement)
        .where(Advertisement.id == advertisement_id)
        .values(payment_status=AdvertisementPaymentStatus.PAID.value)
    )


# =====================================================
# HTTP ORCHESTRATION
# =====================================================

def settle_order_payment(session, order_id, amount, payment_type='card',
                         transaction_id=None, simulate=None) -> Payment:
    """Card payment for an order; a simulated decline leaves it failed."""
    reference = _reference(PaymentReference.order, order_id, 'orderID')
    payment = create_payment(session, reference, parse_amount(amount), payment_type, transaction_id)
    if simulate_card_outcome(simulate) == PaymentStatus.FAILED:
        return fail_payment(session, payment.id)
    return confirm_payment(session, payment.id).payment


def settle_appointment_payment(session, appointment_id, amount, payment_type='card',
                               transaction_id=None, payment_id=None) -> Confirmation:
    reference = _reference(PaymentReference.appointment, appointment_id, 'appointmentID')
    return _settle_reference(session, reference, amount, payment_type, transaction_id, payment_id)


def settle_advertisement_payment(session, advertisement_id, amount, payment_type='card',
                                 transaction_id=None, payment_id=None) -> Confirmation:
    reference = _reference(PaymentReference.advertisement, advertisement_id, 'adId')
    return _settle_reference(session, reference, amount, payment_type, transaction_id, payment_id)


def settle_demo_payment(session, amount, order_id=None, appointment_id=None,
                        payment_type='demo', transaction_id=None) -> Confirmation:
    reference = PaymentReference.from_fields(order_id=order_id, appointment_id=appointment_id)
    payment = create_payment(session, reference, parse_amount(amount), payment_type,
                             transaction_id, prefix='DEMO')
    return confirm_payment(session, payment.id)


def open_payment_for_otp(session, resource_type: str, resource_id) -> Optional[Payment]:
    """
    Payment step that follows a verified OTP.

    Orders are confirmed right away for their total. Appointments and
    advertisements get a pending payment whose id the client submits with the
    final payment call. Returns None when the resource does not exist.
    """
    try:
        reference = PaymentReference(ReferenceKind(resource_type), int(resource_id))
    except (TypeError, ValueError):
        raise ValidationError('Invalid resourceType or resourceID')

    try:
        target = load_target(session, reference)
    except NotFoundError:
        logger.warning(f"[PAYMENT] OTP verified for missing {resource_type} #{resource_id}")
        return None

    existing = (
        session.query(Payment)
        .filter(getattr(Payment, reference.column) == reference.id,
                Payment.status != PaymentStatus.FAILED.value)
        .order_by(Payment.id)
        .all()
    )
    settled = next((p for p in existing if p.status == PaymentStatus.SUCCESS.value), None)
    if settled is not None:
        return settled
    pending = existing[0] if existing else None

    if reference.kind == ReferenceKind.ORDER:
        if pending is None:
            pending = create_payment(session, reference, target.total_amount,
                                     target.payment_method)
        return confirm_payment(session, pending.id).payment

    if pending is None:
        amount = target.package_price if reference.kind == ReferenceKind.APPOINTMENT else Decimal('0')
        pending = create_payment(session, reference, amount, 'card',
                                 prefix=_TRANSACTION_PREFIXES[reference.kind])
    return pending


def _reference(factory, value, field_name: str) -> PaymentReference:
    if value in (None, ''):
        raise ValidationError(f'{field_name} is required')
    try:
        return factory(value)
    except (TypeError, ValueError):
        raise ValidationError(f'Invalid {field_name}')


def _settle_reference(session, reference, amount, payment_type, transaction_id,
                      payment_id) -> Confirmation:
    amount = parse_amount(amount)
    if payment_id:
        payment = get_payment(session, payment_id)
        if payment.reference != reference:
            raise ConflictError(
                f'Payment {payment.payment_code} does not belong to {reference.kind.value} #{reference.id}'
            )
        if payment.status == PaymentStatus.PENDING.value:
            payment.amount = amount
            payment.payment_type = payment_type or payment.payment_type
            if transaction_id:
                payment.transaction_id = transaction_id
            session.flush()
    else:
        payment = create_payment(session, reference, amount, payment_type, transaction_id,
                                 prefix=_TRANSACTION_PREFIXES[reference.kind])
    return confirm_payment(session, payment.id)
