"""
Order service - checkout and order queries.

Checkout turns the caller's cart into an order in one transaction:
reserve stock per line, drop or reduce what cannot be fulfilled, price the
rest, persist the order and clear the cart. The caller commits.
"""
import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import List

from flask import current_app

from petverse.models import (
    Order, OrderLine, OrderStatus, OrderPaymentStatus, OrderPaymentMethod, User,
    compute_order_total,
)
from petverse.exceptions import (
    EmptyCartError, ForbiddenError, NoItemsAvailableError, NotFoundError, ValidationError
)
from petverse.services import cart_service, inventory_service
from petverse.metrics import checkout_shortages_total

logger = logging.getLogger(__name__)


@dataclass
class CheckoutResult:
    order: Order
    out_of_stock_items: List[dict] = field(default_factory=list)
    reduced_items: List[dict] = field(default_factory=list)

    @property
    def message(self) -> str:
        message = 'Order created successfully'
        if self.out_of_stock_items:
            message += (f'. {len(self.out_of_stock_items)} item(s) were out of stock '
                        f'and not included in your order.')
        if self.reduced_items:
            message += f' {len(self.reduced_items)} item(s) were only partially available.'
        return message


def _parse_points(value) -> int:
    if value in (None, ''):
        return 0
    try:
        return max(0, int(value))
    except (TypeError, ValueError):
        raise ValidationError('pointsRedeemed must be an integer')


def _parse_payment_method(value) -> str:
    method = value or OrderPaymentMethod.COD.value
    try:
        return OrderPaymentMethod(method).value
    except ValueError:
        raise ValidationError(f'Invalid paymentMethod: {method}')


def _resolve_subtotal(payload: dict, computed: Decimal, user_id: int) -> Decimal:
    """
    Use the server-computed subtotal unless the client one is accepted by config.
    Mismatches are logged either way.
    """
    client_value = payload.get('subtotal')
    if client_value in (None, ''):
        return computed

    try:
        client_subtotal = Decimal(str(client_value)).quantize(Decimal('0.01'))
    except (InvalidOperation, ValueError):
        raise ValidationError('subtotal must be a number')
    if client_subtotal < 0:
        raise ValidationError('subtotal cannot be negative')

    if client_subtotal != computed:
        logger.warning(
            f"[CHECKOUT] User {user_id} subtotal mismatch: client={client_subtotal}, computed={computed}"
        )

    if current_app.config.get('ACCEPT_CLIENT_SUBTOTAL', True):
        return client_subtotal
    return computed


def checkout(session, user_id: int, payload: dict) -> CheckoutResult:
    """Create an order from the user's cart."""
    payment_method = _parse_payment_method(payload.get('paymentMethod'))
    requested_points = _parse_points(payload.get('pointsRedeemed'))

    cart = cart_service.get_cart(session, user_id)
    if cart is None or not cart.items:
        raise EmptyCartError()

    balance = session.query(User.loyalty_points).filter(User.id == user_id).scalar()
    if balance is None:
        raise NotFoundError('User not found')

    lines, out_of_stock, reduced = [], [], []
    for item in cart.items:
        try:
            reservation = inventory_service.reserve(session, item.product_code, item.quantity)
        except NotFoundError:
            out_of_stock.append(dict(item.to_dict(), reason=inventory_service.REASON_NOT_FOUND))
            continue

        if reservation.dropped:
            out_of_stock.append(dict(item.to_dict(), reason=reservation.reason))
            continue

        line = OrderLine(
            product_code=item.product_code,
            name=item.name,
            quantity=reservation.granted,
            unit_price=item.unit_price,
        )
        if reservation.shortage:
            line.original_quantity = reservation.requested
            reduced.append(dict(item.to_dict(), quantity=reservation.granted,
                                originalQuantity=reservation.requested))
        lines.append(line)

    if not lines:
        checkout_shortages_total.labels(kind='dropped').inc(len(out_of_stock))
        logger.info(f"[CHECKOUT] User {user_id} checkout rejected, nothing in stock")
        raise NoItemsAvailableError(out_of_stock)

    computed = sum((line.unit_price * line.quantity for line in lines), Decimal('0')).quantize(Decimal('0.01'))
    subtotal = _resolve_subtotal(payload, computed, user_id)

    points_redeemed = min(requested_points, balance)
    delivery_fee = Decimal(str(current_app.config.get('DELIVERY_FEE', 300)))
    total = compute_order_total(subtotal, delivery_fee, points_redeemed,
                                current_app.config.get('POINT_VALUE', 10))

    order = Order(
        user_id=user_id,
        billing_address=payload.get('billingAddress'),
        shipping_address=payload.get('shippingAddress'),
        subtotal=subtotal,
        delivery_fee=delivery_fee,
        points_redeemed=points_redeemed,
        total_amount=total,
        payment_method=payment_method,
        payment_status=OrderPaymentStatus.PENDING.value,
        status=OrderStatus.PROCESSING.value,
    )
    order.lines = lines
    session.add(order)
    cart_service.clear_cart(session, cart)
    session.flush()

    if out_of_stock:
        checkout_shortages_total.labels(kind='dropped').inc(len(out_of_stock))
    if reduced:
        checkout_shortages_total.labels(kind='reduced').inc(len(reduced))

    logger.info(
        f"[CHECKOUT] Order #{order.id} created for user {user_id}: lines={len(lines)}, "
        f"dropped={len(out_of_stock)}, reduced={len(reduced)}, total={total}"
    )
    return CheckoutResult(order, out_of_stock, reduced)


def get_order(session, order_id: int, user) -> Order:
    order = session.get(Order, order_id)
    if order is None:
        raise NotFoundError('Order not found')
    if order.user_id != user.id and not user.is_admin:
        raise ForbiddenError('You do not have access to this order')
    return order


def list_user_orders(session, user_id: int):
    return (
        session.query(Order)
        .filter(Order.user_id == user_id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )


def list_all_orders(session):
    return session.query(Order).order_by(Order.created_at.desc(), Order.id.desc()).all()


def update_fulfillment_status(session, order_id: int, status) -> Order:
    try:
        new_status = OrderStatus(status).value
    except ValueError:
        raise ValidationError(f'Invalid order status: {status}')

    order = session.get(Order, order_id)
    if order is None:
        raise NotFoundError('Order not found')

    order.status = new_status
    session.flush()
    logger.info(f"[ORDER] Order #{order_id} status -> {new_status}")
    return order
