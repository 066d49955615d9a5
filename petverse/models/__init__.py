"""Models package - exports all SQLAlchemy models."""
from petverse.models.app_user import User, UserRole
from petverse.models.product import Product
from petverse.models.cart import Cart
from petverse.models.cart_item import CartItem
from petverse.models.order import (
    Order, OrderStatus, OrderPaymentStatus, OrderPaymentMethod, compute_order_total
)
from petverse.models.order_line import OrderLine
from petverse.models.appointment import Appointment, AppointmentPackage, AppointmentPaymentStatus
from petverse.models.advertisement import Advertisement, AdvertisementStatus, AdvertisementPaymentStatus
from petverse.models.payment import (
    Payment, PaymentStatus, PaymentReference, ReferenceKind, generate_payment_code
)

__all__ = [
    'User', 'UserRole',
    'Product', 'Cart', 'CartItem',
    'Order', 'OrderStatus', 'OrderPaymentStatus', 'OrderPaymentMethod', 'compute_order_total',
    'OrderLine',
    'Appointment', 'AppointmentPackage', 'AppointmentPaymentStatus',
    'Advertisement', 'AdvertisementStatus', 'AdvertisementPaymentStatus',
    'Payment', 'PaymentStatus', 'PaymentReference', 'ReferenceKind', 'generate_payment_code',
]
