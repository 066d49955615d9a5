"""Order model."""
import enum
from decimal import Decimal
from sqlalchemy import Column, BigInteger, String, Integer, Numeric, DateTime, JSON, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from petverse.database import Base, BigIntPK


class OrderPaymentStatus(str, enum.Enum):
    """Order-side view of payment. Only the payment ledger moves it to SUCCESS."""
    PENDING = 'pending'
    SUCCESS = 'success'


class OrderStatus(str, enum.Enum):
    """Fulfillment status, updated by providers after payment."""
    PROCESSING = 'processing'
    SHIPPED = 'shipped'
    DELIVERED = 'delivered'
    CANCELLED = 'cancelled'


class OrderPaymentMethod(str, enum.Enum):
    ONLINE = 'online'
    BANK_TRANSFER = 'bank_transfer'
    COD = 'cod'
    CARD = 'card'


def compute_order_total(subtotal, delivery_fee, points_redeemed, point_value) -> Decimal:
    """total = max(0, subtotal + delivery_fee - points_redeemed * point_value)."""
    discount = Decimal(points_redeemed) * Decimal(point_value)
    total = Decimal(subtotal) + Decimal(delivery_fee) - discount
    return max(Decimal('0.00'), total).quantize(Decimal('0.01'))


class Order(Base):
    """
    Order built from a cart snapshot at checkout.

    Lines are copies of the cart, decoupled from the live product table, so
    historical orders never change when prices or stock do.
    """

    __tablename__ = 'shop_order'
    __table_args__ = (
        CheckConstraint('points_redeemed >= 0', name='ck_order_points_non_negative'),
        CheckConstraint('total_amount >= 0', name='ck_order_total_non_negative'),
    )

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    user_id = Column(BigInteger, ForeignKey('app_user.id'), nullable=False, index=True)
    billing_address = Column(JSON, nullable=True)
    shipping_address = Column(JSON, nullable=True)
    subtotal = Column(Numeric(10, 2), nullable=False, default=0)
    delivery_fee = Column(Numeric(10, 2), nullable=False, default=0)
    points_redeemed = Column(Integer, nullable=False, default=0, server_default='0')
    total_amount = Column(Numeric(10, 2), nullable=False)
    payment_method = Column(String(20), nullable=False, default=OrderPaymentMethod.COD.value)
    payment_status = Column(String(20), nullable=False, default=OrderPaymentStatus.PENDING.value)
    status = Column(String(20), nullable=False, default=OrderStatus.PROCESSING.value)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    user = relationship('User')
    lines = relationship('OrderLine', back_populates='order', cascade='all, delete-orphan')
    payments = relationship('Payment', back_populates='order')

    def to_dict(self):
        return {
            'id': self.id,
            'userID': self.user_id,
            'items': [line.to_dict() for line in self.lines],
            'billingAddress': self.billing_address or {},
            'shippingAddress': self.shipping_address or {},
            'subtotal': float(self.subtotal),
            'deliveryFee': float(self.delivery_fee),
            'pointsRedeemed': self.points_redeemed,
            'totalAmount': float(self.total_amount),
            'paymentMethod': self.payment_method,
            'paymentStatus': self.payment_status,
            'status': self.status,
            'date': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Order(id={self.id}, total={self.total_amount}, payment_status={self.payment_status})>"
