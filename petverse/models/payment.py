"""Payment model - unified ledger of charges against orders, appointments and ads."""
import enum
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from sqlalchemy import Column, BigInteger, String, Numeric, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from petverse.database import Base, BigIntPK
from petverse.exceptions import AmbiguousReferenceError, ValidationError


class PaymentStatus(str, enum.Enum):
    PENDING = 'pending'
    SUCCESS = 'success'
    FAILED = 'failed'


class ReferenceKind(str, enum.Enum):
    """What a payment is charged against."""
    ORDER = 'order'
    APPOINTMENT = 'appointment'
    ADVERTISEMENT = 'advertisement'


_REFERENCE_COLUMNS = {
    ReferenceKind.ORDER: 'order_id',
    ReferenceKind.APPOINTMENT: 'appointment_id',
    ReferenceKind.ADVERTISEMENT: 'advertisement_id',
}


@dataclass(frozen=True)
class PaymentReference:
    """
    Tagged reference: Order(id) | Appointment(id) | Advertisement(id).

    A Payment is only ever built from one of these, so a payment pointing at
    zero or several resources cannot be constructed.
    """
    kind: ReferenceKind
    id: int

    @classmethod
    def order(cls, order_id):
        return cls(ReferenceKind.ORDER, int(order_id))

    @classmethod
    def appointment(cls, appointment_id):
        return cls(ReferenceKind.APPOINTMENT, int(appointment_id))

    @classmethod
    def advertisement(cls, advertisement_id):
        return cls(ReferenceKind.ADVERTISEMENT, int(advertisement_id))

    @classmethod
    def from_fields(cls, order_id=None, appointment_id=None, advertisement_id=None):
        """Build the variant from optional request fields; exactly one must be set."""
        supplied = [
            (kind, value)
            for kind, value in (
                (ReferenceKind.ORDER, order_id),
                (ReferenceKind.APPOINTMENT, appointment_id),
                (ReferenceKind.ADVERTISEMENT, advertisement_id),
            )
            if value not in (None, '')
        ]
        if len(supplied) != 1:
            raise AmbiguousReferenceError(len(supplied))

        kind, value = supplied[0]
        try:
            return cls(kind, int(value))
        except (TypeError, ValueError):
            raise ValidationError(f'Invalid {kind.value} ID')

    @property
    def column(self):
        return _REFERENCE_COLUMNS[self.kind]


def generate_payment_code(now=None) -> str:
    """PAY-YYYYMMDD-XXXXXXXX."""
    now = now or datetime.now(timezone.utc)
    return f"PAY-{now:%Y%m%d}-{uuid.uuid4().hex[:8].upper()}"


class Payment(Base):
    """
    Payment - a monetary transaction against exactly one resource.

    The status only moves pending -> success or pending -> failed, and the
    move to success is done by the payment ledger's conditional update.
    """

    __tablename__ = 'payment'
    __table_args__ = (
        CheckConstraint(
            '(CASE WHEN order_id IS NULL THEN 0 ELSE 1 END)'
            ' + (CASE WHEN appointment_id IS NULL THEN 0 ELSE 1 END)'
            ' + (CASE WHEN advertisement_id IS NULL THEN 0 ELSE 1 END) = 1',
            name='ck_payment_single_reference'
        ),
    )

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    payment_code = Column(String(32), nullable=False, unique=True)
    order_id = Column(BigInteger, ForeignKey('shop_order.id'), nullable=True, index=True)
    appointment_id = Column(BigInteger, ForeignKey('appointment.id'), nullable=True, index=True)
    advertisement_id = Column(BigInteger, ForeignKey('advertisement.id'), nullable=True, index=True)
    transaction_id = Column(String(64), nullable=True)
    amount = Column(Numeric(10, 2), nullable=False)
    payment_type = Column(String(20), nullable=False, default='card')
    status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    order = relationship('Order', back_populates='payments')
    appointment = relationship('Appointment')
    advertisement = relationship('Advertisement')

    def __init__(self, reference, **kwargs):
        if not isinstance(reference, PaymentReference):
            raise AmbiguousReferenceError(0)
        for column in _REFERENCE_COLUMNS.values():
            if column in kwargs:
                raise TypeError(f"'{column}' is set through the payment reference")
        kwargs[reference.column] = reference.id
        kwargs.setdefault('payment_code', generate_payment_code())
        kwargs.setdefault('status', PaymentStatus.PENDING.value)
        super().__init__(**kwargs)

    @property
    def reference(self) -> PaymentReference:
        for kind, column in _REFERENCE_COLUMNS.items():
            value = getattr(self, column)
            if value is not None:
                return PaymentReference(kind, value)
        raise AmbiguousReferenceError(0)

    def to_dict(self):
        return {
            'id': self.id,
            'paymentID': self.payment_code,
            'orderID': self.order_id,
            'appointmentID': self.appointment_id,
            'ad_ID': self.advertisement_id,
            'transactionID': self.transaction_id,
            'amount': float(self.amount),
            'paymentType': self.payment_type,
            'status': self.status,
            'paidAt': self.paid_at.isoformat() if self.paid_at else None,
        }

    def __repr__(self):
        return f"<Payment(id={self.id}, code='{self.payment_code}', status={self.status})>"
