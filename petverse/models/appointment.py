"""Appointment model."""
import enum
from sqlalchemy import Column, String, Integer, Numeric, DateTime, Text
from sqlalchemy.sql import func
from petverse.database import Base, BigIntPK


class AppointmentPackage(str, enum.Enum):
    BASIC = 'Basic'
    PREMIUM = 'Premium'
    LUXURY = 'Luxury'


class AppointmentPaymentStatus(str, enum.Enum):
    UNPAID = 'unpaid'
    PAID = 'paid'


class Appointment(Base):
    """
    Service appointment.

    `user_uid` is the owner's external identity. `points_awarded` stays 0
    until the loyalty credit for this appointment has happened.
    """

    __tablename__ = 'appointment'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    appointment_code = Column(String(40), nullable=False, unique=True)
    user_uid = Column(String(128), nullable=False, index=True)
    package = Column(String(20), nullable=True)
    package_price = Column(Numeric(10, 2), nullable=False, default=0)
    status = Column(String(20), nullable=False, default='Pending')
    payment_status = Column(String(20), nullable=False, default=AppointmentPaymentStatus.UNPAID.value)
    points_awarded = Column(Integer, nullable=False, default=0, server_default='0')
    pet_name = Column(String(100), nullable=True)
    note = Column(Text, nullable=True)
    scheduled_for = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    def to_dict(self):
        return {
            'id': self.id,
            'appointment_id': self.appointment_code,
            'user_id': self.user_uid,
            'package': self.package,
            'packagePrice': float(self.package_price or 0),
            'status': self.status,
            'paymentStatus': self.payment_status,
            'points_awarded': self.points_awarded,
            'pet_name': self.pet_name,
            'note': self.note,
            'scheduledFor': self.scheduled_for.isoformat() if self.scheduled_for else None,
        }

    def __repr__(self):
        return f"<Appointment(id={self.id}, package='{self.package}', payment_status={self.payment_status})>"
