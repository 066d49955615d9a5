"""Advertisement model."""
import enum
from sqlalchemy import Column, BigInteger, String, Integer, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from petverse.database import Base, BigIntPK


class AdvertisementStatus(str, enum.Enum):
    """Moderation status."""
    PENDING = 'pending'
    APPROVED = 'approved'
    REJECTED = 'rejected'


class AdvertisementPaymentStatus(str, enum.Enum):
    PENDING = 'pending'
    PAID = 'paid'


class Advertisement(Base):
    """Provider advertisement. Published only once approved AND paid."""

    __tablename__ = 'advertisement'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    provider_id = Column(BigInteger, ForeignKey('app_user.id'), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    duration_days = Column(Integer, nullable=False, default=7)
    status = Column(String(20), nullable=False, default=AdvertisementStatus.PENDING.value)
    payment_status = Column(String(20), nullable=False, default=AdvertisementPaymentStatus.PENDING.value)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    approved_at = Column(DateTime(timezone=True), nullable=True)
    rejection_reason = Column(Text, nullable=True)

    provider = relationship('User')

    @property
    def is_published(self):
        return (
            self.status == AdvertisementStatus.APPROVED.value
            and self.payment_status == AdvertisementPaymentStatus.PAID.value
        )

    def to_dict(self):
        return {
            'id': self.id,
            'provider_ID': self.provider_id,
            'title': self.title,
            'description': self.description,
            'duration': self.duration_days,
            'status': self.status,
            'paymentStatus': self.payment_status,
            'published': self.is_published,
            'approved_at': self.approved_at.isoformat() if self.approved_at else None,
            'rejectionReason': self.rejection_reason,
        }

    def __repr__(self):
        return f"<Advertisement(id={self.id}, status={self.status}, payment_status={self.payment_status})>"
