"""Cart model - one persistent cart per user."""
from sqlalchemy import Column, BigInteger, Numeric, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from petverse.database import Base, BigIntPK


class Cart(Base):
    """Cart (1:1 with User). Cleared, not deleted, on checkout."""

    __tablename__ = 'cart'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    user_id = Column(BigInteger, ForeignKey('app_user.id'), nullable=False, unique=True, index=True)
    subtotal = Column(Numeric(10, 2), nullable=False, default=0, server_default='0')
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    items = relationship(
        'CartItem',
        back_populates='cart',
        cascade='all, delete-orphan',
        order_by='CartItem.position'
    )

    def __repr__(self):
        return f"<Cart(id={self.id}, user_id={self.user_id}, items={len(self.items)})>"
