"""Cart line item with a product snapshot."""
from sqlalchemy import Column, BigInteger, String, Integer, Numeric, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from petverse.database import Base, BigIntPK


class CartItem(Base):
    """Cart line. Name, price and image are copied from the product when added."""

    __tablename__ = 'cart_item'
    __table_args__ = (
        CheckConstraint('quantity >= 1', name='ck_cart_item_quantity_positive'),
    )

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    cart_id = Column(BigInteger, ForeignKey('cart.id', ondelete='CASCADE'), nullable=False, index=True)
    product_code = Column(String(6), nullable=False)
    name = Column(String(200), nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    image_url = Column(String(500), nullable=True)
    quantity = Column(Integer, nullable=False, default=1)
    position = Column(Integer, nullable=False, default=0)

    cart = relationship('Cart', back_populates='items')

    @property
    def line_total(self):
        return self.unit_price * self.quantity

    def to_dict(self):
        return {
            'productId': self.product_code,
            'name': self.name,
            'price': float(self.unit_price),
            'image': self.image_url,
            'quantity': self.quantity,
        }

    def __repr__(self):
        return f"<CartItem(cart_id={self.cart_id}, product='{self.product_code}', qty={self.quantity})>"
