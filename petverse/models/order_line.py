"""Order line model."""
from sqlalchemy import Column, BigInteger, String, Integer, Numeric, ForeignKey
from sqlalchemy.orm import relationship
from petverse.database import Base, BigIntPK


class OrderLine(Base):
    """Order line - immutable snapshot of a fulfilled cart line."""

    __tablename__ = 'order_line'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    order_id = Column(BigInteger, ForeignKey('shop_order.id', ondelete='CASCADE'), nullable=False, index=True)
    product_code = Column(String(6), nullable=False)
    name = Column(String(200), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    # Set when stock only covered part of the requested quantity
    original_quantity = Column(Integer, nullable=True)

    order = relationship('Order', back_populates='lines')

    def to_dict(self):
        data = {
            'productID': self.product_code,
            'name': self.name,
            'pQuantity': self.quantity,
            'pPrice': float(self.unit_price),
        }
        if self.original_quantity is not None:
            data['originalQuantity'] = self.original_quantity
        return data

    def __repr__(self):
        return f"<OrderLine(order_id={self.order_id}, product='{self.product_code}', qty={self.quantity})>"
