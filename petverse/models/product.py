"""Product model."""
from sqlalchemy import Column, String, Boolean, Integer, Numeric, Text, DateTime, CheckConstraint
from sqlalchemy.sql import func
from petverse.database import Base, BigIntPK


class Product(Base):
    """Store product. `quantity` is the available stock."""

    __tablename__ = 'product'
    __table_args__ = (
        CheckConstraint('quantity >= 0', name='ck_product_quantity_non_negative'),
    )

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    code = Column(String(6), nullable=False, unique=True)  # human-assigned, 3-6 chars
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(100), nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    quantity = Column(Integer, nullable=False, default=0)
    image_url = Column(String(500), nullable=True)  # returned by the storage service
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    def to_dict(self):
        return {
            'productID': self.code,
            'name': self.name,
            'description': self.description,
            'category': self.category,
            'price': float(self.price),
            'quantity': self.quantity,
            'image': self.image_url,
            'active': self.active,
        }

    def __repr__(self):
        return f"<Product(id={self.id}, code='{self.code}', quantity={self.quantity})>"
