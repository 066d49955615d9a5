"""
Inventory service - stock reads, reservations and admin product maintenance.

Stock is decremented when an order is created, not when it is paid.
Reservations never read-then-write: the decrement is a conditional UPDATE
keyed on the quantity that was read, retried when another checkout wins.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Optional

from sqlalchemy import update

from petverse.models import Product
from petverse.exceptions import ConflictError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

MAX_RESERVE_ATTEMPTS = 5

REASON_NOT_FOUND = 'Product not found'
REASON_INACTIVE = 'Product inactive'
REASON_OUT_OF_STOCK = 'Out of stock'


@dataclass(frozen=True)
class Reservation:
    """Outcome of a stock reservation for one cart line."""
    product_code: str
    requested: int
    granted: int
    available_before: int
    reason: Optional[str] = None

    @property
    def dropped(self) -> bool:
        return self.granted == 0

    @property
    def shortage(self) -> bool:
        """Partially fulfilled: some, but not all, of the requested units."""
        return 0 < self.granted < self.requested


def get_available(session, product_code: str) -> int:
    """Return the available quantity for a product code."""
    quantity = session.query(Product.quantity).filter(Product.code == product_code).scalar()
    if quantity is None:
        raise NotFoundError(f'Product {product_code} not found')
    return quantity


def reserve(session, product_code: str, requested_qty: int) -> Reservation:
    """
    Reserve up to `requested_qty` units of a product.

    Grants everything when stock allows, whatever is left when it does not,
    and nothing when the shelf is empty. Any non-zero grant is decremented
    in the same step.
    """
    if requested_qty < 1:
        raise ValidationError('Quantity must be at least 1')

    for attempt in range(1, MAX_RESERVE_ATTEMPTS + 1):
        row = (
            session.query(Product.quantity, Product.active)
            .filter(Product.code == product_code)
            .with_for_update()
            .first()
        )
        if row is None:
            raise NotFoundError(f'Product {product_code} not found')

        available, active = row
        if not active:
            return Reservation(product_code, requested_qty, 0, available, REASON_INACTIVE)
        if available <= 0:
            return Reservation(product_code, requested_qty, 0, available, REASON_OUT_OF_STOCK)

        granted = min(available, requested_qty)
        result = session.execute(
            update(Product)
            .where(Product.code == product_code, Product.quantity == available)
            .values(quantity=available - granted)
        )
        if result.rowcount == 1:
            reservation = Reservation(product_code, requested_qty, granted, available)
            if reservation.shortage:
                logger.info(
                    f"[INVENTORY] Partial reservation for {product_code}: "
                    f"requested={requested_qty}, granted={granted}"
                )
            return reservation

        logger.warning(
            f"[INVENTORY] Stock for {product_code} changed during reservation "
            f"(attempt {attempt}/{MAX_RESERVE_ATTEMPTS})"
        )

    raise ConflictError(f'Stock for {product_code} is changing too fast, please retry')


# =====================================================
# ADMIN PRODUCT MAINTENANCE
# =====================================================

def _parse_price(value) -> Decimal:
    try:
        price = Decimal(str(value)).quantize(Decimal('0.01'))
    except (InvalidOperation, ValueError):
        raise ValidationError('Price must be a number')
    if price < 0:
        raise ValidationError('Price cannot be negative')
    return price


def _parse_quantity(value) -> int:
    try:
        quantity = int(value)
    except (TypeError, ValueError):
        raise ValidationError('Quantity must be an integer')
    if quantity < 0:
        raise ValidationError('Quantity cannot be negative')
    return quantity


def get_product(session, product_code: str) -> Product:
    product = session.query(Product).filter(Product.code == product_code).first()
    if not product:
        raise NotFoundError(f'Product {product_code} not found')
    return product


def list_products(session, include_inactive: bool = False):
    query = session.query(Product)
    if not include_inactive:
        query = query.filter(Product.active.is_(True))
    return query.order_by(Product.name).all()


def create_product(session, data: dict) -> Product:
    """Create a product from admin input."""
    code = (data.get('productID') or '').strip()
    name = (data.get('name') or '').strip()
    if not 3 <= len(code) <= 6:
        raise ValidationError('productID must be 3 to 6 characters')
    if not name:
        raise ValidationError('name is required')
    if session.query(Product.id).filter(Product.code == code).first():
        raise ConflictError(f'Product {code} already exists')

    product = Product(
        code=code,
        name=name,
        description=data.get('description'),
        category=data.get('category'),
        price=_parse_price(data.get('price', 0)),
        quantity=_parse_quantity(data.get('quantity', 0)),
        image_url=data.get('image'),
        active=True,
    )
    session.add(product)
    session.flush()
    logger.info(f"[INVENTORY] Product {code} created with quantity={product.quantity}")
    return product


def update_product(session, product_code: str, data: dict) -> Product:
    """Update product fields. Setting `quantity` restocks the product."""
    product = get_product(session, product_code)

    if 'name' in data:
        if not (data['name'] or '').strip():
            raise ValidationError('name cannot be empty')
        product.name = data['name'].strip()
    if 'description' in data:
        product.description = data['description']
    if 'category' in data:
        product.category = data['category']
    if 'price' in data:
        product.price = _parse_price(data['price'])
    if 'image' in data:
        product.image_url = data['image']
    if 'active' in data:
        product.active = bool(data['active'])
    if 'quantity' in data:
        product.quantity = _parse_quantity(data['quantity'])
        logger.info(f"[INVENTORY] Product {product_code} restocked to {product.quantity}")

    session.flush()
    return product


def deactivate_product(session, product_code: str) -> Product:
    """Soft delete; historical orders keep referencing the code."""
    product = get_product(session, product_code)
    product.active = False
    session.flush()
    logger.info(f"[INVENTORY] Product {product_code} deactivated")
    return product
