"""Cart service - persistent per-user cart operations."""

from decimal import Decimal
from sqlalchemy.orm import Session
from petverse.models import Cart, CartItem, Product
from petverse.exceptions import NotFoundError, ValidationError


def calculate_subtotal(items) -> Decimal:
    """Sum of unit price x quantity over cart lines."""
    total = sum((item.line_total for item in items), Decimal('0'))
    return Decimal(total).quantize(Decimal('0.01'))


def get_cart(session: Session, user_id: int):
    """Return the user's cart or None."""
    return session.query(Cart).filter(Cart.user_id == user_id).first()


def get_or_create_cart(session: Session, user_id: int) -> Cart:
    """
    Get existing cart or create an empty one.
    One cart per user.
    """
    cart = get_cart(session, user_id)
    if not cart:
        cart = Cart(user_id=user_id, subtotal=Decimal('0'))
        session.add(cart)
        session.flush()
    return cart


def _parse_quantity(quantity) -> int:
    try:
        qty = int(quantity)
    except (TypeError, ValueError):
        raise ValidationError('Quantity must be an integer')
    if qty < 1:
        raise ValidationError('Quantity must be at least 1')
    return qty


def _refresh_subtotal(session: Session, cart: Cart) -> Cart:
    cart.subtotal = calculate_subtotal(cart.items)
    session.flush()
    return cart


def add_item(session: Session, user_id: int, product_code: str, quantity=1) -> Cart:
    """Add product to cart or increase the quantity of its line."""
    qty = _parse_quantity(quantity)

    product = session.query(Product).filter(Product.code == product_code).first()
    if not product:
        raise NotFoundError('Product not found')
    if not product.active:
        raise ValidationError(f'Product "{product.name}" is not available')

    cart = get_or_create_cart(session, user_id)
    line = next((item for item in cart.items if item.product_code == product_code), None)

    if line:
        line.quantity += qty
    else:
        cart.items.append(CartItem(
            product_code=product.code,
            name=product.name,
            unit_price=product.price,
            image_url=product.image_url,
            quantity=qty,
            position=len(cart.items),
        ))

    return _refresh_subtotal(session, cart)


def update_item(session: Session, user_id: int, product_code: str, quantity) -> Cart:
    """Set the quantity of an existing line."""
    qty = _parse_quantity(quantity)

    cart = get_cart(session, user_id)
    if not cart:
        raise NotFoundError('Cart not found')

    line = next((item for item in cart.items if item.product_code == product_code), None)
    if not line:
        raise NotFoundError('Item not found')

    line.quantity = qty
    return _refresh_subtotal(session, cart)


def remove_item(session: Session, user_id: int, product_code: str) -> Cart:
    cart = get_cart(session, user_id)
    if not cart:
        raise NotFoundError('Cart not found')

    line = next((item for item in cart.items if item.product_code == product_code), None)
    if line:
        cart.items.remove(line)
    return _refresh_subtotal(session, cart)


def clear_cart(session: Session, cart: Cart) -> Cart:
    """Empty the cart; the row itself is kept."""
    cart.items.clear()
    cart.subtotal = Decimal('0')
    session.flush()
    return cart


def cart_to_dict(cart: Cart) -> dict:
    subtotal = float(cart.subtotal or 0) if cart else 0.0
    return {
        'cart': [item.to_dict() for item in cart.items] if cart else [],
        'subtotal': subtotal,
        'total': subtotal,  # delivery fee is applied at checkout
    }
