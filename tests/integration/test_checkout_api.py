"""
Integration tests for checkout and the orders API.
"""

import pytest

from petverse.models import Cart, Order, Product, User


@pytest.fixture
def stocked_cart(session, owner_client, make_product):
    """DOG01 x2 (5 in stock), CAT01 x3 (2 in stock), BRD01 x1 (sold out)."""
    make_product('DOG01', 5, price='1000.00')
    make_product('CAT01', 2, price='500.00')
    make_product('BRD01', 0, price='200.00')
    for code, qty in (('DOG01', 2), ('CAT01', 3), ('BRD01', 1)):
        response = owner_client.post('/cart/add', json={'productId': code, 'quantity': qty})
        assert response.status_code == 200
    return owner_client


def _stock(session, code):
    session.expire_all()
    return session.query(Product.quantity).filter_by(code=code).scalar()


class TestCheckout:

    def test_partial_fulfillment(self, session, stocked_cart, pet_owner):
        user_id = pet_owner.id

        response = stocked_cart.post('/orders', json={
            'billingAddress': {'city': 'Colombo'},
            'shippingAddress': {'city': 'Kandy'},
            'paymentMethod': 'card',
            'pointsRedeemed': 20,
        })

        assert response.status_code == 201
        data = response.get_json()
        order = data['order']

        lines = {line['productID']: line for line in order['items']}
        assert set(lines) == {'DOG01', 'CAT01'}
        assert lines['DOG01']['pQuantity'] == 2
        assert lines['CAT01']['pQuantity'] == 2
        assert lines['CAT01']['originalQuantity'] == 3

        assert [item['productId'] for item in data['outOfStockItems']] == ['BRD01']
        assert data['outOfStockItems'][0]['reason'] == 'Out of stock'
        assert data['reducedItems'][0]['originalQuantity'] == 3
        assert '1 item(s) were out of stock' in data['message']

        assert order['subtotal'] == 3000.0
        assert order['deliveryFee'] == 300.0
        assert order['pointsRedeemed'] == 20
        assert order['totalAmount'] == 3100.0
        assert order['paymentStatus'] == 'pending'
        assert order['status'] == 'processing'
        assert order['shippingAddress'] == {'city': 'Kandy'}

        assert _stock(session, 'DOG01') == 3
        assert _stock(session, 'CAT01') == 0
        assert _stock(session, 'BRD01') == 0

        # points are debited on payment, not at checkout
        assert session.get(User, user_id).loyalty_points == 100

        cart = session.query(Cart).filter_by(user_id=user_id).one()
        assert cart.items == []

    def test_nothing_available_leaves_cart_untouched(self, session, owner_client, make_product, pet_owner):
        user_id = pet_owner.id
        make_product('BRD01', 1)
        owner_client.post('/cart/add', json={'productId': 'BRD01', 'quantity': 1})
        product = session.query(Product).filter_by(code='BRD01').one()
        product.quantity = 0
        session.commit()

        response = owner_client.post('/orders', json={'paymentMethod': 'cod'})

        assert response.status_code == 400
        data = response.get_json()
        assert data['success'] is False
        assert data['outOfStockItems'][0]['productId'] == 'BRD01'
        assert session.query(Order).count() == 0

        session.expire_all()
        cart = session.query(Cart).filter_by(user_id=user_id).one()
        assert [item.product_code for item in cart.items] == ['BRD01']

    def test_product_removed_after_adding_is_reported(self, session, owner_client, make_product):
        make_product('DOG01', 5)
        make_product('OLD01', 5)
        owner_client.post('/cart/add', json={'productId': 'DOG01', 'quantity': 1})
        owner_client.post('/cart/add', json={'productId': 'OLD01', 'quantity': 1})
        session.query(Product).filter_by(code='OLD01').delete()
        session.commit()

        response = owner_client.post('/orders', json={})

        assert response.status_code == 201
        dropped = response.get_json()['outOfStockItems']
        assert dropped[0]['productId'] == 'OLD01'
        assert dropped[0]['reason'] == 'Product not found'

    def test_empty_cart(self, owner_client):
        response = owner_client.post('/orders', json={'paymentMethod': 'cod'})
        assert response.status_code == 400
        assert response.get_json()['message'] == 'Cart is empty'

    def test_points_clamped_to_balance_and_total_to_zero(self, owner_client, make_product):
        make_product('DOG01', 5, price='100.00')
        owner_client.post('/cart/add', json={'productId': 'DOG01', 'quantity': 1})

        response = owner_client.post('/orders', json={'pointsRedeemed': 500})

        order = response.get_json()['order']
        assert order['pointsRedeemed'] == 100
        assert order['totalAmount'] == 0.0

    def test_negative_points_are_ignored(self, owner_client, make_product):
        make_product('DOG01', 5, price='100.00')
        owner_client.post('/cart/add', json={'productId': 'DOG01', 'quantity': 1})

        order = owner_client.post('/orders', json={'pointsRedeemed': -5}).get_json()['order']

        assert order['pointsRedeemed'] == 0
        assert order['totalAmount'] == 400.0

    def test_client_subtotal_used_when_accepted(self, owner_client, make_product):
        make_product('DOG01', 5, price='100.00')
        owner_client.post('/cart/add', json={'productId': 'DOG01', 'quantity': 1})

        order = owner_client.post('/orders', json={'subtotal': 80}).get_json()['order']

        assert order['subtotal'] == 80.0
        assert order['totalAmount'] == 380.0

    def test_client_subtotal_ignored_when_disabled(self, app, owner_client, make_product, monkeypatch):
        monkeypatch.setitem(app.config, 'ACCEPT_CLIENT_SUBTOTAL', False)
        make_product('DOG01', 5, price='100.00')
        owner_client.post('/cart/add', json={'productId': 'DOG01', 'quantity': 1})

        order = owner_client.post('/orders', json={'subtotal': 80}).get_json()['order']

        assert order['subtotal'] == 100.0
        assert order['totalAmount'] == 400.0

    def test_invalid_payment_method(self, owner_client, make_product):
        make_product('DOG01', 5)
        owner_client.post('/cart/add', json={'productId': 'DOG01', 'quantity': 1})

        response = owner_client.post('/orders', json={'paymentMethod': 'barter'})

        assert response.status_code == 400

    def test_requires_login(self, client):
        assert client.post('/orders', json={}).status_code == 401


class TestOrderQueries:

    @pytest.fixture
    def placed_order(self, owner_client, make_product):
        make_product('DOG01', 5)
        owner_client.post('/cart/add', json={'productId': 'DOG01', 'quantity': 1})
        return owner_client.post('/orders', json={}).get_json()['order']['id']

    def test_owner_lists_and_reads_order(self, owner_client, placed_order):
        orders = owner_client.get('/orders').get_json()['orders']
        assert [o['id'] for o in orders] == [placed_order]

        response = owner_client.get(f'/orders/{placed_order}')
        assert response.status_code == 200
        assert response.get_json()['order']['id'] == placed_order

    def test_other_user_is_forbidden(self, login_as, other_owner, placed_order):
        client = login_as(other_owner)
        assert client.get(f'/orders/{placed_order}').status_code == 403

    def test_missing_order(self, owner_client):
        assert owner_client.get('/orders/999').status_code == 404

    def test_admin_lists_all(self, login_as, admin_user, placed_order):
        client = login_as(admin_user)
        orders = client.get('/orders/admin/all').get_json()['orders']
        assert [o['id'] for o in orders] == [placed_order]

    def test_owner_cannot_list_all(self, owner_client, placed_order):
        assert owner_client.get('/orders/admin/all').status_code == 403

    def test_provider_updates_fulfillment_status(self, session, login_as, provider, placed_order):
        client = login_as(provider)

        response = client.put(f'/orders/{placed_order}/status', json={'status': 'shipped'})

        assert response.status_code == 200
        session.expire_all()
        assert session.get(Order, placed_order).status == 'shipped'

    def test_invalid_fulfillment_status(self, login_as, admin_user, placed_order):
        client = login_as(admin_user)
        response = client.put(f'/orders/{placed_order}/status', json={'status': 'lost'})
        assert response.status_code == 400
