"""
Integration tests for app-level endpoints, error rendering and CLI commands.
"""

from decimal import Decimal

from petverse.models import Order, Product, User
from petverse.services import payment_ledger


class TestHealth:

    def test_health(self, client):
        response = client.get('/health')
        assert response.status_code == 200
        assert response.get_json()['database'] == 'connected'

    def test_otp_health_reports_memory_backend(self, client):
        data = client.get('/health/otp').get_json()
        assert data['backend'] == 'memory'
        assert data['status'] == 'degraded'

    def test_metrics(self, client):
        client.get('/health')
        response = client.get('/metrics')
        assert response.status_code == 200
        assert b'http_requests_total' in response.data

    def test_unknown_route_is_json(self, client):
        response = client.get('/does-not-exist')
        assert response.status_code == 404
        assert response.get_json()['status'] == 'error'

    def test_method_not_allowed_is_json(self, client):
        response = client.patch('/health')
        assert response.status_code == 405
        assert response.get_json()['success'] is False


class TestLoyaltyBalance:

    def test_balance(self, owner_client):
        data = owner_client.get('/loyalty/balance').get_json()
        assert data['loyaltyPoints'] == 100
        assert data['redeemableValue'] == 1000

    def test_anonymous(self, client):
        assert client.get('/loyalty/balance').status_code == 401


class TestCliCommands:

    def test_create_user_and_grant_points(self, app, session):
        runner = app.test_cli_runner()

        result = runner.invoke(args=['create-user', '--email', 'cli@test.com', '--uid', 'uid-cli'])
        assert 'User created' in result.output

        user_id = session.query(User.id).filter_by(email='cli@test.com').scalar()
        result = runner.invoke(args=['grant-points', str(user_id), '15'])

        assert 'now has 15 points' in result.output

    def test_create_product(self, app, session):
        runner = app.test_cli_runner()

        result = runner.invoke(args=['create-product', '--code', 'CLI01', '--name', 'Leash',
                                     '--price', '7.5', '--quantity', '3'])

        assert 'Product CLI01 created' in result.output
        session.expire_all()
        assert session.query(Product).filter_by(code='CLI01').one().quantity == 3

    def test_grant_points_unknown_user(self, app):
        result = app.test_cli_runner().invoke(args=['grant-points', '999', '5'])
        assert 'User not found' in result.output


class TestDomainMetrics:

    def test_confirmed_payment_is_counted(self, session, client, pet_owner):
        order = Order(user_id=pet_owner.id, subtotal=Decimal('100'), delivery_fee=Decimal('300'),
                      points_redeemed=0, total_amount=Decimal('400'))
        session.add(order)
        session.flush()
        payment_ledger.settle_order_payment(session, order.id, '400')
        session.commit()

        body = client.get('/metrics').get_data(as_text=True)

        assert 'petverse_payments_confirmed_total{reference="order"}' in body
