"""
Integration tests for the payments API.
"""

import pytest
from decimal import Decimal

from petverse.models import Advertisement, Appointment, Order, Payment, User
from petverse.services import payment_ledger


@pytest.fixture
def order_id(session, pet_owner):
    order = Order(
        user_id=pet_owner.id,
        subtotal=Decimal('1000'),
        delivery_fee=Decimal('300'),
        points_redeemed=30,
        total_amount=Decimal('1000'),
    )
    session.add(order)
    session.commit()
    return order.id


class TestOrderPayments:

    def test_card_payment_succeeds(self, session, owner_client, pet_owner, order_id):
        user_id = pet_owner.id

        response = owner_client.post('/payments', json={
            'orderID': order_id, 'amount': 1000, 'paymentType': 'card', 'referenceId': 'CARD-42'
        })

        assert response.status_code == 201
        data = response.get_json()
        assert data['success'] is True
        assert data['payment']['status'] == 'success'
        assert data['payment']['transactionID'] == 'CARD-42'
        assert data['payment']['orderID'] == order_id

        session.expire_all()
        assert session.get(Order, order_id).payment_status == 'success'
        assert session.get(User, user_id).loyalty_points == 70

    def test_simulated_failure(self, session, owner_client, order_id):
        response = owner_client.post('/payments', json={
            'orderID': order_id, 'amount': 1000, 'simulate': 'failed'
        })

        assert response.status_code == 201
        data = response.get_json()
        assert data['success'] is False
        assert data['payment']['status'] == 'failed'
        assert data['payment']['transactionID'].startswith('TXN-')
        session.expire_all()
        assert session.get(Order, order_id).payment_status == 'pending'

    def test_missing_amount(self, owner_client, order_id):
        response = owner_client.post('/payments', json={'orderID': order_id})
        assert response.status_code == 400

    def test_missing_order_reference(self, owner_client):
        response = owner_client.post('/payments', json={'amount': 10})
        assert response.status_code == 409

    def test_other_users_order_is_forbidden(self, login_as, other_owner, order_id):
        client = login_as(other_owner)
        response = client.post('/payments', json={'orderID': order_id, 'amount': 1000})
        assert response.status_code == 403

    def test_unknown_order(self, owner_client):
        response = owner_client.post('/payments', json={'orderID': 999, 'amount': 10})
        assert response.status_code == 404


class TestPaymentStatusUpdate:

    def test_otp_then_direct_update_debits_once(self, session, owner_client, otp_gateway, sent_codes,
                                                pet_owner, order_id):
        user_id = pet_owner.id
        owner_client.post('/otp/send-otp', json={'resourceType': 'order', 'resourceID': order_id})
        verified = owner_client.post('/otp/verify-otp', json={
            'resourceType': 'order', 'resourceID': order_id, 'otp': sent_codes[-1][1]
        }).get_json()

        response = owner_client.put(f"/payments/{verified['paymentID']}", json={'status': 'success'})

        assert response.status_code == 200
        assert response.get_json()['applied'] is False
        session.expire_all()
        assert session.get(User, user_id).loyalty_points == 70

    def test_pending_payment_confirmed_by_update(self, session, owner_client, appointment):
        appointment_id = appointment.id
        payment_code = payment_ledger.open_payment_for_otp(session, 'appointment', appointment_id).payment_code
        session.commit()

        response = owner_client.put(f'/payments/{payment_code}', json={'status': 'success'})

        assert response.status_code == 200
        assert response.get_json()['applied'] is True
        session.expire_all()
        assert session.get(Appointment, appointment_id).payment_status == 'paid'

    def test_invalid_status(self, session, owner_client, order_id):
        payment_id = payment_ledger.open_payment_for_otp(session, 'order', order_id).id
        session.commit()

        response = owner_client.put(f'/payments/{payment_id}', json={'status': 'refunded'})

        assert response.status_code == 400

    def test_successful_payment_cannot_be_failed(self, session, owner_client, order_id):
        payment_id = payment_ledger.open_payment_for_otp(session, 'order', order_id).id
        session.commit()

        response = owner_client.put(f'/payments/{payment_id}', json={'status': 'failed'})

        assert response.status_code == 409


class TestAppointmentAndAdvertisementPayments:

    def test_appointment_payment_without_payment_id(self, session, owner_client, pet_owner, appointment):
        user_id = pet_owner.id

        response = owner_client.post('/payments/appointment', json={
            'appointmentID': appointment.id, 'amount': 2500
        })

        assert response.status_code == 201
        assert response.get_json()['payment']['transactionID'].startswith('TXN-APPT-')
        session.expire_all()
        assert session.get(User, user_id).loyalty_points == 110

    def test_payment_id_for_other_resource_conflicts(self, session, owner_client, pet_owner, appointment):
        other = Appointment(appointment_code='APT-OTHER', user_uid=pet_owner.external_uid,
                            package='Basic', package_price=Decimal('1000'))
        session.add(other)
        session.commit()
        other_id, appointment_id = other.id, appointment.id
        payment_code = payment_ledger.open_payment_for_otp(session, 'appointment', other_id).payment_code
        session.commit()

        response = owner_client.post('/payments/appointment', json={
            'appointmentID': appointment_id, 'amount': 2500, 'paymentID': payment_code
        })

        assert response.status_code == 409
        session.expire_all()
        assert session.get(Appointment, appointment_id).payment_status == 'unpaid'
        assert session.get(Appointment, other_id).payment_status == 'unpaid'

    def test_advertisement_payment(self, session, login_as, provider, advertisement):
        ad_id = advertisement.id
        client = login_as(provider)

        response = client.post('/payments/advertisement', json={'adId': ad_id, 'amount': 1500})

        assert response.status_code == 201
        data = response.get_json()
        assert data['payment']['ad_ID'] == ad_id
        assert data['payment']['transactionID'].startswith('TXN-AD-')
        session.expire_all()
        ad = session.get(Advertisement, ad_id)
        assert ad.payment_status == 'paid'
        assert ad.is_published is False


class TestDemoPayments:

    def test_demo_pays_order(self, session, owner_client, order_id):
        response = owner_client.post('/payments/demo/pay', json={'orderID': order_id, 'amount': 1000})

        assert response.status_code == 201
        assert response.get_json()['payment']['transactionID'].startswith('DEMO-')
        session.expire_all()
        assert session.get(Order, order_id).payment_status == 'success'

    def test_demo_with_both_references_conflicts(self, owner_client, order_id, appointment):
        response = owner_client.post('/payments/demo/pay', json={
            'orderID': order_id, 'appointmentID': appointment.id, 'amount': 10
        })
        assert response.status_code == 409
        assert response.get_json()['referenceCount'] == 2

    def test_demo_without_reference_conflicts(self, owner_client):
        response = owner_client.post('/payments/demo/pay', json={'amount': 10})
        assert response.status_code == 409


class TestPaymentQueries:

    def test_get_payment_by_code(self, session, owner_client, order_id):
        payment_code = owner_client.post('/payments', json={
            'orderID': order_id, 'amount': 1000
        }).get_json()['payment']['paymentID']

        response = owner_client.get(f'/payments/{payment_code}')

        assert response.status_code == 200
        assert response.get_json()['payment']['paymentID'] == payment_code

    def test_unknown_payment(self, owner_client):
        assert owner_client.get('/payments/PAY-19700101-DEADBEEF').status_code == 404

    def test_admin_lists_payments(self, session, owner_client, login_as, admin_user, order_id):
        owner_client.post('/payments', json={'orderID': order_id, 'amount': 1000})
        client = login_as(admin_user)

        payments = client.get('/payments/admin/all').get_json()['payments']

        assert len(payments) == 1
        assert session.query(Payment).count() == 1

    def test_owner_cannot_list_payments(self, owner_client):
        assert owner_client.get('/payments/admin/all').status_code == 403
