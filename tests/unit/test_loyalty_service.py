"""
Unit tests for the loyalty points reconciler.
"""

import pytest
from decimal import Decimal

from petverse.models import Order, Appointment, AppointmentPackage
from petverse.services import loyalty_service
from petverse.exceptions import NotFoundError


def _order(session, user, points):
    order = Order(
        user_id=user.id,
        subtotal=Decimal('1000'),
        delivery_fee=Decimal('300'),
        points_redeemed=points,
        total_amount=Decimal('1300') - points * 10,
    )
    session.add(order)
    session.commit()
    return order


class TestDebit:

    def test_debit_redeemed_points(self, session, pet_owner):
        order = _order(session, pet_owner, 30)

        assert loyalty_service.debit_for_order(session, order) == 30
        assert loyalty_service.get_balance(session, pet_owner.id) == 70

    def test_debit_never_goes_below_zero(self, session, pet_owner):
        order = _order(session, pet_owner, 100)
        pet_owner.loyalty_points = 40
        session.commit()

        loyalty_service.debit_for_order(session, order)

        assert loyalty_service.get_balance(session, pet_owner.id) == 0

    def test_nothing_to_debit(self, session, pet_owner):
        order = _order(session, pet_owner, 0)
        assert loyalty_service.debit_for_order(session, order) == 0
        assert loyalty_service.get_balance(session, pet_owner.id) == 100


class TestCredit:

    def test_credit_once_per_appointment(self, session, pet_owner, appointment):
        assert loyalty_service.credit_for_appointment(session, appointment) == 10
        assert loyalty_service.credit_for_appointment(session, appointment) == 0

        session.expire_all()
        assert loyalty_service.get_balance(session, pet_owner.id) == 110
        assert session.get(Appointment, appointment.id).points_awarded == 10

    @pytest.mark.parametrize('package, points', [('Basic', 5), ('Premium', 10), ('Luxury', 15)])
    def test_package_awards(self, session, pet_owner, package, points):
        appt = Appointment(appointment_code=f'APT-{package}', user_uid=pet_owner.external_uid,
                           package=package, package_price=Decimal('1000'))
        session.add(appt)
        session.commit()

        assert loyalty_service.credit_for_appointment(session, appt) == points

    def test_unknown_package_awards_nothing(self, session, pet_owner):
        appt = Appointment(appointment_code='APT-X', user_uid=pet_owner.external_uid,
                           package='Gold', package_price=Decimal('1000'))
        session.add(appt)
        session.commit()

        assert loyalty_service.credit_for_appointment(session, appt) == 0
        assert loyalty_service.get_balance(session, pet_owner.id) == 100


class TestAdjustments:

    def test_grant_points(self, session, pet_owner):
        assert loyalty_service.grant_points(session, pet_owner.id, 25) == 125
        assert loyalty_service.grant_points(session, pet_owner.id, -500) == 0

    def test_unknown_user(self, session):
        with pytest.raises(NotFoundError):
            loyalty_service.get_balance(session, 9999)


class TestPackagePoints:

    @pytest.mark.parametrize('package, points', [
        ('Premium', 10),
        (AppointmentPackage.LUXURY, 15),
        ('premium', 0),
        (None, 0),
    ])
    def test_points_for_package(self, package, points):
        assert loyalty_service.points_for_package(package) == points
