"""
Loyalty points reconciler.

Orders debit the points redeemed at checkout; paid appointments credit a
fixed award per package. Both are invoked only from the payment ledger, and
every balance change is a single UPDATE evaluated by the database.
"""
import logging

from sqlalchemy import case, update

from petverse.models import Appointment, AppointmentPackage, User
from petverse.exceptions import NotFoundError
from petverse.metrics import loyalty_points_moved_total

logger = logging.getLogger(__name__)

PACKAGE_POINTS = {
    AppointmentPackage.BASIC: 5,
    AppointmentPackage.PREMIUM: 10,
    AppointmentPackage.LUXURY: 15,
}


def points_for_package(package) -> int:
    """Award for a package name; unknown or missing packages earn nothing."""
    try:
        return PACKAGE_POINTS[AppointmentPackage(package)]
    except ValueError:
        return 0


def get_balance(session, user_id: int) -> int:
    balance = session.query(User.loyalty_points).filter(User.id == user_id).scalar()
    if balance is None:
        raise NotFoundError('User not found')
    return balance


def debit_for_order(session, order) -> int:
    """
    Deduct the order's redeemed points from its owner, never below zero.

    The caller guarantees this runs once per order (it is the winner of the
    order's pending -> success transition). Returns the points deducted.
    """
    points = order.points_redeemed or 0
    if points <= 0:
        logger.info(f"[LOYALTY] Order #{order.id} redeemed no points, nothing to debit")
        return 0

    result = session.execute(
        update(User)
        .where(User.id == order.user_id)
        .values(loyalty_points=case(
            (User.loyalty_points > points, User.loyalty_points - points),
            else_=0
        ))
        .execution_options(synchronize_session='fetch')
    )
    if result.rowcount != 1:
        logger.error(f"[LOYALTY] User {order.user_id} not found for order #{order.id} debit")
        return 0

    loyalty_points_moved_total.labels(direction='debit').inc(points)
    logger.info(f"[LOYALTY] Debited {points} points from user {order.user_id} for order #{order.id}")
    return points


def credit_for_appointment(session, appointment) -> int:
    """
    Award the package points for a paid appointment, at most once.

    `points_awarded` moves from 0 to the award in one conditional UPDATE;
    only the caller whose update took effect credits the owner.
    """
    points = points_for_package(appointment.package)
    if points <= 0:
        logger.info(f"[LOYALTY] Appointment #{appointment.id} has no award for package {appointment.package!r}")
        return 0

    claimed = session.execute(
        update(Appointment)
        .where(Appointment.id == appointment.id, Appointment.points_awarded == 0)
        .values(points_awarded=points)
    ).rowcount == 1
    if not claimed:
        logger.info(f"[LOYALTY] Appointment #{appointment.id} points already awarded")
        return 0

    result = session.execute(
        update(User)
        .where(User.external_uid == appointment.user_uid)
        .values(loyalty_points=User.loyalty_points + points)
        .execution_options(synchronize_session='fetch')
    )
    if result.rowcount != 1:
        logger.warning(
            f"[LOYALTY] No user with uid {appointment.user_uid} for appointment #{appointment.id}; "
            f"award recorded but not credited"
        )
        return 0

    loyalty_points_moved_total.labels(direction='credit').inc(points)
    logger.info(f"[LOYALTY] Credited {points} points to {appointment.user_uid} for appointment #{appointment.id}")
    return points


def grant_points(session, user_id: int, points: int) -> int:
    """Admin adjustment. Returns the new balance."""
    result = session.execute(
        update(User)
        .where(User.id == user_id)
        .values(loyalty_points=case(
            (User.loyalty_points + points > 0, User.loyalty_points + points),
            else_=0
        ))
        .execution_options(synchronize_session='fetch')
    )
    if result.rowcount != 1:
        raise NotFoundError('User not found')
    return get_balance(session, user_id)
