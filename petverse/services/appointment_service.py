"""Appointment service - booking and owner queries."""
import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal

from flask import current_app

from petverse.models import Appointment, AppointmentPackage
from petverse.exceptions import ForbiddenError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)


def generate_appointment_code() -> str:
    return f"APT-{uuid.uuid4().hex[:10].upper()}"


def _parse_package(value) -> AppointmentPackage:
    try:
        return AppointmentPackage(value)
    except ValueError:
        choices = ', '.join(p.value for p in AppointmentPackage)
        raise ValidationError(f'package must be one of: {choices}')


def _parse_schedule(value):
    if value in (None, ''):
        return None
    try:
        scheduled = datetime.fromisoformat(str(value))
    except ValueError:
        raise ValidationError('scheduledFor must be an ISO 8601 date-time')
    if scheduled.tzinfo is None:
        scheduled = scheduled.replace(tzinfo=timezone.utc)
    return scheduled


def create_appointment(session, user, payload: dict) -> Appointment:
    """
    Book an appointment for `user`.

    The owner is always the caller and the price comes from the configured
    package price list, never from the request.
    """
    package = _parse_package(payload.get('package'))
    pet_name = (payload.get('petName') or '').strip()
    if not pet_name:
        raise ValidationError('petName is required')

    prices = current_app.config.get('APPOINTMENT_PACKAGE_PRICES', {})
    if package.value not in prices:
        raise ValidationError(f'No price configured for package {package.value}')

    appointment = Appointment(
        appointment_code=generate_appointment_code(),
        user_uid=user.external_uid,
        package=package.value,
        package_price=Decimal(str(prices[package.value])),
        pet_name=pet_name,
        note=payload.get('note'),
        scheduled_for=_parse_schedule(payload.get('scheduledFor')),
    )
    session.add(appointment)
    session.flush()
    logger.info(
        f"[APPOINTMENT] {appointment.appointment_code} booked by {user.external_uid} "
        f"package={package.value} price={appointment.package_price}"
    )
    return appointment


def get_appointment(session, appointment_id: int, user) -> Appointment:
    appointment = session.get(Appointment, appointment_id)
    if appointment is None:
        raise NotFoundError('Appointment not found')
    if not user.is_admin and appointment.user_uid != user.external_uid:
        raise ForbiddenError('You do not have access to this appointment')
    return appointment


def list_user_appointments(session, user):
    return (
        session.query(Appointment)
        .filter(Appointment.user_uid == user.external_uid)
        .order_by(Appointment.created_at.desc(), Appointment.id.desc())
        .all()
    )
