"""Appointments blueprint - grooming bookings for pet owners."""
from flask import Blueprint, jsonify, request, g
from petverse.database import get_session
from petverse.middleware import require_login
from petverse.decorators.permissions import require_role
from petverse.models import UserRole
from petverse.services import appointment_service

appointments_bp = Blueprint('appointments', __name__, url_prefix='/appointments')


@appointments_bp.route('', methods=['POST'])
@require_role(UserRole.PET_OWNER.value)
def create_appointment():
    """
    Book an appointment: `{package, petName, scheduledFor?, note?}`.

    The package price is fixed server-side; pay it through
    /otp/send-otp and /payments/appointment.
    """
    payload = request.get_json(silent=True) or {}
    db_session = get_session()
    try:
        appointment = appointment_service.create_appointment(db_session, g.user, payload)
        data = appointment.to_dict()
        db_session.commit()
    except Exception:
        db_session.rollback()
        raise
    return jsonify({'success': True, 'message': 'Appointment booked', 'appointment': data}), 201


@appointments_bp.route('', methods=['GET'])
@require_login
def list_my_appointments():
    appointments = appointment_service.list_user_appointments(get_session(), g.user)
    return jsonify({'success': True, 'appointments': [a.to_dict() for a in appointments]})


@appointments_bp.route('/<int:appointment_id>', methods=['GET'])
@require_login
def get_appointment(appointment_id):
    appointment = appointment_service.get_appointment(get_session(), appointment_id, g.user)
    return jsonify({'success': True, 'appointment': appointment.to_dict()})
