from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required
from telemed.services import lifecycle
from telemed.utils.decorators import require_role, get_current_user
from telemed.utils.validation import get_json_body, parse_bool_arg

appointment_bp = Blueprint('appointment', __name__, url_prefix='/api/appointments')


@appointment_bp.route('/book', methods=['POST'])
@jwt_required()
@require_role('patient')
def book_appointment():
    """
    Book an appointment with a doctor
    Access: patient
    Body: { doctorId, dateTime (ISO-8601, future), note? }
    """
    data = get_json_body()
    appointment = lifecycle.book_appointment(
        get_current_user(),
        doctor_id=data.get('doctorId'),
        date_time=data.get('dateTime'),
        note=data.get('note'),
    )
    return jsonify({
        'success': True,
        'data': appointment.to_dict(),
        'message': 'Appointment booked successfully'
    }), 201


@appointment_bp.route('/my', methods=['GET'])
@jwt_required()
def list_my_appointments():
    """
    Appointments of the current user, soonest first.
    Query params:
        status: Filter by status (optional)
        upcoming: 'true' to only return future appointments (optional)
    """
    appointments = lifecycle.list_my_appointments(
        get_current_user(),
        status=request.args.get('status', type=str),
        upcoming=parse_bool_arg(request.args.get('upcoming')),
    )
    return jsonify({
        'success': True,
        'data': [appointment.to_dict() for appointment in appointments],
        'total': len(appointments)
    }), 200


@appointment_bp.route('/<int:appointment_id>', methods=['GET'])
@jwt_required()
def get_appointment(appointment_id):
    """
    Get single appointment by ID
    Access: the appointment's patient or doctor, or an admin
    """
    appointment = lifecycle.get_appointment(get_current_user(), appointment_id)
    return jsonify({'success': True, 'data': appointment.to_dict()}), 200


@appointment_bp.route('/<int:appointment_id>', methods=['PUT'])
@jwt_required()
@require_role('doctor')
def update_appointment_status(appointment_id):
    """
    Update appointment status
    Access: the appointment's doctor
    Status values: confirmed, paid, consultation, completed, cancelled
    """
    data = get_json_body()
    new_status = data.get('status')
    appointment = lifecycle.update_status(get_current_user(), appointment_id, new_status)
    return jsonify({
        'success': True,
        'data': appointment.to_dict(),
        'message': f'Appointment status updated to {new_status}'
    }), 200
