"""
Prescription API Routes
Consultation start, prescription creation/update and lookups
"""

from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required
from telemed.services import lifecycle
from telemed.utils.decorators import require_role, get_current_user
from telemed.utils.validation import get_json_body

prescription_bp = Blueprint("prescription", __name__, url_prefix="/api/prescriptions")


@prescription_bp.route("/appointment/<int:appointment_id>/start-consultation", methods=["POST"])
@jwt_required()
@require_role("doctor")
def start_consultation(appointment_id):
    """Move a paid appointment into consultation. Access: the appointment's doctor."""
    appointment = lifecycle.start_consultation(get_current_user(), appointment_id)
    return jsonify(
        {
            "success": True,
            "data": appointment.to_dict(),
            "message": "Consultation started successfully",
        }
    ), 200


@prescription_bp.route("/create", methods=["POST"])
@jwt_required()
@require_role("doctor")
def create_prescription():
    """
    Create the prescription for an appointment in consultation

    Body:
        appointmentId: Appointment ID (required)
        diagnosis: Diagnosis text (required)
        medications: [{name, dosage, frequency, duration, instructions?, quantity?}]
                     incomplete rows are ignored, at least one complete row required
        instructions, followUpDate, notes: optional
    """
    data = get_json_body()
    prescription = lifecycle.create_prescription(
        get_current_user(),
        appointment_id=data.get("appointmentId"),
        diagnosis=data.get("diagnosis"),
        medications=data.get("medications"),
        instructions=data.get("instructions"),
        follow_up_date=data.get("followUpDate"),
        notes=data.get("notes"),
    )
    return jsonify(
        {
            "success": True,
            "data": prescription.to_dict(),
            "message": "Prescription created successfully",
        }
    ), 201


@prescription_bp.route("/<int:prescription_id>", methods=["PUT"])
@jwt_required()
@require_role("doctor", "admin")
def update_prescription(prescription_id):
    """
    Update a prescription. Only non-empty fields are applied.
    Access: the prescribing doctor or an admin
    """
    data = get_json_body()
    prescription = lifecycle.update_prescription(
        get_current_user(),
        prescription_id,
        diagnosis=data.get("diagnosis"),
        medications=data.get("medications"),
        instructions=data.get("instructions"),
        follow_up_date=data.get("followUpDate"),
        notes=data.get("notes"),
        status=data.get("status"),
    )
    return jsonify(
        {
            "success": True,
            "data": prescription.to_dict(),
            "message": "Prescription updated successfully",
        }
    ), 200


@prescription_bp.route("/my", methods=["GET"])
@jwt_required()
def get_my_prescriptions():
    prescriptions = lifecycle.list_my_prescriptions(
        get_current_user(), status=request.args.get("status", type=str)
    )
    return jsonify(
        {
            "success": True,
            "data": [prescription.to_dict() for prescription in prescriptions],
            "total": len(prescriptions),
        }
    ), 200


@prescription_bp.route("/by-appointment/<int:appointment_id>", methods=["GET"])
@jwt_required()
def get_prescription_by_appointment(appointment_id):
    """Prescription for a specific appointment (one per appointment)."""
    prescription = lifecycle.get_prescription_by_appointment(get_current_user(), appointment_id)
    return jsonify({"success": True, "data": prescription.to_dict()}), 200


@prescription_bp.route("/<int:prescription_id>", methods=["GET"])
@jwt_required()
def get_prescription(prescription_id):
    prescription = lifecycle.get_prescription(get_current_user(), prescription_id)
    return jsonify({"success": True, "data": prescription.to_dict()}), 200
