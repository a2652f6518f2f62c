"""
Payment API Routes
Payment attempts for confirmed appointments and their manual status updates
"""
import logging

from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required
from telemed.services import lifecycle
from telemed.services.payment_methods import list_payment_methods
from telemed.utils.decorators import require_role, get_current_user
from telemed.utils.validation import get_json_body

logger = logging.getLogger(__name__)

payment_bp = Blueprint("payment", __name__, url_prefix="/api/payments")


@payment_bp.route("/methods", methods=["GET"])
def get_payment_methods():
    """Supported payment channels (public)."""
    return jsonify({"success": True, "data": list_payment_methods()}), 200


@payment_bp.route("/create", methods=["POST"])
@jwt_required()
@require_role("patient")
def create_payment():
    """
    Create a payment for a confirmed appointment

    Body:
        appointmentId: Appointment ID (required)
        paymentMethod: One of /api/payments/methods (required)
        paymentDetails: phoneNumber (mobile money) or accountNumber (bank),
                        referenceNumber optional

    Returns:
        201 with the new payment, or 200 when a failed/cancelled attempt was reused
    """
    data = get_json_body()
    payment, created = lifecycle.create_payment(
        get_current_user(),
        appointment_id=data.get("appointmentId"),
        payment_method=data.get("paymentMethod"),
        payment_details=data.get("paymentDetails"),
    )
    return jsonify(
        {
            "success": True,
            "data": payment.to_dict(),
            "message": "Payment created successfully" if created else "Payment updated successfully",
        }
    ), 201 if created else 200


@payment_bp.route("/my", methods=["GET"])
@jwt_required()
def get_my_payments():
    """Payments of the current user, newest first. Query: status (optional)."""
    payments = lifecycle.list_my_payments(
        get_current_user(), status=request.args.get("status", type=str)
    )
    return jsonify(
        {"success": True, "data": [payment.to_dict() for payment in payments], "total": len(payments)}
    ), 200


@payment_bp.route("/appointment/<int:appointment_id>", methods=["GET"])
@jwt_required()
def get_payment_by_appointment(appointment_id):
    payment = lifecycle.get_payment_by_appointment(get_current_user(), appointment_id)
    return jsonify({"success": True, "data": payment.to_dict()}), 200


@payment_bp.route("/<int:payment_id>", methods=["GET"])
@jwt_required()
def get_payment(payment_id):
    payment = lifecycle.get_payment(get_current_user(), payment_id)
    return jsonify({"success": True, "data": payment.to_dict()}), 200


@payment_bp.route("/<int:payment_id>/status", methods=["PUT"])
@jwt_required()
def update_payment_status(payment_id):
    """
    Record the outcome of a payment attempt

    Body:
        status: pending | completed | failed | cancelled (required)
        notes: optional

    Completing a payment marks its appointment as paid.
    """
    data = get_json_body()
    payment = lifecycle.update_payment_status(
        get_current_user(),
        payment_id,
        new_status=data.get("status"),
        notes=data.get("notes"),
    )
    return jsonify(
        {
            "success": True,
            "data": payment.to_dict(),
            "message": "Payment status updated successfully",
        }
    ), 200
