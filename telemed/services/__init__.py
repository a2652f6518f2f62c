from .lifecycle import (
    book_appointment,
    list_my_appointments,
    get_appointment,
    update_status,
    start_consultation,
    create_payment,
    get_payment,
    get_payment_by_appointment,
    list_my_payments,
    settle_payment,
    update_payment_status,
    create_prescription,
    update_prescription,
    get_prescription,
    get_prescription_by_appointment,
    list_my_prescriptions,
)

from .payment_methods import list_payment_methods

from .notification_service import registry, send_message, notify_transition

__all__ = [
    # Appointment lifecycle
    "book_appointment",
    "list_my_appointments",
    "get_appointment",
    "update_status",
    "start_consultation",
    # Payments
    "create_payment",
    "get_payment",
    "get_payment_by_appointment",
    "list_my_payments",
    "settle_payment",
    "update_payment_status",
    "list_payment_methods",
    # Prescriptions
    "create_prescription",
    "update_prescription",
    "get_prescription",
    "get_prescription_by_appointment",
    "list_my_prescriptions",
    # Messaging
    "registry",
    "send_message",
    "notify_transition",
]
