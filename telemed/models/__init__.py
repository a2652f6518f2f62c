from .user import User
from .appointment import Appointment
from .payment import Payment
from .prescription import Prescription
from .message import Message
from .audit_log import AuditLog

__all__ = ["User", "Appointment", "Payment", "Prescription", "Message", "AuditLog"]
