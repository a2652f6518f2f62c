from .auth import auth_bp
from .appointment import appointment_bp
from .payment import payment_bp
from .prescription import prescription_bp
from .message import message_bp
from .health import health_bp

__all__ = ['auth_bp', 'appointment_bp', 'payment_bp', 'prescription_bp', 'message_bp', 'health_bp']
