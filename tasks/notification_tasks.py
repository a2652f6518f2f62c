"""
Celery tasks for appointment notifications
"""
import logging
from telemed.extensions import celery, db
from telemed.models import Appointment
from telemed.services.notification_service import render_transition_message, send_message

logger = logging.getLogger(__name__)


@celery.task(name='tasks.notify_appointment_transition')
def notify_appointment_transition(sender_id, receiver_id, appointment_id, event):
    """
    Send the counterpart a chat message describing an appointment transition

    Args:
        sender_id: User who performed the transition
        receiver_id: Counterpart to inform
        appointment_id: Appointment ID
        event: Transition name (confirmed, cancelled, paid, ...)

    Returns:
        dict: Delivery result
    """
    try:
        appointment = db.session.get(Appointment, appointment_id)
        content = render_transition_message(event, appointment)
        message = send_message(sender_id, receiver_id, content)
        return {
            'success': True,
            'message_id': message.id,
            'appointment_id': appointment_id,
            'event': event
        }
    except Exception as e:
        logger.error(f"Error sending {event} notification for appointment {appointment_id}: {e}", exc_info=True)
        db.session.rollback()
        return {'success': False, 'error': str(e)}
