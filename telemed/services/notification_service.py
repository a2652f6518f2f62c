"""
Messaging side-channel.

Messages are always persisted, so a recipient who is offline reads them
later through the messages API. If the recipient holds a live connection in
the ConnectionRegistry the message is also pushed to it. Lifecycle
transitions notify the counterpart through a Celery task; a failure there is
logged and never fails the transition itself.
"""
import logging
import threading

from flask import current_app
from sqlalchemy import and_, case, func, or_

from telemed.extensions import db
from telemed.models import Message

logger = logging.getLogger(__name__)


class ConnectionRegistry:
    """Process-local map of user id -> callable that pushes a payload."""

    def __init__(self):
        self._connections = {}
        self._lock = threading.Lock()

    def connect(self, user_id, deliver):
        with self._lock:
            self._connections[user_id] = deliver

    def disconnect(self, user_id):
        with self._lock:
            self._connections.pop(user_id, None)

    def is_connected(self, user_id):
        with self._lock:
            return user_id in self._connections

    def deliver(self, user_id, payload):
        """Push payload if the user is connected. Returns True when delivered."""
        with self._lock:
            deliver = self._connections.get(user_id)
        if deliver is None:
            return False
        try:
            deliver(payload)
            return True
        except Exception as e:
            logger.warning("Live delivery to user %s failed, dropping connection: %s", user_id, e)
            self.disconnect(user_id)
            return False


registry = ConnectionRegistry()


# event -> (text for the recipient)
TRANSITION_MESSAGES = {
    'booked': 'New appointment request for {when}.',
    'confirmed': 'Your appointment on {when} has been confirmed. Please complete the payment.',
    'cancelled': 'Your appointment on {when} has been cancelled.',
    'paid': 'Payment received for the appointment on {when}.',
    'consultation': 'Your consultation for the appointment on {when} has started.',
    'completed': 'Your appointment on {when} has been completed.',
    'prescription': 'A prescription has been issued for the appointment on {when}.',
}


def render_transition_message(event, appointment):
    template = TRANSITION_MESSAGES.get(event, 'Appointment on {when} was updated.')
    when = appointment.date_time.strftime('%Y-%m-%d %H:%M UTC') if appointment else 'an unknown date'
    return template.format(when=when)


def send_message(sender_id, receiver_id, content):
    """Persist a message, then push it to the receiver if connected."""
    message = Message(sender_id=sender_id, receiver_id=receiver_id, content=content)
    db.session.add(message)
    db.session.commit()

    delivered = registry.deliver(receiver_id, message.to_dict())
    logger.debug("Message %s to user %s %s", message.id, receiver_id,
                 'delivered live' if delivered else 'queued')
    return message


def notify_transition(actor_id, recipient_id, appointment_id, event):
    """Tell the counterpart about a lifecycle transition. Never raises."""
    if not current_app.config.get('NOTIFY_ON_TRANSITIONS', True):
        return
    try:
        from tasks.notification_tasks import notify_appointment_transition
        notify_appointment_transition.delay(actor_id, recipient_id, appointment_id, event)
    except Exception as e:
        logger.warning(
            "Could not dispatch %s notification for appointment %s: %s",
            event, appointment_id, e
        )


def get_conversation(user_id, other_user_id):
    """Messages exchanged by two users, oldest first."""
    return Message.query.filter(
        or_(
            and_(Message.sender_id == user_id, Message.receiver_id == other_user_id),
            and_(Message.sender_id == other_user_id, Message.receiver_id == user_id),
        )
    ).order_by(Message.timestamp.asc(), Message.id.asc()).all()


def count_unread(user_id):
    return Message.query.filter_by(receiver_id=user_id, is_read=False).count()


def mark_conversation_read(user_id, other_user_id):
    """Mark everything other_user_id sent to user_id as read. Returns the row count."""
    updated = Message.query.filter_by(
        sender_id=other_user_id, receiver_id=user_id, is_read=False
    ).update({'is_read': True}, synchronize_session=False)
    db.session.commit()
    return updated


def recent_conversations(user_id, limit=50):
    """
    Latest message per counterpart, newest conversation first.

    Returns a list of (counterpart User, last Message) tuples.
    """
    counterpart_id = case(
        (Message.sender_id == user_id, Message.receiver_id),
        else_=Message.sender_id,
    )
    latest_ids = db.select(func.max(Message.id)).where(
        or_(Message.sender_id == user_id, Message.receiver_id == user_id)
    ).group_by(counterpart_id)

    messages = Message.query.filter(Message.id.in_(latest_ids)).order_by(
        Message.timestamp.desc(), Message.id.desc()
    ).limit(limit).all()

    return [
        (message.receiver if message.sender_id == user_id else message.sender, message)
        for message in messages
    ]
