from telemed.extensions import db
from .base import utcnow, isoformat


class Message(db.Model):
    """Append-only chat log between two users."""
    __tablename__ = 'messages'
    __table_args__ = (
        db.Index('ix_messages_pair', 'sender_id', 'receiver_id', 'timestamp'),
    )

    id = db.Column(db.Integer, primary_key=True)
    sender_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    receiver_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    content = db.Column(db.Text, nullable=False)
    timestamp = db.Column(db.DateTime, default=utcnow, nullable=False, index=True)
    is_read = db.Column(db.Boolean, default=False, nullable=False)

    sender = db.relationship('User', foreign_keys=[sender_id], lazy='joined')
    receiver = db.relationship('User', foreign_keys=[receiver_id], lazy='joined')

    def to_dict(self):
        return {
            'id': self.id,
            'senderId': self.sender_id,
            'receiverId': self.receiver_id,
            'sender': self.sender.summary() if self.sender else None,
            'receiver': self.receiver.summary() if self.receiver else None,
            'content': self.content,
            'timestamp': isoformat(self.timestamp),
            'read': self.is_read,
        }
