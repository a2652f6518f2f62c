"""
Message API Routes
Direct messages between users; transition notifications land here too
"""
from flask import Blueprint, current_app, jsonify
from flask_jwt_extended import jwt_required
from telemed.errors import InvalidArgument, NotFound
from telemed.extensions import db
from telemed.models import User
from telemed.services import notification_service
from telemed.utils.decorators import get_current_user
from telemed.utils.validation import get_json_body, parse_int, clean_text

message_bp = Blueprint('message', __name__, url_prefix='/api/messages')


def _get_user_or_404(user_id, label='User'):
    user = db.session.get(User, user_id)
    if not user:
        raise NotFound(f'{label} not found')
    return user


@message_bp.route('/send', methods=['POST'])
@jwt_required()
def send_message():
    """
    Send a message
    Body: { receiverId, content }
    """
    data = get_json_body()
    sender = get_current_user()
    receiver = _get_user_or_404(parse_int(data.get('receiverId'), 'receiverId'), 'Receiver')

    content = clean_text(data.get('content'))
    max_length = current_app.config.get('MESSAGE_MAX_LENGTH', 1000)
    if not content:
        raise InvalidArgument('Message content is required')
    if len(content) > max_length:
        raise InvalidArgument(f'Message content must be at most {max_length} characters')

    message = notification_service.send_message(sender.id, receiver.id, content)
    return jsonify({
        'success': True,
        'data': message.to_dict(),
        'message': 'Message sent successfully'
    }), 201


@message_bp.route('/conversations/recent', methods=['GET'])
@jwt_required()
def get_recent_conversations():
    user = get_current_user()
    conversations = notification_service.recent_conversations(user.id)
    return jsonify({
        'success': True,
        'data': [
            {'user': counterpart.summary(), 'lastMessage': message.to_dict()}
            for counterpart, message in conversations
        ]
    }), 200


@message_bp.route('/unread/count', methods=['GET'])
@jwt_required()
def get_unread_count():
    user = get_current_user()
    return jsonify({
        'success': True,
        'data': {'unreadCount': notification_service.count_unread(user.id)}
    }), 200


@message_bp.route('/<int:user_id>/read', methods=['PUT'])
@jwt_required()
def mark_messages_as_read(user_id):
    """Mark every message the given user sent to the caller as read."""
    user = get_current_user()
    updated = notification_service.mark_conversation_read(user.id, user_id)
    return jsonify({
        'success': True,
        'data': {'updated': updated},
        'message': 'Messages marked as read'
    }), 200


@message_bp.route('/<int:user_id>', methods=['GET'])
@jwt_required()
def get_messages(user_id):
    """Conversation with another user, oldest first."""
    user = get_current_user()
    _get_user_or_404(user_id)
    messages = notification_service.get_conversation(user.id, user_id)
    return jsonify({
        'success': True,
        'data': [message.to_dict() for message in messages],
        'total': len(messages)
    }), 200
