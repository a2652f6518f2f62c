import logging

from flask import Blueprint, current_app, jsonify
from flask_jwt_extended import (
    create_access_token,
    create_refresh_token,
    jwt_required,
)
from sqlalchemy.exc import IntegrityError
from telemed.errors import AlreadyExists, InvalidArgument, Unauthenticated, Forbidden
from telemed.extensions import db
from telemed.models import User
from telemed.utils.audit import log_audit
from telemed.utils.decorators import get_current_user
from telemed.utils.validation import get_json_body, clean_text

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')


def _issue_tokens(user):
    # Identity must be a string for the JWT "sub" claim; role travels as a claim
    identity = str(user.id)
    additional_claims = {'role': user.role}
    expires = current_app.config['JWT_ACCESS_TOKEN_EXPIRES']
    return {
        'access_token': create_access_token(
            identity=identity, additional_claims=additional_claims, fresh=True
        ),
        'refresh_token': create_refresh_token(
            identity=identity, additional_claims=additional_claims
        ),
        'token_type': 'bearer',
        'expires_in': int(expires.total_seconds()),
    }


@auth_bp.route('/login', methods=['POST'])
def login():
    """Login endpoint - authenticates a user by email and returns JWT tokens"""
    data = get_json_body()
    email = clean_text(data.get('email')).lower()
    password = data.get('password')

    if not email or not password:
        raise InvalidArgument('Email and password required')
    if not isinstance(password, str):
        raise InvalidArgument('Password must be a string')

    user = User.query.filter_by(email=email).first()
    if not user or not user.check_password(password):
        raise Unauthenticated('Invalid email or password')

    if not user.is_active:
        raise Forbidden('Account is deactivated')

    return jsonify({
        'success': True,
        'data': user.to_dict(),
        **_issue_tokens(user)
    }), 200


@auth_bp.route('/register', methods=['POST'])
def register():
    """
    Patient self-registration. Doctors and admins are provisioned by init_admin.py.
    Body: { name, email, password, phoneNumber?, age?, gender? }
    """
    data = get_json_body()
    name = clean_text(data.get('name'))
    email = clean_text(data.get('email')).lower()
    password = data.get('password')

    if not name or not email or not password:
        raise InvalidArgument('Fields "name", "email" and "password" are required')
    if '@' not in email:
        raise InvalidArgument('Invalid email address')
    if not isinstance(password, str) or len(password) < 6:
        raise InvalidArgument('Password must be at least 6 characters')

    if User.query.filter_by(email=email).first():
        raise AlreadyExists('User already exists')

    age = data.get('age')
    if age is not None and (isinstance(age, bool) or not isinstance(age, int) or age < 0):
        raise InvalidArgument('Field "age" must be a non-negative integer')

    user = User(
        name=name,
        email=email,
        phone_number=clean_text(data.get('phoneNumber')) or None,
        role='patient',
        age=age,
        gender=clean_text(data.get('gender')) or None,
    )
    user.set_password(password)
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise AlreadyExists('User already exists')

    logger.info(f"Registered patient {user.id} ({user.email})")
    log_audit('user', 'register', user_id=user.id, entity_id=str(user.id))

    return jsonify({
        'success': True,
        'data': user.to_dict(),
        'message': 'User registered successfully',
        **_issue_tokens(user)
    }), 201


@auth_bp.route('/me', methods=['GET'])
@jwt_required()
def me():
    """Get current logged-in user information using JWT"""
    return jsonify({'success': True, 'data': get_current_user().to_dict()}), 200


@auth_bp.route('/refresh', methods=['POST'])
@jwt_required(refresh=True)
def refresh():
    """Refresh access token using refresh token; deactivated users get 401"""
    user = get_current_user()
    new_access_token = create_access_token(
        identity=str(user.id),
        additional_claims={'role': user.role},
        fresh=False  # refreshed tokens are not fresh
    )
    expires = current_app.config['JWT_ACCESS_TOKEN_EXPIRES']
    return jsonify({
        'success': True,
        'access_token': new_access_token,
        'token_type': 'bearer',
        'expires_in': int(expires.total_seconds())
    }), 200


@auth_bp.route('/doctors', methods=['GET'])
@jwt_required()
def list_doctors():
    """Active doctors a patient can book with."""
    doctors = User.query.filter_by(role='doctor', is_active=True).order_by(User.name.asc()).all()
    return jsonify({
        'success': True,
        'data': [doctor.summary() for doctor in doctors],
        'total': len(doctors)
    }), 200
