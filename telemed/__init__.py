from flask import Flask, jsonify, request, has_app_context
from .extensions import db, migrate, bcrypt, jwt, celery
import click
import logging
import os

logger = logging.getLogger(__name__)


def create_app(config_name=None):
    """Create Flask application factory"""
    app = Flask(__name__)

    # Load configuration
    if config_name:
        from telemed.config import config
        app.config.from_object(config.get(config_name, config['default']))
    else:
        from telemed.config import get_config
        app.config.from_object(get_config())

    # Ensure production mode if FLASK_ENV is production
    if os.getenv('FLASK_ENV') == 'production':
        app.config['DEBUG'] = False
        app.config['TESTING'] = False

    logging.basicConfig(
        level=getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )

    # Initialize extensions first (before error handlers)
    db.init_app(app)
    migrate.init_app(app, db)
    bcrypt.init_app(app)
    jwt.init_app(app)
    register_jwt_handlers()

    from telemed.utils.cors import init_cors
    init_cors(app)

    # Initialize Celery
    celery.conf.update(
        broker_url=app.config['CELERY_BROKER_URL'],
        result_backend=app.config['CELERY_RESULT_BACKEND'],
        task_serializer=app.config['CELERY_TASK_SERIALIZER'],
        accept_content=app.config['CELERY_ACCEPT_CONTENT'],
        result_serializer=app.config['CELERY_RESULT_SERIALIZER'],
        timezone=app.config['CELERY_TIMEZONE'],
        enable_utc=app.config['CELERY_ENABLE_UTC'],
        task_always_eager=app.config['CELERY_TASK_ALWAYS_EAGER'],
    )

    class FlaskAppContextTask(celery.Task):
        """Make celery tasks work with Flask app context."""
        def __call__(self, *args, **kwargs):
            # Eager tasks already run inside the request's app context
            if has_app_context():
                return self.run(*args, **kwargs)
            with app.app_context():
                return self.run(*args, **kwargs)

    celery.Task = FlaskAppContextTask

    from telemed.errors import register_error_handlers
    register_error_handlers(app)

    # Setup logging
    if not app.debug and not app.testing:
        from logging.handlers import RotatingFileHandler

        log_dir = app.config.get('LOG_DIR', 'logs')
        if not os.path.exists(log_dir):
            os.mkdir(log_dir)

        file_handler = RotatingFileHandler(
            os.path.join(log_dir, 'app.log'),
            maxBytes=10240000,
            backupCount=10
        )
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'
        ))
        file_handler.setLevel(logging.INFO)
        app.logger.addHandler(file_handler)
        app.logger.setLevel(logging.INFO)
        app.logger.info('Application startup')

    # Security headers middleware
    @app.after_request
    def set_security_headers(response):
        """Add security headers to all responses"""
        if not app.debug:
            response.headers['X-Content-Type-Options'] = 'nosniff'
            response.headers['X-Frame-Options'] = 'DENY'
            response.headers['Referrer-Policy'] = 'strict-origin-when-cross-origin'
            # Only add HSTS if using HTTPS
            if request.is_secure:
                response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'
        return response

    from telemed.middleware import setup_middleware
    setup_middleware(app)

    # Import models to register them with SQLAlchemy
    with app.app_context():
        from .models import User, Appointment, Payment, Prescription, Message, AuditLog  # noqa: F401

        from .routes import auth_bp, appointment_bp, payment_bp, prescription_bp, message_bp, health_bp
        app.register_blueprint(health_bp)  # Register health check first
        app.register_blueprint(auth_bp)
        app.register_blueprint(appointment_bp)
        app.register_blueprint(payment_bp)
        app.register_blueprint(prescription_bp)
        app.register_blueprint(message_bp)

    register_cli(app)

    return app


def register_jwt_handlers():
    """Missing, malformed and expired tokens all answer 401 UNAUTHENTICATED."""

    def _unauthenticated(message):
        return jsonify({
            'success': False,
            'error': message,
            'code': 'UNAUTHENTICATED'
        }), 401

    @jwt.unauthorized_loader
    def missing_token(reason):
        return _unauthenticated('Authentication required')

    @jwt.invalid_token_loader
    def invalid_token(reason):
        return _unauthenticated('Invalid token')

    @jwt.expired_token_loader
    def expired_token(jwt_header, jwt_payload):
        return _unauthenticated('Token has expired')

    @jwt.revoked_token_loader
    def revoked_token(jwt_header, jwt_payload):
        return _unauthenticated('Token has been revoked')


def register_cli(app):
    """
    Adds small helper CLI commands:
    - flask create-db: create tables using the configured database
    - flask drop-db: drop all tables (use with caution)
    - flask seed-users: create the default admin and demo doctor
    """

    @app.cli.command("create-db")
    def create_db_command():
        """Create database tables if they do not exist."""
        db.create_all()
        click.echo("Database tables created.")

    @app.cli.command("drop-db")
    def drop_db_command():
        """Drop all database tables. This is destructive."""
        db.drop_all()
        click.echo("Database tables dropped.")

    @app.cli.command("seed-users")
    def seed_users_command():
        """Create the default admin and demo doctor if missing."""
        from telemed.seeds import seed_default_users
        created = seed_default_users()
        click.echo(f"Created {len(created)} user(s).")
