import os
from datetime import timedelta
from dotenv import load_dotenv

load_dotenv()


def build_engine_options(database_uri, timeout_seconds, pool=True):
    """
    Engine options carrying the request-level timeout down to the driver.
    PostgreSQL cancels statements after statement_timeout; SQLite waits at
    most timeout seconds on a locked database.
    """
    uri = database_uri or ''
    if uri.startswith('sqlite'):
        return {'connect_args': {'timeout': timeout_seconds}}

    options = {'pool_pre_ping': True, 'pool_recycle': 300}
    if pool:
        options.update({'pool_size': 10, 'max_overflow': 20})
    if uri.startswith('postgres'):
        options['connect_args'] = {
            'connect_timeout': 10,
            'options': f'-c statement_timeout={int(timeout_seconds * 1000)}'
        }
    return options


class Config:
    """Base configuration"""
    SECRET_KEY = os.getenv('SECRET_KEY') or 'dev-secret-key-change-in-production'

    SQLALCHEMY_DATABASE_URI = os.getenv('DATABASE_URL', 'sqlite:///telemed.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Request-level timeout for store calls (seconds)
    REQUEST_TIMEOUT_SECONDS = float(os.getenv('REQUEST_TIMEOUT_SECONDS', '5'))
    SQLALCHEMY_ENGINE_OPTIONS = build_engine_options(SQLALCHEMY_DATABASE_URI, REQUEST_TIMEOUT_SECONDS)

    # JWT
    JWT_SECRET_KEY = os.getenv('JWT_SECRET') or SECRET_KEY
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(hours=int(os.getenv('JWT_ACCESS_HOURS', '24')))
    JWT_REFRESH_TOKEN_EXPIRES = timedelta(days=int(os.getenv('JWT_REFRESH_DAYS', '30')))

    # Appointment lifecycle
    APPOINTMENT_CONFLICT_WINDOW_MINUTES = int(os.getenv('APPOINTMENT_CONFLICT_WINDOW_MINUTES', '30'))
    APPOINTMENT_NOTE_MAX_LENGTH = 500
    # False restores the legacy behaviour: any enum value, ownership checked only
    STRICT_STATUS_TRANSITIONS = os.getenv('STRICT_STATUS_TRANSITIONS', 'true').lower() == 'true'

    # Payments
    CONSULTATION_FEE = float(os.getenv('CONSULTATION_FEE', '500'))
    PAYMENT_CURRENCY = os.getenv('PAYMENT_CURRENCY', 'ETB')
    TRANSACTION_ID_ATTEMPTS = int(os.getenv('TRANSACTION_ID_ATTEMPTS', '3'))

    # Messaging
    MESSAGE_MAX_LENGTH = 1000
    NOTIFY_ON_TRANSITIONS = os.getenv('NOTIFY_ON_TRANSITIONS', 'true').lower() == 'true'

    # Celery Configuration
    CELERY_BROKER_URL = os.getenv('REDIS_URL', 'redis://localhost:6379/0')
    CELERY_RESULT_BACKEND = os.getenv('REDIS_URL', 'redis://localhost:6379/0')
    CELERY_ACCEPT_CONTENT = ['json']
    CELERY_TASK_SERIALIZER = 'json'
    CELERY_RESULT_SERIALIZER = 'json'
    CELERY_TIMEZONE = 'UTC'
    CELERY_ENABLE_UTC = True
    CELERY_TASK_ALWAYS_EAGER = os.getenv('CELERY_TASK_ALWAYS_EAGER', 'false').lower() == 'true'

    # Logging
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
    LOG_DIR = os.getenv('LOG_DIR', 'logs')

    # Default admin (init_admin.py)
    DEFAULT_ADMIN_EMAIL = os.getenv('DEFAULT_ADMIN_EMAIL', 'admin@telemedicine.com')
    DEFAULT_ADMIN_PASSWORD = os.getenv('DEFAULT_ADMIN_PASSWORD', 'admin123')

    # Comma separated list, '*' for any origin
    CORS_ORIGINS = os.getenv('CORS_ORIGINS', '*')

    MAX_CONTENT_LENGTH = 10 * 1024 * 1024  # 10MB JSON bodies


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True
    TESTING = False


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False
    TESTING = False

    # Ensure SECRET_KEY is set
    SECRET_KEY = os.getenv('SECRET_KEY')
    if os.getenv('FLASK_ENV') == 'production' and (
            not SECRET_KEY or SECRET_KEY == 'dev-secret-key-change-in-production'):
        raise ValueError("SECRET_KEY environment variable must be set in production and must not be the default value")

    JWT_SECRET_KEY = os.getenv('JWT_SECRET') or SECRET_KEY

    SQLALCHEMY_ENGINE_OPTIONS = build_engine_options(
        Config.SQLALCHEMY_DATABASE_URI, Config.REQUEST_TIMEOUT_SECONDS
    )

    LOG_LEVEL = os.getenv('LOG_LEVEL', 'WARNING')


class TestingConfig(Config):
    """Testing configuration"""
    TESTING = True
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = os.getenv('TEST_DATABASE_URL', 'sqlite:///:memory:')
    SQLALCHEMY_ENGINE_OPTIONS = {}
    JWT_SECRET_KEY = 'testing-secret-key-with-enough-length-for-hs256'
    BCRYPT_LOG_ROUNDS = 4
    CELERY_TASK_ALWAYS_EAGER = True
    CELERY_BROKER_URL = 'memory://'
    CELERY_RESULT_BACKEND = 'cache+memory://'
    STRICT_STATUS_TRANSITIONS = True


# Configuration mapping
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}


def get_config():
    """Get configuration based on FLASK_ENV"""
    env = os.getenv('FLASK_ENV', 'development')
    return config.get(env, config['default'])
