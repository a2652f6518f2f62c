"""
CORS for the JSON API. The mobile client sends no cookies, so credentials
stay off and origins come from CORS_ORIGINS (comma separated, '*' for any).
"""
from flask_cors import CORS

ALLOWED_METHODS = ["GET", "POST", "PUT", "OPTIONS"]
ALLOWED_HEADERS = ["Content-Type", "Authorization", "X-Requested-With", "Accept", "Origin"]


def parse_origins(value):
    if not value or value.strip() == "*":
        return "*"
    return [origin.strip() for origin in value.split(",") if origin.strip()]


def init_cors(app):
    """Enable CORS on /api/* and the health checks."""
    origins = parse_origins(app.config.get("CORS_ORIGINS", "*"))
    CORS(
        app,
        resources={r"/api/*": {"origins": origins}, r"/health*": {"origins": origins}},
        methods=ALLOWED_METHODS,
        allow_headers=ALLOWED_HEADERS,
        expose_headers=["Content-Type", "Authorization"],
        max_age=86400,
    )
    app.logger.debug("CORS enabled for origins: %s", origins)
