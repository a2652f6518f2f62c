"""
WSGI entry point for production deployment
Used by Gunicorn, uWSGI, and other WSGI servers
"""
from telemed import create_app

application = app = create_app()

if __name__ == '__main__':
    # For development only
    application.run(debug=True)
