# app.py
"""
WSGI entry point for gunicorn (``app:app``) and ``flask --app app``.
"""

import os

from event_checkin import create_app


def create_application():
    config_name = os.environ.get('FLASK_ENV', 'development')
    app = create_app(config_name)

    if config_name == 'production':
        forward_errors_to_syslog(app)

    return app


def forward_errors_to_syslog(app):
    """Copy ERROR records to ``SYSLOG_SERVER`` (host, port) when configured."""
    import logging
    from logging.handlers import SysLogHandler

    server = os.environ.get('SYSLOG_SERVER')
    if not server:
        return

    host, _, port = server.partition(':')
    handler = SysLogHandler(address=(host, int(port or 514)))
    handler.setLevel(logging.ERROR)
    app.logger.addHandler(handler)
    app.logger.info(f"Forwarding errors to syslog at {host}")


app = create_application()


if __name__ == '__main__':
    # Development server only; scanners in production go through gunicorn
    app.run(
        host='0.0.0.0',
        port=int(os.environ.get('PORT', 5000)),
        debug=app.debug,
        threaded=True
    )
