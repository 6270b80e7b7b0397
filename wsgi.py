"""
WSGI / Flask-Migrate entry point.

Usage:
    flask --app wsgi db upgrade
    flask --app wsgi issue-token <npk>
    gunicorn wsgi:app
"""

from pms import create_app

app = create_app()
