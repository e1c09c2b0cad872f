"""WSGI entry point: ``gunicorn qrnr_api.wsgi:app``."""

from qrnr_api.app import create_app

app = create_app()
