"""
WSGI config for medibook project.

It exposes the WSGI callable as a module-level variable named ``application``.
Secure-channel sessions live in the memory of each worker process, so a
client's public-key request and its encrypted call must reach the same
worker (sticky sessions or a single worker per session id).
"""
import os

from django.core.wsgi import get_wsgi_application  # type: ignore

# Set the default settings module for the 'django' program.
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'medibook.settings')

# Obtain the WSGI application for use by the server
application = get_wsgi_application()
