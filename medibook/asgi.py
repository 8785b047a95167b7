"""
ASGI config for medibook project.

Serves plain Django HTTP.  The transport middleware is synchronous and
runs in Django's thread pool under ASGI, so the session store locking
behaves the same as under WSGI.
"""
import os

from django.core.asgi import get_asgi_application  # type: ignore

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "medibook.settings")

application = get_asgi_application()
