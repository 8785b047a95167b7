import atexit

from django.apps import AppConfig


class SecureLinkConfig(AppConfig):
    name = 'securelink'
    verbose_name = 'Secure transport'

    def ready(self) -> None:
        from .services.sessions import reset_session_store

        # Sessions are memory-resident; drop them explicitly on shutdown.
        atexit.register(reset_session_store)
