"""
URL mappings for the secure transport API.

Paths mirror those the booking front end calls.  Trailing slashes are
deliberately omitted; the endpoint policy table is keyed by the same
slash-less paths.
"""
from django.urls import path, include

from .views import health, secure, vitals


urlpatterns = [
    # django_prometheus.urls already serves "metrics"
    path('', include('django_prometheus.urls')),
    path('healthz', health.healthz),
    # Key agreement and demonstration endpoints
    path('api/secure/public-key', secure.public_key),
    path('api/secure/dummy-data', secure.dummy_data),
    path('api/secure/test', secure.plain_test),
    # Vitals feed
    path('data', vitals.ingest_vitals),
    path('api/vitals/latest', vitals.latest),
]
