"""
URL configuration for the medibook backend project.

The `urlpatterns` list routes URLs to views.  This module includes the
API routes provided by the securelink app.  OpenAPI documentation is
exposed at ``/swagger/`` and ``/redoc/``.
"""
from django.urls import path, include

from rest_framework import permissions
from drf_yasg.views import get_schema_view
from drf_yasg import openapi

# API metadata for Swagger/OpenAPI documentation
api_info = openapi.Info(
    title="Medibook Secure Transport API",
    default_version='v1',
    description=(
        "Diffie-Hellman handshake and encrypted envelope transport for the "
        "appointment booking backend."
    ),
)

schema_view = get_schema_view(
    api_info,
    public=True,
    permission_classes=(permissions.AllowAny,),
)

urlpatterns = [
    # Include API routes from the securelink app
    path('', include('securelink.routers')),
    # Swagger and ReDoc
    path('swagger/', schema_view.with_ui('swagger', cache_timeout=0), name='schema-swagger-ui'),
    path('redoc/', schema_view.with_ui('redoc', cache_timeout=0), name='schema-redoc'),
]
