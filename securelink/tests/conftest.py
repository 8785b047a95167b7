import json

import pytest
import requests
from django.core.cache import cache
from rest_framework.test import APIClient

from securelink.policy import reset_policy_table
from securelink.services.sessions import reset_session_store


@pytest.fixture(autouse=True)
def fresh_secure_state():
    reset_session_store()
    reset_policy_table()
    cache.clear()
    yield
    reset_session_store()
    reset_policy_table()


@pytest.fixture
def big_group(settings):
    """Switch both ends to a large prime so distinct secrets never collide by chance."""
    settings.SECURE_CHANNEL = {**settings.SECURE_CHANNEL, 'DH_PRIME': 2 ** 127 - 1, 'DH_GENERATOR': 3}
    reset_session_store()
    return settings.SECURE_CHANNEL


class _Response:
    def __init__(self, resp):
        self._resp = resp
        self.status_code = resp.status_code
        self.content = resp.content

    def json(self):
        return json.loads(self.content)

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f'{self.status_code} error', response=self)


def _meta(headers):
    return {'HTTP_' + k.upper().replace('-', '_'): v for k, v in (headers or {}).items()}


def _path(url):
    return '/' + url.split('://', 1)[-1].split('/', 1)[-1] if '://' in url else url


class DjangoHttp:
    """Stands in for requests.Session and routes calls through the Django test client."""

    def __init__(self):
        self.client = APIClient()
        self.calls = []
        self.before_post = None

    def get(self, url, headers=None, timeout=None):
        self.calls.append(('GET', _path(url)))
        return _Response(self.client.get(_path(url), **_meta(headers)))

    def post(self, url, json=None, headers=None, timeout=None):
        self.calls.append(('POST', _path(url)))
        if self.before_post:
            self.before_post(url, json, headers)
        return _Response(self.client.post(_path(url), json, format='json', **_meta(headers)))


@pytest.fixture
def django_http():
    return DjangoHttp()
