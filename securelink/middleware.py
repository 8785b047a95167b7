"""
Request/response interceptor for policy-marked endpoints.

For a path the endpoint policy marks encrypted, an inbound envelope
``{"encrypted", "clientPublicKey"}`` is opened with the secret negotiated
for the request's ``session-id`` and the view sees the plain JSON payload.
The view's JSON response is then sealed as ``{"encrypted"}`` under the
same secret.  Bodies without an envelope pass through untouched so a
route can serve encrypted and plain clients side by side.

Inside a decrypted payload the top-level ``headers`` key is reserved: when
it holds an object, the client dispatcher folded request headers (auth
tokens) there, and they are moved onto the request instead of reaching the
view as body data.  Any other ``headers`` value is left in the payload.
"""
from __future__ import annotations

import io
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from django.http import JsonResponse

from securelink.conf import DEFAULT_SESSION_ID, SESSION_HEADER, secure_setting
from securelink.exceptions import PolicyMismatchError, SecureChannelError
from securelink.policy import EndpointPolicyTable, get_policy_table
from securelink.services.envelope import EnvelopedRequest, decode_request, encode_response, is_envelope
from securelink.services.sessions import SessionStore, get_session_store

logger = logging.getLogger(__name__)

# never overridable from inside an encrypted payload
PROTECTED_HEADERS = frozenset({
    'host', 'content-type', 'content-length', SESSION_HEADER,
    'x-forwarded-for', 'x-forwarded-host', 'x-forwarded-proto',
})


@dataclass
class SecureChannelContext:
    """Attached to ``request.secure_channel`` for enveloped requests."""
    session_id: str
    client_public_key: str
    shared_secret: int = field(repr=False)


def _read_json_body(request) -> Optional[Any]:
    if 'json' not in (request.content_type or ''):
        return None
    raw = request.body
    if not raw:
        return None
    try:
        return json.loads(raw)
    except (ValueError, UnicodeDecodeError):
        # left for the view's parser to reject
        return None


def _replace_body(request, payload: Any) -> None:
    raw = json.dumps(payload, ensure_ascii=False).encode('utf-8')
    request._body = raw
    request._stream = io.BytesIO(raw)
    request.META['CONTENT_LENGTH'] = str(len(raw))
    request.META['CONTENT_TYPE'] = 'application/json'
    request.content_type = 'application/json'
    for attr in ('_post', '_files'):
        if hasattr(request, attr):
            delattr(request, attr)


def _lift_headers(request, payload: Any) -> Any:
    """Move a ``headers`` object folded into the encrypted payload onto the request."""
    if not isinstance(payload, dict) or not isinstance(payload.get('headers'), dict):
        return payload
    payload = dict(payload)
    for name, value in payload.pop('headers').items():
        if value is None or str(name).lower() in PROTECTED_HEADERS:
            continue
        request.META['HTTP_' + str(name).upper().replace('-', '_')] = str(value)
    # request.headers is a cached view over META
    request.__dict__.pop('headers', None)
    return payload


class SecureTransportMiddleware:
    def __init__(self, get_response, store: Optional[SessionStore] = None,
                 policy: Optional[EndpointPolicyTable] = None):
        self.get_response = get_response
        self._store = store
        self._policy = policy

    @property
    def store(self) -> SessionStore:
        return self._store or get_session_store()

    @property
    def policy(self) -> EndpointPolicyTable:
        return self._policy or get_policy_table()

    def __call__(self, request):
        encrypted_path = self.policy.is_encrypted(request.path)
        strict = bool(secure_setting('STRICT'))

        if not encrypted_path:
            if strict and request.method not in ('GET', 'HEAD', 'OPTIONS') and is_envelope(_read_json_body(request)):
                return self._error(request, PolicyMismatchError('Endpoint does not accept encrypted payloads'))
            return self.get_response(request)

        try:
            inbound = decode_request(_read_json_body(request))
            if not isinstance(inbound, EnvelopedRequest):
                if strict:
                    raise PolicyMismatchError('Endpoint requires an encrypted payload')
                return self.get_response(request)

            session_id = request.headers.get(SESSION_HEADER) or DEFAULT_SESSION_ID
            envelope = inbound.envelope
            secret = self.store.establish(session_id, envelope.sender_public_value)
            payload = envelope.open(secret)
        except SecureChannelError as exc:
            return self._error(request, exc)

        logger.debug('Decrypted request for %s (session %s)', request.path, session_id)
        payload = _lift_headers(request, payload)
        _replace_body(request, payload)
        request.secure_channel = SecureChannelContext(
            session_id=session_id,
            client_public_key=envelope.sender_public_value,
            shared_secret=secret,
        )

        response = self.get_response(request)
        return self._seal_response(response, secret)

    def _seal_response(self, response, secret: int):
        if getattr(response, 'streaming', False) or 'json' not in response.get('Content-Type', ''):
            return response
        try:
            payload = json.loads(response.content)
        except (ValueError, UnicodeDecodeError):
            return response
        sealed = JsonResponse(encode_response(payload, secret), status=response.status_code)
        for header, value in response.items():
            if header.lower() not in ('content-type', 'content-length'):
                sealed[header] = value
        sealed.cookies = response.cookies
        return sealed

    def _error(self, request, exc: SecureChannelError):
        logger.warning('Secure channel failure on %s: %s (%s)', request.path, exc.code, exc.message)
        return JsonResponse(exc.as_payload(), status=exc.status_code)
