"""
Client dispatcher for the booking API.

``SecureApiClient`` looks every call up in the endpoint policy table.
Encrypted endpoints get a fresh handshake per call: fetch the server's
public value for our ``session-id``, generate a new client party, derive
the secret, send ``{"encrypted", "clientPublicKey"}`` and open the
``{"encrypted"}`` reply with the same secret.  That is two round trips
per secure call; no secret is reused between calls.  Other endpoints are
plain ``requests`` calls.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Optional

import requests

from securelink.conf import SESSION_HEADER, secure_setting
from securelink.exceptions import ERRORS_BY_CODE, HandshakeError
from securelink.policy import EndpointPolicyTable, get_policy_table
from securelink.services.envelope import Envelope, decrypt
from securelink.services.keyagreement import DHParameters, KeyAgreementParty

logger = logging.getLogger(__name__)

PUBLIC_KEY_PATH = '/api/secure/public-key'


@dataclass
class Handshake:
    session_id: str
    client_party: KeyAgreementParty
    server_public_key: str
    shared_secret: int = field(repr=False)


class SecureApiClient:
    def __init__(self, base_url: str, *, session_id: Optional[str] = None,
                 policy: Optional[EndpointPolicyTable] = None, params: Optional[DHParameters] = None,
                 timeout: Optional[float] = None, http: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip('/')
        self.session_id = session_id or uuid.uuid4().hex
        self.policy = policy or get_policy_table()
        self.params = params or DHParameters.from_settings()
        self.timeout = timeout if timeout is not None else secure_setting('CLIENT_TIMEOUT')
        self.http = http or requests.Session()
        self.last_handshake: Optional[Handshake] = None

    def _url(self, endpoint: str) -> str:
        return endpoint if endpoint.startswith('http') else f'{self.base_url}{endpoint}'

    # -----------------------------------------------------------------
    # Handshake
    # -----------------------------------------------------------------
    def initialize(self) -> Handshake:
        """Run a fresh key agreement with the server for this client's session."""
        party = KeyAgreementParty.generate(self.params)
        try:
            r = self.http.get(self._url(PUBLIC_KEY_PATH), headers={SESSION_HEADER: self.session_id},
                              timeout=self.timeout)
            r.raise_for_status()
            data = r.json()
        except requests.RequestException as exc:
            raise HandshakeError(f'Failed to get server public key: {exc}') from exc
        except ValueError as exc:
            raise HandshakeError('Server public key response is not JSON') from exc
        if not isinstance(data, dict) or data.get('success') is not True or not data.get('serverPublicKey'):
            raise HandshakeError('Failed to get server public key')

        server_key = str(data['serverPublicKey'])
        secret = party.derive_shared_secret(server_key)
        self.last_handshake = Handshake(
            session_id=self.session_id,
            client_party=party,
            server_public_key=server_key,
            shared_secret=secret,
        )
        logger.debug('Secure channel initialised for session %s (server %s, client %s)',
                     self.session_id, server_key, party.public_key())
        return self.last_handshake

    # -----------------------------------------------------------------
    # Calls
    # -----------------------------------------------------------------
    def secure_post(self, endpoint: str, data: Any = None) -> Any:
        handshake = self.initialize()
        envelope = Envelope.seal({} if data is None else data, handshake.shared_secret,
                                 handshake.client_party.public_value)
        r = self.http.post(
            self._url(endpoint),
            json=envelope.to_wire(),
            headers={SESSION_HEADER: self.session_id},
            timeout=self.timeout,
        )
        body = self._json(r)
        if isinstance(body, dict) and isinstance(body.get('encrypted'), str):
            body = decrypt(body['encrypted'], handshake.shared_secret)
        self._raise_channel_error(body)
        return body

    def secure_get(self, endpoint: str) -> Any:
        return self.secure_post(endpoint, {})

    def get(self, endpoint: str, headers: Optional[dict] = None) -> Any:
        if self.policy.is_encrypted(endpoint):
            logger.debug('Encrypted GET %s', endpoint)
            return self.secure_post(endpoint, {'headers': headers} if headers else {})
        r = self.http.get(self._url(endpoint), headers=headers, timeout=self.timeout)
        return self._json(r)

    def post(self, endpoint: str, data: Any = None, headers: Optional[dict] = None) -> Any:
        if self.policy.is_encrypted(endpoint):
            logger.debug('Encrypted POST %s', endpoint)
            if isinstance(data, dict):
                payload = dict(data)
            elif data is None:
                payload = {}
            else:
                payload = {'data': data}
            if headers:
                payload['headers'] = headers
            return self.secure_post(endpoint, payload)
        r = self.http.post(self._url(endpoint), json=data, headers=headers, timeout=self.timeout)
        return self._json(r)

    def session_info(self) -> dict:
        return {'sessionId': self.session_id, 'hasSharedSecret': self.last_handshake is not None}

    @staticmethod
    def _json(r) -> Any:
        try:
            return r.json()
        except ValueError:
            r.raise_for_status()
            raise

    @staticmethod
    def _raise_channel_error(body: Any) -> None:
        if not isinstance(body, dict) or body.get('ok') is not False:
            return
        error = body.get('error')
        if isinstance(error, dict) and error.get('code') in ERRORS_BY_CODE:
            raise ERRORS_BY_CODE[error['code']](error.get('message'))
