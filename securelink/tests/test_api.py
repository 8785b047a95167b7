"""
Integration tests for the secure transport HTTP surface.

These tests drive the full Django stack (middleware, DRF views and the
exception handler) through DRF's APIClient: the public-key handshake,
an encrypted round trip on a policy-marked endpoint, plain pass-through
and the vitals feed.

To run the tests:

```
pytest -q securelink/tests
```
"""
import time

from django.core.management import call_command
from rest_framework.test import APITestCase, APIClient
from rest_framework import status

from securelink.exceptions import DecryptionError, api_exception_handler
from securelink.services.envelope import Envelope, decrypt
from securelink.services.keyagreement import KeyAgreementParty, modpow
from securelink.services.sessions import get_session_store
from securelink.services.vitals import latest_vitals, record_vitals


class SecureTransportAPITests(APITestCase):
    def setUp(self) -> None:
        self.client = APIClient()

    def _handshake(self, session_id=None, scalar=None):
        headers = {'HTTP_SESSION_ID': session_id} if session_id else {}
        r = self.client.get('/api/secure/public-key', **headers)
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        party = KeyAgreementParty.from_private_scalar(scalar) if scalar else KeyAgreementParty.generate()
        return r.json(), party, party.derive_shared_secret(r.json()['serverPublicKey'])

    def test_public_key_defaults_to_default_session(self):
        data, _, _ = self._handshake()
        self.assertEqual(set(data), {'success', 'serverPublicKey', 'sessionId'})
        self.assertTrue(data['success'])
        self.assertEqual(data['sessionId'], 'default')
        self.assertEqual(data['serverPublicKey'], get_session_store().public_value_for('default'))

    def test_public_key_is_stable_within_a_session(self):
        first, _, _ = self._handshake('abc')
        second, _, _ = self._handshake('abc')
        self.assertEqual(first['sessionId'], 'abc')
        self.assertEqual(first['serverPublicKey'], second['serverPublicKey'])

    def test_scalar_five_handshake_matches_server_secret(self):
        data, party, secret = self._handshake(scalar=5)
        self.assertEqual(party.public_value, modpow(5, 5, 23))
        self.assertEqual(secret, modpow(int(data['serverPublicKey']), 5, 23))

        env = Envelope.seal({'ping': True}, secret, party.public_value)
        r = self.client.post('/api/secure/dummy-data', env.to_wire(), format='json')
        self.assertEqual(r.status_code, status.HTTP_200_OK)

        session = get_session_store().get_or_create('default')
        self.assertEqual(session.shared_secret, secret)
        server_side = modpow(party.public_value, session.server_party.private_scalar, 23)
        self.assertEqual(server_side, secret)

    def test_encrypted_dummy_data_round_trip(self):
        _, party, secret = self._handshake('s-42')
        env = Envelope.seal({'filter': 'recent'}, secret, party.public_value)
        r = self.client.post('/api/secure/dummy-data', env.to_wire(), format='json', HTTP_SESSION_ID='s-42')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual(list(r.json()), ['encrypted'])
        payload = decrypt(r.json()['encrypted'], secret)
        self.assertTrue(payload['success'])
        self.assertTrue(payload['data']['encrypted'])
        self.assertEqual(payload['data']['echo'], {'filter': 'recent'})
        self.assertEqual(len(payload['data']['patients']), 3)

    def test_plain_call_to_encrypted_endpoint_gets_plain_answer(self):
        r = self.client.post('/api/secure/dummy-data', {'filter': 'recent'}, format='json')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertTrue(r.json()['success'])
        self.assertFalse(r.json()['data']['encrypted'])

    def test_corrupted_envelope_is_rejected(self):
        _, party, secret = self._handshake()
        env = Envelope.seal({'a': 1}, secret + 1, party.public_value)
        r = self.client.post('/api/secure/dummy-data', env.to_wire(), format='json')
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIs(r.json()['ok'], False)
        self.assertEqual(r.json()['error']['code'], 'decryption_failed')

    def test_plain_test_endpoint(self):
        r = self.client.get('/api/secure/test')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertTrue(r.json()['success'])
        self.assertIn('timestamp', r.json())

    def test_vitals_ingest_then_encrypted_read(self):
        r = self.client.post('/data', {'bpm': '81', 'spo2': '97'}, format='json')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        _, party, secret = self._handshake()
        env = Envelope.seal({}, secret, party.public_value)
        r = self.client.post('/api/vitals/latest', env.to_wire(), format='json')
        payload = decrypt(r.json()['encrypted'], secret)
        self.assertEqual(payload['source'], 'device')
        self.assertEqual((payload['data']['bpm'], payload['data']['spo2']), ('81', '97'))

    def test_vitals_ingest_validation(self):
        r = self.client.post('/data', {'bpm': 'fast'}, format='json')
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(r.json()['ok'], False)
        self.assertEqual(r.json()['error']['code'], 'api_error')

    def test_healthz_reports_sessions(self):
        self._handshake('a')
        self._handshake('b')
        r = self.client.get('/healthz')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual(r.json()['sessions'], 2)
        self.assertEqual(r.json()['dhPrimeBits'], 5)


def test_stale_vitals_fall_back_to_simulation():
    now = time.time()
    record_vitals(88, 99, now=now - 120)
    reading, is_real = latest_vitals(now=now)
    assert not is_real
    assert 60 <= int(reading['bpm']) <= 100
    assert 95 <= int(reading['spo2']) <= 100
    record_vitals(88, 99, now=now - 5)
    reading, is_real = latest_vitals(now=now)
    assert is_real and reading['bpm'] == '88'


def test_exception_handler_renders_secure_channel_errors():
    resp = api_exception_handler(DecryptionError('bad'), {})
    assert resp.status_code == 400
    assert resp.data == {'ok': False, 'error': {'code': 'decryption_failed', 'message': 'bad'}}


def test_secure_ping_command(monkeypatch, django_http):
    from securelink.client import SecureApiClient
    from securelink.management.commands import secure_ping

    monkeypatch.setattr(secure_ping, 'SecureApiClient',
                        lambda url, session_id=None: SecureApiClient(url, session_id=session_id, http=django_http))
    call_command('secure_ping', 'http://testserver', '--session-id', 'ping-1')
    assert ('GET', '/api/secure/public-key') in django_http.calls
    assert ('POST', '/api/secure/dummy-data') in django_http.calls
    assert ('GET', '/api/secure/test') in django_http.calls
