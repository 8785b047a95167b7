from rest_framework.views import exception_handler as drf_exception_handler
from rest_framework.response import Response


class SecureChannelError(Exception):
    """Base class for failures of the encrypted transport itself.

    These are kept apart from business errors so callers can tell "retry
    the handshake" from "fix your input".
    """
    code = 'secure_channel_error'
    status_code = 400
    default_message = 'Secure channel error'

    def __init__(self, message=None):
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)

    def as_payload(self) -> dict:
        return {'ok': False, 'error': {'code': self.code, 'message': self.message}}


class HandshakeError(SecureChannelError):
    """Key agreement could not be completed (public value fetch or validation failed)."""
    code = 'handshake_failed'
    status_code = 400
    default_message = 'Secure channel could not be established'


class DecryptionError(SecureChannelError):
    """Ciphertext is malformed or was produced under a different key."""
    code = 'decryption_failed'
    status_code = 400
    default_message = 'Encrypted payload could not be decrypted'


class PolicyMismatchError(SecureChannelError):
    """Request shape does not match the endpoint's encryption policy (strict mode)."""
    code = 'policy_mismatch'
    status_code = 400
    default_message = 'Request does not match the endpoint encryption policy'


ERRORS_BY_CODE = {cls.code: cls for cls in (HandshakeError, DecryptionError, PolicyMismatchError)}


def api_exception_handler(exc, context):
    if isinstance(exc, SecureChannelError):
        return Response(exc.as_payload(), status=exc.status_code)
    resp = drf_exception_handler(exc, context)
    if resp is None:
        return Response({'ok': False, 'error': {'code': 'server_error', 'message': str(exc)}}, status=500)
    # normalize response
    detail = None
    if isinstance(resp.data, dict):
        detail = resp.data.get('detail') or resp.data
    else:
        detail = str(resp.data)
    return Response({'ok': False, 'error': {'code': 'api_error', 'message': detail}}, status=resp.status_code)
