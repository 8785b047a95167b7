"""
Finite-field Diffie-Hellman key agreement.

Both ends share a fixed ``(prime, generator)`` pair.  Each party holds a
private scalar in ``[1, prime-1]`` and publishes
``generator ** scalar mod prime``; combining its own scalar with the
peer's public value gives the same shared secret on both sides.

The default group is the one browser clients ship with (23, 5).  It keeps
the protocol's numeric behaviour but provides no confidentiality.
"""
from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass, field
from typing import Optional, Union

from securelink.conf import secure_setting
from securelink.exceptions import HandshakeError

logger = logging.getLogger(__name__)


def modpow(base: int, exponent: int, modulus: int) -> int:
    """Compute ``base ** exponent % modulus`` by square-and-multiply."""
    if modulus <= 1:
        raise ValueError('modulus must be greater than 1')
    if exponent < 0 or base < 0:
        raise ValueError('base and exponent must be non-negative')
    result = 1
    base %= modulus
    while exponent > 0:
        if exponent & 1:
            result = (result * base) % modulus
        exponent >>= 1
        base = (base * base) % modulus
    return result


@dataclass(frozen=True)
class DHParameters:
    prime: int
    generator: int

    def __post_init__(self):
        if self.prime < 3:
            raise ValueError('prime must be at least 3')
        if not 1 < self.generator < self.prime:
            raise ValueError('generator must lie in (1, prime)')

    @classmethod
    def from_settings(cls) -> 'DHParameters':
        return cls(prime=int(secure_setting('DH_PRIME')), generator=int(secure_setting('DH_GENERATOR')))

    def parse_public_value(self, value: Union[int, str]) -> int:
        """Validate a peer public value received over the wire."""
        if isinstance(value, bool):
            raise HandshakeError('Public key must be a decimal integer')
        if isinstance(value, int):
            parsed = value
        else:
            text = str(value).strip()
            # int() rejects non-ASCII digits and strings past the interpreter's digit limit
            if not (text.isascii() and text.isdecimal()):
                raise HandshakeError('Public key must be a decimal integer')
            if len(text) > len(str(self.prime)):
                raise HandshakeError('Public key is outside the agreed group')
            parsed = int(text)
        if not 1 <= parsed < self.prime:
            raise HandshakeError('Public key is outside the agreed group')
        return parsed


@dataclass
class KeyAgreementParty:
    """One endpoint's ephemeral key pair."""
    private_scalar: int = field(repr=False)
    public_value: int
    params: DHParameters

    @classmethod
    def generate(cls, params: Optional[DHParameters] = None) -> 'KeyAgreementParty':
        params = params or DHParameters.from_settings()
        private_scalar = secrets.randbelow(params.prime - 1) + 1
        return cls.from_private_scalar(private_scalar, params)

    @classmethod
    def from_private_scalar(cls, private_scalar: int, params: Optional[DHParameters] = None) -> 'KeyAgreementParty':
        params = params or DHParameters.from_settings()
        if not 1 <= private_scalar < params.prime:
            raise ValueError('private scalar must lie in [1, prime-1]')
        public_value = modpow(params.generator, private_scalar, params.prime)
        logger.debug('Generated key-agreement party with public value %s', public_value)
        return cls(private_scalar=private_scalar, public_value=public_value, params=params)

    def derive_shared_secret(self, peer_public_value: Union[int, str]) -> int:
        peer = self.params.parse_public_value(peer_public_value)
        return modpow(peer, self.private_scalar, self.params.prime)

    def public_key(self) -> str:
        """Public value in the decimal string form used on the wire."""
        return str(self.public_value)
