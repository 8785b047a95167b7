"""
Envelope cipher and wire shapes for encrypted payloads.

Ciphertexts use the OpenSSL ``Salted__`` passphrase format that browser
crypto libraries emit for ``AES.encrypt(text, passphrase)``:

    base64( b"Salted__" + salt[8] + AES-256-CBC(PKCS#7(plaintext)) )

with key and IV stretched from the passphrase by ``EVP_BytesToKey`` (MD5,
one round).  The passphrase is the SHA-256 hex digest of the shared
secret's decimal form, so both ends only need the secret.
"""
from __future__ import annotations

import base64
import binascii
import hashlib
import json
from dataclasses import dataclass
from typing import Any, Union

from Crypto.Cipher import AES
from Crypto.Hash import MD5
from Crypto.Random import get_random_bytes
from Crypto.Util.Padding import pad, unpad

from securelink.exceptions import DecryptionError

SALT_HEADER = b'Salted__'
SALT_SIZE = 8
KEY_SIZE = 32
IV_SIZE = AES.block_size


def derive_symmetric_key(shared_secret: int) -> str:
    return hashlib.sha256(str(shared_secret).encode('utf-8')).hexdigest()


def _evp_bytes_to_key(passphrase: bytes, salt: bytes) -> tuple[bytes, bytes]:
    derived = b''
    block = b''
    while len(derived) < KEY_SIZE + IV_SIZE:
        block = MD5.new(block + passphrase + salt).digest()
        derived += block
    return derived[:KEY_SIZE], derived[KEY_SIZE:KEY_SIZE + IV_SIZE]


def encrypt(payload: Any, shared_secret: int) -> str:
    plaintext = json.dumps(payload, separators=(',', ':'), ensure_ascii=False).encode('utf-8')
    salt = get_random_bytes(SALT_SIZE)
    key, iv = _evp_bytes_to_key(derive_symmetric_key(shared_secret).encode('ascii'), salt)
    cipher = AES.new(key, AES.MODE_CBC, iv)
    body = cipher.encrypt(pad(plaintext, AES.block_size))
    return base64.b64encode(SALT_HEADER + salt + body).decode('ascii')


def decrypt(ciphertext: str, shared_secret: int) -> Any:
    if not isinstance(ciphertext, str) or not ciphertext:
        raise DecryptionError('Ciphertext must be a non-empty string')
    try:
        raw = base64.b64decode(ciphertext, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise DecryptionError('Ciphertext is not valid base64') from exc
    if not raw.startswith(SALT_HEADER):
        raise DecryptionError('Ciphertext is missing the salt header')
    salt = raw[len(SALT_HEADER):len(SALT_HEADER) + SALT_SIZE]
    body = raw[len(SALT_HEADER) + SALT_SIZE:]
    if len(salt) != SALT_SIZE or not body or len(body) % AES.block_size:
        raise DecryptionError('Ciphertext has an invalid length')
    key, iv = _evp_bytes_to_key(derive_symmetric_key(shared_secret).encode('ascii'), salt)
    cipher = AES.new(key, AES.MODE_CBC, iv)
    try:
        plaintext = unpad(cipher.decrypt(body), AES.block_size)
        return json.loads(plaintext.decode('utf-8'))
    except (ValueError, UnicodeDecodeError) as exc:
        # json.JSONDecodeError is a ValueError
        raise DecryptionError('Payload could not be decrypted with the negotiated key') from exc


# ---------------------------------------------------------------------
# Wire shapes
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class Envelope:
    ciphertext: str
    sender_public_value: str

    def to_wire(self) -> dict:
        return {'encrypted': self.ciphertext, 'clientPublicKey': self.sender_public_value}

    @classmethod
    def seal(cls, payload: Any, shared_secret: int, sender_public_value: Union[int, str]) -> 'Envelope':
        return cls(ciphertext=encrypt(payload, shared_secret), sender_public_value=str(sender_public_value))

    def open(self, shared_secret: int) -> Any:
        return decrypt(self.ciphertext, shared_secret)


@dataclass(frozen=True)
class PlainRequest:
    payload: Any


@dataclass(frozen=True)
class EnvelopedRequest:
    envelope: Envelope


InboundRequest = Union[PlainRequest, EnvelopedRequest]


def is_envelope(body: Any) -> bool:
    return isinstance(body, dict) and isinstance(body.get('encrypted'), str)


def decode_request(body: Any) -> InboundRequest:
    """Classify a parsed JSON body as plain or enveloped.

    A body is an envelope when its ``encrypted`` member is a string; a
    boolean or missing ``encrypted`` member leaves it plain.
    """
    if not is_envelope(body):
        return PlainRequest(body)
    sender = body.get('clientPublicKey')
    if sender is None or isinstance(sender, (bool, dict, list)) or str(sender).strip() == '':
        raise DecryptionError('Encrypted payload is missing clientPublicKey')
    return EnvelopedRequest(Envelope(ciphertext=body['encrypted'], sender_public_value=str(sender).strip()))


def encode_response(payload: Any, shared_secret: int) -> dict:
    return {'encrypted': encrypt(payload, shared_secret)}
