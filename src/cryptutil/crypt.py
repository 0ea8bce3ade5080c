"""
Password-based symmetric encryption and signing.

Keys are derived from a secret string with PBKDF2-HMAC-SHA256. Outputs are
self-describing byte strings:

    encrypt_data: ascii(iterations) | salt (16) | iv (12) | AES-GCM ciphertext
    sign_data:    ascii(iterations) | salt (16) | HMAC-SHA256 signature

The iteration counts are fixed (100000 for encryption, 10000 for signing), so
the ascii prefix is 6 and 5 bytes long respectively.
"""
import logging
import os
from typing import Optional

from cryptography.exceptions import InvalidSignature, InvalidTag
from cryptography.hazmat.primitives import constant_time, hashes, hmac
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from cryptutil.base64_util import BytesLike, _to_bytes, encode_base64_url

logger = logging.getLogger(__name__)

ENCRYPT_ITERATIONS = 100000
SIGN_ITERATIONS = 10000
SALT_SIZE = 16
IV_SIZE = 12
KEY_SIZE = 32

_HASH_ALGORITHMS = {
    'SHA-1': hashes.SHA1,
    'SHA-256': hashes.SHA256,
    'SHA-384': hashes.SHA384,
    'SHA-512': hashes.SHA512,
}


class DecryptionError(ValueError):
    """Encrypted payload is malformed or the secret is wrong."""


def _derive_key(secret: str, salt: bytes, iterations: int) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_SIZE,
        salt=salt,
        iterations=iterations,
    )
    return kdf.derive(secret.encode('utf-8'))


def _iterations_prefix(iterations: int) -> bytes:
    return str(iterations).encode('ascii')


def _parse_iterations(prefix: bytes) -> int:
    if not prefix.isdigit():
        raise ValueError(f"Invalid iteration prefix: {prefix!r}")
    return int(prefix.decode('ascii'))


def encrypt_data(data: BytesLike, secret: str) -> bytes:
    """Encrypt data with a key derived from ``secret``.

    Args:
        data: Plaintext (str is encoded as UTF-8)
        secret: Password the key is derived from

    Returns:
        Iteration prefix, salt, IV and AES-GCM ciphertext concatenated
    """
    salt = os.urandom(SALT_SIZE)
    iv = os.urandom(IV_SIZE)
    key = _derive_key(secret, salt, ENCRYPT_ITERATIONS)
    ciphertext = AESGCM(key).encrypt(iv, _to_bytes(data), None)
    return _iterations_prefix(ENCRYPT_ITERATIONS) + salt + iv + ciphertext


def decrypt_data(encrypted: BytesLike, secret: str) -> bytes:
    """Decrypt the output of encrypt_data().

    Raises:
        DecryptionError: If the payload is malformed, corrupted, or the secret is wrong
    """
    payload = _to_bytes(encrypted)
    offset = len(_iterations_prefix(ENCRYPT_ITERATIONS))
    try:
        iterations = _parse_iterations(payload[:offset])
    except ValueError as e:
        raise DecryptionError(str(e)) from e
    salt = payload[offset:offset + SALT_SIZE]
    iv = payload[offset + SALT_SIZE:offset + SALT_SIZE + IV_SIZE]
    ciphertext = payload[offset + SALT_SIZE + IV_SIZE:]
    if len(salt) != SALT_SIZE or len(iv) != IV_SIZE:
        raise DecryptionError("Encrypted payload is truncated")
    if iterations < 1:
        raise DecryptionError(f"Invalid iteration count: {iterations}")

    key = _derive_key(secret, salt, iterations)
    try:
        return AESGCM(key).decrypt(iv, ciphertext, None)
    except InvalidTag as e:
        raise DecryptionError("Cipher job failed") from e


def sign_data(payload: BytesLike, secret: str) -> bytes:
    """Sign payload with an HMAC key derived from ``secret``.

    Returns:
        Iteration prefix, salt and HMAC-SHA256 signature concatenated
    """
    salt = os.urandom(SALT_SIZE)
    key = _derive_key(secret, salt, SIGN_ITERATIONS)
    h = hmac.HMAC(key, hashes.SHA256())
    h.update(_to_bytes(payload))
    return _iterations_prefix(SIGN_ITERATIONS) + salt + h.finalize()


def verify_data(payload: BytesLike, signature: BytesLike, secret: str) -> bool:
    """Check a signature produced by sign_data(); False on any mismatch or malformed input."""
    sig_content = _to_bytes(signature)
    offset = len(_iterations_prefix(SIGN_ITERATIONS))
    try:
        iterations = _parse_iterations(sig_content[:offset])
    except ValueError:
        return False
    salt = sig_content[offset:offset + SALT_SIZE]
    sig = sig_content[offset + SALT_SIZE:]
    if len(salt) != SALT_SIZE or iterations < 1:
        return False

    h = hmac.HMAC(_derive_key(secret, salt, iterations), hashes.SHA256())
    h.update(_to_bytes(payload))
    try:
        h.verify(sig)
    except InvalidSignature:
        logger.debug("Signature verification failed")
        return False
    return True


def hash_data(data: Optional[BytesLike] = None, algorithm: str = 'SHA-256') -> str:
    """Hex digest of data (None hashes the empty string).

    Args:
        data: Input to hash
        algorithm: One of SHA-1, SHA-256, SHA-384, SHA-512
    """
    try:
        algorithm_type = _HASH_ALGORITHMS[algorithm]
    except KeyError:
        raise ValueError(f"Unsupported hash algorithm: {algorithm}") from None
    digest = hashes.Hash(algorithm_type())
    digest.update(_to_bytes(data if data is not None else b''))
    return digest.finalize().hex()


def compare_buffers(a: BytesLike, b: BytesLike) -> bool:
    """Plain byte-for-byte equality."""
    return _to_bytes(a) == _to_bytes(b)


def time_safe_compare(a: BytesLike, b: BytesLike) -> bool:
    """Equality check whose timing does not depend on where the inputs differ."""
    return constant_time.bytes_eq(_to_bytes(a), _to_bytes(b))


def time_safe_compare_strings(a: str, b: str) -> bool:
    return time_safe_compare(a.encode('utf-8'), b.encode('utf-8'))


def get_random_string(byte_len: int = 16) -> str:
    """Random base64url string from ``byte_len`` bytes (default 128 bits)."""
    return encode_base64_url(os.urandom(byte_len))
