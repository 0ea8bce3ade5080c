"""
Byte codec and password-based crypto helpers.

Modules:
    - base64_util: base64 / base64url encode and decode
    - crypt: AES-GCM encryption, HMAC signing, hashing and comparisons
"""

# Codec
from cryptutil.base64_util import (
    encode_base64,
    encode_base64_url,
    decode_base64,
    decode_base64_url,
)

# Crypto
from cryptutil.crypt import (
    DecryptionError,
    encrypt_data,
    decrypt_data,
    sign_data,
    verify_data,
    hash_data,
    compare_buffers,
    time_safe_compare,
    time_safe_compare_strings,
    get_random_string,
)

__all__ = [
    # Codec
    'encode_base64',
    'encode_base64_url',
    'decode_base64',
    'decode_base64_url',
    # Crypto
    'DecryptionError',
    'encrypt_data',
    'decrypt_data',
    'sign_data',
    'verify_data',
    'hash_data',
    'compare_buffers',
    'time_safe_compare',
    'time_safe_compare_strings',
    'get_random_string',
]
