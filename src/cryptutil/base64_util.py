"""
Base64 and base64url helpers.

Encoders accept str (encoded as UTF-8) or any bytes-like object and return
text. Decoders return bytes and tolerate missing padding.
"""
import base64
import re
from typing import Union

BytesLike = Union[str, bytes, bytearray, memoryview]

_WHITESPACE = re.compile(r'\s+')


def _to_bytes(data: BytesLike) -> bytes:
    if isinstance(data, str):
        return data.encode('utf-8')
    return bytes(data)


def _pad(encoded: str) -> str:
    return encoded + '=' * (-len(encoded) % 4)


def encode_base64(data: BytesLike) -> str:
    """Encode input as standard base64 text."""
    return base64.b64encode(_to_bytes(data)).decode('ascii')


def encode_base64_url(data: BytesLike) -> str:
    """Encode input as unpadded base64url text."""
    return base64.urlsafe_b64encode(_to_bytes(data)).decode('ascii').rstrip('=')


def decode_base64(encoded: str) -> bytes:
    """Decode standard base64 text.

    Raises:
        ValueError: If the text is not valid base64
    """
    return base64.b64decode(_pad(_WHITESPACE.sub('', encoded)), validate=True)


def decode_base64_url(encoded: str) -> bytes:
    """Decode base64url text, padded or not; whitespace is ignored.

    Raises:
        ValueError: If the text is not valid base64url
    """
    cleaned = _WHITESPACE.sub('', encoded).replace('-', '+').replace('_', '/')
    return base64.b64decode(_pad(cleaned), validate=True)
