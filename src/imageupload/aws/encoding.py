"""Escaping helpers for query strings, form bodies and XML text."""

from typing import Iterable
from urllib.parse import quote

# RFC 3986 unreserved characters, the only ones AWS leaves unescaped
UNRESERVED = "-_.~"


def rfc3986_encode(value: str, safe: str = UNRESERVED) -> str:
    """Percent-encode everything except RFC 3986 unreserved characters."""
    return quote(value, safe=safe)


def encode_amp(value: str) -> str:
    """Escape ``&`` as ``&amp;`` so a URL can be embedded in an XML document."""
    return value.replace("&", "&amp;")


def encode_form(params: Iterable[tuple[str, str]]) -> str:
    """Build an ``application/x-www-form-urlencoded`` body.

    Parameter order is preserved; values are RFC 3986 encoded so the body can
    be hashed and signed byte-for-byte.
    """
    return "&".join(f"{name}={rfc3986_encode(str(value))}" for name, value in params)
