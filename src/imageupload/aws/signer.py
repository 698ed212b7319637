"""AWS Signature Version 4 request signing.

Implements both forms of the SigV4 protocol used by this tool:

- header signing, producing the ``X-Amz-Content-SHA256``, ``X-Amz-Date`` and
  ``Authorization`` values for a direct call;
- query signing, producing a time-limited presigned query string that grants
  one operation on one object without further credentials.

See: https://docs.aws.amazon.com/IAM/latest/UserGuide/reference_sigv.html
"""

import hashlib
import hmac
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Iterable, Mapping

from imageupload.aws.encoding import rfc3986_encode
from imageupload.core.credentials import Credentials

ALGORITHM = "AWS4-HMAC-SHA256"
SCOPE_TERMINATOR = "aws4_request"
UNSIGNED_PAYLOAD = "UNSIGNED-PAYLOAD"
EMPTY_SHA256 = hashlib.sha256(b"").hexdigest()
MAX_PRESIGN_EXPIRES = 604800


@dataclass(frozen=True)
class SignedHeaders:
    """Header values authorizing a single request."""

    content_sha256: str
    amz_date: str
    authorization: str


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def amz_timestamp(moment: datetime) -> str:
    """Format an instant as the SigV4 ``YYYYMMDDTHHMMSSZ`` timestamp."""
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y%m%dT%H%M%SZ")


def _hmac(key: bytes, msg: str) -> bytes:
    return hmac.new(key, msg.encode("utf-8"), hashlib.sha256).digest()


def derive_signing_key(secret: str, date: str, region: str, service: str) -> bytes:
    """Derive the scoped signing key from the secret access key."""
    k_date = _hmac(("AWS4" + secret).encode("utf-8"), date)
    k_region = _hmac(k_date, region)
    k_service = _hmac(k_region, service)
    return _hmac(k_service, SCOPE_TERMINATOR)


def canonical_uri(path: str) -> str:
    # S3 object keys are encoded once; "/" separates segments
    return rfc3986_encode(path or "/", safe="/~")


def canonical_query(params: Iterable[tuple[str, str]]) -> str:
    encoded = sorted(
        (rfc3986_encode(name), rfc3986_encode(str(value))) for name, value in params
    )
    return "&".join(f"{name}={value}" for name, value in encoded)


def canonical_headers(headers: Mapping[str, str]) -> tuple[str, str]:
    """Return the canonical header block and the signed header list."""
    normalized = sorted(
        (name.lower().strip(), " ".join(str(value).split())) for name, value in headers.items()
    )
    block = "".join(f"{name}:{value}\n" for name, value in normalized)
    signed = ";".join(name for name, _ in normalized)
    return block, signed


def canonical_request(
    method: str,
    path: str,
    query: Iterable[tuple[str, str]],
    headers: Mapping[str, str],
    payload_hash: str,
) -> str:
    header_block, signed_headers = canonical_headers(headers)
    return "\n".join(
        [
            method.upper(),
            canonical_uri(path),
            canonical_query(query),
            header_block,
            signed_headers,
            payload_hash,
        ]
    )


class RequestSigner:
    """Signs AWS requests with one set of credentials.

    The clock is injectable so identical inputs at the same instant always
    produce identical output.
    """

    def __init__(self, credentials: Credentials, clock: Callable[[], datetime] = _utcnow):
        self.credentials = credentials
        self._clock = clock

    def credential_scope(self, date: str, region: str, service: str) -> str:
        return f"{date}/{region}/{service}/{SCOPE_TERMINATOR}"

    def signature(
        self,
        region: str,
        service: str,
        amz_date: str,
        canonical: str,
    ) -> str:
        """Sign a canonical request at the given timestamp."""
        date = amz_date[:8]
        string_to_sign = "\n".join(
            [
                ALGORITHM,
                amz_date,
                self.credential_scope(date, region, service),
                hashlib.sha256(canonical.encode("utf-8")).hexdigest(),
            ]
        )
        key = derive_signing_key(self.credentials.secret, date, region, service)
        return hmac.new(key, string_to_sign.encode("utf-8"), hashlib.sha256).hexdigest()

    def authorization(
        self,
        region: str,
        service: str,
        method: str,
        path: str,
        headers: Mapping[str, str],
        payload_hash: str,
        amz_date: str,
        query: Iterable[tuple[str, str]] = (),
    ) -> str:
        """Build the ``Authorization`` header value over exactly ``headers``."""
        canonical = canonical_request(method, path, query, headers, payload_hash)
        _, signed_headers = canonical_headers(headers)
        scope = self.credential_scope(amz_date[:8], region, service)
        signature = self.signature(region, service, amz_date, canonical)
        return (
            f"{ALGORITHM} Credential={self.credentials.key_id}/{scope}, "
            f"SignedHeaders={signed_headers}, Signature={signature}"
        )

    def sign_headers(
        self,
        region: str,
        service: str,
        method: str,
        host: str,
        path: str,
        body: bytes = b"",
        query: Iterable[tuple[str, str]] = (),
        now: datetime | None = None,
    ) -> SignedHeaders:
        """Sign a direct call whose body is sent as-is.

        Signs the ``host``, ``x-amz-content-sha256`` and ``x-amz-date``
        headers; the content hash covers the literal body bytes.
        """
        amz_date = amz_timestamp(now or self._clock())
        content_sha256 = hashlib.sha256(body).hexdigest()
        headers = {
            "host": host,
            "x-amz-content-sha256": content_sha256,
            "x-amz-date": amz_date,
        }
        authorization = self.authorization(
            region, service, method, path, headers, content_sha256, amz_date, query
        )
        return SignedHeaders(
            content_sha256=content_sha256,
            amz_date=amz_date,
            authorization=authorization,
        )

    def presign_query(
        self,
        region: str,
        service: str,
        method: str,
        host: str,
        path: str,
        expires: int,
        now: datetime | None = None,
    ) -> str:
        """Build a presigned query string valid for ``expires`` seconds.

        Only the ``host`` header is signed and the payload is declared
        unsigned. The returned string ends with ``X-Amz-Signature``.
        """
        if not 0 < expires <= MAX_PRESIGN_EXPIRES:
            raise ValueError(f"expires must be within 1..{MAX_PRESIGN_EXPIRES}, got {expires}")

        amz_date = amz_timestamp(now or self._clock())
        scope = self.credential_scope(amz_date[:8], region, service)
        params = [
            ("X-Amz-Algorithm", ALGORITHM),
            ("X-Amz-Credential", f"{self.credentials.key_id}/{scope}"),
            ("X-Amz-Date", amz_date),
            ("X-Amz-Expires", str(expires)),
            ("X-Amz-SignedHeaders", "host"),
        ]
        canonical = canonical_request(method, path, params, {"host": host}, UNSIGNED_PAYLOAD)
        signature = self.signature(region, service, amz_date, canonical)
        return f"{canonical_query(params)}&X-Amz-Signature={signature}"
