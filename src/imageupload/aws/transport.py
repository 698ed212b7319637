"""Signed HTTP calls to S3, EC2 and SNS with a bounded retry policy."""

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, TypeVar

import httpx
from tenacity import RetryCallState, Retrying, retry_if_exception_type, stop_after_attempt

from imageupload.aws.encoding import encode_form
from imageupload.aws.endpoints import bucket_host, storage_host
from imageupload.aws.signer import RequestSigner
from imageupload.core.config import settings
from imageupload.core.exceptions import (
    ConnectionFailedError,
    MalformedResponseError,
    RemoteCallError,
    RequestFailedError,
)
from imageupload.core.logging import region_context
from imageupload.core.progress import ProgressReporter

logger = logging.getLogger(__name__)

T = TypeVar("T")

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


@dataclass(frozen=True)
class SignedRequest:
    """A fully signed request, built immediately before it is sent."""

    method: str
    host: str
    path: str
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    @property
    def url(self) -> str:
        return f"https://{self.host}{self.path}"


def call_with_retries(
    operation: Callable[[], T],
    description: str,
    max_attempts: int | None = None,
    on_failure: Callable[[int, BaseException | None], None] | None = None,
) -> T:
    """Run ``operation`` until it succeeds or ``max_attempts`` calls have failed.

    Only RemoteCallError is retried, with no delay between attempts. The
    error of the final attempt is re-raised.
    """
    attempts = max_attempts or settings.MAX_ATTEMPTS

    def after(retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "Remote call attempt failed",
            extra={
                "operation": description,
                "attempt": retry_state.attempt_number,
                "max_attempts": attempts,
                "error": str(error),
            },
        )
        if on_failure is not None:
            on_failure(retry_state.attempt_number, error)

    retrying = Retrying(
        stop=stop_after_attempt(attempts),
        retry=retry_if_exception_type(RemoteCallError),
        after=after,
        reraise=True,
    )
    return retrying(operation)


class TransportClient:
    """Builds, signs and sends requests, validating every response.

    A request is re-signed on every attempt so that no timestamp or
    signature is ever reused.
    """

    def __init__(
        self,
        signer: RequestSigner,
        http_client: httpx.Client | None = None,
        progress: ProgressReporter | None = None,
        max_attempts: int | None = None,
        timeout: float | None = None,
    ):
        self.signer = signer
        self.http = http_client or httpx.Client(timeout=timeout or settings.REQUEST_TIMEOUT)
        self.progress = progress or ProgressReporter()
        self.max_attempts = max_attempts or settings.MAX_ATTEMPTS

    def close(self) -> None:
        self.http.close()

    def __enter__(self) -> "TransportClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def build_object_put(self, region: str, bucket: str, path: str, data: bytes) -> SignedRequest:
        """Sign a PUT of raw bytes to ``path`` in ``bucket``."""
        host = bucket_host(bucket)
        signed = self.signer.sign_headers(region, "s3", "PUT", host, path, body=data)
        headers = {
            "Host": host,
            "X-Amz-Date": signed.amz_date,
            "X-Amz-Content-SHA256": signed.content_sha256,
            "Authorization": signed.authorization,
            "Content-Length": str(len(data)),
            "Connection": "close",
        }
        return SignedRequest("PUT", storage_host(region), path, headers, data)

    def build_api_call(self, service: str, region: str, host: str, body: str) -> SignedRequest:
        """Sign a form-encoded Query API POST to ``host``."""
        payload = body.encode("utf-8")
        signed = self.signer.sign_headers(region, service, "POST", host, "/", body=payload)
        headers = {
            "Host": host,
            "X-Amz-Date": signed.amz_date,
            "X-Amz-Content-SHA256": signed.content_sha256,
            "Authorization": signed.authorization,
            "Content-Length": str(len(payload)),
            "Content-Type": FORM_CONTENT_TYPE,
            "Connection": "close",
        }
        return SignedRequest("POST", host, "/", headers, payload)

    def send(self, request: SignedRequest, description: str) -> httpx.Response:
        """Send one request and require a 200 status."""
        try:
            response = self.http.request(
                request.method,
                request.url,
                headers=request.headers,
                content=request.body,
            )
        except httpx.HTTPError as e:
            raise ConnectionFailedError(f"{description}: request failed: {e}") from e

        if response.status_code != 200:
            raise RequestFailedError(
                f"{description} failed:\n"
                f"HTTP {response.status_code} {response.reason_phrase}\n{response.text}",
                status_code=response.status_code,
                body=response.text,
            )
        return response

    def _report(self, description: str) -> Callable[[int, BaseException | None], None]:
        def report(attempt: int, error: BaseException | None) -> None:
            self.progress.line(f"\n{description} failed {attempt} times")
        return report

    def _run(self, operation: Callable[[], T], description: str, retry: bool) -> T:
        if not retry:
            return operation()
        return call_with_retries(
            operation,
            description,
            max_attempts=self.max_attempts,
            on_failure=self._report(description),
        )

    def put_object(
        self, region: str, bucket: str, path: str, data: bytes, retry: bool = True
    ) -> None:
        """Upload ``data`` to ``path`` in ``bucket``."""
        description = f"S3 PUT {path}"

        def attempt() -> None:
            request = self.build_object_put(region, bucket, path, data)
            self.send(request, description)

        token = region_context.set(region)
        try:
            self._run(attempt, description, retry)
        finally:
            region_context.reset(token)

        logger.debug(
            "Object uploaded",
            extra={"bucket": bucket, "path": path, "size_bytes": len(data)},
        )

    def api_call(
        self,
        service: str,
        region: str,
        host: str,
        params: Iterable[tuple[str, str]],
        operation: str,
        retry: bool = True,
    ) -> str:
        """Issue a Query API call and return the response body.

        Args:
            service: Signing service name ("ec2", "sns")
            region: Region the call is signed for
            host: Service endpoint host
            params: Ordered form parameters, including Action and Version
            operation: Action name used in diagnostics
            retry: Use the bounded retry policy instead of a single attempt

        Returns:
            Response body text
        """
        body = encode_form(params)
        description = f"{service.upper()} {operation}"

        def attempt() -> str:
            request = self.build_api_call(service, region, host, body)
            response = self.send(request, description)
            if b"\x00" in response.content:
                raise MalformedResponseError(f"NUL byte in {description} response")
            try:
                return response.content.decode("utf-8")
            except UnicodeDecodeError as e:
                raise MalformedResponseError(f"Bad {description} response received") from e

        token = region_context.set(region)
        try:
            result = self._run(attempt, description, retry)
        finally:
            region_context.reset(token)

        logger.debug(
            "API call succeeded",
            extra={"service": service, "region": region, "operation": operation},
        )
        return result
