"""Pytest configuration and shared fixtures."""

import io
import logging
from datetime import datetime, timezone
from urllib.parse import parse_qsl

import httpx
import pytest

from imageupload.aws.signer import RequestSigner
from imageupload.aws.transport import TransportClient
from imageupload.core.credentials import Credentials
from imageupload.core.progress import ProgressReporter


def parse_form(request: httpx.Request) -> dict:
    """Decode a Query API form body into a dict."""
    return dict(parse_qsl(request.content.decode("utf-8"), keep_blank_values=True))


class FakeAws:
    """Answers S3 PUTs with 200 and Query API calls from per-action queues.

    Every request is recorded. A call to an action with nothing queued fails
    the test.
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.calls: list[tuple[str, dict]] = []
        self.puts: list[httpx.Request] = []
        self._responses: dict[str, list[tuple[int, str]]] = {}

    def queue(self, action: str, *bodies: str, status: int = 200) -> None:
        self._responses.setdefault(action, []).extend((status, body) for body in bodies)

    @property
    def actions(self) -> list[str]:
        return [action for action, _ in self.calls]

    def forms(self, action: str) -> list[dict]:
        return [form for name, form in self.calls if name == action]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.method == "PUT":
            self.puts.append(request)
            return httpx.Response(200)

        form = parse_form(request)
        action = form["Action"]
        self.calls.append((action, form))
        queued = self._responses.get(action)
        if not queued:
            raise AssertionError(f"Unexpected {action} call")
        status, body = queued.pop(0)
        return httpx.Response(status, text=body)


@pytest.fixture(autouse=True)
def restore_root_logger():
    """Undo setup_logging() so handlers never outlive a captured stream."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
    root.setLevel(level)


@pytest.fixture
def credentials():
    """The example key pair from the AWS SigV4 documentation."""
    return Credentials(key_id="AKIDEXAMPLE", secret="wJalrXUtnFEMI/K7MDENG+bPxRfiCYEXAMPLEKEY")


@pytest.fixture
def fixed_now():
    return datetime(2015, 8, 30, 12, 36, 0, tzinfo=timezone.utc)


@pytest.fixture
def signer(credentials, fixed_now):
    """Signer with a frozen clock."""
    return RequestSigner(credentials, clock=lambda: fixed_now)


@pytest.fixture
def progress_stream():
    return io.StringIO()


@pytest.fixture
def progress(progress_stream):
    return ProgressReporter(progress_stream)


@pytest.fixture
def make_transport(signer, progress):
    """Build a TransportClient whose HTTP traffic goes to ``handler``."""
    clients = []

    def factory(handler, **kwargs):
        http_client = httpx.Client(transport=httpx.MockTransport(handler))
        transport = TransportClient(signer, http_client=http_client, progress=progress, **kwargs)
        clients.append(transport)
        return transport

    yield factory

    for transport in clients:
        transport.close()


@pytest.fixture
def fake_aws():
    return FakeAws()


@pytest.fixture
def aws_transport(make_transport, fake_aws):
    """TransportClient backed by the FakeAws fixture."""
    return make_transport(fake_aws.handler)
