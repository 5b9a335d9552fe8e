"""Shared pytest fixtures for ossclient tests.

The client is wired to a RecordingTransport: tests queue canned
responses, run an operation, then inspect the requests that were sent.
The clock is pinned so Date headers and signatures are reproducible.
"""

import urllib.parse
from dataclasses import dataclass, field

import pytest

from ossclient.client import OssClient
from ossclient.models import TransportResponse
from ossclient.signing import OssSigner

ACCESS_KEY_ID = "testAccessKeyId"
ACCESS_KEY_SECRET = "testAccessKeySecret"
ENDPOINT = "oss-cn-hangzhou.aliyuncs.com"
BUCKET = "test-bucket"

# Wed, 28 Dec 2022 12:00:00 GMT
FIXED_TIME = 1672228800


@dataclass
class SentRequest:
    """One request as seen by the RecordingTransport."""

    method: str
    url: str
    headers: dict[str, str]
    body: bytes | None

    @property
    def path(self) -> str:
        return urllib.parse.urlsplit(self.url).path

    @property
    def query(self) -> dict[str, str]:
        return dict(
            urllib.parse.parse_qsl(
                urllib.parse.urlsplit(self.url).query, keep_blank_values=True
            )
        )


@dataclass
class RecordingTransport:
    """Transport fake that replays queued responses in order."""

    responses: list[TransportResponse] = field(default_factory=list)
    requests: list[SentRequest] = field(default_factory=list)

    def queue(
        self,
        status_code: int = 200,
        body: bytes | str = b"",
        headers: dict[str, str] | None = None,
    ) -> None:
        if isinstance(body, str):
            body = body.encode("utf-8")
        self.responses.append(
            TransportResponse(
                status_code=status_code,
                headers={name.lower(): [value] for name, value in (headers or {}).items()},
                body=body,
            )
        )

    def send(self, method, url, headers, body=None):
        self.requests.append(SentRequest(method, url, dict(headers), body))
        if not self.responses:
            raise AssertionError(f"Unexpected request: {method} {url}")
        return self.responses.pop(0)


class RecordingObserver:
    """Observer fake that keeps every callback for assertions."""

    def __init__(self):
        self.successes: list[tuple[str, dict]] = []
        self.failures: list[tuple[str, dict, Exception]] = []

    def on_success(self, operation, attributes):
        self.successes.append((operation, dict(attributes)))

    def on_failure(self, operation, attributes, error):
        self.failures.append((operation, dict(attributes), error))


@pytest.fixture
def signer() -> OssSigner:
    return OssSigner(ACCESS_KEY_ID, ACCESS_KEY_SECRET)


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def observer() -> RecordingObserver:
    return RecordingObserver()


@pytest.fixture
def client(transport, signer, observer) -> OssClient:
    """An OssClient wired to the recording fakes with a pinned clock."""
    return OssClient(
        transport, signer, ENDPOINT, observer=observer, clock=lambda: FIXED_TIME
    )


def listing_xml(
    keys: list[str],
    prefixes: list[str] | None = None,
    truncated: bool = False,
    token: str | None = None,
) -> str:
    """Build a ListBucketResult body."""
    parts = ["<ListBucketResult>", f"<Name>{BUCKET}</Name>"]
    for key in keys:
        parts.append(
            f"<Contents><Key>{key}</Key>"
            "<LastModified>2022-12-28T12:00:00.000Z</LastModified>"
            '<ETag>"etag-' + key + '"</ETag>'
            "<Size>10</Size><StorageClass>Standard</StorageClass></Contents>"
        )
    for prefix in prefixes or []:
        parts.append(f"<CommonPrefixes><Prefix>{prefix}</Prefix></CommonPrefixes>")
    parts.append(f"<IsTruncated>{'true' if truncated else 'false'}</IsTruncated>")
    if token is not None:
        parts.append(f"<NextContinuationToken>{token}</NextContinuationToken>")
    parts.append("</ListBucketResult>")
    return "".join(parts)


def error_xml(code: str, message: str = "error") -> str:
    return f"<Error><Code>{code}</Code><Message>{message}</Message></Error>"
