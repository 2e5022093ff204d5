from __future__ import annotations

import io

import pytest

from s3wire.client import ProtocolClient
from s3wire.registry import get_registry
from s3wire.transport import WireResponse


class FakeTransport:
    """Records every wire request and replays queued responses in order."""

    def __init__(self):
        self.requests = []
        self.responses = []
        self.bodies = []

    def queue(self, status=200, body=b"", headers=None):
        if isinstance(body, str):
            body = body.encode("utf-8")
        self.responses.append((status, body, headers or {}))
        return self

    def issue(self, request):
        self.requests.append(request)
        if not self.responses:
            raise AssertionError(
                f"unexpected request {request.method} {request.target}"
            )
        status, body, headers = self.responses.pop(0)
        stream = io.BytesIO(body)
        self.bodies.append(stream)
        return WireResponse(status=status, body=stream, headers=headers)


class UnreadableStream:
    """Body stream that fails the test if anything reads it."""

    def read(self, *args):
        raise AssertionError("body stream must not be read")


@pytest.fixture()
def transport():
    return FakeTransport()


@pytest.fixture()
def client(transport):
    return ProtocolClient(transport, registry=get_registry())


@pytest.fixture()
def registry():
    return get_registry(url_decode=True, chunk_size=16)


@pytest.fixture()
def unreadable():
    return UnreadableStream()
