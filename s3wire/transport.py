"""Transport collaborator: issues wire requests over HTTP.

The protocol layer never opens connections itself; it hands a
:class:`~s3wire.request_types.WireRequest` to anything with an
``issue(request) -> WireResponse`` method. :class:`Urllib3Transport` is
the stock implementation. It talks plain HTTP(S) to an endpoint that
takes care of request signing, such as a local signing proxy or a
gateway, and returns the body unbuffered so the decoder can stream it.

Retries are disabled here; retry policy belongs to the
caller.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, BinaryIO, Mapping, Protocol

import urllib3

from s3wire.config import S3WIRE_ENDPOINT, S3WIRE_TIMEOUT, S3WIRE_VERIFY_SSL
from s3wire.errors import TransportError
from s3wire.logging_setup import get_logger
from s3wire.request_types import WireRequest

if not S3WIRE_VERIFY_SSL:
    # Suppress SSL warnings for self-signed certificates
    urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)


@dataclass
class WireResponse:
    """Status, headers and a readable body stream.

    Header lookups through :meth:`header` are case-insensitive.
    """

    status: int
    body: BinaryIO
    headers: Mapping[str, str] = field(default_factory=dict)

    def header(self, name: str, default: str | None = None) -> str | None:
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return default

    def close(self) -> None:
        close = getattr(self.body, "close", None)
        if close is not None:
            close()
        release = getattr(self.body, "release_conn", None)
        if release is not None:
            release()


class _ResponseBody:
    """Read side of a urllib3 response whose read errors are TransportErrors.

    The body is streamed, so a connection reset or read timeout can
    surface while the decoder is reading, long after ``issue`` returned.
    """

    def __init__(self, response: Any, description: str) -> None:
        self._response = response
        self._description = description

    def read(self, amt: int | None = None) -> bytes:
        try:
            return self._response.read(amt)
        except urllib3.exceptions.HTTPError as exc:
            raise TransportError(
                f"{self._description}: reading the body failed: {exc}"
            ) from exc

    def close(self) -> None:
        self._response.close()

    def release_conn(self) -> None:
        self._response.release_conn()


class Transport(Protocol):
    def issue(self, request: WireRequest) -> WireResponse:
        ...


class Urllib3Transport:
    """Issue requests through a ``urllib3.PoolManager``.

    Args:
        endpoint: Base URL, e.g. ``http://127.0.0.1:18080``.
        timeout: Connect/read timeout in seconds.
        pool_manager: Existing pool to reuse.
    """

    def __init__(
        self,
        endpoint: str | None = None,
        *,
        timeout: float | None = None,
        pool_manager: Any = None,
    ) -> None:
        self.endpoint = (endpoint or S3WIRE_ENDPOINT).rstrip("/")
        self.timeout = timeout if timeout is not None else S3WIRE_TIMEOUT
        self._http = pool_manager or urllib3.PoolManager(
            timeout=self.timeout,
            cert_reqs="CERT_REQUIRED" if S3WIRE_VERIFY_SSL else "CERT_NONE",
            retries=False,
        )
        self._logger = get_logger()

    def issue(self, request: WireRequest) -> WireResponse:
        url = f"{self.endpoint}{request.target}"
        headers = dict(request.headers)
        body = request.body
        if isinstance(body, (bytes, bytearray)) and "Content-Length" not in headers:
            headers["Content-Length"] = str(len(body))
        self._logger.debug(f"{request.method} {request.target}")
        try:
            response = self._http.request(
                request.method,
                url,
                body=body,
                headers=headers,
                preload_content=False,
                redirect=False,
                retries=False,
            )
        except urllib3.exceptions.HTTPError as exc:
            raise TransportError(
                f"{request.method} {request.target} failed: {exc}"
            ) from exc
        return WireResponse(
            status=response.status,
            body=_ResponseBody(
                response, f"{request.method} {request.target}",
            ),
            headers=dict(response.headers),
        )

    def close(self) -> None:
        self._http.clear()
