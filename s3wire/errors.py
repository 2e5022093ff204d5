"""Error taxonomy for the protocol layer.

    S3WireError
    ├── TransportError        network failure in the issue collaborator
    ├── DecodeError           malformed XML or unexpected document shape
    ├── ServiceError          well-formed <Error> document from the service
    ├── UnknownOperation      no decoder registered (programming error)
    └── ContractViolation     caller misuse, detected before any wire call
        ├── NotTruncated
        ├── SessionClosed
        └── ValidationError
            ├── EmptyUpload
            ├── ConflictingPart
            └── InvalidPartNumber
"""

from __future__ import annotations

from typing import Any

from s3wire.operations import Operation


class S3WireError(Exception):
    """Base class for every error raised by s3wire."""


class TransportError(S3WireError):
    """Raised by the transport collaborator when a call cannot be issued."""


class DecodeError(S3WireError):
    """Raised when a response body cannot be decoded.

    Attributes:
        operation: Operation whose decoder failed.
        partial: Partially built result, or None.
    """

    def __init__(
        self,
        message: str,
        *,
        operation: Operation | None = None,
        partial: Any = None,
    ) -> None:
        self.operation = operation
        self.partial = partial
        if operation is not None:
            message = f"{operation.value}: {message}"
        super().__init__(message)


class ServiceError(S3WireError):
    """The service answered with an ``<Error>`` document.

    This covers both non-2xx responses and the "200 OK with an error
    body" answers of CopyObject, UploadPartCopy and
    CompleteMultipartUpload.
    """

    def __init__(
        self,
        *,
        code: str | None = None,
        message: str | None = None,
        request_id: str | None = None,
        host_id: str | None = None,
        resource: str | None = None,
        status_code: int | None = None,
        operation: Operation | None = None,
        details: dict[str, str] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.request_id = request_id
        self.host_id = host_id
        self.resource = resource
        self.status_code = status_code
        self.operation = operation
        self.details = dict(details or {})
        super().__init__(self._describe())

    def _describe(self) -> str:
        parts = [self.code or "UnknownError"]
        if self.message:
            parts.append(self.message)
        if self.status_code is not None:
            parts.append(f"HTTP {self.status_code}")
        if self.request_id:
            parts.append(f"request {self.request_id}")
        return " - ".join(parts)

    def __str__(self) -> str:
        return self._describe()

    def as_dict(self) -> dict[str, object]:
        return {
            "code": self.code,
            "message": self.message,
            "request_id": self.request_id,
            "host_id": self.host_id,
            "resource": self.resource,
            "status_code": self.status_code,
            "operation": self.operation.value if self.operation else None,
            "details": dict(self.details),
        }


class UnknownOperation(S3WireError, LookupError):
    """No decoder is registered for an operation."""


class ContractViolation(S3WireError, ValueError):
    """The caller broke a precondition of the API."""


class NotTruncated(ContractViolation):
    """A continuation cursor was requested from a complete listing."""


class SessionClosed(ContractViolation):
    """A completed or aborted upload session was used again."""


class ValidationError(ContractViolation):
    """A part set cannot be sent to CompleteMultipartUpload."""


class EmptyUpload(ValidationError):
    """Completion was requested with no parts."""


class ConflictingPart(ValidationError):
    """One part number was supplied with different entity tags."""

    def __init__(self, part_number: int, etags: list[str]) -> None:
        self.part_number = part_number
        self.etags = etags
        super().__init__(
            f"Part {part_number} supplied with conflicting ETags: "
            f"{', '.join(etags)}"
        )


class InvalidPartNumber(ValidationError):
    """A part number is outside the service's accepted range."""
