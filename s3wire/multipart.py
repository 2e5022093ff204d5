"""Multipart Upload Coordinator: part bookkeeping and the upload lifecycle.

State machine of one upload session::

    INITIATED ──record_part──▶ UPLOADING ──complete──▶ COMPLETED
        │                          │
        └──────────abort───────────┴──────────────────▶ ABORTED

COMPLETED and ABORTED are terminal. Using a terminal session again
raises :class:`~s3wire.errors.SessionClosed`: the service does not
define what a second completion does, so the coordinator refuses it
rather than pretend it succeeded.

Part uploads commonly run in parallel worker threads. Every mutation of
one session happens under that session's lock; different sessions never
contend.

Abort is advisory. The session is marked terminal locally and the abort
call is issued, but the service reclaims part storage asynchronously.
Part uploads already in flight may still land after the abort, so it
may be necessary to abort the same upload id more than once (through a
fresh session from :meth:`MultipartCoordinator.adopt`) before all
storage is freed.

Usage::

    coordinator = MultipartCoordinator(client.execute)
    session = coordinator.initiate(InitiateMultipartUploadRequest("b", "k"))
    coordinator.record_part(session, 1, etag)
    result = coordinator.complete(session)
"""

from __future__ import annotations

from enum import Enum
from threading import Lock
from typing import Any, Callable, Iterable

from s3wire.errors import (
    ConflictingPart,
    DecodeError,
    EmptyUpload,
    SessionClosed,
)
from s3wire.logging_setup import ContextLogger, get_logger
from s3wire.models import (
    CompleteMultipartUploadResult,
    CopyPartResult,
    InitiateMultipartUploadResult,
    PartDescriptor,
    PartListing,
    UploadPartResult,
)
from s3wire.request_types import (
    AbortMultipartUploadRequest,
    CompleteMultipartUploadRequest,
    InitiateMultipartUploadRequest,
)


class SessionState(Enum):
    INITIATED = "initiated"
    UPLOADING = "uploading"
    COMPLETED = "completed"
    ABORTED = "aborted"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionState.COMPLETED, SessionState.ABORTED)


class UploadSession:
    """Caller-held state of one multipart upload."""

    def __init__(self, bucket: str, key: str, upload_id: str) -> None:
        self.bucket = bucket
        self.key = key
        self.upload_id = upload_id
        self.state = SessionState.INITIATED
        self._parts: dict[int, PartDescriptor] = {}
        self._lock = Lock()

    @property
    def parts(self) -> list[PartDescriptor]:
        """Recorded parts in ascending part-number order."""
        with self._lock:
            return [self._parts[n] for n in sorted(self._parts)]

    @property
    def part_count(self) -> int:
        with self._lock:
            return len(self._parts)

    def __repr__(self) -> str:
        return (
            f"UploadSession(bucket={self.bucket!r}, key={self.key!r}, "
            f"upload_id={self.upload_id!r}, state={self.state.value})"
        )


def validate_for_completion(
    parts: Iterable[PartDescriptor],
) -> list[PartDescriptor]:
    """Order a part set for CompleteMultipartUpload.

    Returns the parts sorted strictly ascending by part number. Repeats
    of the same part number with the same ETag collapse into one entry.
    ETags are not checked against the service; a stale ETag surfaces as
    a ServiceError from the completion call.

    Raises:
        EmptyUpload: No parts were given.
        ConflictingPart: One part number appears with different ETags.
    """
    by_number: dict[int, PartDescriptor] = {}
    for part in parts:
        existing = by_number.get(part.part_number)
        if existing is not None and existing.etag != part.etag:
            raise ConflictingPart(
                part.part_number, [existing.etag, part.etag],
            )
        by_number[part.part_number] = part

    if not by_number:
        raise EmptyUpload("CompleteMultipartUpload needs at least one part")

    return [by_number[number] for number in sorted(by_number)]


class MultipartCoordinator:
    """Tracks upload sessions and issues the lifecycle calls.

    Args:
        execute: Issues a typed request and returns its decoded result,
            typically :meth:`s3wire.client.ProtocolClient.execute`.
    """

    def __init__(self, execute: Callable[[Any], Any]) -> None:
        self._execute = execute
        self._base_logger = get_logger()

    def initiate(self, request: InitiateMultipartUploadRequest) -> UploadSession:
        """Start an upload and return its session.

        Raises:
            DecodeError: The response carries no upload id.
        """
        result: InitiateMultipartUploadResult = self._execute(request)
        if not result.upload_id:
            raise DecodeError(
                "response has no <UploadId>",
                operation=request.operation,
                partial=result,
            )
        session = UploadSession(
            result.bucket_name or request.bucket,
            result.key or request.key,
            result.upload_id,
        )
        self._logger(session).info(
            f"Initiated multipart upload for {session.bucket}/{session.key}"
        )
        return session

    def adopt(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        parts: Iterable[PartDescriptor] = (),
    ) -> UploadSession:
        """Build a session for an upload initiated elsewhere."""
        session = UploadSession(bucket, key, upload_id)
        for part in parts:
            self.record_part(session, part.part_number, part.etag, part.size)
        return session

    def adopt_listing(self, listing: PartListing) -> UploadSession:
        """Build a session from a ListParts page (e.g. to resume an upload)."""
        return self.adopt(
            listing.bucket_name,
            listing.key,
            listing.upload_id,
            (
                PartDescriptor(part.part_number, part.etag, part.size)
                for part in listing.parts
            ),
        )

    def record_part(
        self,
        session: UploadSession,
        part_number: int,
        etag: str,
        size: int = 0,
    ) -> PartDescriptor:
        """Record an uploaded part; the last write for a number wins.

        Raises:
            InvalidPartNumber: ``part_number`` is outside 1..10000.
            ValidationError: ``etag`` is missing or empty.
            SessionClosed: The session is completed or aborted.
        """
        part = PartDescriptor(part_number, etag, size)
        with session._lock:
            self._require_open(session, "record a part for")
            replaced = session._parts.get(part_number)
            session._parts[part_number] = part
            session.state = SessionState.UPLOADING
        if replaced is not None and replaced.etag != etag:
            self._logger(session).debug(
                f"Part {part_number} replaced ({replaced.etag} -> {etag})"
            )
        return part

    def record_result(
        self,
        session: UploadSession,
        result: UploadPartResult | CopyPartResult,
    ) -> PartDescriptor:
        """Fold an UploadPart or UploadPartCopy result into the session."""
        return self.record_part(
            session,
            result.part_number,
            result.etag,
            getattr(result, "size", 0),
        )

    def complete(self, session: UploadSession) -> CompleteMultipartUploadResult:
        """Validate the recorded parts and issue CompleteMultipartUpload.

        The session becomes COMPLETED only if the call succeeds. A
        ServiceError (including an error document inside a 200 answer)
        leaves it open so the caller can fix the part set or abort.

        Raises:
            SessionClosed: The session is completed or aborted.
            EmptyUpload: No parts were recorded.
        """
        with session._lock:
            self._require_open(session, "complete")
            ordered = validate_for_completion(session._parts.values())
            request = CompleteMultipartUploadRequest(
                session.bucket,
                session.key,
                session.upload_id,
                tuple(ordered),
            )
            result = self._execute(request)
            session.state = SessionState.COMPLETED
        self._logger(session).info(
            f"Completed multipart upload with {len(ordered)} part(s)"
        )
        return result

    def abort(self, session: UploadSession) -> None:
        """Mark the session aborted and issue AbortMultipartUpload.

        The session is terminal even when the abort call fails; retry
        through a session from :meth:`adopt` if the service must be
        told again.

        Raises:
            SessionClosed: The session is already completed or aborted.
        """
        with session._lock:
            self._require_open(session, "abort")
            session.state = SessionState.ABORTED
        self._logger(session).info("Aborting multipart upload")
        self._execute(
            AbortMultipartUploadRequest(
                session.bucket, session.key, session.upload_id,
            )
        )

    def _require_open(self, session: UploadSession, action: str) -> None:
        if session.state.is_terminal:
            self._logger(session).warning(
                f"Refusing to {action} a {session.state.value} upload"
            )
            raise SessionClosed(
                f"Cannot {action} upload {session.upload_id}: "
                f"session is {session.state.value}"
            )

    def _logger(self, session: UploadSession) -> ContextLogger:
        return self._base_logger.bind(upload_id=session.upload_id)
