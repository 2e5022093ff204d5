"""Protocol client: issue a typed request, decode the typed result.

Usage::

    from s3wire.client import ProtocolClient
    from s3wire.transport import Urllib3Transport

    client = ProtocolClient(Urllib3Transport("http://127.0.0.1:18080"))
    for summary in client.iter_objects("bucket", prefix="logs/"):
        print(summary.key, summary.size)
"""

from __future__ import annotations

from typing import Any, Iterable, Iterator

from s3wire.cursors import ListingPaginator
from s3wire.errors import DecodeError, ServiceError
from s3wire.logging_setup import get_logger
from s3wire.models import (
    Bucket,
    BucketList,
    BucketListing,
    CompleteMultipartUploadResult,
    CopyObjectResult,
    CopyPartResult,
    DeleteObjectsResult,
    Listing,
    MultipartUpload,
    MultipartUploadListing,
    ObjectListing,
    ObjectListingV2,
    ObjectSummary,
    PartListing,
    PartSummary,
    UploadPartResult,
    VersionListing,
    VersionSummary,
)
from s3wire.multipart import MultipartCoordinator, UploadSession
from s3wire.registry import DecoderRegistry, get_registry
from s3wire.request_types import (
    CopyObjectRequest,
    CopyPartRequest,
    DeleteObjectsRequest,
    InitiateMultipartUploadRequest,
    ListBucketsExtendedRequest,
    ListBucketsRequest,
    ListingRequest,
    ListMultipartUploadsRequest,
    ListObjectsRequest,
    ListObjectsV2Request,
    ListPartsRequest,
    ListVersionsRequest,
    ObjectIdentifier,
    UploadPartRequest,
)
from s3wire.transport import Transport, WireResponse


class ProtocolClient:
    """Glue between the transport, the decoders and the stateful protocols.

    Args:
        transport: Anything with ``issue(WireRequest) -> WireResponse``.
        registry: Decoder registry; the shared default when omitted.
    """

    def __init__(
        self,
        transport: Transport,
        registry: DecoderRegistry | None = None,
    ) -> None:
        self.transport = transport
        self.registry = registry or get_registry()
        self.paginator = ListingPaginator(self.execute)
        self.multipart = MultipartCoordinator(self.execute)

    def execute(self, request: Any) -> Any:
        """Issue ``request`` and decode its response.

        Raises:
            TransportError: The transport could not complete the call.
            ServiceError: The service answered with an error document.
            DecodeError: The response body could not be decoded.
        """
        operation = request.operation
        logger = get_logger(operation=operation.value)
        wire = request.to_wire()
        logger.debug(f"{wire.method} {wire.target}")

        response = self.transport.issue(wire)
        try:
            if response.status >= 300:
                error = self.registry.decode_error(
                    response.body,
                    status_code=response.status,
                    operation=operation,
                )
                logger.debug(f"Service error: {error}")
                raise error
            try:
                result = self.registry.decode(operation, response.body)
            except ServiceError as exc:
                # Error document inside a 2xx answer
                exc.status_code = response.status
                logger.warning(f"Error document in HTTP {response.status}: {exc}")
                raise
        finally:
            response.close()

        return self._with_headers(request, result, response)

    @staticmethod
    def _with_headers(request: Any, result: Any, response: WireResponse) -> Any:
        # Values the service only sends as headers
        if isinstance(result, UploadPartResult):
            etag = response.header("ETag")
            if not etag:
                raise DecodeError(
                    "response has no ETag header",
                    operation=request.operation,
                    partial=result,
                )
            result.part_number = request.part_number
            result.etag = etag
            result.size = request.size
        elif isinstance(result, CopyPartResult):
            if not result.etag:
                raise DecodeError(
                    "response has no <ETag>",
                    operation=request.operation,
                    partial=result,
                )
            result.part_number = request.part_number
        return result

    # ------------------------------------------------------------------
    # Listings
    # ------------------------------------------------------------------

    def list_buckets(self) -> BucketList:
        return self.execute(ListBucketsRequest())

    def list_buckets_extended(
        self, request: ListBucketsExtendedRequest | None = None,
    ) -> BucketListing:
        """One page of the paginated bucket listing."""
        return self.execute(request or ListBucketsExtendedRequest())

    def list_objects(self, request: ListObjectsRequest) -> ObjectListing:
        return self.execute(request)

    def list_objects_v2(self, request: ListObjectsV2Request) -> ObjectListingV2:
        return self.execute(request)

    def list_versions(self, request: ListVersionsRequest) -> VersionListing:
        return self.execute(request)

    def list_multipart_uploads(
        self, request: ListMultipartUploadsRequest,
    ) -> MultipartUploadListing:
        return self.execute(request)

    def list_parts(self, request: ListPartsRequest) -> PartListing:
        return self.execute(request)

    def list_next_page(
        self, previous: Listing, request: ListingRequest,
    ) -> Listing:
        """Next page after ``previous``; empty, with no call, if it was complete."""
        return self.paginator.next_page(previous, request)

    def iter_pages(self, request: ListingRequest) -> Iterator[Listing]:
        return self.paginator.pages(request)

    def iter_buckets(
        self,
        *,
        prefix: str | None = None,
        page_size: int | None = None,
    ) -> Iterator[Bucket]:
        return self.paginator.items(
            ListBucketsExtendedRequest(prefix=prefix, max_keys=page_size)
        )

    def iter_objects(
        self,
        bucket: str,
        *,
        prefix: str | None = None,
        delimiter: str | None = None,
        page_size: int | None = None,
    ) -> Iterator[ObjectSummary]:
        return self.paginator.items(
            ListObjectsV2Request(
                bucket,
                prefix=prefix,
                delimiter=delimiter,
                max_keys=page_size,
            )
        )

    def iter_versions(
        self,
        bucket: str,
        *,
        prefix: str | None = None,
        page_size: int | None = None,
    ) -> Iterator[VersionSummary]:
        return self.paginator.items(
            ListVersionsRequest(bucket, prefix=prefix, max_keys=page_size)
        )

    def iter_multipart_uploads(
        self,
        bucket: str,
        *,
        prefix: str | None = None,
        page_size: int | None = None,
    ) -> Iterator[MultipartUpload]:
        return self.paginator.items(
            ListMultipartUploadsRequest(
                bucket, prefix=prefix, max_uploads=page_size,
            )
        )

    def iter_parts(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        *,
        page_size: int | None = None,
    ) -> Iterator[PartSummary]:
        return self.paginator.items(
            ListPartsRequest(bucket, key, upload_id, max_parts=page_size)
        )

    # ------------------------------------------------------------------
    # Multipart uploads
    # ------------------------------------------------------------------

    def initiate_multipart_upload(
        self, request: InitiateMultipartUploadRequest,
    ) -> UploadSession:
        return self.multipart.initiate(request)

    def upload_part(
        self,
        session: UploadSession,
        part_number: int,
        body: Any,
        *,
        content_md5: str | None = None,
    ) -> UploadPartResult:
        """Upload one part and record it in ``session``."""
        result = self.execute(
            UploadPartRequest(
                session.bucket,
                session.key,
                session.upload_id,
                part_number,
                body,
                content_md5=content_md5,
            )
        )
        self.multipart.record_result(session, result)
        return result

    def copy_part(
        self,
        session: UploadSession,
        part_number: int,
        source_bucket: str,
        source_key: str,
        *,
        source_version_id: str | None = None,
        first_byte: int | None = None,
        last_byte: int | None = None,
    ) -> CopyPartResult:
        """Copy a byte range of an existing object into one part."""
        result = self.execute(
            CopyPartRequest(
                session.bucket,
                session.key,
                session.upload_id,
                part_number,
                source_bucket,
                source_key,
                source_version_id=source_version_id,
                first_byte=first_byte,
                last_byte=last_byte,
            )
        )
        self.multipart.record_result(session, result)
        return result

    def complete_multipart_upload(
        self, session: UploadSession,
    ) -> CompleteMultipartUploadResult:
        return self.multipart.complete(session)

    def abort_multipart_upload(self, session: UploadSession) -> None:
        self.multipart.abort(session)

    # ------------------------------------------------------------------
    # Objects
    # ------------------------------------------------------------------

    def copy_object(self, request: CopyObjectRequest) -> CopyObjectResult:
        return self.execute(request)

    def delete_objects(
        self,
        bucket: str,
        keys: Iterable[str | ObjectIdentifier],
        *,
        quiet: bool = False,
    ) -> DeleteObjectsResult:
        """Bulk delete; per-key failures are returned in ``errors``."""
        result = self.execute(
            DeleteObjectsRequest(bucket, tuple(keys), quiet=quiet)
        )
        if result.has_errors:
            get_logger(operation="DeleteObjects").warning(
                f"{len(result.errors)} of "
                f"{len(result.errors) + len(result.deleted)} keys "
                f"not deleted"
            )
        return result
