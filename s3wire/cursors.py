"""Listing Cursor Manager: uniform continuation across listing families.

A truncated listing yields an immutable :class:`Cursor` holding exactly
the markers needed to resume. Applying the cursor to the original
request produces the next page's request. The manager never reorders
or deduplicates: pages come back in wire order (keys ascending, and for
versions the most recent version of a key first).

Usage::

    from s3wire.cursors import ListingPaginator

    paginator = ListingPaginator(client.execute)
    for summary in paginator.items(ListObjectsV2Request("bucket")):
        print(summary.key)
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterator, Optional

from s3wire.errors import ContractViolation, DecodeError, NotTruncated
from s3wire.logging_setup import get_logger
from s3wire.models import (
    BucketListing,
    Listing,
    MultipartUploadListing,
    ObjectListing,
    ObjectListingV2,
    PartListing,
    VersionListing,
)
from s3wire.operations import Operation
from s3wire.request_types import (
    ListBucketsExtendedRequest,
    ListingRequest,
    ListMultipartUploadsRequest,
    ListObjectsRequest,
    ListObjectsV2Request,
    ListPartsRequest,
    ListVersionsRequest,
)


class ListingFamily(Enum):
    BUCKETS = "buckets"
    OBJECTS = "objects"
    OBJECTS_V2 = "objects-v2"
    VERSIONS = "versions"
    MULTIPART_UPLOADS = "multipart-uploads"
    PARTS = "parts"


_FAMILY_OF_RESULT: dict[type, ListingFamily] = {
    BucketListing: ListingFamily.BUCKETS,
    ObjectListing: ListingFamily.OBJECTS,
    ObjectListingV2: ListingFamily.OBJECTS_V2,
    VersionListing: ListingFamily.VERSIONS,
    MultipartUploadListing: ListingFamily.MULTIPART_UPLOADS,
    PartListing: ListingFamily.PARTS,
}

_FAMILY_OF_REQUEST: dict[type, ListingFamily] = {
    ListBucketsExtendedRequest: ListingFamily.BUCKETS,
    ListObjectsRequest: ListingFamily.OBJECTS,
    ListObjectsV2Request: ListingFamily.OBJECTS_V2,
    ListVersionsRequest: ListingFamily.VERSIONS,
    ListMultipartUploadsRequest: ListingFamily.MULTIPART_UPLOADS,
    ListPartsRequest: ListingFamily.PARTS,
}

_OPERATION_OF_FAMILY: dict[ListingFamily, Operation] = {
    ListingFamily.BUCKETS: Operation.LIST_BUCKETS_EXTENDED,
    ListingFamily.OBJECTS: Operation.LIST_OBJECTS,
    ListingFamily.OBJECTS_V2: Operation.LIST_OBJECTS_V2,
    ListingFamily.VERSIONS: Operation.LIST_VERSIONS,
    ListingFamily.MULTIPART_UPLOADS: Operation.LIST_MULTIPART_UPLOADS,
    ListingFamily.PARTS: Operation.LIST_PARTS,
}

# Attribute holding the entries of each listing family
_ITEMS_OF_FAMILY: dict[ListingFamily, str] = {
    ListingFamily.BUCKETS: "buckets",
    ListingFamily.OBJECTS: "object_summaries",
    ListingFamily.OBJECTS_V2: "object_summaries",
    ListingFamily.VERSIONS: "version_summaries",
    ListingFamily.MULTIPART_UPLOADS: "multipart_uploads",
    ListingFamily.PARTS: "parts",
}


@dataclass(frozen=True)
class Cursor:
    """Position from which a truncated listing resumes."""

    family: ListingFamily
    marker: Optional[str] = None
    continuation_token: Optional[str] = None
    key_marker: Optional[str] = None
    version_id_marker: Optional[str] = None
    upload_id_marker: Optional[str] = None
    part_number_marker: Optional[int] = None

    def __post_init__(self) -> None:
        if self.version_id_marker and not self.key_marker:
            raise ContractViolation(
                "version_id_marker is only valid together with key_marker"
            )
        if self.upload_id_marker and not self.key_marker:
            raise ContractViolation(
                "upload_id_marker is only valid together with key_marker"
            )


def family_of(listing: Any) -> ListingFamily:
    try:
        return _FAMILY_OF_RESULT[type(listing)]
    except KeyError:
        raise ContractViolation(
            f"{type(listing).__name__} is not a paginated listing"
        ) from None


def _request_family(request: Any) -> ListingFamily:
    try:
        return _FAMILY_OF_REQUEST[type(request)]
    except KeyError:
        raise ContractViolation(
            f"{type(request).__name__} is not a listing request"
        ) from None


def is_truncated(listing: Listing) -> bool:
    family_of(listing)
    return listing.is_truncated


def listing_items(listing: Listing) -> list:
    """Entries of a listing (summaries, uploads or parts) in wire order."""
    return getattr(listing, _ITEMS_OF_FAMILY[family_of(listing)])


def _missing(listing: Listing, element: str) -> DecodeError:
    family = family_of(listing)
    return DecodeError(
        f"truncated listing has no <{element}>",
        operation=_OPERATION_OF_FAMILY[family],
        partial=listing,
    )


def next_cursor(listing: Listing) -> Cursor:
    """Extract the continuation cursor of a truncated listing.

    Raises:
        NotTruncated: The listing is complete; check
            :func:`is_truncated` first.
        DecodeError: The listing is truncated but lacks its next marker.
    """
    family = family_of(listing)
    if not listing.is_truncated:
        raise NotTruncated(
            f"{type(listing).__name__} is not truncated; "
            f"there is no next page"
        )

    if family in (ListingFamily.BUCKETS, ListingFamily.OBJECTS):
        if not listing.next_marker:
            raise _missing(listing, "NextMarker")
        return Cursor(family, marker=listing.next_marker)

    if family is ListingFamily.OBJECTS_V2:
        if not listing.next_continuation_token:
            raise _missing(listing, "NextContinuationToken")
        return Cursor(
            family, continuation_token=listing.next_continuation_token,
        )

    if family is ListingFamily.VERSIONS:
        if not listing.next_key_marker:
            raise _missing(listing, "NextKeyMarker")
        return Cursor(
            family,
            key_marker=listing.next_key_marker,
            version_id_marker=listing.next_version_id_marker,
        )

    if family is ListingFamily.MULTIPART_UPLOADS:
        if not listing.next_key_marker:
            raise _missing(listing, "NextKeyMarker")
        return Cursor(
            family,
            key_marker=listing.next_key_marker,
            upload_id_marker=listing.next_upload_id_marker,
        )

    if not listing.next_part_number_marker:
        raise _missing(listing, "NextPartNumberMarker")
    return Cursor(family, part_number_marker=listing.next_part_number_marker)


def apply_cursor(request: ListingRequest, cursor: Cursor) -> ListingRequest:
    """Return ``request`` positioned at ``cursor``.

    Paired markers are always set together: key and version id for
    versions, key and upload id for multipart uploads.

    Raises:
        ContractViolation: The cursor belongs to another listing family.
    """
    family = _request_family(request)
    if cursor.family is not family:
        raise ContractViolation(
            f"Cannot apply a {cursor.family.value} cursor to "
            f"{type(request).__name__}"
        )

    if family in (ListingFamily.BUCKETS, ListingFamily.OBJECTS):
        return dataclasses.replace(request, marker=cursor.marker)
    if family is ListingFamily.OBJECTS_V2:
        return dataclasses.replace(
            request, continuation_token=cursor.continuation_token,
        )
    if family is ListingFamily.VERSIONS:
        return dataclasses.replace(
            request,
            key_marker=cursor.key_marker,
            version_id_marker=cursor.version_id_marker,
        )
    if family is ListingFamily.MULTIPART_UPLOADS:
        return dataclasses.replace(
            request,
            key_marker=cursor.key_marker,
            upload_id_marker=cursor.upload_id_marker,
        )
    return dataclasses.replace(
        request, part_number_marker=cursor.part_number_marker,
    )


def empty_listing(listing: Listing) -> Listing:
    """Return the empty, non-truncated page following a complete listing.

    Request parameters are carried over and the markers point past the
    end of ``listing``, mirroring what the service would report.
    """
    family = family_of(listing)

    if family is ListingFamily.BUCKETS:
        return BucketListing(
            owner=listing.owner,
            prefix=listing.prefix,
            marker=listing.next_marker,
            max_keys=listing.max_keys,
        )
    if family is ListingFamily.OBJECTS:
        return ObjectListing(
            bucket_name=listing.bucket_name,
            prefix=listing.prefix,
            delimiter=listing.delimiter,
            marker=listing.next_marker,
            max_keys=listing.max_keys,
            encoding_type=listing.encoding_type,
        )
    if family is ListingFamily.OBJECTS_V2:
        return ObjectListingV2(
            bucket_name=listing.bucket_name,
            prefix=listing.prefix,
            delimiter=listing.delimiter,
            start_after=listing.start_after,
            continuation_token=listing.next_continuation_token,
            max_keys=listing.max_keys,
            encoding_type=listing.encoding_type,
        )
    if family is ListingFamily.VERSIONS:
        return VersionListing(
            bucket_name=listing.bucket_name,
            prefix=listing.prefix,
            delimiter=listing.delimiter,
            key_marker=listing.next_key_marker,
            version_id_marker=listing.next_version_id_marker,
            max_keys=listing.max_keys,
            encoding_type=listing.encoding_type,
        )
    if family is ListingFamily.MULTIPART_UPLOADS:
        return MultipartUploadListing(
            bucket_name=listing.bucket_name,
            prefix=listing.prefix,
            delimiter=listing.delimiter,
            key_marker=listing.next_key_marker,
            upload_id_marker=listing.next_upload_id_marker,
            max_uploads=listing.max_uploads,
            encoding_type=listing.encoding_type,
        )
    return PartListing(
        bucket_name=listing.bucket_name,
        key=listing.key,
        upload_id=listing.upload_id,
        owner=listing.owner,
        initiator=listing.initiator,
        storage_class=listing.storage_class,
        part_number_marker=listing.next_part_number_marker,
        max_parts=listing.max_parts,
        encoding_type=listing.encoding_type,
    )


class ListingPaginator:
    """Drives a listing page by page through an ``execute`` callable.

    Args:
        execute: Issues a listing request and returns the decoded page,
            typically :meth:`s3wire.client.ProtocolClient.execute`.
    """

    def __init__(self, execute: Callable[[ListingRequest], Listing]) -> None:
        self._execute = execute
        self._logger = get_logger()

    def next_page(
        self,
        previous: Listing,
        request: ListingRequest,
    ) -> Listing:
        """Fetch the page after ``previous``.

        A complete ``previous`` listing yields an empty listing without
        calling ``execute``.
        """
        if not previous.is_truncated:
            return empty_listing(previous)
        return self._execute(apply_cursor(request, next_cursor(previous)))

    def pages(self, request: ListingRequest) -> Iterator[Listing]:
        """Yield every page of the listing, starting with ``request``."""
        page = self._execute(request)
        pages_seen = 1
        yield page
        while page.is_truncated:
            request = apply_cursor(request, next_cursor(page))
            page = self._execute(request)
            pages_seen += 1
            yield page
        self._logger.debug(
            f"{type(request).__name__}: listing complete after "
            f"{pages_seen} page(s)"
        )

    def items(self, request: ListingRequest) -> Iterator[Any]:
        """Yield every entry across all pages in wire order."""
        for page in self.pages(request):
            yield from listing_items(page)

    def common_prefixes(self, request: ListingRequest) -> Iterator[str]:
        for page in self.pages(request):
            yield from getattr(page, "common_prefixes", [])
