"""List command: walk every page of a bucket listing.

Follows continuation markers until the listing is complete and prints
one line per entry, then a summary line.
"""

from __future__ import annotations

from typing import Any

from s3wire.client import ProtocolClient
from s3wire.config import DEFAULT_PAGE_SIZE
from s3wire.cursors import listing_items
from s3wire.errors import S3WireError
from s3wire.logging_setup import get_logger, setup_logging
from s3wire.models import MultipartUpload, ObjectSummary, VersionSummary
from s3wire.request_types import (
    ListingRequest,
    ListMultipartUploadsRequest,
    ListObjectsRequest,
    ListObjectsV2Request,
    ListVersionsRequest,
)
from s3wire.transport import Urllib3Transport
from s3wire.utils import format_bytes, format_timestamp

FAMILIES = ("objects", "objects-v1", "versions", "uploads")


def build_request(
    family: str,
    bucket: str,
    *,
    prefix: str | None = None,
    delimiter: str | None = None,
    page_size: int | None = None,
) -> ListingRequest:
    """Build the first-page request for a listing family.

    Args:
        family: One of :data:`FAMILIES`.
        bucket: Bucket to list.
        prefix: Key prefix filter.
        delimiter: Grouping delimiter.
        page_size: Entries per page.

    Returns:
        Listing request for the first page.

    Raises:
        ValueError: Unknown family.
    """
    if family == "objects":
        return ListObjectsV2Request(
            bucket, prefix=prefix, delimiter=delimiter, max_keys=page_size,
        )
    if family == "objects-v1":
        return ListObjectsRequest(
            bucket, prefix=prefix, delimiter=delimiter, max_keys=page_size,
        )
    if family == "versions":
        return ListVersionsRequest(
            bucket, prefix=prefix, delimiter=delimiter, max_keys=page_size,
        )
    if family == "uploads":
        return ListMultipartUploadsRequest(
            bucket, prefix=prefix, delimiter=delimiter, max_uploads=page_size,
        )
    raise ValueError(f"Unknown listing family: {family}")


def format_entry(entry: Any) -> str:
    """One display line for a listing entry."""
    if isinstance(entry, VersionSummary):
        flag = "DEL" if entry.is_delete_marker else "   "
        latest = "*" if entry.is_latest else " "
        return (
            f"{flag}{latest} {format_timestamp(entry.last_modified)} "
            f"{format_bytes(entry.size):>9} {entry.key} "
            f"({entry.version_id})"
        )
    if isinstance(entry, ObjectSummary):
        return (
            f"{format_timestamp(entry.last_modified)} "
            f"{format_bytes(entry.size):>9} {entry.key}"
        )
    if isinstance(entry, MultipartUpload):
        return (
            f"{format_timestamp(entry.initiated)} "
            f"{entry.key} {entry.upload_id}"
        )
    return str(entry)


def cmd_list(args: object, client: ProtocolClient | None = None) -> int:
    """List a bucket across all pages.

    Args:
        args: Parsed CLI arguments with ``bucket``, ``family``,
            ``prefix``, ``delimiter``, ``page_size``, ``endpoint``
            and ``log_level`` attributes.
        client: Client to use; one over :class:`Urllib3Transport` when
            omitted.

    Returns:
        Exit code (0 for success, 1 for error).
    """
    setup_logging(level=getattr(args, "log_level", None))
    logger = get_logger()

    try:
        request = build_request(
            getattr(args, "family", None) or "objects",
            args.bucket,
            prefix=getattr(args, "prefix", None),
            delimiter=getattr(args, "delimiter", None),
            page_size=getattr(args, "page_size", None) or DEFAULT_PAGE_SIZE,
        )
    except ValueError as exc:
        logger.error(str(exc))
        return 1

    transport = None
    if client is None:
        transport = Urllib3Transport(getattr(args, "endpoint", None))
        client = ProtocolClient(transport)

    entries = 0
    prefixes = 0
    pages = 0
    try:
        for page in client.iter_pages(request):
            pages += 1
            for prefix in getattr(page, "common_prefixes", []):
                print(f"{'PRE':>29} {prefix}")
                prefixes += 1
            for entry in listing_items(page):
                print(format_entry(entry))
                entries += 1
    except S3WireError as exc:
        logger.error(f"Listing failed after {pages} page(s): {exc}")
        return 1
    finally:
        if transport is not None:
            transport.close()

    print(f"\n{entries} entries, {prefixes} prefixes, {pages} page(s)")
    return 0
