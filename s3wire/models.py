"""Typed results produced by the response decoders.

Every result is a plain dataclass created fresh by one decode call and
owned by the caller afterwards. Absent elements keep the field default:
None for text and timestamps, 0 for integers, False for flags, [] for
collections.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Union

from s3wire.config import MAX_PART_NUMBER, MIN_PART_NUMBER
from s3wire.errors import InvalidPartNumber, ValidationError


@dataclass
class Owner:
    """Owner or initiator of a bucket, object or upload."""

    id: Optional[str] = None
    display_name: Optional[str] = None


@dataclass
class Bucket:
    name: Optional[str] = None
    creation_date: Optional[datetime] = None
    location_constraint: Optional[str] = None


@dataclass
class BucketList:
    """Result of ListBuckets."""

    owner: Optional[Owner] = None
    buckets: list[Bucket] = field(default_factory=list)


@dataclass
class BucketListing:
    """Result of the paginated (extended) ListBuckets call.

    Pages are ordered by bucket name and resume from ``next_marker``.
    """

    owner: Optional[Owner] = None
    prefix: Optional[str] = None
    marker: Optional[str] = None
    next_marker: Optional[str] = None
    max_keys: int = 0
    is_truncated: bool = False
    buckets: list[Bucket] = field(default_factory=list)


@dataclass
class ObjectSummary:
    """One ``<Contents>`` entry of an object listing."""

    key: Optional[str] = None
    size: int = 0
    last_modified: Optional[datetime] = None
    etag: Optional[str] = None
    storage_class: Optional[str] = None
    owner: Optional[Owner] = None


@dataclass
class VersionSummary:
    """One ``<Version>`` or ``<DeleteMarker>`` entry of a version listing."""

    key: Optional[str] = None
    version_id: Optional[str] = None
    is_latest: bool = False
    is_delete_marker: bool = False
    size: int = 0
    last_modified: Optional[datetime] = None
    etag: Optional[str] = None
    storage_class: Optional[str] = None
    owner: Optional[Owner] = None


@dataclass
class ObjectListing:
    """Result of the legacy (marker based) ListObjects call."""

    bucket_name: Optional[str] = None
    prefix: Optional[str] = None
    marker: Optional[str] = None
    next_marker: Optional[str] = None
    delimiter: Optional[str] = None
    max_keys: int = 0
    encoding_type: Optional[str] = None
    is_truncated: bool = False
    object_summaries: list[ObjectSummary] = field(default_factory=list)
    common_prefixes: list[str] = field(default_factory=list)


@dataclass
class ObjectListingV2:
    """Result of ListObjectsV2 (continuation-token based)."""

    bucket_name: Optional[str] = None
    prefix: Optional[str] = None
    delimiter: Optional[str] = None
    max_keys: int = 0
    key_count: int = 0
    start_after: Optional[str] = None
    continuation_token: Optional[str] = None
    next_continuation_token: Optional[str] = None
    encoding_type: Optional[str] = None
    is_truncated: bool = False
    object_summaries: list[ObjectSummary] = field(default_factory=list)
    common_prefixes: list[str] = field(default_factory=list)


@dataclass
class VersionListing:
    """Result of ListObjectVersions.

    ``version_summaries`` keeps wire order: keys ascending, and within
    one key the most recent version first.
    """

    bucket_name: Optional[str] = None
    prefix: Optional[str] = None
    key_marker: Optional[str] = None
    version_id_marker: Optional[str] = None
    next_key_marker: Optional[str] = None
    next_version_id_marker: Optional[str] = None
    delimiter: Optional[str] = None
    max_keys: int = 0
    encoding_type: Optional[str] = None
    is_truncated: bool = False
    version_summaries: list[VersionSummary] = field(default_factory=list)
    common_prefixes: list[str] = field(default_factory=list)


@dataclass
class MultipartUpload:
    """One in-progress upload reported by ListMultipartUploads."""

    key: Optional[str] = None
    upload_id: Optional[str] = None
    owner: Optional[Owner] = None
    initiator: Optional[Owner] = None
    storage_class: Optional[str] = None
    initiated: Optional[datetime] = None


@dataclass
class MultipartUploadListing:
    """Result of ListMultipartUploads."""

    bucket_name: Optional[str] = None
    prefix: Optional[str] = None
    delimiter: Optional[str] = None
    key_marker: Optional[str] = None
    upload_id_marker: Optional[str] = None
    next_key_marker: Optional[str] = None
    next_upload_id_marker: Optional[str] = None
    max_uploads: int = 0
    encoding_type: Optional[str] = None
    is_truncated: bool = False
    multipart_uploads: list[MultipartUpload] = field(default_factory=list)
    common_prefixes: list[str] = field(default_factory=list)


@dataclass
class PartSummary:
    part_number: int = 0
    etag: Optional[str] = None
    size: int = 0
    last_modified: Optional[datetime] = None


@dataclass
class PartListing:
    """Result of ListParts for a single upload id."""

    bucket_name: Optional[str] = None
    key: Optional[str] = None
    upload_id: Optional[str] = None
    owner: Optional[Owner] = None
    initiator: Optional[Owner] = None
    storage_class: Optional[str] = None
    part_number_marker: int = 0
    next_part_number_marker: int = 0
    max_parts: int = 0
    encoding_type: Optional[str] = None
    is_truncated: bool = False
    parts: list[PartSummary] = field(default_factory=list)


@dataclass(frozen=True)
class PartDescriptor:
    """One uploaded part as it must be echoed at completion.

    ``etag`` is opaque and kept verbatim, surrounding quotes included.
    """

    part_number: int
    etag: str
    size: int = 0

    def __post_init__(self) -> None:
        if (
            isinstance(self.part_number, bool)
            or not isinstance(self.part_number, int)
            or not MIN_PART_NUMBER <= self.part_number <= MAX_PART_NUMBER
        ):
            raise InvalidPartNumber(
                f"Part number must be an integer between {MIN_PART_NUMBER} "
                f"and {MAX_PART_NUMBER}, got {self.part_number!r}"
            )
        if not isinstance(self.etag, str) or not self.etag:
            raise ValidationError(
                f"Part {self.part_number} has no ETag, got {self.etag!r}"
            )


@dataclass
class InitiateMultipartUploadResult:
    bucket_name: Optional[str] = None
    key: Optional[str] = None
    upload_id: Optional[str] = None


@dataclass
class UploadPartResult:
    """UploadPart has no body; the ETag arrives as a response header."""

    part_number: int = 0
    etag: Optional[str] = None
    size: int = 0


@dataclass
class CopyPartResult:
    part_number: int = 0
    etag: Optional[str] = None
    last_modified: Optional[datetime] = None


@dataclass
class CompleteMultipartUploadResult:
    location: Optional[str] = None
    bucket_name: Optional[str] = None
    key: Optional[str] = None
    etag: Optional[str] = None


@dataclass
class CopyObjectResult:
    etag: Optional[str] = None
    last_modified: Optional[datetime] = None


@dataclass
class DeletedObject:
    key: Optional[str] = None
    version_id: Optional[str] = None
    delete_marker: bool = False
    delete_marker_version_id: Optional[str] = None


@dataclass
class DeleteError:
    """Per-key failure embedded in a bulk delete response."""

    key: Optional[str] = None
    version_id: Optional[str] = None
    code: Optional[str] = None
    message: Optional[str] = None


@dataclass
class DeleteObjectsResult:
    """Result of DeleteObjects.

    Bulk delete is best effort: successes and per-key errors arrive in
    the same response and both are kept. Whether any error makes the
    whole call a failure is up to the caller.
    """

    deleted: list[DeletedObject] = field(default_factory=list)
    errors: list[DeleteError] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)


@dataclass
class Tag:
    key: Optional[str] = None
    value: Optional[str] = None


@dataclass
class TaggingResult:
    """Result of GetObjectTagging and GetBucketTagging."""

    tags: list[Tag] = field(default_factory=list)

    def as_dict(self) -> dict[str, Optional[str]]:
        return {tag.key or "": tag.value for tag in self.tags}


@dataclass
class BucketLocation:
    location: Optional[str] = None


@dataclass
class VersioningConfiguration:
    status: Optional[str] = None
    mfa_delete: Optional[str] = None


@dataclass
class EmptyResult:
    """Result of an operation whose response carries no body."""

    operation: Optional[str] = None


Result = Union[
    BucketList,
    BucketListing,
    ObjectListing,
    ObjectListingV2,
    VersionListing,
    MultipartUploadListing,
    PartListing,
    InitiateMultipartUploadResult,
    UploadPartResult,
    CopyPartResult,
    CompleteMultipartUploadResult,
    CopyObjectResult,
    DeleteObjectsResult,
    TaggingResult,
    BucketLocation,
    VersioningConfiguration,
    EmptyResult,
]

Listing = Union[
    BucketListing,
    ObjectListing,
    ObjectListingV2,
    VersionListing,
    MultipartUploadListing,
    PartListing,
]
