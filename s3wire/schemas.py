"""Per-operation decoding tables.

Each :class:`~s3wire.decoder.Schema` maps element paths (relative to the
document root or to the enclosing record) to result attributes. Only
elements listed here are decoded; the service may add others freely.
"""

from __future__ import annotations

import functools
from typing import Optional
from urllib.parse import unquote_plus

from s3wire.decoder import Field, Group, Schema, to_bool, to_int, to_timestamp
from s3wire.models import (
    Bucket,
    BucketList,
    BucketListing,
    BucketLocation,
    CompleteMultipartUploadResult,
    CopyObjectResult,
    CopyPartResult,
    DeletedObject,
    DeleteError,
    DeleteObjectsResult,
    InitiateMultipartUploadResult,
    MultipartUpload,
    MultipartUploadListing,
    ObjectListing,
    ObjectListingV2,
    ObjectSummary,
    Owner,
    PartListing,
    PartSummary,
    Tag,
    TaggingResult,
    VersionListing,
    VersionSummary,
    VersioningConfiguration,
)

# Location reported by the service for buckets in the default region
DEFAULT_BUCKET_LOCATION = "US"


def _owner(attr: str = "owner", element: str = "Owner") -> dict:
    return {
        (element,): Group(
            attr,
            Owner,
            fields={
                ("ID",): Field("id"),
                ("DisplayName",): Field("display_name"),
            },
            append=False,
        ),
    }


_COMMON_PREFIXES = {
    ("CommonPrefixes", "Prefix"): Field("common_prefixes", append=True),
}

_OBJECT_SUMMARY = Group(
    "object_summaries",
    ObjectSummary,
    fields={
        ("Key",): Field("key"),
        ("LastModified",): Field("last_modified", to_timestamp),
        ("ETag",): Field("etag"),
        ("Size",): Field("size", to_int),
        ("StorageClass",): Field("storage_class"),
    },
    groups=_owner(),
)

_BUCKET = Group(
    "buckets",
    Bucket,
    fields={
        ("Name",): Field("name"),
        ("CreationDate",): Field("creation_date", to_timestamp),
        ("LocationConstraint",): Field("location_constraint"),
    },
)

_VERSION_FIELDS = {
    ("Key",): Field("key"),
    ("VersionId",): Field("version_id"),
    ("IsLatest",): Field("is_latest", to_bool),
    ("LastModified",): Field("last_modified", to_timestamp),
    ("ETag",): Field("etag"),
    ("Size",): Field("size", to_int),
    ("StorageClass",): Field("storage_class"),
}


# ---------------------------------------------------------------------------
# URL decoding (EncodingType=url)
# ---------------------------------------------------------------------------

def _decode(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return unquote_plus(value)


def _url_decode_listing(listing, attrs: tuple[str, ...], items: str | None):
    for attr in attrs:
        setattr(listing, attr, _decode(getattr(listing, attr)))
    if hasattr(listing, "common_prefixes"):
        listing.common_prefixes = [
            _decode(prefix) for prefix in listing.common_prefixes
        ]
    if items:
        for item in getattr(listing, items):
            item.key = _decode(item.key)


def _wants_url_decode(listing, url_decode: bool) -> bool:
    return url_decode and (listing.encoding_type or "").lower() == "url"


# ---------------------------------------------------------------------------
# Finalizers
# ---------------------------------------------------------------------------

def _finalize_bucket_listing(
    listing: BucketListing, url_decode: bool,
) -> BucketListing:
    # Same fallback as the V1 object listing
    if listing.is_truncated and not listing.next_marker and listing.buckets:
        listing.next_marker = listing.buckets[-1].name
    return listing


def _finalize_object_listing(
    listing: ObjectListing, url_decode: bool,
) -> ObjectListing:
    if _wants_url_decode(listing, url_decode):
        _url_decode_listing(
            listing,
            ("prefix", "marker", "next_marker", "delimiter"),
            "object_summaries",
        )
    # NextMarker is only sent when a delimiter was given
    if listing.is_truncated and not listing.next_marker:
        if listing.object_summaries:
            listing.next_marker = listing.object_summaries[-1].key
        elif listing.common_prefixes:
            listing.next_marker = listing.common_prefixes[-1]
    return listing


def _finalize_object_listing_v2(
    listing: ObjectListingV2, url_decode: bool,
) -> ObjectListingV2:
    if _wants_url_decode(listing, url_decode):
        _url_decode_listing(
            listing,
            ("prefix", "start_after", "delimiter"),
            "object_summaries",
        )
    return listing


def _finalize_version_listing(
    listing: VersionListing, url_decode: bool,
) -> VersionListing:
    if _wants_url_decode(listing, url_decode):
        _url_decode_listing(
            listing,
            ("prefix", "key_marker", "next_key_marker", "delimiter"),
            "version_summaries",
        )
    return listing


def _finalize_upload_listing(
    listing: MultipartUploadListing, url_decode: bool,
) -> MultipartUploadListing:
    if _wants_url_decode(listing, url_decode):
        _url_decode_listing(
            listing,
            ("prefix", "key_marker", "next_key_marker", "delimiter"),
            "multipart_uploads",
        )
    return listing


def _finalize_part_listing(
    listing: PartListing, url_decode: bool,
) -> PartListing:
    if _wants_url_decode(listing, url_decode):
        listing.key = _decode(listing.key)
    return listing


def _finalize_location(
    location: BucketLocation, url_decode: bool,
) -> BucketLocation:
    if not location.location:
        location.location = DEFAULT_BUCKET_LOCATION
    return location


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------

LIST_BUCKETS = Schema(
    roots=frozenset({"ListAllMyBucketsResult"}),
    factory=BucketList,
    groups={
        **_owner(),
        ("Buckets", "Bucket"): _BUCKET,
    },
)

LIST_BUCKETS_EXTENDED = Schema(
    roots=frozenset({"ListAllMyBucketsResult"}),
    factory=BucketListing,
    fields={
        ("Prefix",): Field("prefix"),
        ("Marker",): Field("marker"),
        ("NextMarker",): Field("next_marker"),
        ("MaxKeys",): Field("max_keys", to_int),
        ("IsTruncated",): Field("is_truncated", to_bool),
    },
    groups={
        **_owner(),
        ("Buckets", "Bucket"): _BUCKET,
    },
    finalize=_finalize_bucket_listing,
)

LIST_OBJECTS = Schema(
    roots=frozenset({"ListBucketResult"}),
    factory=ObjectListing,
    fields={
        ("Name",): Field("bucket_name"),
        ("Prefix",): Field("prefix"),
        ("Marker",): Field("marker"),
        ("NextMarker",): Field("next_marker"),
        ("Delimiter",): Field("delimiter"),
        ("MaxKeys",): Field("max_keys", to_int),
        ("EncodingType",): Field("encoding_type"),
        ("IsTruncated",): Field("is_truncated", to_bool),
        **_COMMON_PREFIXES,
    },
    groups={("Contents",): _OBJECT_SUMMARY},
    finalize=_finalize_object_listing,
)

LIST_OBJECTS_V2 = Schema(
    roots=frozenset({"ListBucketResult"}),
    factory=ObjectListingV2,
    fields={
        ("Name",): Field("bucket_name"),
        ("Prefix",): Field("prefix"),
        ("Delimiter",): Field("delimiter"),
        ("MaxKeys",): Field("max_keys", to_int),
        ("KeyCount",): Field("key_count", to_int),
        ("StartAfter",): Field("start_after"),
        ("ContinuationToken",): Field("continuation_token"),
        ("NextContinuationToken",): Field("next_continuation_token"),
        ("EncodingType",): Field("encoding_type"),
        ("IsTruncated",): Field("is_truncated", to_bool),
        **_COMMON_PREFIXES,
    },
    groups={("Contents",): _OBJECT_SUMMARY},
    finalize=_finalize_object_listing_v2,
)

LIST_VERSIONS = Schema(
    roots=frozenset({"ListVersionsResult"}),
    factory=VersionListing,
    fields={
        ("Name",): Field("bucket_name"),
        ("Prefix",): Field("prefix"),
        ("KeyMarker",): Field("key_marker"),
        ("VersionIdMarker",): Field("version_id_marker"),
        ("NextKeyMarker",): Field("next_key_marker"),
        ("NextVersionIdMarker",): Field("next_version_id_marker"),
        ("Delimiter",): Field("delimiter"),
        ("MaxKeys",): Field("max_keys", to_int),
        ("EncodingType",): Field("encoding_type"),
        ("IsTruncated",): Field("is_truncated", to_bool),
        **_COMMON_PREFIXES,
    },
    # Versions and delete markers share one list in document order
    groups={
        ("Version",): Group(
            "version_summaries",
            VersionSummary,
            fields=_VERSION_FIELDS,
            groups=_owner(),
        ),
        ("DeleteMarker",): Group(
            "version_summaries",
            functools.partial(VersionSummary, is_delete_marker=True),
            fields=_VERSION_FIELDS,
            groups=_owner(),
        ),
    },
    finalize=_finalize_version_listing,
)

LIST_MULTIPART_UPLOADS = Schema(
    roots=frozenset({"ListMultipartUploadsResult"}),
    factory=MultipartUploadListing,
    fields={
        ("Bucket",): Field("bucket_name"),
        ("Prefix",): Field("prefix"),
        ("Delimiter",): Field("delimiter"),
        ("KeyMarker",): Field("key_marker"),
        ("UploadIdMarker",): Field("upload_id_marker"),
        ("NextKeyMarker",): Field("next_key_marker"),
        ("NextUploadIdMarker",): Field("next_upload_id_marker"),
        ("MaxUploads",): Field("max_uploads", to_int),
        ("EncodingType",): Field("encoding_type"),
        ("IsTruncated",): Field("is_truncated", to_bool),
        **_COMMON_PREFIXES,
    },
    groups={
        ("Upload",): Group(
            "multipart_uploads",
            MultipartUpload,
            fields={
                ("Key",): Field("key"),
                ("UploadId",): Field("upload_id"),
                ("StorageClass",): Field("storage_class"),
                ("Initiated",): Field("initiated", to_timestamp),
            },
            groups={**_owner(), **_owner("initiator", "Initiator")},
        ),
    },
    finalize=_finalize_upload_listing,
)

LIST_PARTS = Schema(
    roots=frozenset({"ListPartsResult"}),
    factory=PartListing,
    fields={
        ("Bucket",): Field("bucket_name"),
        ("Key",): Field("key"),
        ("UploadId",): Field("upload_id"),
        ("StorageClass",): Field("storage_class"),
        ("PartNumberMarker",): Field("part_number_marker", to_int),
        ("NextPartNumberMarker",): Field("next_part_number_marker", to_int),
        ("MaxParts",): Field("max_parts", to_int),
        ("EncodingType",): Field("encoding_type"),
        ("IsTruncated",): Field("is_truncated", to_bool),
    },
    groups={
        **_owner(),
        **_owner("initiator", "Initiator"),
        ("Part",): Group(
            "parts",
            PartSummary,
            fields={
                ("PartNumber",): Field("part_number", to_int),
                ("ETag",): Field("etag"),
                ("Size",): Field("size", to_int),
                ("LastModified",): Field("last_modified", to_timestamp),
            },
        ),
    },
    finalize=_finalize_part_listing,
)

INITIATE_MULTIPART_UPLOAD = Schema(
    roots=frozenset({"InitiateMultipartUploadResult"}),
    factory=InitiateMultipartUploadResult,
    fields={
        ("Bucket",): Field("bucket_name"),
        ("Key",): Field("key"),
        ("UploadId",): Field("upload_id"),
    },
)

COMPLETE_MULTIPART_UPLOAD = Schema(
    roots=frozenset({"CompleteMultipartUploadResult"}),
    factory=CompleteMultipartUploadResult,
    fields={
        ("Location",): Field("location"),
        ("Bucket",): Field("bucket_name"),
        ("Key",): Field("key"),
        ("ETag",): Field("etag"),
    },
)

COPY_OBJECT = Schema(
    roots=frozenset({"CopyObjectResult"}),
    factory=CopyObjectResult,
    fields={
        ("ETag",): Field("etag"),
        ("LastModified",): Field("last_modified", to_timestamp),
    },
)

COPY_PART = Schema(
    roots=frozenset({"CopyPartResult"}),
    factory=CopyPartResult,
    fields={
        ("ETag",): Field("etag"),
        ("LastModified",): Field("last_modified", to_timestamp),
    },
)

DELETE_OBJECTS = Schema(
    roots=frozenset({"DeleteResult"}),
    factory=DeleteObjectsResult,
    groups={
        ("Deleted",): Group(
            "deleted",
            DeletedObject,
            fields={
                ("Key",): Field("key"),
                ("VersionId",): Field("version_id"),
                ("DeleteMarker",): Field("delete_marker", to_bool),
                ("DeleteMarkerVersionId",): Field("delete_marker_version_id"),
            },
        ),
        ("Error",): Group(
            "errors",
            DeleteError,
            fields={
                ("Key",): Field("key"),
                ("VersionId",): Field("version_id"),
                ("Code",): Field("code"),
                ("Message",): Field("message"),
            },
        ),
    },
)

TAGGING = Schema(
    roots=frozenset({"Tagging"}),
    factory=TaggingResult,
    groups={
        ("TagSet", "Tag"): Group(
            "tags",
            Tag,
            fields={("Key",): Field("key"), ("Value",): Field("value")},
        ),
    },
)

BUCKET_LOCATION = Schema(
    roots=frozenset({"LocationConstraint"}),
    factory=BucketLocation,
    fields={(): Field("location")},
    finalize=_finalize_location,
)

BUCKET_VERSIONING = Schema(
    roots=frozenset({"VersioningConfiguration"}),
    factory=VersioningConfiguration,
    fields={
        ("Status",): Field("status"),
        ("MfaDelete",): Field("mfa_delete"),
    },
)
