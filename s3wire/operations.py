"""Operation identifiers: the closed set of wire calls with decoders."""

from __future__ import annotations

from enum import Enum


class Operation(Enum):
    """Wire operation; the value is the service's operation name."""

    LIST_BUCKETS = "ListBuckets"
    LIST_BUCKETS_EXTENDED = "ListBucketsExtended"
    LIST_OBJECTS = "ListObjects"
    LIST_OBJECTS_V2 = "ListObjectsV2"
    LIST_VERSIONS = "ListObjectVersions"
    LIST_MULTIPART_UPLOADS = "ListMultipartUploads"
    LIST_PARTS = "ListParts"
    INITIATE_MULTIPART_UPLOAD = "CreateMultipartUpload"
    UPLOAD_PART = "UploadPart"
    COPY_PART = "UploadPartCopy"
    COMPLETE_MULTIPART_UPLOAD = "CompleteMultipartUpload"
    ABORT_MULTIPART_UPLOAD = "AbortMultipartUpload"
    COPY_OBJECT = "CopyObject"
    DELETE_OBJECTS = "DeleteObjects"
    GET_OBJECT_TAGGING = "GetObjectTagging"
    SET_OBJECT_TAGGING = "PutObjectTagging"
    DELETE_OBJECT_TAGGING = "DeleteObjectTagging"
    GET_BUCKET_TAGGING = "GetBucketTagging"
    GET_BUCKET_LOCATION = "GetBucketLocation"
    GET_BUCKET_VERSIONING = "GetBucketVersioning"
    SET_PUBLIC_ACCESS_BLOCK = "PutPublicAccessBlock"
    DELETE_PUBLIC_ACCESS_BLOCK = "DeletePublicAccessBlock"

    @classmethod
    def from_name(cls, name: str) -> Operation:
        """Look up an operation by enum name or wire name.

        Accepts ``LIST_PARTS``, ``list-parts``, ``ListParts``.

        Raises:
            KeyError: If no operation matches.
        """
        normalized = name.strip().replace("-", "_").upper()
        if normalized in cls.__members__:
            return cls.__members__[normalized]
        for member in cls:
            if member.value.lower() == name.strip().lower():
                return member
        raise KeyError(name)
