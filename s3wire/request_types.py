"""Typed requests and their wire form.

Each request knows its :class:`~s3wire.operations.Operation` and renders
itself as a :class:`WireRequest` (method, path, query, headers, body)
for the transport collaborator. Requests are frozen; pagination derives
the next page's request with :func:`dataclasses.replace`, which re-runs
the same validation.

Marker pairing is checked here, at construction time, rather than left
to the service.
"""

from __future__ import annotations

from base64 import b64encode
from dataclasses import dataclass, field
from hashlib import md5
from typing import Any, ClassVar, Mapping, Optional, Union
from urllib.parse import quote as url_quote

from s3wire.config import MAX_DELETE_KEYS, MAX_PART_NUMBER, MIN_PART_NUMBER
from s3wire.errors import ContractViolation, InvalidPartNumber
from s3wire.models import PartDescriptor
from s3wire.operations import Operation


@dataclass(frozen=True)
class WireRequest:
    """HTTP-level request handed to the transport.

    A query value of None renders as a bare sub-resource (``?uploads=``).
    """

    method: str
    bucket: Optional[str] = None
    key: Optional[str] = None
    query: Mapping[str, Optional[str]] = field(default_factory=dict)
    headers: Mapping[str, str] = field(default_factory=dict)
    body: Any = None

    @property
    def path(self) -> str:
        if not self.bucket:
            return "/"
        path = f"/{url_quote(self.bucket, safe='')}/"
        if self.key:
            path += url_quote(self.key, safe="/~")
        return path

    @property
    def query_string(self) -> str:
        parts = []
        for name, value in self.query.items():
            if value is None:
                parts.append(f"{url_quote(name, safe='')}=")
            else:
                parts.append(
                    f"{url_quote(name, safe='')}="
                    f"{url_quote(str(value), safe='-_.~')}"
                )
        return "&".join(parts)

    @property
    def target(self) -> str:
        """Path plus query string."""
        query = self.query_string
        return f"{self.path}?{query}" if query else self.path


def _xml_escape(text: str) -> str:
    return (
        text.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
    )


def _query(**params: Any) -> dict[str, Optional[str]]:
    """Build query params, dropping unset values and mapping names."""
    query: dict[str, Optional[str]] = {}
    for name, value in params.items():
        if value is None or value is False:
            continue
        wire_name = name.replace("_", "-")
        query[wire_name] = "true" if value is True else str(value)
    return query


def _require_non_negative(name: str, value: Optional[int]) -> None:
    if value is not None and value < 0:
        raise ContractViolation(f"{name} must not be negative, got {value}")


def _require_part_number(part_number: int) -> None:
    if not MIN_PART_NUMBER <= part_number <= MAX_PART_NUMBER:
        raise InvalidPartNumber(
            f"Part number must be between {MIN_PART_NUMBER} and "
            f"{MAX_PART_NUMBER}, got {part_number}"
        )


# ---------------------------------------------------------------------------
# Listing requests
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ListBucketsRequest:
    operation: ClassVar[Operation] = Operation.LIST_BUCKETS

    def to_wire(self) -> WireRequest:
        return WireRequest("GET")


@dataclass(frozen=True)
class ListBucketsExtendedRequest:
    """Paginated bucket listing (``GET /?extended``), resumed by ``marker``."""

    operation: ClassVar[Operation] = Operation.LIST_BUCKETS_EXTENDED

    prefix: Optional[str] = None
    marker: Optional[str] = None
    max_keys: Optional[int] = None

    def __post_init__(self) -> None:
        _require_non_negative("max_keys", self.max_keys)

    def to_wire(self) -> WireRequest:
        query: dict[str, Optional[str]] = {"extended": None}
        query.update(
            _query(
                prefix=self.prefix,
                marker=self.marker,
                max_keys=self.max_keys,
            )
        )
        return WireRequest("GET", query=query)


@dataclass(frozen=True)
class ListObjectsRequest:
    """Legacy marker-based object listing."""

    operation: ClassVar[Operation] = Operation.LIST_OBJECTS

    bucket: str
    prefix: Optional[str] = None
    delimiter: Optional[str] = None
    marker: Optional[str] = None
    max_keys: Optional[int] = None
    encoding_type: Optional[str] = None

    def __post_init__(self) -> None:
        _require_non_negative("max_keys", self.max_keys)

    def to_wire(self) -> WireRequest:
        return WireRequest(
            "GET",
            self.bucket,
            query=_query(
                prefix=self.prefix,
                delimiter=self.delimiter,
                marker=self.marker,
                max_keys=self.max_keys,
                encoding_type=self.encoding_type,
            ),
        )


@dataclass(frozen=True)
class ListObjectsV2Request:
    operation: ClassVar[Operation] = Operation.LIST_OBJECTS_V2

    bucket: str
    prefix: Optional[str] = None
    delimiter: Optional[str] = None
    continuation_token: Optional[str] = None
    start_after: Optional[str] = None
    max_keys: Optional[int] = None
    fetch_owner: bool = False
    encoding_type: Optional[str] = None

    def __post_init__(self) -> None:
        _require_non_negative("max_keys", self.max_keys)

    def to_wire(self) -> WireRequest:
        query = {"list-type": "2"}
        query.update(
            _query(
                prefix=self.prefix,
                delimiter=self.delimiter,
                continuation_token=self.continuation_token,
                start_after=self.start_after,
                max_keys=self.max_keys,
                fetch_owner=self.fetch_owner,
                encoding_type=self.encoding_type,
            )
        )
        return WireRequest("GET", self.bucket, query=query)


@dataclass(frozen=True)
class ListVersionsRequest:
    """Version listing; ``version_id_marker`` requires ``key_marker``."""

    operation: ClassVar[Operation] = Operation.LIST_VERSIONS

    bucket: str
    prefix: Optional[str] = None
    delimiter: Optional[str] = None
    key_marker: Optional[str] = None
    version_id_marker: Optional[str] = None
    max_keys: Optional[int] = None
    encoding_type: Optional[str] = None

    def __post_init__(self) -> None:
        _require_non_negative("max_keys", self.max_keys)
        if self.version_id_marker and not self.key_marker:
            raise ContractViolation(
                "version_id_marker is only valid together with key_marker"
            )

    def to_wire(self) -> WireRequest:
        query: dict[str, Optional[str]] = {"versions": None}
        query.update(
            _query(
                prefix=self.prefix,
                delimiter=self.delimiter,
                key_marker=self.key_marker,
                version_id_marker=self.version_id_marker,
                max_keys=self.max_keys,
                encoding_type=self.encoding_type,
            )
        )
        return WireRequest("GET", self.bucket, query=query)


@dataclass(frozen=True)
class ListMultipartUploadsRequest:
    """In-progress upload listing; ``upload_id_marker`` requires ``key_marker``."""

    operation: ClassVar[Operation] = Operation.LIST_MULTIPART_UPLOADS

    bucket: str
    prefix: Optional[str] = None
    delimiter: Optional[str] = None
    key_marker: Optional[str] = None
    upload_id_marker: Optional[str] = None
    max_uploads: Optional[int] = None
    encoding_type: Optional[str] = None

    def __post_init__(self) -> None:
        _require_non_negative("max_uploads", self.max_uploads)
        if self.upload_id_marker and not self.key_marker:
            raise ContractViolation(
                "upload_id_marker is only valid together with key_marker"
            )

    def to_wire(self) -> WireRequest:
        query: dict[str, Optional[str]] = {"uploads": None}
        query.update(
            _query(
                prefix=self.prefix,
                delimiter=self.delimiter,
                key_marker=self.key_marker,
                upload_id_marker=self.upload_id_marker,
                max_uploads=self.max_uploads,
                encoding_type=self.encoding_type,
            )
        )
        return WireRequest("GET", self.bucket, query=query)


@dataclass(frozen=True)
class ListPartsRequest:
    operation: ClassVar[Operation] = Operation.LIST_PARTS

    bucket: str
    key: str
    upload_id: str
    part_number_marker: Optional[int] = None
    max_parts: Optional[int] = None
    encoding_type: Optional[str] = None

    def __post_init__(self) -> None:
        _require_non_negative("part_number_marker", self.part_number_marker)
        _require_non_negative("max_parts", self.max_parts)

    def to_wire(self) -> WireRequest:
        query: dict[str, Optional[str]] = {"uploadId": self.upload_id}
        query.update(
            _query(
                part_number_marker=self.part_number_marker,
                max_parts=self.max_parts,
                encoding_type=self.encoding_type,
            )
        )
        return WireRequest("GET", self.bucket, self.key, query=query)


ListingRequest = Union[
    ListBucketsExtendedRequest,
    ListObjectsRequest,
    ListObjectsV2Request,
    ListVersionsRequest,
    ListMultipartUploadsRequest,
    ListPartsRequest,
]


# ---------------------------------------------------------------------------
# Multipart requests
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class InitiateMultipartUploadRequest:
    operation: ClassVar[Operation] = Operation.INITIATE_MULTIPART_UPLOAD

    bucket: str
    key: str
    content_type: Optional[str] = None
    storage_class: Optional[str] = None
    metadata: Mapping[str, str] = field(default_factory=dict)

    def to_wire(self) -> WireRequest:
        headers: dict[str, str] = {}
        if self.content_type:
            headers["Content-Type"] = self.content_type
        if self.storage_class:
            headers["x-amz-storage-class"] = self.storage_class
        for name, value in self.metadata.items():
            headers[f"x-amz-meta-{name}"] = value
        return WireRequest(
            "POST",
            self.bucket,
            self.key,
            query={"uploads": None},
            headers=headers,
        )


@dataclass(frozen=True)
class UploadPartRequest:
    """Part payload; ``body`` is bytes or a readable binary stream."""

    operation: ClassVar[Operation] = Operation.UPLOAD_PART

    bucket: str
    key: str
    upload_id: str
    part_number: int
    body: Any = b""
    content_md5: Optional[str] = None

    def __post_init__(self) -> None:
        _require_part_number(self.part_number)

    @property
    def size(self) -> int:
        if isinstance(self.body, (bytes, bytearray, memoryview)):
            return len(self.body)
        return 0

    def to_wire(self) -> WireRequest:
        headers = {"Content-Type": "application/octet-stream"}
        if self.content_md5:
            headers["Content-MD5"] = self.content_md5
        return WireRequest(
            "PUT",
            self.bucket,
            self.key,
            query={
                "partNumber": str(self.part_number),
                "uploadId": self.upload_id,
            },
            headers=headers,
            body=self.body,
        )


def _copy_source(
    bucket: str, key: str, version_id: Optional[str],
) -> str:
    source = f"/{url_quote(bucket, safe='')}/{url_quote(key, safe='/~')}"
    if version_id:
        source += f"?versionId={url_quote(version_id, safe='')}"
    return source


@dataclass(frozen=True)
class CopyPartRequest:
    """Server-side copy of a byte range into one part."""

    operation: ClassVar[Operation] = Operation.COPY_PART

    bucket: str
    key: str
    upload_id: str
    part_number: int
    source_bucket: str
    source_key: str
    source_version_id: Optional[str] = None
    first_byte: Optional[int] = None
    last_byte: Optional[int] = None

    def __post_init__(self) -> None:
        _require_part_number(self.part_number)
        if (self.first_byte is None) != (self.last_byte is None):
            raise ContractViolation(
                "first_byte and last_byte must be given together"
            )
        if self.first_byte is not None and self.first_byte > self.last_byte:
            raise ContractViolation(
                f"Invalid byte range {self.first_byte}-{self.last_byte}"
            )

    def to_wire(self) -> WireRequest:
        headers = {
            "x-amz-copy-source": _copy_source(
                self.source_bucket, self.source_key, self.source_version_id,
            ),
        }
        if self.first_byte is not None:
            headers["x-amz-copy-source-range"] = (
                f"bytes={self.first_byte}-{self.last_byte}"
            )
        return WireRequest(
            "PUT",
            self.bucket,
            self.key,
            query={
                "partNumber": str(self.part_number),
                "uploadId": self.upload_id,
            },
            headers=headers,
        )


@dataclass(frozen=True)
class CompleteMultipartUploadRequest:
    """Completion call; ``parts`` are sent in the order given.

    Use :meth:`MultipartCoordinator.complete` to get a validated,
    ascending part list.
    """

    operation: ClassVar[Operation] = Operation.COMPLETE_MULTIPART_UPLOAD

    bucket: str
    key: str
    upload_id: str
    parts: tuple[PartDescriptor, ...] = ()

    def to_xml(self) -> bytes:
        xml_parts = [
            '<?xml version="1.0" encoding="UTF-8"?><CompleteMultipartUpload>'
        ]
        for part in self.parts:
            xml_parts.append(
                f"<Part><PartNumber>{part.part_number}</PartNumber>"
                f"<ETag>{_xml_escape(part.etag)}</ETag></Part>"
            )
        xml_parts.append("</CompleteMultipartUpload>")
        return "".join(xml_parts).encode("utf-8")

    def to_wire(self) -> WireRequest:
        return WireRequest(
            "POST",
            self.bucket,
            self.key,
            query={"uploadId": self.upload_id},
            headers={"Content-Type": "application/xml"},
            body=self.to_xml(),
        )


@dataclass(frozen=True)
class AbortMultipartUploadRequest:
    operation: ClassVar[Operation] = Operation.ABORT_MULTIPART_UPLOAD

    bucket: str
    key: str
    upload_id: str

    def to_wire(self) -> WireRequest:
        return WireRequest(
            "DELETE",
            self.bucket,
            self.key,
            query={"uploadId": self.upload_id},
        )


# ---------------------------------------------------------------------------
# Object requests
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CopyObjectRequest:
    operation: ClassVar[Operation] = Operation.COPY_OBJECT

    source_bucket: str
    source_key: str
    bucket: str
    key: str
    source_version_id: Optional[str] = None
    metadata_directive: Optional[str] = None

    def to_wire(self) -> WireRequest:
        headers = {
            "x-amz-copy-source": _copy_source(
                self.source_bucket, self.source_key, self.source_version_id,
            ),
        }
        if self.metadata_directive:
            headers["x-amz-metadata-directive"] = self.metadata_directive
        return WireRequest("PUT", self.bucket, self.key, headers=headers)


@dataclass(frozen=True)
class ObjectIdentifier:
    key: str
    version_id: Optional[str] = None


@dataclass(frozen=True)
class DeleteObjectsRequest:
    """Bulk delete of up to 1000 keys in one call."""

    operation: ClassVar[Operation] = Operation.DELETE_OBJECTS

    bucket: str
    objects: tuple[ObjectIdentifier, ...]
    quiet: bool = False

    def __post_init__(self) -> None:
        if isinstance(self.objects, (str, bytes)):
            raise ContractViolation(
                "objects must be a sequence of keys, not a single string"
            )
        objects = tuple(
            obj if isinstance(obj, ObjectIdentifier) else ObjectIdentifier(obj)
            for obj in self.objects
        )
        object.__setattr__(self, "objects", objects)
        if not objects:
            raise ContractViolation("DeleteObjects needs at least one key")
        if len(objects) > MAX_DELETE_KEYS:
            raise ContractViolation(
                f"DeleteObjects accepts at most {MAX_DELETE_KEYS} keys, "
                f"got {len(objects)}"
            )

    def to_xml(self) -> bytes:
        xml_parts = ['<?xml version="1.0" encoding="UTF-8"?><Delete>']
        if self.quiet:
            xml_parts.append("<Quiet>true</Quiet>")
        for obj in self.objects:
            entry = f"<Object><Key>{_xml_escape(obj.key)}</Key>"
            if obj.version_id:
                entry += f"<VersionId>{_xml_escape(obj.version_id)}</VersionId>"
            xml_parts.append(entry + "</Object>")
        xml_parts.append("</Delete>")
        return "".join(xml_parts).encode("utf-8")

    def to_wire(self) -> WireRequest:
        xml_body = self.to_xml()
        md5_b64 = b64encode(md5(xml_body).digest()).decode("ascii")
        return WireRequest(
            "POST",
            self.bucket,
            query={"delete": None},
            headers={
                "Content-Type": "application/xml",
                "Content-MD5": md5_b64,
            },
            body=xml_body,
        )
