from __future__ import annotations

import io
from datetime import datetime, timezone

import pytest

from s3wire import schemas
from s3wire.decoder import (
    StreamingDecoder,
    decode_service_error,
    to_bool,
    to_int,
    to_timestamp,
)
from s3wire.errors import DecodeError, ServiceError
from s3wire.models import ObjectListingV2, PartListing
from s3wire.operations import Operation

S3_NS = "http://s3.amazonaws.com/doc/2006-03-01/"


def _decode(operation, schema, body, *, url_decode=True, chunk_size=7):
    decoder = StreamingDecoder(
        operation, schema, url_decode=url_decode, chunk_size=chunk_size,
    )
    return decoder(io.BytesIO(body.encode("utf-8")))


class TestConverters:
    def test_to_int(self):
        assert to_int("42") == 42
        assert to_int(" 7 ") == 7
        assert to_int("") == 0

    def test_to_int_rejects_garbage(self):
        with pytest.raises(ValueError):
            to_int("12abc")

    def test_to_bool(self):
        assert to_bool("true") is True
        assert to_bool("False") is False
        assert to_bool("") is False
        with pytest.raises(ValueError):
            to_bool("yes")

    def test_to_timestamp_zulu_with_millis(self):
        value = to_timestamp("2009-10-12T17:50:30.000Z")
        assert value == datetime(2009, 10, 12, 17, 50, 30, tzinfo=timezone.utc)

    def test_to_timestamp_long_fraction_and_naive(self):
        value = to_timestamp("2023-01-02T03:04:05.123456789")
        assert value.microsecond == 123456
        assert value.tzinfo == timezone.utc

    def test_to_timestamp_blank(self):
        assert to_timestamp("  ") is None


class TestListObjectsV2:
    BODY = f"""<?xml version="1.0" encoding="UTF-8"?>
<ListBucketResult xmlns="{S3_NS}">
  <Name>photos</Name>
  <Prefix>2024/</Prefix>
  <KeyCount>2</KeyCount>
  <MaxKeys>2</MaxKeys>
  <IsTruncated>true</IsTruncated>
  <NextContinuationToken>token-1</NextContinuationToken>
  <SomethingNew>ignored</SomethingNew>
  <Contents>
    <Key>2024/a.jpg</Key>
    <LastModified>2024-03-01T10:00:00.000Z</LastModified>
    <ETag>"abc"</ETag>
    <Size>1024</Size>
    <StorageClass>STANDARD</StorageClass>
    <Owner><ID>owner-1</ID><DisplayName>alice</DisplayName></Owner>
    <ChecksumAlgorithm>CRC32</ChecksumAlgorithm>
  </Contents>
  <Contents>
    <Key>2024/b.jpg</Key>
    <Size>2048</Size>
  </Contents>
  <CommonPrefixes><Prefix>2024/raw/</Prefix></CommonPrefixes>
</ListBucketResult>"""

    def test_fields(self):
        listing = _decode(
            Operation.LIST_OBJECTS_V2, schemas.LIST_OBJECTS_V2, self.BODY,
        )
        assert isinstance(listing, ObjectListingV2)
        assert listing.bucket_name == "photos"
        assert listing.prefix == "2024/"
        assert listing.key_count == 2
        assert listing.max_keys == 2
        assert listing.is_truncated is True
        assert listing.next_continuation_token == "token-1"
        assert listing.common_prefixes == ["2024/raw/"]

    def test_summaries_in_document_order(self):
        listing = _decode(
            Operation.LIST_OBJECTS_V2, schemas.LIST_OBJECTS_V2, self.BODY,
        )
        first, second = listing.object_summaries
        assert first.key == "2024/a.jpg"
        assert first.etag == '"abc"'
        assert first.size == 1024
        assert first.owner.display_name == "alice"
        assert first.last_modified.year == 2024
        assert second.key == "2024/b.jpg"
        assert second.owner is None
        assert second.last_modified is None

    def test_absent_fields_keep_defaults(self):
        listing = _decode(
            Operation.LIST_OBJECTS_V2,
            schemas.LIST_OBJECTS_V2,
            "<ListBucketResult><Name>b</Name></ListBucketResult>",
        )
        assert listing.is_truncated is False
        assert listing.next_continuation_token is None
        assert listing.object_summaries == []
        assert listing.common_prefixes == []

    def test_url_encoded_keys_are_decoded(self):
        body = """<ListBucketResult>
  <Name>b</Name><Prefix>dir%2F</Prefix><EncodingType>url</EncodingType>
  <Contents><Key>dir/a%20b%2Bc.txt</Key></Contents>
  <CommonPrefixes><Prefix>dir/sub%3Ddir/</Prefix></CommonPrefixes>
</ListBucketResult>"""
        listing = _decode(
            Operation.LIST_OBJECTS_V2, schemas.LIST_OBJECTS_V2, body,
        )
        assert listing.prefix == "dir/"
        assert listing.object_summaries[0].key == "dir/a b+c.txt"
        assert listing.common_prefixes == ["dir/sub=dir/"]

    def test_url_decoding_can_be_disabled(self):
        body = """<ListBucketResult><EncodingType>url</EncodingType>
  <Contents><Key>a%20b</Key></Contents></ListBucketResult>"""
        listing = _decode(
            Operation.LIST_OBJECTS_V2,
            schemas.LIST_OBJECTS_V2,
            body,
            url_decode=False,
        )
        assert listing.object_summaries[0].key == "a%20b"


class TestListObjectsV1:
    def test_next_marker_falls_back_to_last_key(self):
        body = """<ListBucketResult><Name>b</Name>
  <IsTruncated>true</IsTruncated>
  <Contents><Key>a</Key></Contents><Contents><Key>b</Key></Contents>
</ListBucketResult>"""
        listing = _decode(Operation.LIST_OBJECTS, schemas.LIST_OBJECTS, body)
        assert listing.next_marker == "b"

    def test_next_marker_falls_back_to_last_prefix(self):
        body = """<ListBucketResult><Name>b</Name><Delimiter>/</Delimiter>
  <IsTruncated>true</IsTruncated>
  <CommonPrefixes><Prefix>x/</Prefix></CommonPrefixes>
  <CommonPrefixes><Prefix>y/</Prefix></CommonPrefixes>
</ListBucketResult>"""
        listing = _decode(Operation.LIST_OBJECTS, schemas.LIST_OBJECTS, body)
        assert listing.next_marker == "y/"

    def test_explicit_next_marker_wins(self):
        body = """<ListBucketResult><IsTruncated>true</IsTruncated>
  <NextMarker>m</NextMarker><Contents><Key>a</Key></Contents>
</ListBucketResult>"""
        listing = _decode(Operation.LIST_OBJECTS, schemas.LIST_OBJECTS, body)
        assert listing.next_marker == "m"

    def test_complete_listing_has_no_next_marker(self):
        body = """<ListBucketResult><IsTruncated>false</IsTruncated>
  <Contents><Key>a</Key></Contents></ListBucketResult>"""
        listing = _decode(Operation.LIST_OBJECTS, schemas.LIST_OBJECTS, body)
        assert listing.next_marker is None


class TestListBucketsExtended:
    def test_page_fields(self):
        body = f"""<ListAllMyBucketsResult xmlns="{S3_NS}">
  <Owner><ID>o</ID></Owner>
  <IsTruncated>true</IsTruncated><MaxKeys>2</MaxKeys>
  <Prefix>p</Prefix><Marker>m</Marker><NextMarker>pb</NextMarker>
  <Buckets>
    <Bucket><Name>pa</Name><LocationConstraint>us-south</LocationConstraint></Bucket>
    <Bucket><Name>pb</Name></Bucket>
  </Buckets>
</ListAllMyBucketsResult>"""
        listing = _decode(
            Operation.LIST_BUCKETS_EXTENDED, schemas.LIST_BUCKETS_EXTENDED, body,
        )
        assert listing.is_truncated
        assert (listing.prefix, listing.marker, listing.next_marker) == (
            "p", "m", "pb",
        )
        assert listing.max_keys == 2
        assert [b.location_constraint for b in listing.buckets] == [
            "us-south", None,
        ]

    def test_next_marker_falls_back_to_last_bucket(self):
        body = """<ListAllMyBucketsResult><IsTruncated>true</IsTruncated>
  <Buckets><Bucket><Name>a</Name></Bucket><Bucket><Name>b</Name></Bucket></Buckets>
</ListAllMyBucketsResult>"""
        listing = _decode(
            Operation.LIST_BUCKETS_EXTENDED, schemas.LIST_BUCKETS_EXTENDED, body,
        )
        assert listing.next_marker == "b"


class TestListVersions:
    BODY = """<ListVersionsResult>
  <Name>b</Name>
  <IsTruncated>true</IsTruncated>
  <NextKeyMarker>k1</NextKeyMarker>
  <NextVersionIdMarker>v1</NextVersionIdMarker>
  <Version><Key>k1</Key><VersionId>v3</VersionId><IsLatest>true</IsLatest>
    <Size>3</Size></Version>
  <DeleteMarker><Key>k1</Key><VersionId>v2</VersionId>
    <IsLatest>false</IsLatest></DeleteMarker>
  <Version><Key>k1</Key><VersionId>v1</VersionId><IsLatest>false</IsLatest>
    <Size>1</Size></Version>
</ListVersionsResult>"""

    def test_versions_and_delete_markers_keep_wire_order(self):
        listing = _decode(
            Operation.LIST_VERSIONS, schemas.LIST_VERSIONS, self.BODY,
        )
        assert [v.version_id for v in listing.version_summaries] == [
            "v3", "v2", "v1",
        ]
        assert [v.is_delete_marker for v in listing.version_summaries] == [
            False, True, False,
        ]
        assert listing.version_summaries[0].is_latest is True
        assert listing.next_key_marker == "k1"
        assert listing.next_version_id_marker == "v1"


class TestOtherDocuments:
    def test_list_buckets(self):
        body = """<ListAllMyBucketsResult>
  <Owner><ID>o</ID><DisplayName>me</DisplayName></Owner>
  <Buckets>
    <Bucket><Name>one</Name><CreationDate>2020-01-01T00:00:00Z</CreationDate></Bucket>
    <Bucket><Name>two</Name></Bucket>
  </Buckets>
</ListAllMyBucketsResult>"""
        result = _decode(Operation.LIST_BUCKETS, schemas.LIST_BUCKETS, body)
        assert result.owner.id == "o"
        assert [b.name for b in result.buckets] == ["one", "two"]
        assert result.buckets[0].creation_date.year == 2020

    def test_list_multipart_uploads(self):
        body = """<ListMultipartUploadsResult>
  <Bucket>b</Bucket><IsTruncated>false</IsTruncated>
  <Upload>
    <Key>big.bin</Key><UploadId>u-1</UploadId>
    <Initiator><ID>i</ID><DisplayName>init</DisplayName></Initiator>
    <Owner><ID>o</ID></Owner>
    <StorageClass>STANDARD</StorageClass>
    <Initiated>2024-05-05T05:05:05.000Z</Initiated>
  </Upload>
</ListMultipartUploadsResult>"""
        listing = _decode(
            Operation.LIST_MULTIPART_UPLOADS,
            schemas.LIST_MULTIPART_UPLOADS,
            body,
        )
        upload = listing.multipart_uploads[0]
        assert upload.upload_id == "u-1"
        assert upload.initiator.display_name == "init"
        assert upload.owner.id == "o"
        assert upload.initiated.day == 5

    def test_list_parts(self):
        body = """<ListPartsResult>
  <Bucket>b</Bucket><Key>k</Key><UploadId>u</UploadId>
  <PartNumberMarker>0</PartNumberMarker>
  <NextPartNumberMarker>2</NextPartNumberMarker>
  <MaxParts>2</MaxParts><IsTruncated>true</IsTruncated>
  <Part><PartNumber>1</PartNumber><ETag>"e1"</ETag><Size>5</Size></Part>
  <Part><PartNumber>2</PartNumber><ETag>"e2"</ETag><Size>6</Size></Part>
</ListPartsResult>"""
        listing = _decode(Operation.LIST_PARTS, schemas.LIST_PARTS, body)
        assert listing.upload_id == "u"
        assert listing.next_part_number_marker == 2
        assert [(p.part_number, p.etag) for p in listing.parts] == [
            (1, '"e1"'), (2, '"e2"'),
        ]

    def test_delete_result_keeps_successes_and_errors(self):
        body = """<DeleteResult>
  <Deleted><Key>a</Key></Deleted>
  <Deleted><Key>b</Key><DeleteMarker>true</DeleteMarker>
    <DeleteMarkerVersionId>dm</DeleteMarkerVersionId></Deleted>
  <Error><Key>c</Key><Code>AccessDenied</Code><Message>Access Denied</Message></Error>
</DeleteResult>"""
        result = _decode(Operation.DELETE_OBJECTS, schemas.DELETE_OBJECTS, body)
        assert [d.key for d in result.deleted] == ["a", "b"]
        assert result.deleted[1].delete_marker is True
        assert result.errors[0].code == "AccessDenied"
        assert result.has_errors

    def test_tagging(self):
        body = """<Tagging><TagSet>
  <Tag><Key>env</Key><Value>prod</Value></Tag>
  <Tag><Key>team</Key><Value>data</Value></Tag>
</TagSet></Tagging>"""
        result = _decode(Operation.GET_OBJECT_TAGGING, schemas.TAGGING, body)
        assert result.as_dict() == {"env": "prod", "team": "data"}

    def test_empty_location_is_us(self):
        body = f'<LocationConstraint xmlns="{S3_NS}"/>'
        result = _decode(
            Operation.GET_BUCKET_LOCATION, schemas.BUCKET_LOCATION, body,
        )
        assert result.location == "US"

    def test_location(self):
        body = "<LocationConstraint>eu-west-1</LocationConstraint>"
        result = _decode(
            Operation.GET_BUCKET_LOCATION, schemas.BUCKET_LOCATION, body,
        )
        assert result.location == "eu-west-1"

    def test_versioning(self):
        body = "<VersioningConfiguration><Status>Enabled</Status></VersioningConfiguration>"
        result = _decode(
            Operation.GET_BUCKET_VERSIONING, schemas.BUCKET_VERSIONING, body,
        )
        assert result.status == "Enabled"
        assert result.mfa_delete is None


class TestFailures:
    def test_truncated_document_reports_partial_result(self):
        body = """<ListPartsResult><Bucket>b</Bucket>
  <Part><PartNumber>1</PartNumber><ETag>"e1"</ETag></Part>
  <Part><PartNumber>2</Part"""
        with pytest.raises(DecodeError) as excinfo:
            _decode(Operation.LIST_PARTS, schemas.LIST_PARTS, body)
        partial = excinfo.value.partial
        assert isinstance(partial, PartListing)
        assert partial.bucket_name == "b"
        assert [p.part_number for p in partial.parts] == [1]

    def test_premature_end_of_stream(self):
        body = "<ListPartsResult><Bucket>b</Bucket>"
        with pytest.raises(DecodeError) as excinfo:
            _decode(Operation.LIST_PARTS, schemas.LIST_PARTS, body)
        assert excinfo.value.operation is Operation.LIST_PARTS

    def test_empty_body_is_a_decode_error(self):
        with pytest.raises(DecodeError):
            _decode(Operation.LIST_PARTS, schemas.LIST_PARTS, "")

    def test_bad_integer(self):
        body = "<ListPartsResult><Bucket>b</Bucket><MaxParts>many</MaxParts></ListPartsResult>"
        with pytest.raises(DecodeError) as excinfo:
            _decode(Operation.LIST_PARTS, schemas.LIST_PARTS, body)
        assert "MaxParts" in str(excinfo.value)
        assert excinfo.value.partial.bucket_name == "b"

    def test_unexpected_root(self):
        with pytest.raises(DecodeError, match="unexpected root"):
            _decode(
                Operation.LIST_PARTS,
                schemas.LIST_PARTS,
                "<ListBucketResult/>",
            )

    def test_error_document_raises_service_error(self):
        body = """<Error><Code>InternalError</Code>
  <Message>We encountered an internal error.</Message>
  <RequestId>req-1</RequestId><HostId>host-1</HostId>
  <Key>dst</Key></Error>"""
        with pytest.raises(ServiceError) as excinfo:
            _decode(Operation.COPY_OBJECT, schemas.COPY_OBJECT, body)
        error = excinfo.value
        assert error.code == "InternalError"
        assert error.request_id == "req-1"
        assert error.host_id == "host-1"
        assert error.details == {"Key": "dst"}
        assert error.operation is Operation.COPY_OBJECT


class TestDecodeServiceError:
    def test_error_document(self):
        body = b"<Error><Code>NoSuchUpload</Code><Message>gone</Message></Error>"
        error = decode_service_error(
            io.BytesIO(body),
            status_code=404,
            operation=Operation.LIST_PARTS,
        )
        assert error.code == "NoSuchUpload"
        assert error.status_code == 404
        assert "NoSuchUpload - gone - HTTP 404" in str(error)

    def test_empty_body_uses_status(self):
        error = decode_service_error(io.BytesIO(b""), status_code=404)
        assert error.code == "NotFound"
        assert error.message is None

    def test_non_xml_body(self):
        error = decode_service_error(
            io.BytesIO(b"Service Unavailable, try later"), status_code=503,
        )
        assert error.code == "ServiceUnavailable"
        assert error.message == "Service Unavailable, try later"
