from __future__ import annotations

import pytest

from s3wire.cursors import (
    Cursor,
    ListingFamily,
    ListingPaginator,
    apply_cursor,
    empty_listing,
    is_truncated,
    listing_items,
    next_cursor,
)
from s3wire.errors import ContractViolation, DecodeError, NotTruncated
from s3wire.models import (
    BucketList,
    BucketListing,
    MultipartUploadListing,
    ObjectListing,
    ObjectListingV2,
    ObjectSummary,
    PartListing,
    VersionListing,
)
from s3wire.request_types import (
    ListBucketsExtendedRequest,
    ListMultipartUploadsRequest,
    ListObjectsRequest,
    ListObjectsV2Request,
    ListPartsRequest,
    ListVersionsRequest,
)


def _v2_page(keys, token=None):
    contents = "".join(
        f"<Contents><Key>{key}</Key><Size>1</Size></Contents>" for key in keys
    )
    truncated = "true" if token else "false"
    next_token = (
        f"<NextContinuationToken>{token}</NextContinuationToken>"
        if token else ""
    )
    return (
        f"<ListBucketResult><Name>b</Name><MaxKeys>2</MaxKeys>"
        f"<KeyCount>{len(keys)}</KeyCount>"
        f"<IsTruncated>{truncated}</IsTruncated>{next_token}{contents}"
        f"</ListBucketResult>"
    )


def _refuse(request):
    raise AssertionError(f"unexpected call with {request!r}")


class TestNextCursor:
    def test_complete_listing_has_no_cursor(self):
        with pytest.raises(NotTruncated):
            next_cursor(ObjectListingV2(bucket_name="b"))

    def test_v2_token(self):
        cursor = next_cursor(
            ObjectListingV2(is_truncated=True, next_continuation_token="t")
        )
        assert cursor == Cursor(
            ListingFamily.OBJECTS_V2, continuation_token="t",
        )

    def test_v1_marker(self):
        cursor = next_cursor(ObjectListing(is_truncated=True, next_marker="k"))
        assert cursor.marker == "k"

    def test_bucket_marker(self):
        cursor = next_cursor(BucketListing(is_truncated=True, next_marker="m"))
        assert cursor == Cursor(ListingFamily.BUCKETS, marker="m")

    def test_bucket_listing_without_marker(self):
        with pytest.raises(DecodeError, match="NextMarker"):
            next_cursor(BucketListing(is_truncated=True))

    def test_versions_carry_both_markers(self):
        cursor = next_cursor(
            VersionListing(
                is_truncated=True,
                next_key_marker="k",
                next_version_id_marker="v",
            )
        )
        assert (cursor.key_marker, cursor.version_id_marker) == ("k", "v")

    def test_uploads_carry_both_markers(self):
        cursor = next_cursor(
            MultipartUploadListing(
                is_truncated=True,
                next_key_marker="k",
                next_upload_id_marker="u",
            )
        )
        assert (cursor.key_marker, cursor.upload_id_marker) == ("k", "u")

    def test_parts_marker(self):
        cursor = next_cursor(
            PartListing(is_truncated=True, next_part_number_marker=7)
        )
        assert cursor.part_number_marker == 7

    def test_truncated_without_marker(self):
        with pytest.raises(DecodeError, match="NextContinuationToken"):
            next_cursor(ObjectListingV2(is_truncated=True))

    def test_not_a_listing(self):
        with pytest.raises(ContractViolation):
            next_cursor(BucketList())
        with pytest.raises(ContractViolation):
            is_truncated(BucketList())


class TestCursor:
    def test_version_marker_without_key_marker(self):
        with pytest.raises(ContractViolation):
            Cursor(ListingFamily.VERSIONS, version_id_marker="v")

    def test_upload_marker_without_key_marker(self):
        with pytest.raises(ContractViolation):
            Cursor(ListingFamily.MULTIPART_UPLOADS, upload_id_marker="u")

    def test_cursor_is_immutable(self):
        cursor = Cursor(ListingFamily.OBJECTS, marker="m")
        with pytest.raises(AttributeError):
            cursor.marker = "other"


class TestApplyCursor:
    def test_keeps_request_parameters(self):
        request = ListObjectsV2Request("b", prefix="p/", max_keys=2)
        moved = apply_cursor(
            request, Cursor(ListingFamily.OBJECTS_V2, continuation_token="t"),
        )
        assert moved.continuation_token == "t"
        assert moved.prefix == "p/"
        assert moved.max_keys == 2
        assert request.continuation_token is None

    def test_versions_set_both_markers(self):
        moved = apply_cursor(
            ListVersionsRequest("b", key_marker="old", version_id_marker="x"),
            Cursor(ListingFamily.VERSIONS, key_marker="k"),
        )
        assert moved.key_marker == "k"
        assert moved.version_id_marker is None

    def test_uploads_set_both_markers(self):
        moved = apply_cursor(
            ListMultipartUploadsRequest("b"),
            Cursor(
                ListingFamily.MULTIPART_UPLOADS,
                key_marker="k",
                upload_id_marker="u",
            ),
        )
        assert moved.to_wire().query["upload-id-marker"] == "u"

    def test_buckets(self):
        moved = apply_cursor(
            ListBucketsExtendedRequest(prefix="p", max_keys=10),
            Cursor(ListingFamily.BUCKETS, marker="m"),
        )
        assert moved.marker == "m"
        assert moved.to_wire().query["prefix"] == "p"

    def test_parts(self):
        moved = apply_cursor(
            ListPartsRequest("b", "k", "u"),
            Cursor(ListingFamily.PARTS, part_number_marker=3),
        )
        assert moved.part_number_marker == 3

    def test_family_mismatch(self):
        with pytest.raises(ContractViolation):
            apply_cursor(
                ListObjectsRequest("b"),
                Cursor(ListingFamily.OBJECTS_V2, continuation_token="t"),
            )


class TestEmptyListing:
    def test_next_page_after_complete_listing_does_not_call(self):
        paginator = ListingPaginator(_refuse)
        previous = ObjectListingV2(
            bucket_name="b",
            prefix="p/",
            object_summaries=[ObjectSummary(key="p/a")],
        )
        page = paginator.next_page(previous, ListObjectsV2Request("b"))
        assert isinstance(page, ObjectListingV2)
        assert page.is_truncated is False
        assert page.object_summaries == []
        assert page.prefix == "p/"

    def test_parts_listing(self):
        page = empty_listing(
            PartListing(bucket_name="b", key="k", upload_id="u", max_parts=2)
        )
        assert page.parts == []
        assert page.upload_id == "u"
        assert page.max_parts == 2


class TestPagination:
    def test_three_pages(self, client, transport):
        transport.queue(body=_v2_page(["a", "b"], token="t1"))
        transport.queue(body=_v2_page(["c", "d"], token="t2"))
        transport.queue(body=_v2_page(["e"]))

        pages = list(client.iter_pages(ListObjectsV2Request("b", max_keys=2)))

        assert [
            [s.key for s in listing_items(page)] for page in pages
        ] == [["a", "b"], ["c", "d"], ["e"]]
        assert [
            r.query.get("continuation-token") for r in transport.requests
        ] == [None, "t1", "t2"]
        assert all(r.query["max-keys"] == "2" for r in transport.requests)
        assert transport.responses == []

    def test_items_flatten_pages(self, client, transport):
        transport.queue(body=_v2_page(["a", "b"], token="t1"))
        transport.queue(body=_v2_page(["c"]))
        keys = [s.key for s in client.iter_objects("b", page_size=2)]
        assert keys == ["a", "b", "c"]

    def test_next_page_by_hand(self, client, transport):
        transport.queue(body=_v2_page(["a"], token="t1"))
        transport.queue(body=_v2_page(["b"]))
        request = ListObjectsV2Request("b")

        first = client.list_objects_v2(request)
        second = client.list_next_page(first, request)
        third = client.list_next_page(second, request)

        assert [s.key for s in second.object_summaries] == ["b"]
        assert third.object_summaries == []
        assert len(transport.requests) == 2

    def test_versions_wire_order_across_pages(self, client, transport):
        transport.queue(body="""<ListVersionsResult><IsTruncated>true</IsTruncated>
<NextKeyMarker>k1</NextKeyMarker><NextVersionIdMarker>v2</NextVersionIdMarker>
<Version><Key>k1</Key><VersionId>v3</VersionId><IsLatest>true</IsLatest></Version>
<DeleteMarker><Key>k1</Key><VersionId>v2</VersionId></DeleteMarker>
</ListVersionsResult>""")
        transport.queue(body="""<ListVersionsResult><IsTruncated>false</IsTruncated>
<Version><Key>k1</Key><VersionId>v1</VersionId></Version>
<Version><Key>k2</Key><VersionId>v9</VersionId><IsLatest>true</IsLatest></Version>
</ListVersionsResult>""")

        versions = list(client.iter_versions("b"))

        assert [(v.key, v.version_id) for v in versions] == [
            ("k1", "v3"), ("k1", "v2"), ("k1", "v1"), ("k2", "v9"),
        ]
        assert transport.requests[1].query["key-marker"] == "k1"
        assert transport.requests[1].query["version-id-marker"] == "v2"

    def test_common_prefixes(self, transport, client):
        transport.queue(body="""<ListBucketResult><IsTruncated>false</IsTruncated>
<CommonPrefixes><Prefix>a/</Prefix></CommonPrefixes>
<CommonPrefixes><Prefix>b/</Prefix></CommonPrefixes></ListBucketResult>""")
        prefixes = list(
            client.paginator.common_prefixes(
                ListObjectsV2Request("b", delimiter="/")
            )
        )
        assert prefixes == ["a/", "b/"]
