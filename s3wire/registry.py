"""Decoder Registry: maps each operation to its response decoder.

Usage::

    from s3wire.registry import get_registry

    registry = get_registry()
    listing = registry.decode(Operation.LIST_OBJECTS_V2, body)

The mapping is fixed when the registry is built; lookups never mutate
state, so one registry is shared freely across threads.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Any, BinaryIO, Callable, Mapping

from s3wire import schemas
from s3wire.config import READ_CHUNK_SIZE, URL_DECODE_LISTINGS
from s3wire.decoder import (
    EmptyBodyDecoder,
    Schema,
    StreamingDecoder,
    decode_service_error,
)
from s3wire.errors import ServiceError, UnknownOperation
from s3wire.models import EmptyResult, UploadPartResult
from s3wire.operations import Operation

DecodeFn = Callable[[BinaryIO], Any]

_SCHEMAS: dict[Operation, Schema] = {
    Operation.LIST_BUCKETS: schemas.LIST_BUCKETS,
    Operation.LIST_BUCKETS_EXTENDED: schemas.LIST_BUCKETS_EXTENDED,
    Operation.LIST_OBJECTS: schemas.LIST_OBJECTS,
    Operation.LIST_OBJECTS_V2: schemas.LIST_OBJECTS_V2,
    Operation.LIST_VERSIONS: schemas.LIST_VERSIONS,
    Operation.LIST_MULTIPART_UPLOADS: schemas.LIST_MULTIPART_UPLOADS,
    Operation.LIST_PARTS: schemas.LIST_PARTS,
    Operation.INITIATE_MULTIPART_UPLOAD: schemas.INITIATE_MULTIPART_UPLOAD,
    Operation.COPY_PART: schemas.COPY_PART,
    Operation.COMPLETE_MULTIPART_UPLOAD: schemas.COMPLETE_MULTIPART_UPLOAD,
    Operation.COPY_OBJECT: schemas.COPY_OBJECT,
    Operation.DELETE_OBJECTS: schemas.DELETE_OBJECTS,
    Operation.GET_OBJECT_TAGGING: schemas.TAGGING,
    Operation.GET_BUCKET_TAGGING: schemas.TAGGING,
    Operation.GET_BUCKET_LOCATION: schemas.BUCKET_LOCATION,
    Operation.GET_BUCKET_VERSIONING: schemas.BUCKET_VERSIONING,
}

_NO_BODY: dict[Operation, Callable[[], Any]] = {
    Operation.UPLOAD_PART: UploadPartResult,
    Operation.ABORT_MULTIPART_UPLOAD: EmptyResult,
    Operation.SET_OBJECT_TAGGING: EmptyResult,
    Operation.DELETE_OBJECT_TAGGING: EmptyResult,
    Operation.SET_PUBLIC_ACCESS_BLOCK: EmptyResult,
    Operation.DELETE_PUBLIC_ACCESS_BLOCK: EmptyResult,
}

_REGISTRY_CACHE: dict[tuple[bool, int], DecoderRegistry] = {}


def _empty_factory(operation: Operation, factory: Callable[[], Any]):
    if factory is EmptyResult:
        return lambda: EmptyResult(operation=operation.value)
    return factory


class DecoderRegistry:
    """Immutable ``Operation -> decoder`` lookup."""

    def __init__(
        self,
        *,
        url_decode: bool = URL_DECODE_LISTINGS,
        chunk_size: int = READ_CHUNK_SIZE,
    ) -> None:
        self.chunk_size = chunk_size
        decoders: dict[Operation, DecodeFn] = {}
        for operation, schema in _SCHEMAS.items():
            decoders[operation] = StreamingDecoder(
                operation,
                schema,
                url_decode=url_decode,
                chunk_size=chunk_size,
            )
        for operation, factory in _NO_BODY.items():
            decoders[operation] = EmptyBodyDecoder(
                operation, _empty_factory(operation, factory),
            )
        self._decoders: Mapping[Operation, DecodeFn] = MappingProxyType(
            decoders,
        )

    @property
    def operations(self) -> frozenset[Operation]:
        return frozenset(self._decoders)

    def resolve(self, operation: Operation) -> DecodeFn:
        """Return the decoder registered for ``operation``.

        Raises:
            UnknownOperation: If no decoder is registered.
        """
        try:
            return self._decoders[operation]
        except (KeyError, TypeError):
            available = ", ".join(sorted(op.name for op in self._decoders))
            raise UnknownOperation(
                f"No decoder registered for {operation!r}. "
                f"Available: {available}"
            ) from None

    def decode(self, operation: Operation, stream: BinaryIO) -> Any:
        """Decode a 2xx response body for ``operation``."""
        return self.resolve(operation)(stream)

    def decode_error(
        self,
        stream: BinaryIO,
        *,
        status_code: int,
        operation: Operation | None = None,
    ) -> ServiceError:
        """Decode a non-2xx response body; returns the error to raise."""
        return decode_service_error(
            stream,
            status_code=status_code,
            operation=operation,
            chunk_size=self.chunk_size,
        )


def get_registry(
    *,
    url_decode: bool | None = None,
    chunk_size: int | None = None,
) -> DecoderRegistry:
    """Return a shared registry for the given options (cached)."""
    if url_decode is None:
        url_decode = URL_DECODE_LISTINGS
    if chunk_size is None:
        chunk_size = READ_CHUNK_SIZE
    cache_key = (url_decode, chunk_size)
    if cache_key not in _REGISTRY_CACHE:
        _REGISTRY_CACHE[cache_key] = DecoderRegistry(
            url_decode=url_decode, chunk_size=chunk_size,
        )
    return _REGISTRY_CACHE[cache_key]
