"""Decode command: decode a captured response body offline.

Reads a response body from a file (or stdin) and prints the decoded
result as JSON. Useful for checking what a service actually sends.
"""

from __future__ import annotations

import sys

from s3wire.errors import DecodeError, ServiceError, UnknownOperation
from s3wire.logging_setup import get_logger, setup_logging
from s3wire.operations import Operation
from s3wire.registry import get_registry
from s3wire.utils import result_to_json


def cmd_decode(args: object) -> int:
    """Decode one response body and print it.

    Args:
        args: Parsed CLI arguments with ``operation``, ``file``,
            ``status``, ``log_level`` and ``no_url_decode`` attributes.

    Returns:
        Exit code (0 for success, 1 for a service error or bad input).
    """
    setup_logging(level=getattr(args, "log_level", None))
    logger = get_logger()

    try:
        operation = Operation.from_name(args.operation)
    except KeyError:
        logger.error(f"Unknown operation: {args.operation}")
        return 1

    registry = get_registry(
        url_decode=not getattr(args, "no_url_decode", False),
    )
    status = getattr(args, "status", None) or 200
    path = getattr(args, "file", None)

    if path and path != "-":
        try:
            stream = open(path, "rb")
        except OSError as exc:
            logger.error(f"Cannot read {path}: {exc}")
            return 1
    else:
        stream = sys.stdin.buffer
    try:
        if status >= 300:
            error = registry.decode_error(
                stream, status_code=status, operation=operation,
            )
            print(result_to_json(error.as_dict()))
            return 1
        result = registry.decode(operation, stream)
    except ServiceError as exc:
        print(result_to_json(exc.as_dict()))
        return 1
    except (DecodeError, UnknownOperation) as exc:
        logger.error(str(exc))
        return 1
    finally:
        if stream is not sys.stdin.buffer:
            stream.close()

    print(result_to_json(result))
    return 0
