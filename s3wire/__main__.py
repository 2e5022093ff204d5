#!/usr/bin/env python3
"""Entry point for s3wire package.

Usage::

    s3wire decode ListObjectsV2 response.xml
    s3wire decode CompleteMultipartUpload - < body.xml
    s3wire list my-bucket --family versions --prefix logs/
"""

from __future__ import annotations

import argparse
import sys

from s3wire import __version__


def main(argv: list[str] | None = None) -> int:
    """Parse CLI arguments and dispatch to the appropriate command."""
    parser = argparse.ArgumentParser(
        prog="s3wire",
        description="S3 client protocol layer",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  decode      Decode a captured response body and print it as JSON
  list        List a bucket, following continuation markers

Examples:
  s3wire decode ListParts parts.xml
  s3wire decode CopyObject body.xml --status 200
  s3wire list my-bucket --family uploads
  s3wire list my-bucket --prefix logs/ --delimiter / --page-size 100
""",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level",
    )

    subparsers = parser.add_subparsers(dest="command")

    decode = subparsers.add_parser(
        "decode", help="Decode a captured response body",
    )
    decode.add_argument(
        "operation",
        help="Operation name, e.g. ListObjectsV2 or list-parts",
    )
    decode.add_argument(
        "file",
        nargs="?",
        default="-",
        help="Response body file (default: stdin)",
    )
    decode.add_argument(
        "--status",
        type=int,
        default=200,
        help="HTTP status the body arrived with (default: 200)",
    )
    decode.add_argument(
        "--no-url-decode",
        action="store_true",
        help="Keep keys percent-encoded when EncodingType=url",
    )

    listing = subparsers.add_parser(
        "list", help="List a bucket across all pages",
    )
    listing.add_argument("bucket", help="Bucket to list")
    listing.add_argument(
        "--family",
        default="objects",
        choices=["objects", "objects-v1", "versions", "uploads"],
        help="Listing family (default: objects)",
    )
    listing.add_argument("--prefix", default=None, help="Key prefix")
    listing.add_argument("--delimiter", default=None, help="Delimiter")
    listing.add_argument(
        "--page-size",
        type=int,
        default=None,
        help="Entries per page (default: S3WIRE_PAGE_SIZE or 1000)",
    )
    listing.add_argument(
        "--endpoint",
        default=None,
        help="Endpoint URL (default: S3WIRE_ENDPOINT)",
    )

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    from s3wire.cli import cmd_decode, cmd_list

    commands = {
        "decode": cmd_decode,
        "list": cmd_list,
    }

    try:
        return commands[args.command](args) or 0
    except KeyboardInterrupt:
        print("\nInterrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
