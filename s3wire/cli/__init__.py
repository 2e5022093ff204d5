"""CLI commands for s3wire."""

from __future__ import annotations

from s3wire.cli.decode import cmd_decode
from s3wire.cli.listing import cmd_list

__all__ = [
    "cmd_decode",
    "cmd_list",
]
