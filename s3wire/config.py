"""Configuration: every tunable of the protocol layer in one place.

Values are read once, at import time, from (highest priority first):
    1. Environment variables
    2. ``.env`` in the current working directory
    3. ``~/.s3wire/.env``
    4. Built-in defaults

Only the first ``.env`` file found is used.
"""

from __future__ import annotations

import os
from pathlib import Path

ENV_FILES = (
    Path.cwd() / ".env",
    Path.home() / ".s3wire" / ".env",
)


# ---------------------------------------------------------------------------
# .env files
# ---------------------------------------------------------------------------

def _parse_env_file(path: Path) -> dict[str, str]:
    """Read ``KEY=VALUE`` lines from ``path``.

    Blank lines, ``#`` comments and lines without ``=`` are skipped.
    A leading ``export`` and one pair of matching quotes around the
    value are stripped.

    Returns:
        Parsed pairs; empty if the file cannot be read.
    """
    pairs: dict[str, str] = {}
    try:
        lines = path.read_text().splitlines()
    except OSError:
        return pairs

    for raw in lines:
        line = raw.strip()
        if line.startswith("export "):
            line = line[len("export "):].lstrip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
            value = value[1:-1]
        pairs[key.strip()] = value
    return pairs


def _load_dotenv(candidates: tuple[Path, ...] = ENV_FILES) -> Path | None:
    """Fill unset environment variables from the first existing .env file.

    Returns:
        The file that was loaded, or None.
    """
    for path in candidates:
        if path.is_file():
            for key, value in _parse_env_file(path).items():
                os.environ.setdefault(key, value)
            return path
    return None


def _env_flag(name: str, default: str) -> bool:
    return os.environ.get(name, default).lower() in ("true", "1", "yes")


_load_dotenv()

# ---------------------------------------------------------------------------
# Logging Configuration
# ---------------------------------------------------------------------------
DEFAULT_LOG_LEVEL = "INFO"

# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------
S3WIRE_ENDPOINT = os.environ.get(
    "S3WIRE_ENDPOINT", "http://127.0.0.1:18080"
)
S3WIRE_TIMEOUT = float(os.environ.get("S3WIRE_TIMEOUT", "300"))
S3WIRE_VERIFY_SSL = _env_flag("S3WIRE_VERIFY_SSL", "false")

# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------
READ_CHUNK_SIZE = int(os.environ.get("S3WIRE_READ_CHUNK_SIZE", "65536"))

# Decode url-encoded keys when a listing reports EncodingType=url
URL_DECODE_LISTINGS = _env_flag("S3WIRE_URL_DECODE", "true")

# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------
DEFAULT_PAGE_SIZE = int(os.environ.get("S3WIRE_PAGE_SIZE", "1000"))

# ---------------------------------------------------------------------------
# Protocol limits
# ---------------------------------------------------------------------------
MIN_PART_NUMBER = 1
MAX_PART_NUMBER = 10000
MAX_DELETE_KEYS = 1000
