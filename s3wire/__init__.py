from __future__ import annotations

# s3wire - S3 client protocol layer: request rendering, streaming response
# decoding, listing continuation and multipart upload bookkeeping
"""
Usage:
    python -m s3wire decode ListObjectsV2 response.xml
    python -m s3wire list my-bucket --prefix logs/ --family versions
"""

__version__ = "1.0.0"
