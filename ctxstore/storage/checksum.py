from __future__ import annotations

import hashlib


def content_checksum(content: str) -> tuple[str, int]:
    """Return (sha256 hex digest, byte length) of the UTF-8 encoding of content."""
    data = content.encode("utf-8")
    return hashlib.sha256(data).hexdigest(), len(data)
