"""Tests for content checksum and size derivation."""

from __future__ import annotations

import hashlib

from ctxstore.storage.checksum import content_checksum


class TestContentChecksum:
    def test_sha256_of_utf8(self) -> None:
        digest, size = content_checksum("hello")
        assert digest == hashlib.sha256(b"hello").hexdigest()
        assert size == 5

    def test_size_counts_bytes_not_characters(self) -> None:
        _, size = content_checksum("héllo")
        assert size == 6

    def test_empty_content(self) -> None:
        digest, size = content_checksum("")
        assert size == 0
        assert len(digest) == 64
