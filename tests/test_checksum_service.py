"""
Unit tests for ChecksumService.
"""

import hashlib

import pytest

from digital_asset_inventory.services.checksum_service import ChecksumError, ChecksumService


@pytest.fixture
def checksums():
    return ChecksumService()


class TestCalculateChecksum:

    @pytest.mark.asyncio
    async def test_sha256_of_file(self, checksums, tmp_path):
        content = b"x" * 20000
        path = tmp_path / "big.pdf"
        path.write_bytes(content)

        digest = await checksums.calculate_checksum(path)

        assert digest == hashlib.sha256(content).hexdigest()
        assert len(digest) == 64

    @pytest.mark.asyncio
    async def test_missing_file_raises(self, checksums, tmp_path):
        with pytest.raises(ChecksumError):
            await checksums.calculate_checksum(tmp_path / "missing.pdf")


class TestVerifyIntegrity:

    @pytest.mark.asyncio
    async def test_intact_file(self, checksums, tmp_path):
        path = tmp_path / "a.pdf"
        path.write_bytes(b"content")
        expected = hashlib.sha256(b"content").hexdigest()

        check = await checksums.verify_integrity(path, expected.upper())

        assert check.ok
        assert check.checksum == expected

    @pytest.mark.asyncio
    async def test_modified_file(self, checksums, tmp_path):
        path = tmp_path / "a.pdf"
        path.write_bytes(b"changed")

        check = await checksums.verify_integrity(path, hashlib.sha256(b"content").hexdigest())

        assert check.modified
        assert not check.missing
        assert not check.ok

    @pytest.mark.asyncio
    async def test_missing_file(self, checksums, tmp_path):
        assert (await checksums.verify_integrity(tmp_path / "gone.pdf", "0" * 64)).missing
        assert (await checksums.verify_integrity(None, "0" * 64)).missing

    @pytest.mark.asyncio
    async def test_pending_checksum_is_intact(self, checksums, tmp_path):
        path = tmp_path / "a.pdf"
        path.write_bytes(b"content")
        check = await checksums.verify_integrity(path, None)
        assert check.ok
        assert check.checksum is None
