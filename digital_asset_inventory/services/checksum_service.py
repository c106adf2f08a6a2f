# digital_asset_inventory/services/checksum_service.py
"""
Checksum and integrity utility for archived files.

Archived files are fingerprinted with SHA-256 when an archive is executed.
Reconciliation later recomputes the hash and compares it against the stored
value; a missing file and a modified file are reported separately so the
caller can set flag_missing and flag_integrity independently.

Usage:
    from digital_asset_inventory.services.checksum_service import checksum_service

    digest = await checksum_service.calculate_checksum(path)
    check = await checksum_service.verify_integrity(path, record.file_checksum)
    if check.modified:
        ...
"""

import hashlib
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger("dai.checksum")

CHUNK_SIZE = 8192


class ChecksumError(IOError):
    """Raised when a file cannot be read for hashing."""


@dataclass(frozen=True)
class IntegrityCheck:
    """Outcome of comparing a file against its stored checksum."""
    missing: bool = False
    modified: bool = False
    checksum: Optional[str] = None

    @property
    def ok(self) -> bool:
        return not (self.missing or self.modified)


class ChecksumService:
    """SHA-256 fingerprinting of files."""

    algorithm = "sha256"

    async def calculate_checksum(self, file_path: Path) -> str:
        """
        Calculate the SHA-256 digest of a file, streaming it in chunks.

        Returns:
            64 character lowercase hex digest

        Raises:
            ChecksumError: If the file is missing or cannot be read
        """
        path = Path(file_path)
        if not path.is_file():
            raise ChecksumError(f"File does not exist: {path}")

        hash_func = hashlib.new(self.algorithm)
        try:
            with open(path, "rb") as f:
                while chunk := f.read(CHUNK_SIZE):
                    hash_func.update(chunk)
        except OSError as e:
            logger.error(f"Failed to read {path} for checksum: {e}")
            raise ChecksumError(f"Failed to read {path}: {e}") from e

        hex_digest = hash_func.hexdigest()
        logger.debug(f"Calculated {self.algorithm} for {path}: {hex_digest[:16]}...")
        return hex_digest

    async def verify_integrity(self, file_path: Optional[Path], expected: Optional[str]) -> IntegrityCheck:
        """
        Compare a file against an expected checksum.

        A file that cannot be resolved or read is reported as missing. A record
        whose checksum has not been computed yet (expected is None) is intact.
        """
        if file_path is None or not Path(file_path).is_file():
            return IntegrityCheck(missing=True)

        if not expected:
            return IntegrityCheck()

        try:
            actual = await self.calculate_checksum(file_path)
        except ChecksumError:
            return IntegrityCheck(missing=True)

        return IntegrityCheck(modified=actual != expected.lower(), checksum=actual)


# Global checksum service instance
checksum_service = ChecksumService()
