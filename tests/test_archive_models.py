"""
Unit tests for the ArchiveRecord model.

Covers status predicates, warning flags and the write-once fields
(file_checksum, archive_classification_date).
"""

from datetime import datetime

import pytest

from digital_asset_inventory.database.models import (
    ArchiveReason,
    ArchiveRecord,
    ArchiveStatus,
    ArchiveVisibility,
    ImmutableFieldError,
)


def make_record(**overrides) -> ArchiveRecord:
    values = dict(
        status=ArchiveStatus.QUEUED.value,
        original_fid=7,
        original_path="public://docs/report.pdf",
        file_name="report.pdf",
        asset_type="pdf",
        archive_reason=ArchiveReason.REFERENCE.value,
    )
    values.update(overrides)
    return ArchiveRecord(**values)


class TestStatusPredicates:
    """Test which operations each status allows."""

    def test_queued_record(self):
        record = make_record()
        assert record.can_execute_archive()
        assert record.can_remove_from_queue()
        assert not record.can_toggle_visibility()
        assert not record.can_unarchive()
        assert not record.can_delete_file()

    @pytest.mark.parametrize("status", [ArchiveStatus.ARCHIVED_PUBLIC, ArchiveStatus.ARCHIVED_ADMIN])
    def test_active_archived_record(self, status):
        record = make_record(status=status.value)
        assert record.is_active_archived()
        assert record.can_toggle_visibility()
        assert record.can_unarchive()
        assert record.can_delete_file()
        assert not record.can_execute_archive()
        assert not record.can_remove_from_queue()

    def test_exemption_void_only_allows_unarchive(self):
        record = make_record(status=ArchiveStatus.EXEMPTION_VOID.value)
        assert record.is_terminal()
        assert record.can_unarchive()
        assert not record.can_execute_archive()
        assert not record.can_toggle_visibility()
        assert not record.can_delete_file()

    def test_archived_deleted_allows_nothing(self):
        record = make_record(status=ArchiveStatus.ARCHIVED_DELETED.value)
        assert record.is_terminal()
        assert not any([
            record.can_execute_archive(),
            record.can_unarchive(),
            record.can_toggle_visibility(),
            record.can_remove_from_queue(),
            record.can_delete_file(),
        ])

    def test_blocked_is_queued_with_gate_flags(self):
        record = make_record(flag_usage=True)
        assert record.is_blocked()
        assert record.can_execute_archive()
        assert not make_record(status=ArchiveStatus.ARCHIVED_PUBLIC.value, flag_usage=True).is_blocked()

    def test_status_labels(self):
        assert make_record().status_label == "Queued"
        assert make_record(status="exemption_void").status_label == "Exemption Void"
        assert ArchiveVisibility.ADMIN.status == ArchiveStatus.ARCHIVED_ADMIN


class TestManualEntries:
    """Test manual entry detection."""

    def test_page_without_fid_is_manual(self):
        record = make_record(original_fid=None, asset_type="page", status="archived_public")
        assert record.is_manual_entry()
        assert record.can_edit()
        assert not record.can_delete_file()
        assert not record.is_checksum_pending()

    def test_file_record_is_not_manual(self):
        record = make_record(original_fid=None, asset_type="pdf")
        assert not record.is_manual_entry()
        assert not record.can_edit()


class TestExternalRecords:
    """Test detection of records with no local file behind them."""

    @pytest.mark.parametrize("path,asset_type", [
        ("https://www.youtube.com/watch?v=abcdefghijk", "youtube"),
        ("https://docs.google.com/document/d/abc/edit", "google_doc"),
        ("HTTP://vimeo.com/123456", "vimeo"),
        ("https://example.edu/about", "page"),
    ])
    def test_remote_urls_are_external(self, path, asset_type):
        record = make_record(original_fid=None, original_path=path, asset_type=asset_type,
                             status="archived_public")
        assert record.is_external()
        assert not record.is_checksum_pending()
        assert not record.can_delete_file()

    def test_local_files_are_not_external(self):
        assert not make_record().is_external()
        assert not make_record(original_fid=None, original_path="private://minutes.pdf").is_external()

    def test_remote_video_is_not_editable(self):
        record = make_record(original_fid=None, original_path="https://vimeo.com/1", asset_type="vimeo")
        assert not record.is_manual_entry()
        assert not record.can_edit()


class TestClassificationAndFlags:
    """Test Legacy/General classification and warning flags."""

    def test_legacy_requires_classification_date(self):
        assert not make_record().is_legacy_archive()
        record = make_record(archive_classification_date=datetime(2025, 1, 1))
        assert record.is_legacy_archive()
        record.flag_late_archive = True
        assert not record.is_legacy_archive()

    def test_warning_labels_and_clear(self):
        record = make_record(flag_usage=True, flag_integrity=True, flag_late_archive=True)
        assert record.has_warning_flags()
        assert record.warning_labels() == ["Usage Detected", "Integrity Violation"]

        record.clear_warning_flags()
        assert not record.has_warning_flags()
        # Classification flags are not warnings
        assert record.flag_late_archive is True

    def test_reason_label_uses_other_text(self):
        record = make_record(archive_reason="other", archive_reason_other="Kept for litigation hold")
        assert record.reason_label() == "Kept for litigation hold"
        assert make_record().reason_label() == "Reference"


class TestImmutableFields:
    """Test write-once fields."""

    def test_checksum_set_once(self):
        record = make_record()
        record.file_checksum = "a" * 64

        with pytest.raises(ImmutableFieldError, match="File Checksum is immutable"):
            record.file_checksum = "b" * 64
        assert record.file_checksum == "a" * 64

    def test_same_checksum_is_accepted(self):
        record = make_record(file_checksum="a" * 64)
        record.file_checksum = "a" * 64
        assert record.file_checksum == "a" * 64

    def test_classification_date_set_once(self):
        record = make_record()
        record.archive_classification_date = datetime(2025, 1, 1)

        with pytest.raises(ImmutableFieldError, match="Archive Classification Date is immutable"):
            record.archive_classification_date = datetime(2025, 2, 1)

    def test_cannot_clear_checksum(self):
        record = make_record(file_checksum="a" * 64)
        with pytest.raises(ImmutableFieldError):
            record.file_checksum = None
