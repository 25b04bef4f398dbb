"""
Tests for snapshot export and import.

Import is all-or-nothing: every rejection test also checks that the
ledger is unchanged.
"""

import asyncio
import json
from datetime import datetime, timezone

import pytest

from finance_tracker.models import AuditEventType, LedgerSettings
from finance_tracker.snapshot import ImportMode, SnapshotFileError, SnapshotIO


def record(txn_id, description="Imported item", amount="10", category="Misc", day="2026-10-01"):
    return {
        "id": txn_id,
        "description": description,
        "amount": amount,
        "category": category,
        "date": day,
    }


@pytest.fixture
def snapshots(seeded_store, audit_logger, clock):
    return SnapshotIO(seeded_store, audit_logger=audit_logger, clock=clock)


class TestExport:
    """Tests for export."""

    def test_export_snapshot(self, snapshots, seeded_store):
        """The snapshot carries the version, every transaction and the settings."""
        snapshot = snapshots.export_snapshot()

        assert snapshot.version == "1.0.0"
        assert snapshot.transactions == seeded_store.load()
        assert snapshot.settings == LedgerSettings()

    def test_export_json_document(self, snapshots, clock):
        """The JSON document has exactly the four top-level keys."""
        doc = json.loads(snapshots.export_json())

        assert set(doc) == {"version", "exportDate", "transactions", "settings"}
        assert len(doc["transactions"]) == 4
        assert doc["settings"]["monthlyBudget"] == 100000
        assert datetime.fromisoformat(doc["exportDate"].replace("Z", "+00:00")) == clock.now

    def test_export_filename(self, snapshots):
        """Backup names embed the export instant in epoch millis."""
        now = datetime(2026, 10, 19, tzinfo=timezone.utc)
        millis = int(now.timestamp() * 1000)
        assert snapshots.export_filename(now) == f"finance-tracker-backup-{millis}.json"

    def test_export_audited(self, snapshots, audit_logger):
        """Each export is recorded in the audit history."""
        snapshots.export_snapshot()
        assert audit_logger.recent_events[0].event_type == AuditEventType.SNAPSHOT_EXPORTED

    def test_export_then_import_restores_ledger(self, snapshots, seeded_store):
        """Importing an export restores the same ledger."""
        doc = json.loads(snapshots.export_json())
        before = seeded_store.load()
        seeded_store.clear()

        result = snapshots.import_snapshot(doc)

        assert result.success
        assert seeded_store.load() == before


class TestImportValidation:
    """Rejected documents leave the ledger untouched."""

    @pytest.mark.parametrize("doc, message", [
        ("not a document", "Invalid data format"),
        (None, "Invalid data format"),
        ([], "Invalid data format"),
        ({}, "Missing or invalid transactions array"),
        ({"transactions": "nope"}, "Missing or invalid transactions array"),
    ])
    def test_bad_shape(self, snapshots, seeded_store, doc, message):
        """Documents without a transactions array are rejected."""
        before = seeded_store.load()

        result = snapshots.import_snapshot(doc)

        assert not result.success
        assert result.message == message
        assert seeded_store.load() == before

    def test_entry_not_a_record(self, snapshots, seeded_store):
        """Non-object entries are reported by position."""
        result = snapshots.import_snapshot({"transactions": [record("a"), "b"]})
        assert result.message == "Transaction 2 is not a record"
        assert len(seeded_store.load()) == 4

    def test_missing_required_field_reported_in_order(self, snapshots, seeded_store):
        """The first missing required field is the one reported."""
        entry = record("a")
        del entry["amount"]
        del entry["date"]

        result = snapshots.import_snapshot({"transactions": [entry]})

        assert result.message == "Transaction missing required field: amount"
        assert len(seeded_store.load()) == 4

    def test_first_missing_field_is_description(self, snapshots, seeded_store):
        """Missing fields are checked in id, description, amount, category, date order."""
        result = snapshots.import_snapshot({"transactions": [{"id": "x"}]})

        assert not result.success
        assert result.message == "Transaction missing required field: description"
        assert len(seeded_store.load()) == 4

    def test_untyped_field(self, snapshots, seeded_store):
        """A field of the wrong type rejects the whole document."""
        result = snapshots.import_snapshot({"transactions": [record("a", amount="lots")]})

        assert not result.success
        assert result.message.startswith("Transaction 1 is invalid")
        assert len(seeded_store.load()) == 4

    def test_duplicate_ids(self, snapshots, seeded_store):
        """Repeated ids within the document are rejected."""
        result = snapshots.import_snapshot({"transactions": [record("a"), record("a")]})

        assert result.message == "Duplicate transaction id: a"
        assert len(seeded_store.load()) == 4

    def test_invalid_settings(self, snapshots, seeded_store):
        """Out-of-range settings reject the whole document."""
        result = snapshots.import_snapshot({
            "transactions": [record("a")],
            "settings": {"usdRate": -5},
        })

        assert result.message.startswith("Invalid settings")
        assert len(seeded_store.load()) == 4

    def test_unknown_mode(self, snapshots, seeded_store):
        """An unknown mode is reported instead of raising."""
        result = snapshots.import_snapshot({"transactions": [record("a")]}, mode="append")

        assert not result.success
        assert result.message == "Unknown import mode: append"
        assert len(seeded_store.load()) == 4

    def test_rejection_audited(self, snapshots, audit_logger):
        """Rejected imports are audited with their reason."""
        snapshots.import_snapshot({})
        event = audit_logger.recent_events[0]
        assert event.event_type == AuditEventType.IMPORT_FAILED
        assert event.error_message == "Missing or invalid transactions array"


class TestImportReplaceAndMerge:
    """Tests for accepted imports."""

    def test_replace(self, snapshots, seeded_store, clock):
        """Replace mode swaps the ledger and stamps missing timestamps."""
        result = snapshots.import_snapshot({"transactions": [record("a"), record("b")]})

        assert result.success
        assert result.message == "Successfully imported 2 transactions"
        assert result.imported == 2
        loaded = seeded_store.load()
        assert [t.id for t in loaded] == ["a", "b"]
        assert loaded[0].created_at == clock.now

    def test_empty_import_clears_ledger(self, snapshots, seeded_store):
        """An empty transactions array empties the ledger."""
        result = snapshots.import_snapshot({"transactions": []})

        assert result.success
        assert result.message == "Successfully imported 0 transactions"
        assert seeded_store.load() == []

    def test_settings_imported(self, snapshots, seeded_store):
        """Imported settings are overlaid on the defaults."""
        snapshots.import_snapshot({
            "transactions": [],
            "settings": {"baseCurrency": "USD"},
        })
        settings = seeded_store.load_settings()
        assert settings.base_currency == "USD"
        assert settings.usd_rate == 1200

    def test_settings_absent_keeps_current(self, snapshots, seeded_store):
        """A document without settings keeps the current ones."""
        seeded_store.update_setting("theme", "dark")
        snapshots.import_snapshot({"transactions": []})
        assert seeded_store.load_settings().theme == "dark"

    def test_timestamps_preserved(self, snapshots, seeded_store):
        """Timestamps present in the document are kept."""
        entry = {
            **record("a"),
            "createdAt": "2026-01-01T00:00:00Z",
            "updatedAt": "2026-01-02T00:00:00Z",
        }
        snapshots.import_snapshot({"transactions": [entry]})

        txn = seeded_store.get_by_id("a")
        assert txn.created_at == datetime(2026, 1, 1, tzinfo=timezone.utc)
        assert txn.updated_at == datetime(2026, 1, 2, tzinfo=timezone.utc)

    def test_merge_upserts_by_id(self, snapshots, seeded_store):
        """Merge replaces matching ids in place and appends new ones."""
        existing = seeded_store.load()
        replacement = {**existing[0].to_record(), "description": "Evening coffee"}

        result = snapshots.import_snapshot(
            {"transactions": [replacement, record("new")]},
            mode=ImportMode.MERGE,
        )

        assert result.success
        assert result.imported == 2
        loaded = seeded_store.load()
        assert [t.id for t in loaded] == [t.id for t in existing] + ["new"]
        assert loaded[0].description == "Evening coffee"

    def test_merge_by_string_mode(self, snapshots, seeded_store):
        """The mode may be passed as a plain string."""
        snapshots.import_snapshot({"transactions": [record("x")]}, mode="merge")
        assert len(seeded_store.load()) == 5

    def test_import_audited(self, snapshots, audit_logger):
        """Accepted imports are audited with count and mode."""
        snapshots.import_snapshot({"transactions": [record("a")]})
        event = audit_logger.recent_events[0]
        assert event.event_type == AuditEventType.SNAPSHOT_IMPORTED
        assert event.details == {"transactions": 1, "mode": "replace"}


class TestImportAtomicity:
    """A failed write leaves both the ledger and the settings as they were."""

    @pytest.fixture
    def flaky_snapshots(self, flaky_store, audit_logger, clock, draft_fields):
        assert flaky_store.add(draft_fields) is not None
        assert flaky_store.save_settings({"theme": "dark"})
        return SnapshotIO(flaky_store, audit_logger=audit_logger, clock=clock)

    def test_settings_write_failure(self, flaky_snapshots, flaky_store, flaky_backend):
        """When only settings cannot be written, no transactions are imported."""
        before = flaky_store.load()
        flaky_backend.fail_on = {"financeTracker_settings"}

        result = flaky_snapshots.import_snapshot({
            "transactions": [record("a")],
            "settings": {"theme": "light"},
        })

        assert not result.success
        assert result.message == "Failed to save imported data"
        assert result.imported == 0
        assert flaky_store.load() == before
        assert flaky_store.load_settings().theme == "dark"

    def test_transactions_write_failure(self, flaky_snapshots, flaky_store, flaky_backend):
        """When transactions cannot be written, imported settings are undone."""
        before = flaky_store.load()
        flaky_backend.fail_on = {"financeTracker_transactions"}

        result = flaky_snapshots.import_snapshot({
            "transactions": [record("a")],
            "settings": {"theme": "light", "baseCurrency": "USD"},
        })

        assert not result.success
        assert flaky_store.load() == before
        settings = flaky_store.load_settings()
        assert settings.theme == "dark"
        assert settings.base_currency == "RWF"

    def test_write_failure_audited(self, flaky_snapshots, flaky_backend, audit_logger):
        """A failed write is audited as a failed import."""
        flaky_backend.fail_on = {"financeTracker_version"}

        flaky_snapshots.import_snapshot({"transactions": [record("a")]})

        event = audit_logger.recent_events[0]
        assert event.event_type == AuditEventType.IMPORT_FAILED
        assert event.error_message == "Failed to save imported data"


class TestSnapshotFiles:
    """Tests for reading and writing snapshot files."""

    def test_write_then_import_file(self, snapshots, seeded_store, tmp_path):
        """A written backup file imports back into the same ledger."""
        path = snapshots.write_file(tmp_path / "backup.json")
        before = seeded_store.load()
        seeded_store.clear()

        result = asyncio.run(snapshots.import_file(path))

        assert result.success
        assert seeded_store.load() == before

    def test_read_file_requires_json_suffix(self, snapshots, tmp_path):
        """Only .json files are read."""
        path = tmp_path / "backup.txt"
        path.write_text("{}")

        with pytest.raises(SnapshotFileError, match="JSON file"):
            snapshots.read_file(path)

    def test_read_file_missing(self, snapshots, tmp_path):
        """A missing file raises SnapshotFileError."""
        with pytest.raises(SnapshotFileError, match="Failed to read file"):
            snapshots.read_file(tmp_path / "missing.json")

    def test_read_file_invalid_json(self, snapshots, tmp_path):
        """Unparsable content raises SnapshotFileError."""
        path = tmp_path / "broken.json"
        path.write_text("{broken")

        with pytest.raises(SnapshotFileError, match="Invalid JSON"):
            snapshots.read_file(path)

    def test_import_file_invalid_json_leaves_ledger(self, snapshots, seeded_store, tmp_path):
        """A broken file leaves the ledger untouched."""
        path = tmp_path / "broken.json"
        path.write_text("{broken")

        with pytest.raises(SnapshotFileError):
            asyncio.run(snapshots.import_file(path))
        assert len(seeded_store.load()) == 4


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
