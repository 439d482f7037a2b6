"""
Tests for the ledger data structures.
"""

import pytest

from context_store.models import ContextEvent, ContextEventType, ContextVersion, TaskLedger, UpdateMode


class TestContextVersion:
    """ContextVersion is immutable; corrections produce copies."""

    def setup_method(self):
        self.version = ContextVersion(
            task_id="task_1",
            version_id="2",
            sequence=2,
            content="draft",
            created_at="2024-01-01T00:00:00",
            updated_at="2024-01-01T00:00:00",
        )

    def test_with_patch_keeps_identity(self):
        patched = self.version.with_patch("fixed", updated_at="2024-01-02T00:00:00")

        assert patched.version_id == "2"
        assert patched.sequence == 2
        assert patched.created_at == "2024-01-01T00:00:00"
        assert patched.updated_at == "2024-01-02T00:00:00"
        assert patched.content == "fixed"
        assert patched.revision == 1
        assert patched.patched is True

        # Original untouched
        assert self.version.content == "draft"
        assert self.version.revision == 0

    def test_frozen(self):
        with pytest.raises(AttributeError):
            self.version.content = "changed"

    def test_from_dict_parses_string_fields(self):
        """Redis hashes hand back every field as a string."""
        data = {
            "task_id": "task_1",
            "version_id": "2",
            "sequence": "2",
            "content": "draft",
            "created_at": "2024-01-01T00:00:00",
            "updated_at": "",
            "revision": "3",
            "patched": "1",
        }
        version = ContextVersion.from_dict(data)

        assert version.sequence == 2
        assert version.revision == 3
        assert version.patched is True
        assert version.updated_at == "2024-01-01T00:00:00"

    def test_to_dict(self):
        data = self.version.to_dict()
        assert data["version_id"] == "2"
        assert data["patched"] is False
        assert ContextVersion.from_dict(data) == self.version

    def test_token_tracks_revision(self):
        assert self.version.token == "2@0"
        assert self.version.to_dict()["token"] == "2@0"
        assert self.version.with_patch("fixed").token == "2@1"


class TestTaskLedger:
    """Ledger creation and latest-pointer fallback."""

    def _ledger_with(self, *sequences):
        ledger = TaskLedger.create("task_1", None, "v1")
        for seq in sequences:
            ledger.versions[str(seq)] = ContextVersion(
                task_id="task_1",
                version_id=str(seq),
                sequence=seq,
                content=f"v{seq}",
                created_at="t",
                updated_at="t",
            )
        ledger.next_sequence = max([1, *sequences]) + 1
        return ledger

    def test_create(self):
        ledger = TaskLedger.create("task_1", "task_0", "hello")

        assert ledger.latest_version == "1"
        assert ledger.next_sequence == 2
        assert ledger.parent_task_id == "task_0"
        assert ledger.latest().content == "hello"
        assert ledger.latest().created_at == ledger.created_at

    def test_fallback_prefers_preceding(self):
        ledger = self._ledger_with(2, 3, 5)
        assert ledger.fallback_for("5") == "3"
        assert ledger.fallback_for("3") == "2"

    def test_fallback_skips_deleted_gap(self):
        ledger = self._ledger_with(2, 3)
        del ledger.versions["2"]
        assert ledger.fallback_for("3") == "1"

    def test_fallback_uses_following_for_oldest(self):
        ledger = self._ledger_with(4, 6)
        assert ledger.fallback_for("1") == "4"

    def test_fallback_single_version(self):
        ledger = TaskLedger.create("task_1", None, "only")
        assert ledger.fallback_for("1") is None

    def test_ordered_versions(self):
        ledger = self._ledger_with(10, 2, 3)
        assert [v.version_id for v in ledger.ordered_versions()] == ["1", "2", "3", "10"]

    def test_to_dict(self):
        ledger = self._ledger_with(2)
        data = ledger.to_dict()

        assert data["version_count"] == 2
        assert [v["version_id"] for v in data["versions"]] == ["1", "2"]
        assert "versions" not in ledger.to_dict(include_versions=False)


class TestEnumsAndEvents:

    def test_update_mode_values(self):
        assert UpdateMode("supersede") is UpdateMode.SUPERSEDE
        assert UpdateMode("patch") is UpdateMode.PATCH

    def test_event_to_dict(self):
        event = ContextEvent(
            event_type=ContextEventType.LATEST_CHANGED,
            task_id="task_1",
            version_id="1",
            previous_latest="2",
            latest_version="1",
        )
        data = event.to_dict()

        assert data["event_type"] == "latest_changed"
        assert data["previous_latest"] == "2"
        assert data["event_id"].startswith("evt_")
