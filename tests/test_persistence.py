"""
Tests for snapshot persistence (text_store.persistence) and store reloads.
"""

import json

import pytest

from text_store.errors import ConfigurationError, IntegrityFault, PersistenceError
from text_store.languages import LanguageCode
from text_store.models import LocalizedEntry, MultiLangRecord, TextRecord
from text_store.persistence import JsonSnapshotGateway, MemoryGateway, PersistenceGateway
from text_store.store import TextStore


def _snapshot_item(record_id, title, entries=()):
    return {
        "model": {
            "id": record_id,
            "title": title,
            "description": None,
            "createdAt": "2024-01-01T12:00:00+00:00",
            "createdBy": "alice",
            "modifiedAt": "2024-01-01T12:00:00+00:00",
            "modifiedBy": "alice",
        },
        "localizedTexts": [
            {"id": entry_id, "languageCode": code, "text": text}
            for entry_id, code, text in entries
        ],
    }


class TestGatewayProtocol:
    """Both gateways satisfy the PersistenceGateway protocol."""

    def test_json_gateway(self, snapshot_path):
        assert isinstance(JsonSnapshotGateway(snapshot_path), PersistenceGateway)

    def test_memory_gateway(self):
        assert isinstance(MemoryGateway(), PersistenceGateway)


class TestJsonSnapshotGateway:
    """Tests for the JSON file gateway."""

    def test_missing_file_loads_empty(self, snapshot_path):
        assert JsonSnapshotGateway(snapshot_path).load() == []

    def test_save_creates_parent_directories(self, snapshot_path):
        JsonSnapshotGateway(snapshot_path).save([])

        assert snapshot_path.exists()
        assert json.loads(snapshot_path.read_text(encoding="utf-8")) == []

    def test_save_leaves_no_temporary_files(self, snapshot_path):
        gateway = JsonSnapshotGateway(snapshot_path)
        gateway.save([MultiLangRecord(TextRecord(id="r1", title="A"))])
        gateway.save([MultiLangRecord(TextRecord(id="r1", title="B"))])

        assert [p.name for p in snapshot_path.parent.iterdir()] == ["texts.json"]

    def test_non_ascii_is_written_verbatim(self, snapshot_path):
        record = MultiLangRecord(
            TextRecord(id="r1", title="Grüße"),
            [LocalizedEntry(id="e1", language_code=LanguageCode.RU, text="Привет")],
        )
        JsonSnapshotGateway(snapshot_path).save([record])

        raw = snapshot_path.read_text(encoding="utf-8")
        assert "Grüße" in raw
        assert "Привет" in raw

    def test_invalid_json(self, snapshot_path):
        snapshot_path.parent.mkdir(parents=True)
        snapshot_path.write_text("{not json", encoding="utf-8")

        with pytest.raises(PersistenceError, match="Invalid JSON"):
            JsonSnapshotGateway(snapshot_path).load()

    def test_top_level_must_be_list(self, snapshot_path):
        snapshot_path.parent.mkdir(parents=True)
        snapshot_path.write_text('{"model": {}}', encoding="utf-8")

        with pytest.raises(PersistenceError, match="JSON list"):
            JsonSnapshotGateway(snapshot_path).load()

    def test_malformed_element(self, snapshot_path):
        snapshot_path.parent.mkdir(parents=True)
        snapshot_path.write_text('[{"title": "no model"}]', encoding="utf-8")

        with pytest.raises(PersistenceError) as exc_info:
            JsonSnapshotGateway(snapshot_path).load()
        assert exc_info.value.context["position"] == 0

    def test_unknown_language_code(self, snapshot_path):
        snapshot_path.parent.mkdir(parents=True)
        data = [_snapshot_item("r1", "A", [("e1", "XX", "Hello")])]
        snapshot_path.write_text(json.dumps(data), encoding="utf-8")

        with pytest.raises(PersistenceError):
            JsonSnapshotGateway(snapshot_path).load()

    def test_two_entries_of_one_language(self, snapshot_path):
        snapshot_path.parent.mkdir(parents=True)
        data = [_snapshot_item("r1", "A", [("e1", "EN", "Hello"), ("e2", "EN", "Hi")])]
        snapshot_path.write_text(json.dumps(data), encoding="utf-8")

        with pytest.raises(IntegrityFault):
            JsonSnapshotGateway(snapshot_path).load()

    def test_unwritable_target(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("file, not a directory", encoding="utf-8")

        with pytest.raises(PersistenceError):
            JsonSnapshotGateway(blocker / "texts.json").save([])


class TestRoundTrip:
    """Saving and loading reproduces the same records."""

    def test_json_round_trip(self, json_store, snapshot_path, entry):
        greeting = json_store.create(TextRecord(title="Greeting", description="hi"))
        json_store.create_entry(greeting.id, entry("EN", "Hello"))
        json_store.create_entry(greeting.id, entry("DE", "Hallo"))
        json_store.create(TextRecord(title="Empty"))
        before = json_store.export()

        reopened = TextStore(gateway=JsonSnapshotGateway(snapshot_path))

        assert reopened.export() == before
        assert reopened.entry_count == 2
        assert reopened.check_integrity().is_healthy

    def test_memory_round_trip(self, store, gateway, greeting, entry):
        created = store.create_entry(greeting.id, entry("FR", "Bonjour"))

        reopened = TextStore(gateway=gateway)

        assert reopened.read(greeting.id) == greeting
        assert reopened.read_entry(greeting.id, created.id) == created

    def test_audit_fields_survive(self, json_store, snapshot_path):
        created = json_store.create(TextRecord(title="Greeting"))

        reopened = TextStore(gateway=JsonSnapshotGateway(snapshot_path))
        loaded = reopened.read(created.id)

        assert loaded.created_at == created.created_at
        assert loaded.created_by == "alice"
        assert loaded.modified_at == created.modified_at

    def test_snapshot_follows_every_mutation(self, json_store, snapshot_path, entry):
        greeting = json_store.create(TextRecord(title="Greeting"))
        created = json_store.create_entry(greeting.id, entry("EN", "Hello"))
        json_store.delete_entry(greeting.id, created.id)

        data = json.loads(snapshot_path.read_text(encoding="utf-8"))
        assert data[0]["localizedTexts"] == []


class TestReload:
    """Building the indices from a snapshot."""

    def test_reload_rebuilds_entry_index(self):
        gateway = MemoryGateway()
        gateway.snapshot = [
            _snapshot_item("r1", "A", [("e1", "EN", "Hello"), ("e2", "DE", "Hallo")]),
            _snapshot_item("r2", "B", [("e3", "EN", "Bye")]),
        ]

        store = TextStore(gateway=gateway)

        assert len(store) == 2
        assert store.entry_owner("e2") == "r1"
        assert store.entry_owner("e3") == "r2"
        assert store.read_entry("r1", "e1").text == "Hello"

    def test_duplicate_record_id(self):
        gateway = MemoryGateway()
        gateway.snapshot = [_snapshot_item("r1", "A"), _snapshot_item("r1", "B")]

        with pytest.raises(IntegrityFault):
            TextStore(gateway=gateway)

    def test_entry_id_shared_by_two_records(self):
        gateway = MemoryGateway()
        gateway.snapshot = [
            _snapshot_item("r1", "A", [("e1", "EN", "Hello")]),
            _snapshot_item("r2", "B", [("e1", "DE", "Hallo")]),
        ]

        with pytest.raises(IntegrityFault) as exc_info:
            TextStore(gateway=gateway)
        assert exc_info.value.context["text_ids"] == ["r1", "r2"]

    def test_record_without_id(self):
        gateway = MemoryGateway()
        gateway.snapshot = [_snapshot_item("", "A")]

        with pytest.raises(IntegrityFault):
            TextStore(gateway=gateway)

    def test_failed_reload_keeps_current_indices(self, store, gateway, greeting):
        gateway.snapshot = [_snapshot_item("r1", "A"), _snapshot_item("r1", "B")]

        with pytest.raises(IntegrityFault):
            store.reload()

        assert store.read(greeting.id) == greeting

    def test_reload_logs_count(self, caplog):
        caplog.set_level("INFO", logger="text_store")
        gateway = MemoryGateway()
        gateway.snapshot = [_snapshot_item("r1", "A"), _snapshot_item("r2", "B")]

        TextStore(gateway=gateway)

        assert "2 Texts imported." in caplog.text


class TestNonPersistentStore:
    """persistent=False seeds from the gateway but never writes."""

    def test_seeded_but_not_saved(self):
        gateway = MemoryGateway([MultiLangRecord(TextRecord(id="r1", title="A"))])
        store = TextStore(gateway=gateway, persistent=False)

        store.create(TextRecord(title="B"))

        assert len(store) == 2
        assert gateway.save_count == 0
        assert len(gateway.snapshot) == 1

    def test_persistent_without_gateway(self):
        with pytest.raises(ConfigurationError):
            TextStore(gateway=None, persistent=True)


class FailingGateway(MemoryGateway):
    """MemoryGateway whose save raises once `failing` is switched on."""

    def __init__(self):
        super().__init__()
        self.failing = False

    def save(self, records):
        if self.failing:
            raise PersistenceError("disk full")
        super().save(records)


class TestFailedSave:
    """A mutation whose snapshot write fails leaves no trace in memory."""

    @pytest.fixture
    def failing(self):
        return FailingGateway()

    @pytest.fixture
    def failing_store(self, failing, clock):
        return TextStore(gateway=failing, actor_provider=lambda: "alice", clock=clock)

    def test_create_is_undone(self, failing, failing_store):
        failing.failing = True

        with pytest.raises(PersistenceError):
            failing_store.create(TextRecord(title="Greeting"))

        assert len(failing_store) == 0
        assert failing_store.list() == []

    def test_update_is_undone(self, failing, failing_store):
        text = failing_store.create(TextRecord(title="Greeting", description="hi"))
        failing.failing = True

        with pytest.raises(PersistenceError):
            failing_store.update(text.id, TextRecord(title="Hello"))

        assert failing_store.read(text.id) == text

    def test_delete_is_undone(self, failing, failing_store, entry):
        text = failing_store.create(TextRecord(title="Greeting"))
        created = failing_store.create_entry(text.id, entry("EN", "Hello"))
        failing.failing = True

        with pytest.raises(PersistenceError):
            failing_store.delete(text.id)

        assert failing_store.read(text.id) == text
        assert failing_store.read_entry(text.id, created.id) == created
        assert failing_store.check_integrity().is_healthy

    def test_create_entry_is_undone(self, failing, failing_store, entry):
        text = failing_store.create(TextRecord(title="Greeting"))
        failing.failing = True

        with pytest.raises(PersistenceError):
            failing_store.create_entry(text.id, entry("EN", "Hello"))

        assert failing_store.list_entries(text.id) == []
        assert failing_store.entry_count == 0

        # The language is still free once writes succeed again
        failing.failing = False
        assert failing_store.create_entry(text.id, entry("EN", "Hello")).text == "Hello"

    def test_update_entry_is_undone(self, failing, failing_store, entry):
        text = failing_store.create(TextRecord(title="Greeting"))
        created = failing_store.create_entry(text.id, entry("EN", "Hello"))
        failing.failing = True

        with pytest.raises(PersistenceError):
            failing_store.update_entry(text.id, created.id, LocalizedEntry(text="Hi"))

        assert failing_store.read_entry(text.id, created.id) == created
        assert failing_store.check_integrity().is_healthy

    def test_delete_entry_is_undone(self, failing, failing_store, entry):
        text = failing_store.create(TextRecord(title="Greeting"))
        ids = [
            failing_store.create_entry(text.id, entry(code, word)).id
            for code, word in [("EN", "Hello"), ("DE", "Hallo"), ("FR", "Bonjour")]
        ]
        failing.failing = True

        with pytest.raises(PersistenceError):
            failing_store.delete_entry(text.id, ids[1])

        assert [e.id for e in failing_store.export()[0]] == ids
        assert failing_store.entry_owner(ids[1]) == text.id
        assert failing_store.check_integrity().is_healthy

    def test_snapshot_keeps_last_good_state(self, failing, failing_store):
        failing_store.create(TextRecord(title="Greeting"))
        failing.failing = True

        with pytest.raises(PersistenceError):
            failing_store.create(TextRecord(title="Lost"))

        assert [item["model"]["title"] for item in failing.snapshot] == ["Greeting"]
        assert [t.title for t in failing_store.list()] == ["Greeting"]
