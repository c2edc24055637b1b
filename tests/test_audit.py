# tests/test_audit.py
"""Tests for audit events, the event log and signatures."""

import tempfile
from pathlib import Path

import pytest

from artmeta import MetadataRegistry, Rarity, RoleTable
from artmeta.audit import (
    ATTRIBUTE_CREATED,
    CID_UPDATED,
    TRAIT_ADDED,
    Actor,
    ActorStore,
    AuditEvent,
    EventLog,
    EventSink,
    attribute_created,
    cid_updated,
    sign_event,
    trait_added,
    verify_event,
)
from artmeta.store import RegistryStore


class RecordingSink(EventSink):
    """Sink that only implements emit(), to exercise the default emit_many."""

    def __init__(self):
        self.received = []

    def emit(self, event):
        self.received.append(event)


class FlakySink(EventSink):
    """Sink that raises while `failing` is set."""

    def __init__(self):
        self.failing = False
        self.received = []

    def emit(self, event):
        if self.failing:
            raise OSError("sink unavailable")
        self.received.append(event)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture(scope="module")
def signer():
    """Key generation is slow, share one actor per module."""
    return Actor.create("registry", "Registry signer")


class TestEventConstructors:
    """Test the event helper functions."""

    def test_attribute_created(self):
        event = attribute_created(0, "Background", "gen-v1")
        assert event.event_type == ATTRIBUTE_CREATED
        assert event.data == {"attribute_id": 0, "name": "Background", "script": "gen-v1"}
        assert event.sequence is None
        assert event.signature is None

    def test_trait_added(self):
        event = trait_added(2, 7, "Laser", Rarity.LEGENDARY)
        assert event.event_type == TRAIT_ADDED
        assert event.attribute_id == 2
        assert event.data["rarity"] == "legendary"

    def test_cid_updated(self):
        event = cid_updated(1, "Qm" + "a" * 44)
        assert event.event_type == CID_UPDATED
        assert event.data == {"attribute_id": 1, "cid": "Qm" + "a" * 44}

    def test_dict_roundtrip(self):
        event = trait_added(0, 1, "Forest", Rarity.COMMON)
        event.sequence = 4
        restored = AuditEvent.from_dict(event.to_dict())
        assert restored == event


class TestEventLog:
    """Test the persistent event log."""

    def test_sequence_numbers(self, temp_dir):
        log = EventLog(temp_dir)
        log.emit(attribute_created(0, "Background", "gen-v1"))
        log.emit_many([trait_added(0, 1, "A", Rarity.COMMON), cid_updated(0, "cid")])
        assert [e.sequence for e in log] == [0, 1, 2]

    def test_persistence(self, temp_dir):
        log = EventLog(temp_dir)
        log.emit(attribute_created(0, "Background", "gen-v1"))
        log.emit(cid_updated(0, "cid"))

        reloaded = EventLog(temp_dir)
        assert len(reloaded) == 2
        assert reloaded.list()[1].data == {"attribute_id": 0, "cid": "cid"}

    def test_queries(self, temp_dir):
        log = EventLog(temp_dir)
        log.emit_many([
            attribute_created(0, "Background", "gen-v1"),
            cid_updated(0, "cid-a"),
            attribute_created(1, "Eyes", "gen-v2"),
            cid_updated(1, "cid-b"),
        ])
        assert [e.data["cid"] for e in log.find_by_type(CID_UPDATED)] == ["cid-a", "cid-b"]
        assert [e.event_type for e in log.find_by_attribute(1)] == [ATTRIBUTE_CREATED, CID_UPDATED]

    def test_signed_log_verifies(self, temp_dir, signer):
        log = EventLog(temp_dir, signer=signer)
        log.emit_many([attribute_created(0, "Background", "gen-v1"), cid_updated(0, "cid")])
        assert all(e.signature for e in log)
        assert log.verify_all() == []

        # Signatures survive a reload and verify with the public key only
        reloaded = EventLog(temp_dir)
        assert reloaded.verify_all(signer.public_copy()) == []

    def test_tampered_event_detected(self, temp_dir, signer):
        log = EventLog(temp_dir, signer=signer)
        log.emit(cid_updated(0, "cid-a"))
        log.emit(cid_updated(0, "cid-b"))
        log.list()[0].data["cid"] = "cid-x"
        invalid = log.verify_all()
        assert [e.sequence for e in invalid] == [0]

    def test_unsigned_log_needs_actor(self, temp_dir):
        log = EventLog(temp_dir)
        with pytest.raises(ValueError):
            log.verify_all()

    def test_write_leaves_no_temp_file(self, temp_dir):
        log = EventLog(temp_dir)
        log.emit(cid_updated(0, "cid"))
        assert (temp_dir / "events.json").exists()
        assert not (temp_dir / "events.json.tmp").exists()

    def test_failed_write_keeps_log(self, temp_dir):
        """A batch that cannot be written is not appended, in memory or on disk."""
        log = EventLog(temp_dir)
        log.emit(cid_updated(0, "cid-a"))
        (temp_dir / "events.json.tmp").mkdir()

        with pytest.raises(OSError):
            log.emit_many([cid_updated(0, "cid-b"), cid_updated(0, "cid-c")])

        assert [e.data["cid"] for e in log] == ["cid-a"]
        assert [e.data["cid"] for e in EventLog(temp_dir)] == ["cid-a"]

    def test_created_lazily(self, temp_dir):
        log_dir = temp_dir / "log"
        log = EventLog(log_dir)
        assert len(log) == 0
        assert not log_dir.exists()
        log.emit(cid_updated(0, "cid"))
        assert len(EventLog(log_dir)) == 1

    def test_appends_after_other_writer(self, temp_dir):
        """Sequence numbers continue from what is on disk."""
        first = EventLog(temp_dir)
        second = EventLog(temp_dir)
        first.emit(cid_updated(0, "cid-a"))
        second.emit(cid_updated(0, "cid-b"))
        assert [e.sequence for e in second] == [0, 1]
        first.refresh()
        assert [e.data["cid"] for e in first] == ["cid-a", "cid-b"]


class TestSignatures:
    """Test event signing."""

    def test_sign_and_verify(self, signer):
        event = cid_updated(0, "cid")
        event.sequence = 0
        sign_event(event, signer)
        assert event.signature["creator"] == signer.key_id
        assert verify_event(event, signer)

    def test_unsigned_event_fails(self, signer):
        assert not verify_event(cid_updated(0, "cid"), signer)

    def test_other_actor_fails(self, signer):
        event = sign_event(cid_updated(0, "cid"), signer)
        other = Actor.create("someone-else")
        assert not verify_event(event, other)

    def test_sequence_is_covered(self, signer):
        """Reordering the log invalidates the signature."""
        event = cid_updated(0, "cid")
        event.sequence = 3
        sign_event(event, signer)
        event.sequence = 4
        assert not verify_event(event, signer)

    def test_public_copy_cannot_sign(self, signer):
        with pytest.raises(ValueError):
            sign_event(cid_updated(0, "cid"), signer.public_copy())


class TestActorStore:
    """Test signing identity storage."""

    def test_get_or_create_persists(self, temp_dir):
        store = ActorStore(temp_dir)
        actor = store.get_or_create("registry")
        assert store.get_or_create("registry") is actor

        reloaded = ActorStore(temp_dir)
        assert "registry" in reloaded
        assert reloaded.get("registry").public_key == actor.public_key

    def test_duplicate_create_rejected(self, temp_dir):
        store = ActorStore(temp_dir)
        store.create("registry")
        with pytest.raises(ValueError):
            store.create("registry")


class TestRegistryEmission:
    """Test how the registry delivers events to sinks."""

    def test_default_emit_many(self):
        sink = RecordingSink()
        registry = MetadataRegistry(RoleTable({"admin": ["alice"]}), sink=sink)
        registry.create_attribute(
            "alice", "Background", 1, ["Forest"], [Rarity.COMMON],
            cid="Qm" + "a" * 44, generation_script="gen-v1",
        )
        assert [e.event_type for e in sink.received] == [ATTRIBUTE_CREATED, TRAIT_ADDED, CID_UPDATED]

    def test_events_match_persisted_state(self, temp_dir, signer):
        """Logged events describe exactly what the registry stored."""
        registry = MetadataRegistry.open(temp_dir, access=RoleTable({"admin": ["alice"]}), signer=signer)
        registry.create_attribute(
            "alice", "Background", 2, ["Forest", "Desert"], ["common", "rare"],
            cid="Qm" + "a" * 44, generation_script="gen-v1",
        )
        registry.add_single_trait("alice", 0, 3, "Ocean", "epic")

        log = registry.sink
        traits = [
            (e.data["trait_id"], e.data["name"], e.data["rarity"])
            for e in log.find_by_type(TRAIT_ADDED)
        ]
        stored = [(t.id, t.name, t.rarity.value) for t in registry.list_traits(0)]
        assert traits == stored
        assert log.verify_all() == []

    def test_failing_sink_aborts_mutation(self, temp_dir):
        """A sink error rolls the mutation back, so a retry does not duplicate it."""
        sink = FlakySink()
        registry = MetadataRegistry(
            RoleTable({"admin": ["alice"]}), store=RegistryStore(temp_dir), sink=sink,
        )
        registry.create_attribute(
            "alice", "Background", 0, [], [], cid="Qm" + "a" * 44, generation_script="gen-v1",
        )

        sink.failing = True
        with pytest.raises(OSError):
            registry.add_traits("alice", 0, 1, ["X"], ["common"])
        assert registry.trait_count(0) == 0
        assert RegistryStore(temp_dir).state.traits == [[]]

        sink.failing = False
        assert registry.add_traits("alice", 0, 1, ["X"], ["common"]) == [1]
        assert [e.event_type for e in sink.received] == [ATTRIBUTE_CREATED, CID_UPDATED, TRAIT_ADDED]

    def test_failing_sink_on_create_leaves_nothing(self, temp_dir):
        sink = FlakySink()
        sink.failing = True
        registry = MetadataRegistry(
            RoleTable({"admin": ["alice"]}), store=RegistryStore(temp_dir), sink=sink,
        )
        with pytest.raises(OSError):
            registry.create_attribute(
                "alice", "Background", 1, ["Forest"], ["common"],
                cid="Qm" + "a" * 44, generation_script="gen-v1",
            )
        assert registry.attribute_count == 0
        assert not (temp_dir / "registry.json").exists()

    def test_unwritable_log_aborts_mutation(self, temp_dir):
        access = RoleTable({"admin": ["alice"]})
        registry = MetadataRegistry.open(temp_dir, access=access)
        registry.create_attribute(
            "alice", "Background", 0, [], [], cid="Qm" + "a" * 44, generation_script="gen-v1",
        )
        (temp_dir / "events.json.tmp").mkdir()

        with pytest.raises(OSError):
            registry.update_cid("alice", 0, "Qm" + "b" * 44)

        reopened = MetadataRegistry.open(temp_dir, access=access)
        assert reopened.cid_history(0) == ["Qm" + "a" * 44]
        assert len(reopened.sink) == 2
