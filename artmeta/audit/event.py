# artmeta/audit/event.py
"""
Audit events emitted by the registry.

Event types:
- AttributeCreated: {attribute_id, name, script}
- TraitAdded: {attribute_id, trait_id, name, rarity}
- CIDUpdated: {attribute_id, cid}

Sinks receive events in mutation order, once per mutation, while the
mutation is still staged. A sink that raises aborts the mutation.
"""

import json
import logging
import os
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from ..models import Rarity
from .actor import Actor
from .signatures import sign_event, verify_event

logger = logging.getLogger(__name__)

ATTRIBUTE_CREATED = "AttributeCreated"
TRAIT_ADDED = "TraitAdded"
CID_UPDATED = "CIDUpdated"


@dataclass
class AuditEvent:
    """
    A single audit record.

    Attributes:
        event_type: AttributeCreated, TraitAdded or CIDUpdated
        data: Event fields
        sequence: Position in the log (assigned by the sink)
        timestamp: ISO timestamp of creation
        signature: Signature block (added by a signing sink)
    """
    event_type: str
    data: Dict[str, Any]
    sequence: Optional[int] = None
    timestamp: str = field(default_factory=lambda: time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()))
    signature: Optional[Dict[str, Any]] = None

    @property
    def attribute_id(self) -> Optional[int]:
        return self.data.get("attribute_id")

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for storage."""
        return {
            "event_type": self.event_type,
            "data": self.data,
            "sequence": self.sequence,
            "timestamp": self.timestamp,
            "signature": self.signature,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AuditEvent":
        """Deserialize from storage."""
        return cls(
            event_type=data["event_type"],
            data=data["data"],
            sequence=data.get("sequence"),
            timestamp=data.get("timestamp", ""),
            signature=data.get("signature"),
        )


def attribute_created(attribute_id: int, name: str, script: str) -> AuditEvent:
    return AuditEvent(
        event_type=ATTRIBUTE_CREATED,
        data={"attribute_id": attribute_id, "name": name, "script": script},
    )


def trait_added(attribute_id: int, trait_id: int, name: str, rarity: Rarity) -> AuditEvent:
    return AuditEvent(
        event_type=TRAIT_ADDED,
        data={
            "attribute_id": attribute_id,
            "trait_id": trait_id,
            "name": name,
            "rarity": rarity.value,
        },
    )


def cid_updated(attribute_id: int, cid: str) -> AuditEvent:
    return AuditEvent(
        event_type=CID_UPDATED,
        data={"attribute_id": attribute_id, "cid": cid},
    )


class EventSink(ABC):
    """Receives audit events from the registry."""

    @abstractmethod
    def emit(self, event: AuditEvent) -> None:
        pass

    def emit_many(self, events: Iterable[AuditEvent]) -> None:
        """Deliver several events in order."""
        for event in events:
            self.emit(event)


class MemorySink(EventSink):
    """Keeps events in a list."""

    def __init__(self):
        self.events: List[AuditEvent] = []

    def emit(self, event: AuditEvent) -> None:
        if event.sequence is None:
            event.sequence = len(self.events)
        self.events.append(event)

    def __len__(self) -> int:
        return len(self.events)


class EventLog(EventSink):
    """
    Persistent append-only audit log.

    Events are numbered in arrival order and, when a signer is set,
    signed with the signer's key. A batch is written with one atomic
    replace of events.json and only becomes visible once that write
    succeeds; a failed write leaves the log as it was.

    Structure:
        store_dir/
            events.json
    """

    def __init__(self, store_dir: Path | str, signer: Actor = None):
        self.store_dir = Path(store_dir)
        self.signer = signer
        self._events: List[AuditEvent] = []
        self._load()

    def _log_path(self) -> Path:
        return self.store_dir / "events.json"

    def _load(self):
        """Load events from disk."""
        log_path = self._log_path()
        if log_path.exists():
            with open(log_path) as f:
                data = json.load(f)
            self._events = [AuditEvent.from_dict(e) for e in data.get("events", [])]

    def _save(self, events: List[AuditEvent]):
        """Write events to disk atomically."""
        self.store_dir.mkdir(parents=True, exist_ok=True)
        log_path = self._log_path()
        tmp_path = log_path.with_suffix(".json.tmp")
        data = {
            "version": "1.0",
            "events": [e.to_dict() for e in events],
        }
        with open(tmp_path, "w") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp_path, log_path)

    def refresh(self):
        """Pick up events written through other logs on the same directory."""
        self._load()

    def emit(self, event: AuditEvent) -> None:
        """Append an event to the log."""
        self.emit_many([event])

    def emit_many(self, events: Iterable[AuditEvent]) -> None:
        """Append several events with a single write."""
        self._load()
        staged = list(self._events)
        for event in events:
            event.sequence = len(staged)
            if self.signer is not None:
                sign_event(event, self.signer)
            staged.append(event)
        if len(staged) == len(self._events):
            return
        self._save(staged)
        for event in staged[len(self._events):]:
            logger.debug(f"Logged {event.event_type} #{event.sequence}")
        self._events = staged

    def list(self) -> List[AuditEvent]:
        """List all events, oldest first."""
        return list(self._events)

    def find_by_type(self, event_type: str) -> List[AuditEvent]:
        return [e for e in self._events if e.event_type == event_type]

    def find_by_attribute(self, attribute_id: int) -> List[AuditEvent]:
        return [e for e in self._events if e.attribute_id == attribute_id]

    def verify_all(self, actor: Actor = None) -> List[AuditEvent]:
        """
        Check every event signature.

        Args:
            actor: Identity whose key should have signed (defaults to the signer)

        Returns:
            Events whose signature is missing or invalid
        """
        actor = actor or self.signer
        if actor is None:
            raise ValueError("No actor to verify signatures against")
        return [e for e in self._events if not verify_event(e, actor)]

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self):
        return iter(self._events)
