# artmeta/audit/__init__.py
"""
Audit trail for registry mutations.

Core concepts:
- AuditEvent: One record per successful mutation
- EventSink: Where the registry delivers events (EventLog, MemorySink)
- Actor: Signing identity whose key signs logged events
"""

from .actor import Actor, ActorStore
from .event import (
    ATTRIBUTE_CREATED,
    CID_UPDATED,
    TRAIT_ADDED,
    AuditEvent,
    EventLog,
    EventSink,
    MemorySink,
    attribute_created,
    cid_updated,
    trait_added,
)
from .signatures import sign_event, verify_event

__all__ = [
    "Actor",
    "ActorStore",
    "AuditEvent",
    "EventSink",
    "EventLog",
    "MemorySink",
    "ATTRIBUTE_CREATED",
    "TRAIT_ADDED",
    "CID_UPDATED",
    "attribute_created",
    "trait_added",
    "cid_updated",
    "sign_event",
    "verify_event",
]
