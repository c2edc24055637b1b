# artmeta/store.py
"""
Shared storage backend for attributes, traits, CIDs and scripts.

Mutations happen inside a transaction: a staged copy of the state is
handed out, and only replaces the live state (and is written to disk)
when the block exits without an exception.
"""

import copy
import fcntl
import json
import logging
import os
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, Any, Dict, Iterator, List

from .models import Attribute, Trait

logger = logging.getLogger(__name__)

STATE_VERSION = "1.0"


@dataclass
class RegistryState:
    """
    Everything the registry owns.

    traits and cids are indexed by attribute ID. Nothing is ever removed.

    Attributes:
        attribute_count: Monotonic attribute counter (next attribute ID)
        attributes: Attribute records, position == ID
        traits: Per attribute, trait records, position == trait ID - 1
        cids: Per attribute, CID history (last entry is current)
        scripts: Generation script references, oldest first
    """
    attribute_count: int = 0
    attributes: List[Attribute] = field(default_factory=list)
    traits: List[List[Trait]] = field(default_factory=list)
    cids: List[List[str]] = field(default_factory=list)
    scripts: List[str] = field(default_factory=list)

    def copy(self) -> "RegistryState":
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": STATE_VERSION,
            "attribute_count": self.attribute_count,
            "attributes": [a.to_dict() for a in self.attributes],
            "traits": [[t.to_dict() for t in ts] for ts in self.traits],
            "cids": [list(history) for history in self.cids],
            "scripts": list(self.scripts),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RegistryState":
        state = cls(
            attribute_count=data["attribute_count"],
            attributes=[Attribute.from_dict(a) for a in data["attributes"]],
            traits=[[Trait.from_dict(t) for t in ts] for ts in data["traits"]],
            cids=[list(history) for history in data["cids"]],
            scripts=list(data["scripts"]),
        )
        counts = {len(state.attributes), len(state.traits), len(state.cids)}
        if counts != {state.attribute_count}:
            raise ValueError(
                f"Inconsistent registry state: attribute_count={state.attribute_count}, "
                f"attributes={len(state.attributes)}, traits={len(state.traits)}, "
                f"cids={len(state.cids)}"
            )
        return state


class RegistryStore:
    """
    Holds registry state, optionally persisted as JSON.

    Structure:
        store_dir/
            registry.json     # Full registry state
            registry.lock     # Exclusive lock held by the writing transaction

    Several stores (in one process or many) may share a directory. Each
    transaction takes the directory lock and reloads registry.json before
    staging, so writers never work from a stale snapshot.
    """

    def __init__(self, store_dir: Path | str = None):
        """
        Args:
            store_dir: Directory for registry.json. None keeps state in memory only.
                The directory is created on the first commit.
        """
        self.store_dir = Path(store_dir) if store_dir is not None else None
        self._state = RegistryState()
        self._lock = threading.RLock()
        self._lock_handle: IO[str] = None
        if self.store_dir is not None:
            self._load()

    def _state_path(self) -> Path:
        return self.store_dir / "registry.json"

    def _lock_path(self) -> Path:
        return self.store_dir / "registry.lock"

    def _load(self):
        """Load state from disk."""
        state_path = self._state_path()
        if state_path.exists():
            with open(state_path) as f:
                data = json.load(f)
            self._state = RegistryState.from_dict(data)
            logger.debug(f"Loaded registry with {self._state.attribute_count} attributes")

    def _save(self, state: RegistryState):
        """Write state to disk atomically."""
        state_path = self._state_path()
        tmp_path = state_path.with_suffix(".json.tmp")
        with open(tmp_path, "w") as f:
            json.dump(state.to_dict(), f, indent=2)
        os.replace(tmp_path, state_path)
        logger.debug(f"Saved registry state to {state_path}")

    @contextmanager
    def _directory_lock(self) -> Iterator[None]:
        """
        Hold the exclusive inter-process lock on the store directory.

        Re-entering from the thread that already holds it is a no-op.
        """
        if self.store_dir is None or self._lock_handle is not None:
            yield
            return
        self.store_dir.mkdir(parents=True, exist_ok=True)
        with open(self._lock_path(), "a+") as handle:
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX)
            self._lock_handle = handle
            try:
                yield
            finally:
                self._lock_handle = None
                fcntl.flock(handle.fileno(), fcntl.LOCK_UN)

    @property
    def state(self) -> RegistryState:
        """Committed state as of the last load or commit. Callers must not mutate it."""
        return self._state

    def refresh(self):
        """Pick up commits made through other stores on the same directory."""
        if self.store_dir is not None:
            with self._lock:
                self._load()

    @contextmanager
    def transaction(self) -> Iterator[RegistryState]:
        """
        Stage a mutation.

        Takes the thread lock and the directory lock, reloads the committed
        state from disk, and yields a copy of it. If the block raises, the
        copy is dropped and the exception propagates; otherwise the copy is
        saved and becomes the committed state. Both locks are held until
        the block exits, so other writers wait for the whole mutation.
        """
        with self._lock, self._directory_lock():
            if self.store_dir is not None:
                self._load()
            staged = self._state.copy()
            yield staged
            if self.store_dir is not None:
                self._save(staged)
            self._state = staged
