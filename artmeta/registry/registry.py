# artmeta/registry/registry.py
"""
Metadata registry for a generative-art collection.

The registry owns:
- Attributes: visual layers, dense zero-based IDs
- Traits: per attribute, dense one-based IDs with a rarity tier
- CID ledger: per attribute, append-only history of asset bundle CIDs
- Generation scripts: append-only list, one entry per created attribute

Every mutation runs as:
    permission gate -> validation -> staged mutation -> events -> commit

A failing mutation leaves no trace: the staged state is dropped and no
event is delivered. Events reach the sink before the state is saved, so a
sink that raises also aborts the mutation.
"""

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from ..access import AccessControl, RoleTable, require_admin
from ..audit import (
    Actor,
    AuditEvent,
    EventLog,
    EventSink,
    MemorySink,
    attribute_created,
    cid_updated,
    trait_added,
)
from ..config import RegistryConfig
from ..errors import (
    BatchSizeError,
    EmptyValueError,
    InvalidCIDError,
    LengthMismatchError,
    NonSequentialTraitError,
    UnknownAttributeError,
    ValidationError,
)
from ..models import Attribute, Rarity, Trait
from ..store import RegistryState, RegistryStore

logger = logging.getLogger(__name__)

# Placeholder in update_multiple_cids meaning "leave this attribute alone"
SKIP_CID = ""


def _require_text(value: Any, what: str) -> str:
    if not isinstance(value, str) or not value:
        raise EmptyValueError(f"{what} must be a non-empty string")
    return value


def _is_index(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class MetadataRegistry:
    """
    Attribute, trait and CID registry.

    Usage:
        registry = MetadataRegistry(RoleTable({"admin": ["alice"]}))
        bg = registry.create_attribute(
            "alice", "Background",
            2, ["Forest", "Desert"], [Rarity.COMMON, Rarity.RARE],
            cid="Qm...", generation_script="gen-v1",
        )
        registry.add_single_trait("alice", bg, 3, "Ocean", Rarity.LEGENDARY)
    """

    def __init__(
        self,
        access: AccessControl,
        store: RegistryStore = None,
        sink: EventSink = None,
        config: RegistryConfig = None,
    ):
        """
        Args:
            access: Permission gate consulted before every mutation
            store: State backend (in-memory if not given)
            sink: Receives audit events (in-memory if not given)
            config: Batch and CID limits
        """
        self.access = access
        self.store = store if store is not None else RegistryStore()
        self.sink = sink if sink is not None else MemorySink()
        self.config = config or RegistryConfig()

    @classmethod
    def open(
        cls,
        registry_dir: Path | str,
        access: AccessControl = None,
        signer: Actor = None,
    ) -> "MetadataRegistry":
        """
        Open a registry directory.

        Structure:
            registry_dir/
                registry.json     # State
                events.json       # Audit log
                config.yaml       # Optional limits
                roles.json        # Optional role table (used if access is None)

        Nothing is written until the first mutation.
        """
        registry_dir = Path(registry_dir)

        config_path = registry_dir / "config.yaml"
        config = RegistryConfig.from_file(config_path) if config_path.exists() else RegistryConfig()

        if access is None:
            roles_path = registry_dir / "roles.json"
            access = RoleTable.from_file(roles_path) if roles_path.exists() else RoleTable()

        return cls(
            access=access,
            store=RegistryStore(registry_dir),
            sink=EventLog(registry_dir, signer=signer),
            config=config,
        )

    @contextmanager
    def _mutation(self, caller: str, operation: str) -> Iterator[Tuple[RegistryState, List[AuditEvent]]]:
        """Run one top-level mutation: gate, transaction, event delivery, commit."""
        require_admin(self.access, caller)
        events: List[AuditEvent] = []
        try:
            with self.store.transaction() as state:
                yield state, events
                self.sink.emit_many(events)
        except ValidationError as e:
            logger.warning(f"Rejected {operation} from {caller!r}: {e}")
            raise

    # -- validation ---------------------------------------------------------

    def _check_attribute(self, state: RegistryState, attribute_id: int) -> None:
        if not _is_index(attribute_id) or not 0 <= attribute_id < state.attribute_count:
            raise UnknownAttributeError(attribute_id, state.attribute_count)

    def _check_cid(self, cid: Any) -> None:
        expected = self.config.cid_length
        if not isinstance(cid, str):
            raise InvalidCIDError(f"CID must be a string, got {type(cid).__name__}")
        size = len(cid.encode("utf-8"))
        if size != expected:
            raise InvalidCIDError(f"CID must be {expected} bytes, got {size}: {cid!r}")

    def _check_batch(
        self,
        count: int,
        names: Sequence[str],
        rarities: Sequence[Rarity | str],
    ) -> List[Tuple[str, Rarity]]:
        """
        Validate a whole trait batch before anything is appended.

        Returns:
            (name, rarity) pairs in batch order
        """
        limit = self.config.max_traits_per_batch
        if not _is_index(count) or count < 0:
            raise BatchSizeError(f"Trait count must be a non-negative integer, got {count!r}")
        if count > limit:
            raise BatchSizeError(f"Cannot add {count} traits in one batch (max {limit})")
        if len(names) != count or len(rarities) != count:
            raise LengthMismatchError(
                f"Expected {count} names and rarities, got {len(names)} and {len(rarities)}"
            )

        batch = []
        for i, (name, rarity) in enumerate(zip(names, rarities)):
            _require_text(name, f"Trait name at position {i}")
            batch.append((name, Rarity.parse(rarity)))
        return batch

    # -- staged mutations ---------------------------------------------------

    def _add_traits(
        self,
        state: RegistryState,
        events: List[AuditEvent],
        attribute_id: int,
        count: int,
        names: Sequence[str],
        rarities: Sequence[Rarity | str],
    ) -> List[int]:
        self._check_attribute(state, attribute_id)
        batch = self._check_batch(count, names, rarities)

        traits = state.traits[attribute_id]
        first = len(traits) + 1
        trait_ids = []
        for offset, (name, rarity) in enumerate(batch):
            trait_id = first + offset
            traits.append(Trait(attribute_id, trait_id, name, rarity))
            events.append(trait_added(attribute_id, trait_id, name, rarity))
            trait_ids.append(trait_id)
        return trait_ids

    def _update_cid(
        self,
        state: RegistryState,
        events: List[AuditEvent],
        attribute_id: int,
        cid: str,
    ) -> None:
        self._check_attribute(state, attribute_id)
        self._check_cid(cid)
        state.cids[attribute_id].append(cid)
        events.append(cid_updated(attribute_id, cid))

    # -- attribute store ----------------------------------------------------

    def create_attribute(
        self,
        caller: str,
        name: str,
        trait_count: int,
        trait_names: Sequence[str],
        trait_rarities: Sequence[Rarity | str],
        cid: str,
        generation_script: str,
    ) -> int:
        """
        Create an attribute with its initial traits, CID and script.

        The attribute, its traits, its first CID and the script are
        committed together or not at all.

        Args:
            caller: Calling identity (must be an administrator)
            name: Attribute display name
            trait_count: Number of initial traits
            trait_names: One name per initial trait
            trait_rarities: One rarity per initial trait
            cid: Initial content identifier of the asset bundle
            generation_script: Script reference able to combine the
                attribute set as it stands after this call

        Returns:
            The new attribute ID
        """
        with self._mutation(caller, "create_attribute") as (state, events):
            _require_text(name, "Attribute name")
            _require_text(generation_script, "Generation script")

            attribute_id = state.attribute_count
            state.attributes.append(Attribute(attribute_id, name))
            state.traits.append([])
            state.cids.append([])
            state.attribute_count += 1
            events.append(attribute_created(attribute_id, name, generation_script))

            self._add_traits(state, events, attribute_id, trait_count, trait_names, trait_rarities)
            self._update_cid(state, events, attribute_id, cid)
            state.scripts.append(generation_script)

        logger.info(f"Created attribute {attribute_id} {name!r} with {trait_count} traits")
        return attribute_id

    # -- trait store --------------------------------------------------------

    def add_traits(
        self,
        caller: str,
        attribute_id: int,
        count: int,
        names: Sequence[str],
        rarities: Sequence[Rarity | str],
    ) -> List[int]:
        """
        Append a batch of traits with computed sequential IDs.

        The batch is validated as a whole first; one bad element rejects
        the entire batch.

        Returns:
            IDs assigned to the new traits, in order
        """
        with self._mutation(caller, "add_traits") as (state, events):
            trait_ids = self._add_traits(state, events, attribute_id, count, names, rarities)

        logger.info(f"Added {len(trait_ids)} traits to attribute {attribute_id}")
        return trait_ids

    def add_single_trait(
        self,
        caller: str,
        attribute_id: int,
        trait_id: int,
        name: str,
        rarity: Rarity | str,
    ) -> None:
        """
        Append one trait under an explicitly supplied ID.

        trait_id must be exactly one past the attribute's current trait
        count, so a retry with an already-used ID is rejected rather than
        duplicated.
        """
        with self._mutation(caller, "add_single_trait") as (state, events):
            self._check_attribute(state, attribute_id)
            traits = state.traits[attribute_id]
            expected = len(traits) + 1
            if not _is_index(trait_id) or trait_id != expected:
                raise NonSequentialTraitError(attribute_id, trait_id, expected)
            _require_text(name, "Trait name")
            rarity = Rarity.parse(rarity)

            traits.append(Trait(attribute_id, trait_id, name, rarity))
            events.append(trait_added(attribute_id, trait_id, name, rarity))

        logger.info(f"Added trait {trait_id} {name!r} to attribute {attribute_id}")

    # -- CID ledger ---------------------------------------------------------

    def update_cid(self, caller: str, attribute_id: int, cid: str) -> None:
        """Append a new current CID to an attribute's history."""
        with self._mutation(caller, "update_cid") as (state, events):
            self._update_cid(state, events, attribute_id, cid)

        logger.info(f"Updated CID of attribute {attribute_id} to {cid}")

    def update_multiple_cids(self, caller: str, cids: Sequence[str]) -> List[int]:
        """
        Update CIDs for many attributes at once.

        cids[i] applies to attribute i and the list must cover every
        attribute. An empty string skips that attribute. Any invalid
        non-empty entry rejects the whole call.

        Returns:
            IDs of the attributes whose CID was updated
        """
        with self._mutation(caller, "update_multiple_cids") as (state, events):
            if len(cids) != state.attribute_count:
                raise LengthMismatchError(
                    f"Expected {state.attribute_count} CIDs (one per attribute), got {len(cids)}"
                )
            updated = []
            for attribute_id, cid in enumerate(cids):
                if cid == SKIP_CID:
                    continue
                self._update_cid(state, events, attribute_id, cid)
                updated.append(attribute_id)

        logger.info(f"Updated CIDs of attributes {updated}")
        return updated

    # -- reads --------------------------------------------------------------

    def refresh(self) -> None:
        """Reload state and events committed through other handles."""
        self.store.refresh()
        if isinstance(self.sink, EventLog):
            self.sink.refresh()

    @property
    def attribute_count(self) -> int:
        return self.store.state.attribute_count

    def get_attribute(self, attribute_id: int) -> Optional[Attribute]:
        """Get an attribute by ID, or None."""
        state = self.store.state
        if _is_index(attribute_id) and 0 <= attribute_id < state.attribute_count:
            return state.attributes[attribute_id]
        return None

    def list_attributes(self) -> List[Attribute]:
        return list(self.store.state.attributes)

    def trait_count(self, attribute_id: int) -> int:
        state = self.store.state
        self._check_attribute(state, attribute_id)
        return len(state.traits[attribute_id])

    def get_trait(self, attribute_id: int, trait_id: int) -> Optional[Trait]:
        """Get a trait by attribute and trait ID, or None."""
        state = self.store.state
        if self.get_attribute(attribute_id) is None:
            return None
        traits = state.traits[attribute_id]
        if _is_index(trait_id) and 1 <= trait_id <= len(traits):
            return traits[trait_id - 1]
        return None

    def list_traits(self, attribute_id: int) -> List[Trait]:
        state = self.store.state
        self._check_attribute(state, attribute_id)
        return list(state.traits[attribute_id])

    def current_cid(self, attribute_id: int) -> str:
        """Most recent CID of an attribute."""
        state = self.store.state
        self._check_attribute(state, attribute_id)
        return state.cids[attribute_id][-1]

    def cid_history(self, attribute_id: int) -> List[str]:
        """All CIDs of an attribute, oldest first."""
        state = self.store.state
        self._check_attribute(state, attribute_id)
        return list(state.cids[attribute_id])

    def generation_scripts(self) -> List[str]:
        return list(self.store.state.scripts)

    def current_generation_script(self) -> Optional[str]:
        scripts = self.store.state.scripts
        return scripts[-1] if scripts else None

    def manifest(self) -> Dict[str, Any]:
        """
        JSON-compatible snapshot of the collection metadata.

        Intended for off-chain consumers that want the whole collection
        in one document.
        """
        state = self.store.state
        attributes = []
        for attribute in state.attributes:
            history = state.cids[attribute.id]
            attributes.append({
                "id": attribute.id,
                "name": attribute.name,
                "cid": history[-1],
                "cid_versions": len(history),
                "traits": [
                    {"id": t.id, "name": t.name, "rarity": t.rarity.value}
                    for t in state.traits[attribute.id]
                ],
            })
        return {
            "attribute_count": state.attribute_count,
            "generation_script": state.scripts[-1] if state.scripts else None,
            "attributes": attributes,
        }
