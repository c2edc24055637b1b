# artmeta - Metadata registry for generative-art collections
#
# Tracks the attributes (visual layers) of a generative collection, the
# traits of each attribute, the content identifier (CID) of each
# attribute's asset bundle, and the generation scripts that combine them.
#
# Core concepts:
# - Attribute: A named layer with a dense zero-based ID
# - Trait: An option of an attribute, dense one-based ID, rarity tier
# - CID ledger: Append-only CID history per attribute
# - MetadataRegistry: Gated, transactional mutations with audit events

from .models import Attribute, Trait, Rarity
from .config import RegistryConfig
from .access import AccessControl, RoleTable, ADMIN_ROLE, require_admin
from .store import RegistryState, RegistryStore
from .registry import MetadataRegistry
from .audit import Actor, AuditEvent, EventLog, EventSink, MemorySink
from .errors import (
    RegistryError,
    AuthorizationError,
    ValidationError,
    EmptyValueError,
    UnknownAttributeError,
    BatchSizeError,
    LengthMismatchError,
    InvalidCIDError,
    NonSequentialTraitError,
    InvalidRarityError,
    ConfigError,
)

__all__ = [
    # Models
    "Attribute",
    "Trait",
    "Rarity",
    # Registry
    "RegistryConfig",
    "AccessControl",
    "RoleTable",
    "ADMIN_ROLE",
    "require_admin",
    "RegistryState",
    "RegistryStore",
    "MetadataRegistry",
    # Audit
    "Actor",
    "AuditEvent",
    "EventLog",
    "EventSink",
    "MemorySink",
    # Errors
    "RegistryError",
    "AuthorizationError",
    "ValidationError",
    "EmptyValueError",
    "UnknownAttributeError",
    "BatchSizeError",
    "LengthMismatchError",
    "InvalidCIDError",
    "NonSequentialTraitError",
    "InvalidRarityError",
    "ConfigError",
]

__version__ = "0.1.0"
