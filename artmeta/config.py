# artmeta/config.py
"""
Fixed constants consumed by the registry.

Example config.yaml:

    max_traits_per_batch: 100
    cid_length: 46
"""

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict

import yaml

from .errors import ConfigError

# IPFS CIDv0 ("Qm" + base58 sha2-256 multihash) is 46 bytes
DEFAULT_CID_LENGTH = 46
DEFAULT_MAX_TRAITS_PER_BATCH = 100


@dataclass(frozen=True)
class RegistryConfig:
    """
    Registry limits.

    Attributes:
        max_traits_per_batch: Most traits a single batch call may add
        cid_length: Exact UTF-8 byte length of a valid CID
    """
    max_traits_per_batch: int = DEFAULT_MAX_TRAITS_PER_BATCH
    cid_length: int = DEFAULT_CID_LENGTH

    def __post_init__(self):
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ConfigError(f"{f.name} must be a positive integer, got {value!r}")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RegistryConfig":
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigError(f"Unknown config keys: {', '.join(sorted(unknown))}")
        return cls(**data)

    @classmethod
    def from_yaml(cls, yaml_content: str) -> "RegistryConfig":
        """Parse config from YAML string. Empty content gives defaults."""
        try:
            data = yaml.safe_load(yaml_content)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid config YAML: {e}") from e
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ConfigError("Config must be a YAML mapping")
        return cls.from_dict(data)

    @classmethod
    def from_file(cls, path: Path | str) -> "RegistryConfig":
        """Load config from YAML file."""
        with open(path, "r") as f:
            return cls.from_yaml(f.read())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "max_traits_per_batch": self.max_traits_per_batch,
            "cid_length": self.cid_length,
        }
