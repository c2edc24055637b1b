# artmeta/models.py
"""
Core data structures for the collection metadata.

Attributes are visual layers of the artwork (e.g. "Background").
Traits are the concrete options of an attribute (e.g. "Forest"),
each carrying a categorical rarity tier.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict

from .errors import InvalidRarityError


class Rarity(Enum):
    """Rarity tiers. Categorical only, no probabilities."""
    COMMON = "common"
    UNCOMMON = "uncommon"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"

    @classmethod
    def parse(cls, value: "Rarity | str") -> "Rarity":
        """
        Coerce a Rarity or a tier name to a Rarity.

        Accepts enum members, values ("rare") and names ("RARE"),
        case-insensitively.

        Raises:
            InvalidRarityError: If the value is not a known tier
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            key = value.strip().lower()
            for member in cls:
                if member.value == key:
                    return member
        raise InvalidRarityError(f"Unknown rarity: {value!r}")


@dataclass(frozen=True)
class Attribute:
    """
    A visual layer of the generative artwork.

    Attributes:
        id: Zero-based, dense, assigned in creation order
        name: Display name (non-empty)
    """
    id: int
    name: str

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Attribute":
        return cls(id=data["id"], name=data["name"])


@dataclass(frozen=True)
class Trait:
    """
    One option within an attribute.

    Trait IDs are scoped per attribute and start at 1.
    """
    attribute_id: int
    id: int
    name: str
    rarity: Rarity

    def to_dict(self) -> Dict[str, Any]:
        return {
            "attribute_id": self.attribute_id,
            "id": self.id,
            "name": self.name,
            "rarity": self.rarity.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Trait":
        return cls(
            attribute_id=data["attribute_id"],
            id=data["id"],
            name=data["name"],
            rarity=Rarity.parse(data["rarity"]),
        )
