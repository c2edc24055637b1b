# artmeta/errors.py
"""
Registry error hierarchy.

Three kinds of failure reach a caller:
- AuthorizationError: the caller lacks the administrator capability
- ValidationError (and subclasses): bad input, checked before mutation
- ConfigError: an unusable configuration file

Every error aborts the whole operation. Nothing is retried.
"""


class RegistryError(Exception):
    """Base class for all registry errors."""


class AuthorizationError(RegistryError, PermissionError):
    """Caller does not hold the required role."""

    def __init__(self, caller: str, role: str):
        self.caller = caller
        self.role = role
        super().__init__(f"Caller {caller!r} lacks role {role!r}")


class ValidationError(RegistryError, ValueError):
    """Input rejected before any state change."""


class EmptyValueError(ValidationError):
    """A name or script was empty."""


class UnknownAttributeError(ValidationError):
    """Attribute ID does not reference an existing attribute."""

    def __init__(self, attribute_id: int, attribute_count: int):
        self.attribute_id = attribute_id
        self.attribute_count = attribute_count
        super().__init__(
            f"Unknown attribute {attribute_id} (attribute count is {attribute_count})"
        )


class BatchSizeError(ValidationError):
    """Batch trait count is negative or over the configured maximum."""


class LengthMismatchError(ValidationError):
    """A list does not have the length the operation requires."""


class InvalidCIDError(ValidationError):
    """CID is not a string of the expected byte length."""


class NonSequentialTraitError(ValidationError):
    """Explicit trait ID would leave a gap or duplicate an existing trait."""

    def __init__(self, attribute_id: int, trait_id: int, expected: int):
        self.attribute_id = attribute_id
        self.trait_id = trait_id
        self.expected = expected
        super().__init__(
            f"Trait ID {trait_id} for attribute {attribute_id} is not sequential "
            f"(expected {expected})"
        )


class InvalidRarityError(ValidationError):
    """Rarity is not one of the known tiers."""


class ConfigError(RegistryError, ValueError):
    """Configuration could not be loaded."""
