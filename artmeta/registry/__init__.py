# artmeta/registry/__init__.py
"""
Collection metadata registry.

The registry is the single owner of attributes, traits, CID histories
and generation scripts. All mutations go through the administrator
permission gate and are recorded as audit events.

Example:
    registry = MetadataRegistry.open("/path/to/registry")
    attribute_id = registry.create_attribute(
        "alice", "Background", 1, ["Forest"], ["common"],
        cid="Qm...", generation_script="gen-v1",
    )
    registry.update_cid("alice", attribute_id, "Qm...")
"""

from .registry import MetadataRegistry, SKIP_CID

__all__ = ["MetadataRegistry", "SKIP_CID"]
