# artmeta/audit/signatures.py
"""
Signatures for audit events.

Signs the canonical JSON of an event (sorted keys, no whitespace,
signature block excluded) with RSA-SHA256, so indexers can check that
the log came from the registry's signing identity.
"""

import base64
import hashlib
import json
from typing import Any, Dict

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding

from .actor import Actor

SIGNATURE_TYPE = "RsaSignature2017"


def _canonicalize(data: Dict[str, Any]) -> str:
    """
    Canonicalize JSON for signing.

    Uses JCS (JSON Canonicalization Scheme) - sorted keys, no whitespace.
    """
    return json.dumps(data, sort_keys=True, separators=(",", ":"))


def _signed_bytes(event, creator: str) -> bytes:
    """Hash of the signature options followed by hash of the event body."""
    body = event.to_dict()
    body.pop("signature", None)
    options = {"type": SIGNATURE_TYPE, "creator": creator}
    options_hash = hashlib.sha256(_canonicalize(options).encode()).digest()
    document_hash = hashlib.sha256(_canonicalize(body).encode()).digest()
    return options_hash + document_hash


def sign_event(event, actor: Actor):
    """
    Sign an event with the actor's private key.

    Args:
        event: The AuditEvent to sign (sequence must already be set)
        actor: The actor whose key signs the event

    Returns:
        The event, with its signature block attached
    """
    if not actor.private_key:
        raise ValueError(f"Actor {actor.username} has no private key")

    private_key = serialization.load_pem_private_key(
        actor.private_key,
        password=None,
    )
    signature_bytes = private_key.sign(
        _signed_bytes(event, actor.key_id),
        padding.PKCS1v15(),
        hashes.SHA256(),
    )
    event.signature = {
        "type": SIGNATURE_TYPE,
        "creator": actor.key_id,
        "signatureValue": base64.b64encode(signature_bytes).decode("utf-8"),
    }
    return event


def verify_event(event, actor: Actor) -> bool:
    """
    Verify that an event was signed by the given actor.

    Returns:
        True if the signature is present, names this actor, and is valid
    """
    if not event.signature:
        return False
    if event.signature.get("creator") != actor.key_id:
        return False

    try:
        public_key = serialization.load_pem_public_key(actor.public_key)
        signature_bytes = base64.b64decode(event.signature["signatureValue"])
        public_key.verify(
            signature_bytes,
            _signed_bytes(event, actor.key_id),
            padding.PKCS1v15(),
            hashes.SHA256(),
        )
        return True

    except (InvalidSignature, KeyError, ValueError):
        return False
