# artmeta/audit/actor.py
"""
Signing identities for the audit log.

An Actor is an identity with:
- Username and display name
- RSA key pair used to sign audit events
"""

import json
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

logger = logging.getLogger(__name__)


def _generate_keypair() -> tuple[bytes, bytes]:
    """Generate RSA key pair for signing."""
    private_key = rsa.generate_private_key(
        public_exponent=65537,
        key_size=2048,
    )
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return private_pem, public_pem


@dataclass
class Actor:
    """
    A signing identity.

    Attributes:
        username: Unique username (e.g., "registry")
        display_name: Human-readable name
        public_key: PEM-encoded public key
        private_key: PEM-encoded private key (None for verify-only copies)
        created_at: Timestamp of creation
    """
    username: str
    display_name: str
    public_key: bytes
    private_key: Optional[bytes] = None
    created_at: float = field(default_factory=time.time)

    @property
    def key_id(self) -> str:
        """Key ID recorded as the creator of signatures."""
        return f"{self.username}#main-key"

    def public_copy(self) -> "Actor":
        """Copy without the private key, for handing to verifiers."""
        return Actor(
            username=self.username,
            display_name=self.display_name,
            public_key=self.public_key,
            created_at=self.created_at,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for storage."""
        data = {
            "username": self.username,
            "display_name": self.display_name,
            "public_key": self.public_key.decode("utf-8"),
            "created_at": self.created_at,
        }
        if self.private_key:
            data["private_key"] = self.private_key.decode("utf-8")
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Actor":
        """Deserialize from storage."""
        private_key = data.get("private_key")
        return cls(
            username=data["username"],
            display_name=data["display_name"],
            public_key=data["public_key"].encode("utf-8"),
            private_key=private_key.encode("utf-8") if private_key else None,
            created_at=data.get("created_at", time.time()),
        )

    @classmethod
    def create(cls, username: str, display_name: str = None) -> "Actor":
        """Create a new actor with generated keys."""
        private_pem, public_pem = _generate_keypair()
        return cls(
            username=username,
            display_name=display_name or username,
            public_key=public_pem,
            private_key=private_pem,
        )


class ActorStore:
    """
    Persistent storage for actors.

    Structure:
        store_dir/
            actors.json       # Index of all actors
    """

    def __init__(self, store_dir: Path | str):
        self.store_dir = Path(store_dir)
        self._actors: Dict[str, Actor] = {}
        self._load()

    def _index_path(self) -> Path:
        return self.store_dir / "actors.json"

    def _load(self):
        """Load actors from disk."""
        index_path = self._index_path()
        if index_path.exists():
            with open(index_path) as f:
                data = json.load(f)
            self._actors = {
                username: Actor.from_dict(actor_data)
                for username, actor_data in data.get("actors", {}).items()
            }

    def _save(self):
        """Save actors to disk."""
        self.store_dir.mkdir(parents=True, exist_ok=True)
        data = {
            "version": "1.0",
            "actors": {
                username: actor.to_dict()
                for username, actor in self._actors.items()
            },
        }
        with open(self._index_path(), "w") as f:
            json.dump(data, f, indent=2)

    def create(self, username: str, display_name: str = None) -> Actor:
        """Create and store a new actor."""
        if username in self._actors:
            raise ValueError(f"Actor {username} already exists")

        actor = Actor.create(username, display_name)
        self._actors[username] = actor
        self._save()
        logger.info(f"Created signing actor {username}")
        return actor

    def get(self, username: str) -> Optional[Actor]:
        """Get an actor by username."""
        return self._actors.get(username)

    def get_or_create(self, username: str, display_name: str = None) -> Actor:
        """Get an actor, creating it on first use."""
        actor = self._actors.get(username)
        if actor is None:
            actor = self.create(username, display_name)
        return actor

    def __contains__(self, username: str) -> bool:
        return username in self._actors

    def __len__(self) -> int:
        return len(self._actors)
