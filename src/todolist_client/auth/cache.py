"""Credential cache for previously issued access tokens.

Entries are keyed by (resource_id, client_id, user_id). Writes are last-write
wins and ``clear`` drops every entry at once.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path

from pydantic import ValidationError

from todolist_client.auth.models.errors import CacheError
from todolist_client.auth.models.tokens import AuthResult, CacheEntry, CacheSnapshot

logger = logging.getLogger(__name__)

CacheKey = tuple[str, str, str]


class CredentialCache:
    """In-memory token store shared by every acquisition in a session.

    A single lock guards all reads and writes. Expired entries are reported
    as missing; refreshing them is the identity provider's job.
    """

    def __init__(self, expiry_buffer_seconds: float = 30.0):
        self.expiry_buffer_seconds = expiry_buffer_seconds
        self._entries: dict[CacheKey, CacheEntry] = {}
        self._lock = threading.Lock()

    def lookup(
        self, resource_id: str, client_id: str, user_id: str | None = None
    ) -> AuthResult | None:
        """Find a live token for the resource and client.

        Args:
            resource_id: Resource the token was issued for
            client_id: Client the token was issued to
            user_id: Restrict the match to one user; any user when None

        Returns:
            AuthResult for a non-expired entry, or None if nothing usable
        """
        with self._lock:
            candidates = [
                entry
                for key, entry in self._entries.items()
                if key[0] == resource_id
                and key[1] == client_id
                and (user_id is None or key[2] == user_id)
            ]

        for entry in candidates:
            result = entry.to_result()
            if result.is_valid(self.expiry_buffer_seconds):
                return result
            logger.debug(f"Cached token for {resource_id} has expired")
        return None

    def store(self, result: AuthResult) -> None:
        """Insert or overwrite the entry for the result's key."""
        entry = CacheEntry.from_result(result)
        with self._lock:
            entries = {**self._entries, result.cache_key: entry}
            self._persist(entries)
            self._entries = entries
        logger.debug(f"Stored token for {result.resource_id} ({result.user_display_id})")

    def clear(self) -> int:
        """Remove all entries.

        Returns:
            Number of entries removed
        """
        with self._lock:
            removed = len(self._entries)
            self._persist({})
            self._entries = {}
        logger.info(f"Cleared credential cache ({removed} entries)")
        return removed

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _persist(self, entries: dict[CacheKey, CacheEntry]) -> None:
        """Hook for durable subclasses, called with the lock held.

        Receives the entries about to replace the current ones. Raising here
        leaves the in-memory entries untouched.
        """
        pass


class FileCredentialCache(CredentialCache):
    """Credential cache persisted as a JSON snapshot on disk."""

    def __init__(self, path: str | Path, expiry_buffer_seconds: float = 30.0):
        super().__init__(expiry_buffer_seconds)
        self.path = Path(path)
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            return

        try:
            snapshot = CacheSnapshot.model_validate_json(self.path.read_text())
        except (OSError, ValueError, ValidationError) as e:
            logger.warning(f"Ignoring unreadable credential cache {self.path}: {e}")
            return

        for entry in snapshot.entries:
            key = (entry.resource_id, entry.client_id, entry.user_id)
            self._entries[key] = entry
        logger.debug(f"Loaded {len(self._entries)} cached tokens from {self.path}")

    def _persist(self, entries: dict[CacheKey, CacheEntry]) -> None:
        snapshot = CacheSnapshot(entries=list(entries.values()))
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(snapshot.model_dump_json())
        except OSError as e:
            raise CacheError(f"Failed to write credential cache {self.path}: {e}") from e
