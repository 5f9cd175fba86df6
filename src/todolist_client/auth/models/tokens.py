"""Token and acquisition result models.

Contains the immutable results handed out by the identity provider client,
the cache entry shape, and the claims challenge carried through a step-up.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel

from todolist_client.auth.models.errors import ErrorKind


class AcquiredVia(str, Enum):
    SILENT = "silent"
    INTERACTIVE = "interactive"


@dataclass(frozen=True)
class ProviderToken:
    """Raw token material returned by an identity provider adapter."""

    access_token: str
    user_id: str
    user_display_id: str
    expires_at: float | None = None  # Unix timestamp


@dataclass(frozen=True)
class AuthResult:
    """Successful acquisition of an access token for one resource.

    Only the identity provider client hands these out. A cache hit during
    silent acquisition is also returned as an AuthResult.
    """

    access_token: str
    user_display_id: str
    acquired_via: AcquiredVia
    resource_id: str
    client_id: str
    user_id: str
    expires_at: float | None = None

    @property
    def cache_key(self) -> tuple[str, str, str]:
        return (self.resource_id, self.client_id, self.user_id)

    def is_valid(self, buffer_seconds: float = 30.0) -> bool:
        """Check if access token is still usable with a safety buffer.

        Args:
            buffer_seconds: Treat the token as expired this many seconds early
        """
        if not self.access_token:
            return False

        if self.expires_at is None:
            return True  # No expiry means token doesn't expire

        return time.time() < (self.expires_at - buffer_seconds)

    @classmethod
    def from_provider_token(
        cls,
        token: ProviderToken,
        resource_id: str,
        client_id: str,
        acquired_via: AcquiredVia,
    ) -> AuthResult:
        return cls(
            access_token=token.access_token,
            user_display_id=token.user_display_id,
            acquired_via=acquired_via,
            resource_id=resource_id,
            client_id=client_id,
            user_id=token.user_id,
            expires_at=token.expires_at,
        )


@dataclass(frozen=True)
class AuthFailure:
    """Failed acquisition, tagged with the kind callers branch on."""

    kind: ErrorKind
    message: str
    error_code: str | None = None


@dataclass(frozen=True)
class InteractiveRequest:
    """Parameters for one interactive acquisition.

    ``claims`` asks the provider to satisfy a specific conditional-access
    challenge. ``user_hint`` targets one account instead of asking the user
    to pick.
    """

    resource_id: str
    client_id: str
    redirect_uri: str
    force_prompt: bool = True
    user_hint: str | None = None
    claims: str | None = None


@dataclass(frozen=True)
class ClaimsChallenge:
    """Conditional-access challenge taken from a single API response.

    Consumed by exactly one step-up acquisition and never cached.
    """

    payload: str
    target_user_hint: str


class CacheEntry(BaseModel):
    """Persisted form of a cached token."""

    resource_id: str
    client_id: str
    user_id: str
    user_display_id: str
    access_token: str
    expires_at: float | None = None

    @classmethod
    def from_result(cls, result: AuthResult) -> CacheEntry:
        return cls(
            resource_id=result.resource_id,
            client_id=result.client_id,
            user_id=result.user_id,
            user_display_id=result.user_display_id,
            access_token=result.access_token,
            expires_at=result.expires_at,
        )

    def to_result(self) -> AuthResult:
        return AuthResult(
            access_token=self.access_token,
            user_display_id=self.user_display_id,
            acquired_via=AcquiredVia.SILENT,
            resource_id=self.resource_id,
            client_id=self.client_id,
            user_id=self.user_id,
            expires_at=self.expires_at,
        )


class CacheSnapshot(BaseModel):
    """On-disk layout of a file-backed credential cache."""

    entries: list[CacheEntry] = []
