"""Identity provider client.

Wraps an `IdentityProvider` adapter and turns its outcomes into `AuthResult`
or `AuthFailure` values. Silent acquisition consults the credential cache
first. Nothing here writes to the cache; storing results is the caller's job.
"""

from __future__ import annotations

import logging
from typing import Protocol

from todolist_client.auth.cache import CredentialCache
from todolist_client.auth.models.errors import (
    FAILED_SILENT,
    INTERACTION_REQUIRED,
    SERVICE_UNAVAILABLE,
    USER_CANCELED,
    ErrorKind,
    ProviderException,
)
from todolist_client.auth.models.tokens import (
    AcquiredVia,
    AuthFailure,
    AuthResult,
    InteractiveRequest,
    ProviderToken,
)

logger = logging.getLogger(__name__)

_SILENT_ERROR_KINDS = {
    FAILED_SILENT: ErrorKind.SILENT_ACQUISITION_FAILED,
    INTERACTION_REQUIRED: ErrorKind.SILENT_ACQUISITION_FAILED,
    SERVICE_UNAVAILABLE: ErrorKind.PROVIDER_UNAVAILABLE,
}

_INTERACTIVE_ERROR_KINDS = {
    USER_CANCELED: ErrorKind.USER_CANCELED,
    SERVICE_UNAVAILABLE: ErrorKind.PROVIDER_UNAVAILABLE,
}


class IdentityProvider(Protocol):
    """Protocol for the component that actually obtains tokens.

    Implementations raise ProviderException with a provider error code when
    an acquisition fails.
    """

    async def acquire_token_silent(
        self, resource_id: str, client_id: str
    ) -> ProviderToken:
        """Obtain a token without user interaction (background refresh)."""
        ...

    async def acquire_token_interactive(
        self, request: InteractiveRequest
    ) -> ProviderToken:
        """Obtain a token through a user-facing prompt."""
        ...


class BrowserSessionClearer(Protocol):
    """Protocol for ending the browser session used by interactive sign-in."""

    def clear_browser_session(self) -> None: ...


class IdentityProviderClient:
    """Acquires tokens silently or interactively for protected resources."""

    def __init__(self, provider: IdentityProvider, cache: CredentialCache):
        self.provider = provider
        self.cache = cache

    async def acquire_silent(
        self, resource_id: str, client_id: str
    ) -> AuthResult | AuthFailure:
        """Acquire a token from the cache or a background refresh.

        A SILENT_ACQUISITION_FAILED failure is the normal outcome when the
        user has never signed in or the cache was cleared.

        Args:
            resource_id: Resource to acquire a token for
            client_id: Client identifier registered with the provider

        Returns:
            AuthResult on success, AuthFailure otherwise
        """
        cached = self.cache.lookup(resource_id, client_id)
        if cached is not None:
            logger.debug(f"Using cached token for {resource_id}")
            return cached

        logger.debug(f"No cached token for {resource_id}, asking provider")
        try:
            token = await self.provider.acquire_token_silent(resource_id, client_id)
        except ProviderException as e:
            return self._failure(e, _SILENT_ERROR_KINDS)
        except Exception as e:
            logger.error(f"Unexpected silent acquisition error: {e}")
            return AuthFailure(kind=ErrorKind.PROVIDER_ERROR, message=str(e))

        return AuthResult.from_provider_token(
            token, resource_id, client_id, AcquiredVia.SILENT
        )

    async def acquire_interactive(
        self,
        resource_id: str,
        client_id: str,
        redirect_uri: str,
        force_prompt: bool = True,
        user_hint: str | None = None,
        claims: str | None = None,
    ) -> AuthResult | AuthFailure:
        """Acquire a token through an interactive prompt.

        Never short-circuits to the cache. When ``claims`` is given the
        provider is asked to satisfy that challenge, and ``user_hint`` pins
        the prompt to one account.

        Returns:
            AuthResult on success, AuthFailure otherwise
        """
        request = InteractiveRequest(
            resource_id=resource_id,
            client_id=client_id,
            redirect_uri=redirect_uri,
            force_prompt=force_prompt,
            user_hint=user_hint,
            claims=claims,
        )

        logger.info(
            f"Starting interactive acquisition for {resource_id}"
            f" (hint={user_hint or 'none'}, claims={'yes' if claims else 'no'})"
        )
        try:
            token = await self.provider.acquire_token_interactive(request)
        except ProviderException as e:
            return self._failure(e, _INTERACTIVE_ERROR_KINDS)
        except Exception as e:
            logger.error(f"Unexpected interactive acquisition error: {e}")
            return AuthFailure(kind=ErrorKind.PROVIDER_ERROR, message=str(e))

        return AuthResult.from_provider_token(
            token, resource_id, client_id, AcquiredVia.INTERACTIVE
        )

    def _failure(
        self, error: ProviderException, kinds: dict[str, ErrorKind]
    ) -> AuthFailure:
        kind = kinds.get(error.error_code, ErrorKind.PROVIDER_ERROR)
        if kind is ErrorKind.SILENT_ACQUISITION_FAILED:
            logger.debug(f"Silent acquisition failed: {error.error_code}")
        else:
            logger.warning(f"Acquisition failed with {error.error_code}: {error}")
        return AuthFailure(
            kind=kind,
            message=error.display_message(),
            error_code=error.error_code,
        )
