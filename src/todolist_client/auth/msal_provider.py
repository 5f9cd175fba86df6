"""Identity provider adapter backed by MSAL public client applications.

MSAL calls block, so they run in a worker thread. MSAL reports failures as
dicts with an ``error`` key; those become ProviderException so the identity
provider client can classify them. A failed silent refresh always means the
user has to sign in again, except when the service is temporarily down.

When given a ``token_cache_path`` the MSAL token cache, refresh tokens
included, is loaded from that file and written back whenever it changes, so
silent refresh keeps working across runs.
"""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

import msal
import requests

from todolist_client.auth.models.errors import (
    FAILED_SILENT,
    SERVICE_UNAVAILABLE,
    USER_CANCELED,
    CacheError,
    ConfigurationError,
    ProviderException,
)
from todolist_client.auth.models.tokens import InteractiveRequest, ProviderToken

logger = logging.getLogger(__name__)


def resource_scopes(resource_id: str) -> list[str]:
    """Scopes requesting the resource's statically configured permissions."""
    return [f"{resource_id.rstrip('/')}/.default"]


class MsalIdentityProvider:
    """IdentityProvider implementation using msal.PublicClientApplication."""

    def __init__(
        self,
        client_id: str,
        authority: str,
        token_cache_path: str | Path | None = None,
        app: msal.PublicClientApplication | None = None,
    ):
        self.client_id = client_id
        self.authority = authority
        self.token_cache_path = Path(token_cache_path) if token_cache_path else None
        self.token_cache = msal.SerializableTokenCache()
        self._load_token_cache()
        self._app = app or self._build_app()

    async def acquire_token_silent(
        self, resource_id: str, client_id: str
    ) -> ProviderToken:
        return await asyncio.to_thread(self._acquire_silent, resource_id)

    async def acquire_token_interactive(
        self, request: InteractiveRequest
    ) -> ProviderToken:
        return await asyncio.to_thread(self._acquire_interactive, request)

    def clear_browser_session(self) -> None:
        """Forget every account MSAL holds so no refresh survives sign-out."""
        for account in self._app.get_accounts():
            self._app.remove_account(account)
        logger.debug("Removed MSAL accounts")

        if self.token_cache_path is not None:
            try:
                self.token_cache_path.unlink(missing_ok=True)
            except OSError as e:
                raise CacheError(
                    f"Failed to remove token cache {self.token_cache_path}: {e}"
                ) from e

    def _build_app(self) -> msal.PublicClientApplication:
        # Authority discovery can reach the network
        try:
            return msal.PublicClientApplication(
                self.client_id, authority=self.authority, token_cache=self.token_cache
            )
        except requests.exceptions.RequestException as e:
            raise ProviderException(
                SERVICE_UNAVAILABLE, f"Could not reach {self.authority}"
            ) from e
        except ValueError as e:
            raise ConfigurationError(f"Invalid authority {self.authority}: {e}") from e

    def _load_token_cache(self) -> None:
        if self.token_cache_path is None or not self.token_cache_path.exists():
            return

        try:
            self.token_cache.deserialize(self.token_cache_path.read_text())
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable token cache {self.token_cache_path}: {e}")
            self.token_cache.deserialize(None)
            return
        logger.debug(f"Loaded MSAL token cache from {self.token_cache_path}")

    def _save_token_cache(self) -> None:
        if self.token_cache_path is None or not self.token_cache.has_state_changed:
            return

        try:
            self.token_cache_path.parent.mkdir(parents=True, exist_ok=True)
            self.token_cache_path.write_text(self.token_cache.serialize())
        except OSError as e:
            raise CacheError(
                f"Failed to write token cache {self.token_cache_path}: {e}"
            ) from e
        self.token_cache.has_state_changed = False

    def _acquire_silent(self, resource_id: str) -> ProviderToken:
        try:
            accounts = self._app.get_accounts()
            if not accounts:
                raise ProviderException(FAILED_SILENT, "No signed-in account")

            result = self._app.acquire_token_silent_with_error(
                resource_scopes(resource_id), account=accounts[0]
            )
        except requests.exceptions.RequestException as e:
            raise ProviderException(
                SERVICE_UNAVAILABLE, "Identity provider unreachable"
            ) from e
        finally:
            self._save_token_cache()

        if result is None:
            raise ProviderException(FAILED_SILENT, "No token available in cache")
        if "error" in result and result["error"] != SERVICE_UNAVAILABLE:
            logger.debug(f"Silent refresh failed with {result['error']}")
            raise ProviderException(
                FAILED_SILENT,
                result.get("error_description", result["error"]),
            )
        return self._to_token(result)

    def _acquire_interactive(self, request: InteractiveRequest) -> ProviderToken:
        if request.user_hint:
            prompt = "login"
        elif request.force_prompt:
            prompt = "select_account"
        else:
            prompt = None

        try:
            result = self._app.acquire_token_interactive(
                resource_scopes(request.resource_id),
                prompt=prompt,
                login_hint=request.user_hint,
                claims_challenge=request.claims,
                port=urlparse(request.redirect_uri).port,
            )
        except requests.exceptions.RequestException as e:
            raise ProviderException(
                SERVICE_UNAVAILABLE, "Identity provider unreachable"
            ) from e
        finally:
            self._save_token_cache()
        return self._to_token(result)

    def _to_token(self, result: dict[str, Any]) -> ProviderToken:
        if "error" in result:
            error_code = result["error"]
            description = result.get("error_description", "No description provided")
            if error_code == "access_denied" and "cancel" in description.lower():
                error_code = USER_CANCELED
            raise ProviderException(error_code, description)

        if "access_token" not in result:
            raise ProviderException("invalid_response", "Response missing access_token")

        claims = result.get("id_token_claims") or {}
        user_id = claims.get("oid") or claims.get("sub") or ""
        display_id = claims.get("preferred_username") or claims.get("name") or user_id

        expires_at = None
        if "expires_in" in result:
            expires_at = time.time() + int(result["expires_in"])

        return ProviderToken(
            access_token=result["access_token"],
            user_id=user_id,
            user_display_id=display_id,
            expires_at=expires_at,
        )
