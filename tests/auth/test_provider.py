"""Tests for the identity provider client.

High-impact tests covering:
- Cache-first silent acquisition and provider fallback
- Classification of provider error codes into error kinds
- Interactive acquisition forwarding claims and account hints
- The client never writing to the cache itself
"""

from todolist_client.auth.cache import CredentialCache
from todolist_client.auth.models.errors import ErrorKind, ProviderException
from todolist_client.auth.models.tokens import AcquiredVia, AuthFailure, AuthResult
from todolist_client.auth.provider import IdentityProviderClient

RESOURCE_ID = "https://contoso.onmicrosoft.com/TodoListService"
CLIENT_ID = "client-123"


class TestAcquireSilent:
    def setup_method(self):
        # Arrange
        self.cache = CredentialCache()

    async def test_cached_token_is_returned_without_asking_provider(
        self, provider, result_factory
    ):
        # Arrange
        self.cache.store(result_factory(access_token="cached"))
        client = IdentityProviderClient(provider, self.cache)

        # Act
        result = await client.acquire_silent(RESOURCE_ID, CLIENT_ID)

        # Assert
        assert isinstance(result, AuthResult)
        assert result.access_token == "cached"
        assert provider.silent_calls == []

    async def test_cache_miss_falls_back_to_provider_refresh(
        self, provider, token_factory
    ):
        # Arrange
        provider.silent_outcomes.append(token_factory(access_token="refreshed"))
        client = IdentityProviderClient(provider, self.cache)

        # Act
        result = await client.acquire_silent(RESOURCE_ID, CLIENT_ID)

        # Assert
        assert isinstance(result, AuthResult)
        assert result.access_token == "refreshed"
        assert result.acquired_via is AcquiredVia.SILENT
        assert result.resource_id == RESOURCE_ID
        assert provider.silent_calls == [(RESOURCE_ID, CLIENT_ID)]
        # Storing is the caller's job
        assert len(self.cache) == 0

    async def test_no_token_maps_to_silent_acquisition_failed(self, provider):
        client = IdentityProviderClient(provider, self.cache)

        result = await client.acquire_silent(RESOURCE_ID, CLIENT_ID)

        assert isinstance(result, AuthFailure)
        assert result.kind is ErrorKind.SILENT_ACQUISITION_FAILED
        assert result.error_code == "failed_to_acquire_token_silently"

    async def test_interaction_required_maps_to_silent_acquisition_failed(
        self, provider
    ):
        provider.silent_outcomes.append(
            ProviderException("interaction_required", "MFA needed")
        )
        client = IdentityProviderClient(provider, self.cache)

        result = await client.acquire_silent(RESOURCE_ID, CLIENT_ID)

        assert result.kind is ErrorKind.SILENT_ACQUISITION_FAILED

    async def test_temporarily_unavailable_maps_to_provider_unavailable(
        self, provider
    ):
        provider.silent_outcomes.append(
            ProviderException("temporarily_unavailable", "Service is down")
        )
        client = IdentityProviderClient(provider, self.cache)

        result = await client.acquire_silent(RESOURCE_ID, CLIENT_ID)

        assert result.kind is ErrorKind.PROVIDER_UNAVAILABLE
        assert result.message == "Service is down"

    async def test_other_errors_concatenate_inner_exception_text(self, provider):
        # Arrange
        error = ProviderException("invalid_grant", "Refresh token revoked")
        error.__cause__ = ConnectionError("socket closed")
        provider.silent_outcomes.append(error)
        client = IdentityProviderClient(provider, self.cache)

        # Act
        result = await client.acquire_silent(RESOURCE_ID, CLIENT_ID)

        # Assert
        assert result.kind is ErrorKind.PROVIDER_ERROR
        assert result.message == "Refresh token revokedInner Exception : socket closed"

    async def test_unexpected_exception_maps_to_provider_error(self, provider):
        provider.silent_outcomes.append(RuntimeError("adapter bug"))
        client = IdentityProviderClient(provider, self.cache)

        result = await client.acquire_silent(RESOURCE_ID, CLIENT_ID)

        assert result.kind is ErrorKind.PROVIDER_ERROR
        assert result.message == "adapter bug"


class TestAcquireInteractive:
    def setup_method(self):
        self.cache = CredentialCache()

    async def test_interactive_ignores_cache_and_forwards_parameters(
        self, provider, token_factory, result_factory
    ):
        # Arrange
        self.cache.store(result_factory(access_token="cached"))
        provider.interactive_outcomes.append(token_factory(access_token="fresh"))
        client = IdentityProviderClient(provider, self.cache)

        # Act
        result = await client.acquire_interactive(
            RESOURCE_ID,
            CLIENT_ID,
            "http://localhost:8400",
            user_hint="alice@contoso.com",
            claims="claims123",
        )

        # Assert
        assert result.access_token == "fresh"
        assert result.acquired_via is AcquiredVia.INTERACTIVE
        request = provider.interactive_calls[0]
        assert request.force_prompt is True
        assert request.user_hint == "alice@contoso.com"
        assert request.claims == "claims123"
        assert request.redirect_uri == "http://localhost:8400"
        # Cache still holds the old token
        assert self.cache.lookup(RESOURCE_ID, CLIENT_ID).access_token == "cached"

    async def test_plain_sign_in_sends_no_hint_or_claims(
        self, provider, token_factory
    ):
        provider.interactive_outcomes.append(token_factory())
        client = IdentityProviderClient(provider, self.cache)

        await client.acquire_interactive(RESOURCE_ID, CLIENT_ID, "http://localhost")

        request = provider.interactive_calls[0]
        assert request.user_hint is None
        assert request.claims is None

    async def test_user_cancel_maps_to_user_canceled(self, provider):
        provider.interactive_outcomes.append(
            ProviderException("authentication_canceled", "User canceled")
        )
        client = IdentityProviderClient(provider, self.cache)

        result = await client.acquire_interactive(RESOURCE_ID, CLIENT_ID, "http://x")

        assert isinstance(result, AuthFailure)
        assert result.kind is ErrorKind.USER_CANCELED

    async def test_silent_failure_code_is_a_provider_error_interactively(
        self, provider
    ):
        provider.interactive_outcomes.append(
            ProviderException("failed_to_acquire_token_silently")
        )
        client = IdentityProviderClient(provider, self.cache)

        result = await client.acquire_interactive(RESOURCE_ID, CLIENT_ID, "http://x")

        assert result.kind is ErrorKind.PROVIDER_ERROR
