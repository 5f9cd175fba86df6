import time
from typing import Any, Callable

import httpx
import pytest

from todolist_client.api.resource import ResourceClient
from todolist_client.auth.cache import CredentialCache
from todolist_client.auth.models.errors import ProviderException
from todolist_client.auth.models.tokens import (
    AcquiredVia,
    AuthResult,
    InteractiveRequest,
    ProviderToken,
)
from todolist_client.auth.provider import IdentityProviderClient
from todolist_client.coordinator import StepUpCoordinator

RESOURCE_ID = "https://contoso.onmicrosoft.com/TodoListService"
CLIENT_ID = "client-123"
REDIRECT_URI = "http://localhost:8400"
BASE_ADDRESS = "https://todo.example.com"


class FakeIdentityProvider:
    """Identity provider that replays scripted outcomes and records calls.

    Each queued outcome is either a ProviderToken or a ProviderException.
    """

    def __init__(self):
        self.silent_outcomes: list[ProviderToken | Exception] = []
        self.interactive_outcomes: list[ProviderToken | Exception] = []
        self.silent_calls: list[tuple[str, str]] = []
        self.interactive_calls: list[InteractiveRequest] = []
        self.browser_cleared = False

    async def acquire_token_silent(
        self, resource_id: str, client_id: str
    ) -> ProviderToken:
        self.silent_calls.append((resource_id, client_id))
        if not self.silent_outcomes:
            raise ProviderException("failed_to_acquire_token_silently")
        return self._next(self.silent_outcomes)

    async def acquire_token_interactive(
        self, request: InteractiveRequest
    ) -> ProviderToken:
        self.interactive_calls.append(request)
        if not self.interactive_outcomes:
            raise AssertionError("Unexpected interactive acquisition")
        return self._next(self.interactive_outcomes)

    def clear_browser_session(self) -> None:
        self.browser_cleared = True

    def _next(self, outcomes: list[ProviderToken | Exception]) -> ProviderToken:
        outcome = outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class RecordingHandler:
    """httpx.MockTransport handler returning queued responses in order."""

    def __init__(self):
        self.responses: list[httpx.Response | Callable[[httpx.Request], Any]] = []
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.responses:
            raise AssertionError(f"Unexpected request {request.method} {request.url}")
        response = self.responses.pop(0)
        if callable(response):
            return response(request)
        return response


def make_token(
    access_token: str = "token-abc",
    user_id: str = "user-1",
    display_id: str = "alice@contoso.com",
    expires_in: float | None = 3600,
) -> ProviderToken:
    return ProviderToken(
        access_token=access_token,
        user_id=user_id,
        user_display_id=display_id,
        expires_at=time.time() + expires_in if expires_in is not None else None,
    )


def make_result(
    access_token: str = "token-abc",
    user_id: str = "user-1",
    display_id: str = "alice@contoso.com",
    expires_in: float | None = 3600,
    resource_id: str = RESOURCE_ID,
) -> AuthResult:
    return AuthResult.from_provider_token(
        make_token(access_token, user_id, display_id, expires_in),
        resource_id,
        CLIENT_ID,
        AcquiredVia.SILENT,
    )


def challenge_response(payload: str = "claims123") -> httpx.Response:
    return httpx.Response(
        400, text=payload, extensions={"reason_phrase": b"interaction_required"}
    )


@pytest.fixture
def token_factory():
    return make_token


@pytest.fixture
def result_factory():
    return make_result


@pytest.fixture
def challenge_factory():
    return challenge_response


@pytest.fixture
def cache():
    return CredentialCache()


@pytest.fixture
def provider():
    return FakeIdentityProvider()


@pytest.fixture
def http_handler():
    return RecordingHandler()


@pytest.fixture
async def resource_client(http_handler):
    client = ResourceClient(BASE_ADDRESS, transport=httpx.MockTransport(http_handler))
    yield client
    await client.close()


@pytest.fixture
def coordinator(provider, cache, resource_client):
    return StepUpCoordinator(
        identity=IdentityProviderClient(provider, cache),
        resource=resource_client,
        cache=cache,
        resource_id=RESOURCE_ID,
        client_id=CLIENT_ID,
        redirect_uri=REDIRECT_URI,
        browser_session=provider,
    )
