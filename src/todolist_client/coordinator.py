"""Step-up coordination for calls to conditional-access protected APIs.

A protected call runs silent acquisition, then the API call. When the API
answers with a claims challenge the coordinator re-acquires interactively
with those claims for the same user and retries the call once. A second
challenge ends the run with an error instead of prompting again.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from enum import Enum

from todolist_client.api.models import ApiChallenge, ApiFailure, ApiSuccess
from todolist_client.api.resource import ResourceClient
from todolist_client.auth.cache import CredentialCache
from todolist_client.auth.models.errors import ErrorKind
from todolist_client.auth.models.tokens import AuthFailure, AuthResult, ClaimsChallenge
from todolist_client.auth.provider import BrowserSessionClearer, IdentityProviderClient

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    SIGNED_OUT = "signed_out"
    SIGNED_IN = "signed_in"


@dataclass(frozen=True)
class Session:
    """Whether the user is signed in, passed into and out of every run."""

    state: SessionState = SessionState.SIGNED_OUT
    user_display_id: str | None = None

    @property
    def is_signed_in(self) -> bool:
        return self.state is SessionState.SIGNED_IN

    def signed_in(self, result: AuthResult) -> Session:
        return replace(
            self, state=SessionState.SIGNED_IN, user_display_id=result.user_display_id
        )

    def signed_out(self) -> Session:
        return Session()


class CoordinatorState(str, Enum):
    IDLE = "idle"
    SILENT_ACQUIRE = "silent_acquire"
    CALLING = "calling"
    AWAITING_STEP_UP = "awaiting_step_up"
    STEP_UP_ACQUIRE = "step_up_acquire"
    RETRYING = "retrying"
    DONE = "done"


class RunStatus(str, Enum):
    DONE = "done"
    NEEDS_SIGN_IN = "needs_sign_in"
    CANCELED = "canceled"
    ERROR = "error"


@dataclass
class RunOutcome:
    """Terminal result of one coordinator operation."""

    status: RunStatus
    session: Session
    response: ApiSuccess | None = None
    error_kind: ErrorKind | None = None
    message: str | None = None
    stepped_up: bool = False
    trace: list[CoordinatorState] = field(default_factory=list)

    @property
    def is_done(self) -> bool:
        return self.status is RunStatus.DONE


class StepUpCoordinator:
    """Runs protected calls with silent-first acquisition and bounded step-up.

    Holds AuthResult and ClaimsChallenge values only for the duration of one
    run. Successful acquisitions are stored into the credential cache here,
    never by the identity provider client.
    """

    def __init__(
        self,
        identity: IdentityProviderClient,
        resource: ResourceClient,
        cache: CredentialCache,
        resource_id: str,
        client_id: str,
        redirect_uri: str,
        browser_session: BrowserSessionClearer | None = None,
    ):
        self.identity = identity
        self.resource = resource
        self.cache = cache
        self.resource_id = resource_id
        self.client_id = client_id
        self.redirect_uri = redirect_uri
        self.browser_session = browser_session

    async def run(
        self,
        session: Session,
        method: str,
        path: str,
        data: dict[str, str] | None = None,
    ) -> RunOutcome:
        """Perform one protected API call.

        Args:
            session: Current session
            method: HTTP method
            path: API path relative to the base address
            data: Optional form body

        Returns:
            RunOutcome with the final status and the updated session
        """
        trace = [CoordinatorState.IDLE, CoordinatorState.SILENT_ACQUIRE]

        acquired = await self.identity.acquire_silent(self.resource_id, self.client_id)
        if isinstance(acquired, AuthFailure):
            return self._acquisition_failed(session, acquired, trace)

        self.cache.store(acquired)
        session = session.signed_in(acquired)

        trace.append(CoordinatorState.CALLING)
        outcome = await self.resource.call(method, path, acquired.access_token, data)

        if isinstance(outcome, ApiSuccess):
            trace.append(CoordinatorState.DONE)
            return RunOutcome(RunStatus.DONE, session, response=outcome, trace=trace)
        if isinstance(outcome, ApiFailure):
            return self._api_failed(session, outcome, trace)

        trace.append(CoordinatorState.AWAITING_STEP_UP)
        if outcome.is_blank():
            logger.error(f"Claims challenge from {path} carried no payload")
            return RunOutcome(
                RunStatus.ERROR,
                session,
                error_kind=ErrorKind.EMPTY_CHALLENGE_PAYLOAD,
                message="ESTS Returned no Claims on interaction_required",
                trace=trace,
            )

        challenge = ClaimsChallenge(
            payload=outcome.payload, target_user_hint=acquired.user_display_id
        )
        return await self._step_up(session, challenge, method, path, data, trace)

    async def _step_up(
        self,
        session: Session,
        challenge: ClaimsChallenge,
        method: str,
        path: str,
        data: dict[str, str] | None,
        trace: list[CoordinatorState],
    ) -> RunOutcome:
        trace.append(CoordinatorState.STEP_UP_ACQUIRE)
        logger.info(f"Stepping up authentication for {challenge.target_user_hint}")

        acquired = await self.identity.acquire_interactive(
            self.resource_id,
            self.client_id,
            self.redirect_uri,
            force_prompt=True,
            user_hint=challenge.target_user_hint,
            claims=challenge.payload,
        )
        if isinstance(acquired, AuthFailure):
            return self._acquisition_failed(session, acquired, trace)

        self.cache.store(acquired)
        session = session.signed_in(acquired)

        trace.append(CoordinatorState.RETRYING)
        outcome = await self.resource.call(method, path, acquired.access_token, data)

        if isinstance(outcome, ApiSuccess):
            trace.append(CoordinatorState.DONE)
            return RunOutcome(
                RunStatus.DONE, session, response=outcome, stepped_up=True, trace=trace
            )
        if isinstance(outcome, ApiChallenge):
            logger.error(f"{path} challenged again after step-up, giving up")
            return RunOutcome(
                RunStatus.ERROR,
                session,
                error_kind=ErrorKind.API_FAILURE,
                message="Problem calling Web API HTTP 400 interaction_required",
                stepped_up=True,
                trace=trace,
            )

        result = self._api_failed(session, outcome, trace)
        if outcome.status_code is None:
            result.message = f"Problem calling Web API : {outcome.reason}"
        else:
            result.message = f"Problem calling Web API HTTP {outcome.status_code}"
        result.stepped_up = True
        return result

    async def sign_in(self, session: Session) -> RunOutcome:
        """Force an interactive sign-in with no claims and no account hint."""
        trace = [CoordinatorState.IDLE, CoordinatorState.STEP_UP_ACQUIRE]
        acquired = await self.identity.acquire_interactive(
            self.resource_id, self.client_id, self.redirect_uri, force_prompt=True
        )
        if isinstance(acquired, AuthFailure):
            return self._acquisition_failed(session, acquired, trace)

        self.cache.store(acquired)
        trace.append(CoordinatorState.DONE)
        logger.info(f"Signed in as {acquired.user_display_id}")
        return RunOutcome(RunStatus.DONE, session.signed_in(acquired), trace=trace)

    def sign_out(self, session: Session) -> Session:
        """Clear every cached token and the browser session.

        The browser session is cleared even when the cache cannot be written.
        """
        try:
            self.cache.clear()
        finally:
            if self.browser_session is not None:
                self.browser_session.clear_browser_session()
        logger.info(f"Signed out {session.user_display_id or 'user'}")
        return session.signed_out()

    async def toggle(self, session: Session) -> RunOutcome:
        """Sign out when signed in, otherwise sign in."""
        if session.is_signed_in:
            return RunOutcome(RunStatus.DONE, self.sign_out(session))
        return await self.sign_in(session)

    async def restore(self, session: Session) -> RunOutcome:
        """Check for a usable token at startup without prompting.

        No token is the expected first-run case and yields NEEDS_SIGN_IN
        with no message.
        """
        trace = [CoordinatorState.IDLE, CoordinatorState.SILENT_ACQUIRE]
        acquired = await self.identity.acquire_silent(self.resource_id, self.client_id)
        if isinstance(acquired, AuthFailure):
            outcome = self._acquisition_failed(session, acquired, trace)
            if outcome.status is RunStatus.NEEDS_SIGN_IN:
                outcome.message = None
            return outcome

        self.cache.store(acquired)
        trace.append(CoordinatorState.DONE)
        return RunOutcome(RunStatus.DONE, session.signed_in(acquired), trace=trace)

    def _acquisition_failed(
        self,
        session: Session,
        failure: AuthFailure,
        trace: list[CoordinatorState],
    ) -> RunOutcome:
        if failure.kind is ErrorKind.SILENT_ACQUISITION_FAILED:
            return RunOutcome(
                RunStatus.NEEDS_SIGN_IN,
                session,
                error_kind=failure.kind,
                message="Please sign in first",
                trace=trace,
            )
        if failure.kind is ErrorKind.USER_CANCELED:
            return RunOutcome(
                RunStatus.CANCELED,
                session,
                error_kind=failure.kind,
                message="Sign in was canceled by the user",
                trace=trace,
            )
        return RunOutcome(
            RunStatus.ERROR,
            session,
            error_kind=failure.kind,
            message=failure.message,
            trace=trace,
        )

    def _api_failed(
        self,
        session: Session,
        failure: ApiFailure,
        trace: list[CoordinatorState],
    ) -> RunOutcome:
        return RunOutcome(
            RunStatus.ERROR,
            session,
            error_kind=ErrorKind.API_FAILURE,
            message=f"An error occurred : {failure.reason}",
            trace=trace,
        )
