"""Todo-list operations on top of the step-up coordinator.

Each operation takes the current Session and returns a result carrying the
next one, so front ends decide what to show from the returned state instead
of keeping their own sign-in flags.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from pydantic import ValidationError

from todolist_client.api.models import TodoItem, parse_todo_list
from todolist_client.api.resource import ResourceClient
from todolist_client.auth.cache import CredentialCache
from todolist_client.auth.models.errors import ErrorKind
from todolist_client.auth.provider import (
    BrowserSessionClearer,
    IdentityProvider,
    IdentityProviderClient,
)
from todolist_client.config import AppConfig
from todolist_client.coordinator import (
    RunOutcome,
    RunStatus,
    Session,
    StepUpCoordinator,
)

logger = logging.getLogger(__name__)

TODO_LIST_PATH = "/api/todolist"
ACCESS_CA_API_PATH = "/api/AccessCaApi"


@dataclass
class TodoListResult:
    """Outcome of an operation, with the todo titles when they were loaded."""

    outcome: RunOutcome
    titles: list[str] | None = None
    items: list[TodoItem] = field(default_factory=list)

    @property
    def session(self) -> Session:
        return self.outcome.session

    @property
    def status(self) -> RunStatus:
        return self.outcome.status

    @property
    def message(self) -> str | None:
        return self.outcome.message


class TodoListClient:
    """Client for the todo-list service and its CA-protected endpoint.

    Use as an async context manager, or call ``close()`` when done.
    """

    def __init__(self, coordinator: StepUpCoordinator):
        self.coordinator = coordinator

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        provider: IdentityProvider,
        cache: CredentialCache,
        browser_session: BrowserSessionClearer | None = None,
    ) -> TodoListClient:
        resource = ResourceClient(config.todo_list_base_address, timeout=config.timeout)
        coordinator = StepUpCoordinator(
            identity=IdentityProviderClient(provider, cache),
            resource=resource,
            cache=cache,
            resource_id=config.todo_list_resource_id,
            client_id=config.client_id,
            redirect_uri=config.redirect_uri,
            browser_session=browser_session,
        )
        return cls(coordinator)

    async def get_todo_list(self, session: Session) -> TodoListResult:
        """Fetch the todo list and return its titles."""
        outcome = await self.coordinator.run(session, "GET", TODO_LIST_PATH)
        if not outcome.is_done:
            return TodoListResult(outcome)

        try:
            items = parse_todo_list(outcome.response.body)
        except ValidationError as e:
            logger.error(f"Malformed todo list response: {e}")
            outcome.status = RunStatus.ERROR
            outcome.error_kind = ErrorKind.API_FAILURE
            outcome.message = f"An error occurred : malformed todo list ({e.error_count()} errors)"
            return TodoListResult(outcome)

        logger.debug(f"Loaded {len(items)} todo items")
        return TodoListResult(outcome, titles=[item.title for item in items], items=items)

    async def add_todo_item(self, session: Session, title: str) -> TodoListResult:
        """Add an item and reload the list.

        Raises:
            ValueError: If title is empty; nothing is sent in that case
        """
        if not title or not title.strip():
            raise ValueError("Please enter a value for the To Do item name")

        outcome = await self.coordinator.run(
            session, "POST", TODO_LIST_PATH, data={"Title": title}
        )
        if not outcome.is_done:
            return TodoListResult(outcome)

        logger.info(f"Added todo item {title!r}")
        return await self.get_todo_list(outcome.session)

    async def access_ca_api(self, session: Session) -> TodoListResult:
        """Call the conditional-access protected endpoint, stepping up if asked."""
        outcome = await self.coordinator.run(session, "GET", ACCESS_CA_API_PATH)
        if outcome.is_done:
            if outcome.stepped_up:
                outcome.message = "Successfully called CA-Protected Web API"
            else:
                outcome.message = (
                    "We already Stepped-up.  Successfully called CA protected Web API"
                )
        return TodoListResult(outcome)

    async def sign_in(self, session: Session) -> TodoListResult:
        """Prompt for sign-in, then load the list."""
        outcome = await self.coordinator.sign_in(session)
        if not outcome.is_done:
            return TodoListResult(outcome)
        return await self.get_todo_list(outcome.session)

    def sign_out(self, session: Session) -> Session:
        return self.coordinator.sign_out(session)

    async def restore(self, session: Session | None = None) -> TodoListResult:
        """Resume a previous session without prompting and load the list."""
        outcome = await self.coordinator.restore(session or Session())
        if not outcome.is_done:
            return TodoListResult(outcome)
        return await self.get_todo_list(outcome.session)

    async def close(self) -> None:
        await self.coordinator.resource.close()

    async def __aenter__(self) -> TodoListClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()
