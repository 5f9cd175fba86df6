"""Outcome and payload models for calls to the todo-list API."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


@dataclass(frozen=True)
class ApiSuccess:
    status_code: int
    body: str


@dataclass(frozen=True)
class ApiChallenge:
    """400 ``interaction_required`` response carrying a claims payload."""

    payload: str

    def is_blank(self) -> bool:
        return not self.payload.strip()


@dataclass(frozen=True)
class ApiFailure:
    """Any other non-success outcome.

    ``status_code`` is None when the request never got a response.
    """

    status_code: int | None
    reason: str


ApiOutcome = ApiSuccess | ApiChallenge | ApiFailure


class TodoItem(BaseModel):
    """One todo entry as returned by the service."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    title: str = Field(default="", alias="Title")


_todo_list_adapter = TypeAdapter(list[TodoItem])


def parse_todo_list(body: str) -> list[TodoItem]:
    """Parse a JSON array of todo records."""
    return _todo_list_adapter.validate_json(body)
