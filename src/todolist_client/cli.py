"""Command-line front end for the todo-list client.

Usage:
    todolist-client [--env-file PATH] [-v] {status,list,add,ca,sign-in,sign-out}

Configuration is read from TODOLIST_* environment variables (see
todolist_client.config). Tokens persist between runs in the file cache.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from todolist_client.auth.cache import FileCredentialCache
from todolist_client.auth.models.errors import ErrorKind, TodoListClientError
from todolist_client.auth.msal_provider import MsalIdentityProvider
from todolist_client.config import AppConfig
from todolist_client.coordinator import RunStatus, Session
from todolist_client.todolist import TodoListClient, TodoListResult

logger = logging.getLogger(__name__)

EXIT_CODES = {
    RunStatus.DONE: 0,
    RunStatus.ERROR: 1,
    RunStatus.NEEDS_SIGN_IN: 2,
    RunStatus.CANCELED: 3,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="todolist-client",
        description="Todo-list client with conditional-access step-up.",
    )
    parser.add_argument("--env-file", help="Read settings from this .env file")
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging"
    )

    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("status", help="Show whether a usable token is cached")
    commands.add_parser("list", help="Show the todo list")
    add = commands.add_parser("add", help="Add a todo item")
    add.add_argument("title", help="Title of the new item")
    commands.add_parser("ca", help="Call the conditional-access protected API")
    commands.add_parser("sign-in", help="Sign in interactively")
    commands.add_parser("sign-out", help="Clear cached tokens and the browser session")
    return parser


def report(result: TodoListResult) -> int:
    """Print a result the way the desktop client surfaced it."""
    if result.titles is not None:
        for title in result.titles:
            print(title)
        if not result.titles:
            print("(no items)")

    if result.message:
        stream = sys.stderr if result.status is RunStatus.ERROR else sys.stdout
        if result.outcome.error_kind is ErrorKind.PROVIDER_UNAVAILABLE:
            print(f"Service temporarily unavailable, try again: {result.message}", file=stream)
        else:
            print(result.message, file=stream)

    return EXIT_CODES[result.status]


async def run_command(args: argparse.Namespace, config: AppConfig) -> int:
    provider = MsalIdentityProvider(
        config.client_id, config.authority, token_cache_path=config.msal_cache_path
    )
    cache = FileCredentialCache(config.cache_path)

    async with TodoListClient.from_config(
        config, provider, cache, browser_session=provider
    ) as client:
        restored = await client.coordinator.restore(Session())
        session = restored.session

        if args.command == "status":
            if session.is_signed_in:
                print(f"Signed in as {session.user_display_id}")
                return 0
            if restored.status is RunStatus.ERROR:
                return report(TodoListResult(restored))
            print("Signed out")
            return 0

        if args.command == "sign-out":
            client.sign_out(session)
            print("Signed out")
            return 0

        if args.command == "sign-in":
            if session.is_signed_in:
                print(f"Already signed in as {session.user_display_id}")
                return 0
            return report(await client.sign_in(session))

        if args.command == "list":
            return report(await client.get_todo_list(session))

        if args.command == "add":
            try:
                result = await client.add_todo_item(session, args.title)
            except ValueError as e:
                print(e, file=sys.stderr)
                return 1
            return report(result)

        if args.command == "ca":
            return report(await client.access_ca_api(session))

    raise AssertionError(f"Unhandled command {args.command}")


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = AppConfig.from_env(args.env_file)
        return asyncio.run(run_command(args, config))
    except TodoListClientError as e:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
