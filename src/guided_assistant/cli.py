"""Command line entry-point for the guided assistant."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Callable, Optional

from .api import add_server_arguments, run_api_server
from .config import AppSettings
from .controller import ControllerStateError
from .maf_client import MAFChatClient
from .observability import configure_logging
from .registry import PAGE_CONTEXTS, list_context_keys
from .sessions import AssistantSession, SessionManager

QUIT_COMMANDS = {"/quit", "/exit"}

InputReader = Callable[[str], str]


def _parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="guided-assistant",
        description="Guide applicants through scripted questions with a model fallback.",
    )
    subparsers = parser.add_subparsers(dest="command")

    chat_parser = subparsers.add_parser(
        "chat",
        help="Chat with the assistant in the terminal (default)",
    )
    chat_parser.add_argument(
        "--context",
        help="Application page whose script to run (see `contexts`).",
    )

    serve_parser = subparsers.add_parser(
        "serve",
        help="Run the HTTP API server",
    )
    add_server_arguments(serve_parser)

    subparsers.add_parser("contexts", help="List known page contexts")
    return parser.parse_args(argv)


def _progress(session: AssistantSession) -> str:
    controller = session.controller
    if controller.is_open_ended:
        return "[chat]"
    step = min(controller.step_index + 1, controller.question_count)
    return f"[{step}/{controller.question_count}]"


def _say(session: AssistantSession, text: str) -> None:
    print()  # noqa: T201 - CLI UX newline
    print(f"Assistant {_progress(session)}: {text}")  # noqa: T201
    label = session.action_label
    if label:
        print(f"  (type /confirm to: {label})")  # noqa: T201


def _handle_command(session: AssistantSession, command: str) -> None:
    if command == "/reset":
        session.start_over()
        _say(session, session.controller.messages[-1].text)
    elif command == "/switch":
        session.switch_mode()
        _say(session, session.controller.messages[-1].text)
    elif command == "/confirm":
        try:
            outcome = session.press_action()
        except ControllerStateError as exc:
            print(f"Nothing to confirm: {exc}")  # noqa: T201
            return
        if outcome == "confirmed":
            print(f"Confirmed estimate: {session.confirmed_estimate}")  # noqa: T201
            if session.last_record_id:
                print(f"Saved as {session.last_record_id}")  # noqa: T201
            print(f"Type /confirm again to: {session.action_label}")  # noqa: T201
        else:
            _say(session, session.controller.messages[-1].text)
    else:
        print(f"Unknown command {command}. Use /reset, /switch, /confirm or /quit.")  # noqa: T201


async def run_chat(
    session: AssistantSession,
    read_input: InputReader = input,
) -> Optional[str]:
    """Drive ``session`` from the terminal; return the confirmed estimate."""

    _say(session, session.controller.messages[-1].text)
    while True:
        try:
            raw = read_input("You: ")  # noqa: PLW1514 - intentional CLI input
        except EOFError:
            break
        text = raw.strip()
        if not text:
            continue
        lowered = text.lower()
        if lowered in QUIT_COMMANDS:
            break
        if lowered.startswith("/"):
            _handle_command(session, lowered)
            continue
        try:
            result = await session.handle_user_message(text)
        except ControllerStateError as exc:
            print(f"{exc} (/switch or /reset)")  # noqa: T201
            continue
        if result is not None:
            _say(session, result.assistant_text)
    return session.confirmed_estimate


def run_cli(argv: Optional[list[str]] = None) -> None:
    """Entry-point invoked from ``python -m guided_assistant``."""

    arg_list = list(argv) if argv is not None else sys.argv[1:]
    args = _parse_args(arg_list)
    command = args.command or "chat"

    if command == "contexts":
        for key in list_context_keys():
            marker = " (scripted)" if PAGE_CONTEXTS[key].script else ""
            print(f"{key}{marker}")  # noqa: T201
        return

    configure_logging(logging.WARNING if command == "chat" else logging.INFO)
    try:
        settings = AppSettings.load()
    except RuntimeError as exc:
        raise SystemExit(f"Configuration error: {exc}") from exc

    if command == "serve":
        run_api_server(
            settings,
            host=args.host,
            port=args.port,
            allow_origins=args.allow_origin,
            tracing=args.tracing,
            log_level=args.log_level,
        )
        return

    context_key = getattr(args, "context", None) or settings.default_context
    manager = SessionManager.from_settings(settings, MAFChatClient(settings.model))
    session = manager.create(context_key)
    estimate = asyncio.run(run_chat(session))
    if estimate is not None:
        print(f"Final confirmed estimate: {estimate}")  # noqa: T201


if __name__ == "__main__":  # pragma: no cover - manual execution hook
    run_cli()
