"""FastAPI entrypoint exposing assistant sessions over HTTP."""

from __future__ import annotations

import argparse
import logging
from typing import Any, Dict, List, Optional, Sequence

from fastapi import FastAPI, HTTPException, Response
from fastapi.middleware.cors import CORSMiddleware
import uvicorn
from pydantic import BaseModel, Field

from .config import AppSettings
from .controller import ControllerStateError
from .maf_client import MAFChatClient
from .observability import configure_logging, initialize_tracing
from .registry import get_page_context, list_context_keys
from .responder import CompletionClient, GenerativeResponder
from .sessions import AssistantSession, SessionManager

logger = logging.getLogger(__name__)


class CreateSessionRequest(BaseModel):
    context_key: Optional[str] = None


class MessageRequest(BaseModel):
    text: str


class ChatRequest(BaseModel):
    message: str
    history: List[str] = Field(default_factory=list)


def create_app(
    settings: AppSettings,
    *,
    client: CompletionClient | None = None,
    allow_origins: Sequence[str] | None = None,
) -> FastAPI:
    """Create the FastAPI app serving sessions and direct model chat."""

    app = FastAPI(title="Guided Assistant")

    origins = list(allow_origins) if allow_origins else ["*"]
    allow_credentials = origins != ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    chat_client: CompletionClient = (
        client if client is not None else MAFChatClient(settings.model)
    )
    manager = SessionManager.from_settings(settings, chat_client)
    default_responder = GenerativeResponder.from_settings(
        settings,
        chat_client,
        system_prompt_hint=get_page_context(
            settings.default_context
        ).system_prompt_hint,
    )
    app.state.sessions = manager

    def _get_session(session_id: str) -> AssistantSession:
        try:
            return manager.get(session_id)
        except KeyError as exc:
            raise HTTPException(
                status_code=404,
                detail=f"Unknown session '{session_id}'.",
            ) from exc

    @app.post("/sessions", status_code=201)
    async def create_session(payload: CreateSessionRequest) -> Dict[str, Any]:
        context_key = payload.context_key or settings.default_context
        session = manager.create(context_key)
        return session.snapshot()

    @app.get("/sessions/{session_id}")
    async def get_session(session_id: str) -> Dict[str, Any]:
        return _get_session(session_id).snapshot()

    @app.delete("/sessions/{session_id}", status_code=204)
    async def delete_session(session_id: str) -> Response:
        if not manager.drop(session_id):
            raise HTTPException(
                status_code=404,
                detail=f"Unknown session '{session_id}'.",
            )
        return Response(status_code=204)

    @app.post("/sessions/{session_id}/messages")
    async def post_message(
        session_id: str,
        payload: MessageRequest,
    ) -> Dict[str, Any]:
        session = _get_session(session_id)
        try:
            result = await session.handle_user_message(payload.text)
        except ControllerStateError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        if result is None:
            raise HTTPException(status_code=422, detail="Message is empty.")
        return {
            "assistant_text": result.assistant_text,
            "ended": result.ended,
            "session": session.snapshot(),
        }

    @app.post("/sessions/{session_id}/switch-mode")
    async def switch_mode(session_id: str) -> Dict[str, Any]:
        session = _get_session(session_id)
        session.switch_mode()
        return session.snapshot()

    @app.post("/sessions/{session_id}/confirm")
    async def confirm(session_id: str) -> Dict[str, Any]:
        session = _get_session(session_id)
        estimate = session.confirm()
        if estimate is None:
            raise HTTPException(
                status_code=409,
                detail="No unconfirmed estimate is pending.",
            )
        return {
            "estimate": estimate,
            "record_id": session.last_record_id,
            "session": session.snapshot(),
        }

    @app.post("/sessions/{session_id}/action")
    async def press_action(session_id: str) -> Dict[str, Any]:
        session = _get_session(session_id)
        try:
            outcome = session.press_action()
        except ControllerStateError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        return {"outcome": outcome, "session": session.snapshot()}

    @app.post("/sessions/{session_id}/reset")
    async def reset(session_id: str) -> Dict[str, Any]:
        session = _get_session(session_id)
        session.start_over()
        return session.snapshot()

    @app.post("/llm/chat")
    async def llm_chat(payload: ChatRequest) -> Dict[str, str]:
        reply = await default_responder.send(payload.message, payload.history)
        return {"response": reply}

    @app.get("/contexts")
    async def contexts() -> Dict[str, List[str]]:
        return {"contexts": list_context_keys()}

    @app.get("/health")
    async def health() -> dict[str, str]:  # pragma: no cover - simple health probe
        return {"status": "ok"}

    return app


def run_api_server(
    settings: AppSettings,
    *,
    host: str = "127.0.0.1",
    port: int = 8081,
    allow_origins: Sequence[str] | None = None,
    tracing: bool = False,
    log_level: str = "info",
) -> None:
    """Start the assistant FastAPI server."""

    if tracing:
        initialize_tracing()
    app = create_app(settings=settings, allow_origins=allow_origins)
    uvicorn.run(app, host=host, port=port, log_level=log_level)


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="python -m guided_assistant.api",
        description="Serve guided assistant sessions over HTTP.",
    )
    add_server_arguments(parser)
    return parser.parse_args(argv)


def add_server_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host interface for the API server (default: 127.0.0.1).",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8081,
        help="Port for the API server (default: 8081).",
    )
    parser.add_argument(
        "--allow-origin",
        action="append",
        dest="allow_origin",
        help="Optional CORS origin(s) to allow. Defaults to '*'.",
    )
    parser.add_argument(
        "--tracing",
        action="store_true",
        help="Enable OpenTelemetry tracing for model calls.",
    )
    parser.add_argument(
        "--log-level",
        default="info",
        help="Logging level for uvicorn (default: info).",
    )


def main(argv: Sequence[str] | None = None) -> None:
    configure_logging(logging.INFO)
    args = _parse_args(argv)
    try:
        settings = AppSettings.load()
    except RuntimeError as exc:
        logging.error("Failed to load AppSettings: %s", exc)
        raise SystemExit(1) from exc

    run_api_server(
        settings=settings,
        host=args.host,
        port=args.port,
        allow_origins=args.allow_origin,
        tracing=args.tracing,
        log_level=args.log_level,
    )


if __name__ == "__main__":
    main()
