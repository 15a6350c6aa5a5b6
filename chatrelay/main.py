"""
FastAPI application, the chatrelay entry point.

Routes (each also served under /api):
  POST /chat            relay one message to the provider, store the exchange
  GET  /history         list stored conversations with a title
  GET  /history/{id}    one full conversation
  GET  /                liveness text
  GET  /health          JSON health check

Everything a handler needs (config, completion client, store, wire log)
is built once in the lifespan and hung off app.state.
"""

import json
import logging
import sqlite3
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from chatrelay import __version__
from chatrelay.backends.base import BaseBackend
from chatrelay.backends.openai_compat import OpenAICompatibleBackend
from chatrelay.completion import CompletionClient, MissingAPIKeyError, ProviderError
from chatrelay.config import Config, LoggingConfig, get_config
from chatrelay.storage.models import new_conversation_id
from chatrelay.storage.sqlite_store import SQLiteStore
from chatrelay.wiretap import WireLog

logger = logging.getLogger(__name__)

MESSAGE_REQUIRED = "Message is required"
EMPTY_MESSAGE_REPLY = "Please say something."


def _setup_logging(log_cfg: LoggingConfig):
    level = getattr(logging, log_cfg.level.upper(), logging.INFO)

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_cfg.file:
        Path(log_cfg.file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_cfg.file))

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=handlers,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    cfg: Config = app.state.config or get_config()
    app.state.config = cfg
    _setup_logging(cfg.logging)

    backend = app.state.backend or OpenAICompatibleBackend(
        name="provider",
        url=cfg.backend.url,
        timeout=cfg.backend.timeout,
        api_key=cfg.backend.api_key,
    )
    app.state.completion = CompletionClient(backend, cfg.backend)
    app.state.store = SQLiteStore(cfg.storage.sqlite_path) if cfg.storage.enabled else None
    app.state.wire = WireLog(cfg.wiretap.path) if cfg.wiretap.enabled else None

    logger.info("chatrelay started, listening on %s:%s", cfg.server.host, cfg.server.port)
    logger.info("Provider: %s, model %s", backend.url, cfg.backend.model)
    logger.info("Provider API key: %s", "found" if cfg.backend.api_key else "MISSING")
    logger.info("Storage: %s", cfg.storage.sqlite_path if cfg.storage.enabled else "disabled")
    logger.info("Wiretap: %s", cfg.wiretap.path if cfg.wiretap.enabled else "disabled")

    yield

    if app.state.wire:
        app.state.wire.close()
    logger.info("chatrelay shutting down")


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------
router = APIRouter()


def _tap(request: Request, direction: str, role: str, content: str, conversation_id: str, model: str = ""):
    wire: WireLog | None = request.app.state.wire
    if wire:
        wire.log(direction=direction, role=role, content=content, model=model, conversation_id=conversation_id)


@router.post("/chat")
async def chat(request: Request):
    """
    Relay one user message to the provider and return the reply.
    Body: {"message": str, "conversationId"?: str}
    """
    try:
        body = await request.json()
    except ValueError:
        return JSONResponse({"error": "invalid JSON"}, status_code=400)
    if not isinstance(body, dict):
        return JSONResponse({"error": "body must be a JSON object"}, status_code=400)

    message = body.get("message")
    if not isinstance(message, str) or not message.strip():
        return JSONResponse(
            {"error": MESSAGE_REQUIRED, "reply": EMPTY_MESSAGE_REPLY},
            status_code=400,
        )

    conversation_id = body.get("conversationId")
    if conversation_id is not None and not isinstance(conversation_id, str):
        return JSONResponse({"error": "conversationId must be a string"}, status_code=400)
    conversation_id = (conversation_id or "").strip() or new_conversation_id()

    completion_client: CompletionClient = request.app.state.completion
    store: SQLiteStore | None = request.app.state.store

    try:
        _tap(request, "inbound", "user", message, conversation_id)
        completion = await completion_client.complete(message)
        _tap(request, "provider", "provider", json.dumps(completion.raw, ensure_ascii=False),
             conversation_id, completion.model)

        if store:
            store.append_exchange(conversation_id, message, completion.reply)
        _tap(request, "outbound", "bot", completion.reply, conversation_id, completion.model)
    except MissingAPIKeyError as e:
        return JSONResponse({"error": str(e), "reply": str(e)}, status_code=500)
    except ProviderError as e:
        return JSONResponse({"error": e.message}, status_code=500)
    except sqlite3.Error as e:
        logger.error("[chat] Failed to store conversation %s: %s", conversation_id, e)
        return JSONResponse({"error": "Something went wrong"}, status_code=500)
    except Exception:
        logger.exception("[chat] Unexpected error in conversation %s", conversation_id)
        return JSONResponse({"error": "Something went wrong"}, status_code=500)

    return JSONResponse({"reply": completion.reply, "conversationId": conversation_id})


def _storage_disabled() -> JSONResponse:
    return JSONResponse({"error": "Storage not enabled"}, status_code=503)


@router.get("/history")
async def list_history(request: Request):
    """All conversations as [{conversationId, title}]."""
    store: SQLiteStore | None = request.app.state.store
    if not store:
        return _storage_disabled()
    try:
        return JSONResponse(store.list_conversations())
    except sqlite3.Error as e:
        logger.error("[history] Error fetching history: %s", e)
        return JSONResponse({"error": "Error fetching history"}, status_code=500)


@router.get("/history/{conversation_id}")
async def get_history(conversation_id: str, request: Request):
    """One conversation with all of its messages."""
    store: SQLiteStore | None = request.app.state.store
    if not store:
        return _storage_disabled()
    try:
        conv = store.get_conversation(conversation_id)
    except sqlite3.Error as e:
        logger.error("[history] Error fetching conversation %s: %s", conversation_id, e)
        return JSONResponse({"error": "Error fetching conversation"}, status_code=500)
    if conv is None:
        return JSONResponse({"error": "Conversation not found"}, status_code=404)
    return JSONResponse(conv.to_dict())


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------

def create_app(config: Config | None = None, backend: BaseBackend | None = None) -> FastAPI:
    """
    Build the application. Without arguments the config is loaded from
    config.yaml at startup and the provider backend is built from it.
    """
    app = FastAPI(
        title="chatrelay",
        description="Relay chat messages to an LLM provider and keep the history.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.backend = backend
    app.state.completion = None
    app.state.store = None
    app.state.wire = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router, tags=["chat"])
    app.include_router(router, prefix="/api", tags=["chat-api"])

    @app.get("/", response_class=PlainTextResponse)
    async def root():
        return "chatrelay is running"

    @app.get("/health")
    async def health(request: Request):
        store: SQLiteStore | None = request.app.state.store
        return JSONResponse({
            "status": "ok",
            "version": __version__,
            "storage": store.get_stats() if store else "disabled",
        })

    return app


app = create_app()
