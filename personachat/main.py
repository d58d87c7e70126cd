"""
FastAPI application: the personachat entry point.

Collaborators (completion backend, message store, rate limiter, identity
provider, persistence queue) are built once in the lifespan and live on
app.state. Pass them to create_app() to substitute them, e.g. a shared
rate limiter for multi-instance deployments or fakes in tests.
"""

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from personachat.backends import BaseBackend, make_backend
from personachat.chat import ChatPipeline
from personachat.cli import __version__
from personachat.config import get_config
from personachat.errors import PersistenceError
from personachat.identity import IdentityProvider, make_identity
from personachat.persistence import PersistenceQueue
from personachat.personas import MODES, is_valid_mode
from personachat.rate_limit import RateLimiter
from personachat.storage import MessageStore, make_store

logger = logging.getLogger(__name__)


def _setup_logging(cfg: dict):
    log_cfg = cfg.get("logging", {})
    level = getattr(logging, str(log_cfg.get("level", "INFO")).upper(), logging.INFO)
    log_file = log_cfg.get("file")

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=handlers,
    )


def create_app(
    cfg: dict | None = None,
    *,
    backend: BaseBackend | None = None,
    store: MessageStore | None = None,
    limiter: RateLimiter | None = None,
    identity: IdentityProvider | None = None,
) -> FastAPI:

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup / shutdown lifecycle."""
        config = cfg if cfg is not None else get_config()
        _setup_logging(config)

        state = app.state
        state.cfg = config
        state.backend = backend if backend is not None else make_backend(config)
        state.store = store if store is not None else make_store(config)
        state.limiter = limiter if limiter is not None else RateLimiter.from_config(config)
        state.identity = identity if identity is not None else make_identity(config)

        p_cfg = config.get("persistence", {})
        state.persistence = None
        if p_cfg.get("enabled", True):
            state.persistence = PersistenceQueue(
                state.store, maxsize=int(p_cfg.get("queue_size", 1000))
            )
            state.persistence.start()

        state.pipeline = ChatPipeline.from_config(
            config,
            backend=state.backend,
            limiter=state.limiter,
            persistence=state.persistence,
            identity=state.identity,
        )

        sweeper = asyncio.create_task(state.limiter.sweep_forever(), name="rate-limit-sweeper")

        logger.info("personachat %s started", __version__)
        logger.info("Provider: %r", state.backend)
        logger.info("Store: %s", state.store.name)
        logger.info(
            "Rate limit: %d requests / %.0fs per client",
            state.limiter.max_requests, state.limiter.window_seconds,
        )
        logger.info("Identity: %s", state.identity.name)
        logger.info("Persistence: %s", "enabled" if state.persistence else "disabled")

        yield

        sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper
        if state.persistence is not None:
            await state.persistence.stop(timeout=float(p_cfg.get("drain_timeout", 5)))
        await state.store.close()
        logger.info("personachat shutting down")

    app = FastAPI(
        title="personachat",
        description="Persona chat backend with rate limiting, streaming and history.",
        version=__version__,
        lifespan=lifespan,
    )

    @app.post("/api/chat")
    async def chat(request: Request):
        """Main chat endpoint. JSON reply, or an event stream when stream=true."""
        return await request.app.state.pipeline.handle(request)

    @app.get("/api/messages")
    async def list_messages(request: Request, userId: str | None = None, mode: str | None = None):
        """Stored history for a user, oldest first."""
        state = request.app.state
        user_id = await state.identity.resolve(request, userId)
        if not user_id:
            return JSONResponse({"error": "A user id is required."}, status_code=400)
        if mode is not None and not is_valid_mode(mode):
            return JSONResponse(
                {"error": f"Invalid mode. Must be one of: {', '.join(MODES)}"},
                status_code=400,
            )
        try:
            messages = await state.store.get_messages(user_id, mode)
        except PersistenceError as e:
            logger.error("Failed to load history for %s: %s", user_id, e)
            return JSONResponse({"error": "Failed to load chat history."}, status_code=500)
        return JSONResponse({"messages": messages})

    @app.delete("/api/messages")
    async def clear_messages(request: Request, userId: str | None = None):
        """Delete a user's whole history."""
        state = request.app.state
        user_id = await state.identity.resolve(request, userId)
        if not user_id:
            return JSONResponse({"error": "A user id is required."}, status_code=400)
        try:
            deleted = await state.store.delete_messages(user_id)
        except PersistenceError as e:
            logger.error("Failed to clear history for %s: %s", user_id, e)
            return JSONResponse({"error": "Failed to clear chat history."}, status_code=500)
        return JSONResponse({"deleted": deleted})

    @app.get("/api/health")
    async def health(request: Request):
        state = request.app.state
        return JSONResponse({
            "status": "ok",
            "version": __version__,
            "provider": state.backend.name,
            "provider_ok": await state.backend.health_check(),
            "store": state.store.name,
        })

    return app


app = create_app()
