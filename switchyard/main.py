"""
Switchyard: FastAPI entrypoint.
"""
from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Load .env before anything else
load_dotenv()

from switchyard.agent.manager import CompletionManager
from switchyard.agent.validator import ProviderValidator
from switchyard.config import get_settings, load_config
from switchyard.errors import AIError, ErrorCode
from switchyard.models.registry import build_default_registry
from switchyard.routers.chat import router as chat_router
from switchyard.routers.providers import router as providers_router
from switchyard.tools.executor import build_tool_executor
from switchyard.tools.mcp import PluginServerRegistry

logger = logging.getLogger(__name__)

VERSION = "0.1.0"


def configure_logging() -> None:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    if not hasattr(app.state, "manager"):
        cfg = load_config()
        plugin_servers = PluginServerRegistry()
        tool_executor = build_tool_executor(cfg.tools, plugin_servers) if cfg.tools.enabled else None
        registry = build_default_registry(tool_executor, cfg)
        app.state.plugin_servers = plugin_servers
        app.state.manager = CompletionManager(registry)
        app.state.validator = ProviderValidator(registry, timeout=cfg.agent.validation_timeout_seconds)
        logger.info("Registered providers: %s", ", ".join(registry.list()))

    yield

    plugin_servers: Optional[PluginServerRegistry] = getattr(app.state, "plugin_servers", None)
    if plugin_servers is not None:
        await plugin_servers.close_all()


async def ai_error_handler(request: Request, exc: AIError) -> JSONResponse:
    return JSONResponse({"error": exc.to_api_error()}, status_code=exc.http_status)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    error = AIError(ErrorCode.INVALID_REQUEST, "Invalid request body", details={"errors": jsonable_encoder(exc.errors())})
    return JSONResponse({"error": error.to_api_error()}, status_code=error.http_status)


def create_app(
    manager: Optional[CompletionManager] = None,
    validator: Optional[ProviderValidator] = None,
) -> FastAPI:
    app = FastAPI(
        title="Switchyard",
        description="Provider-agnostic streaming completion gateway with tool execution",
        version=VERSION,
        lifespan=lifespan,
    )
    if manager is not None:
        app.state.manager = manager
        app.state.validator = validator or ProviderValidator(manager.registry)

    # CORS_ORIGINS env var: comma-separated list of allowed origins.
    raw_origins = os.getenv("CORS_ORIGINS", "")
    cors_origins = (
        [o.strip() for o in raw_origins.split(",") if o.strip()]
        if raw_origins
        else ["http://localhost:5173", "http://127.0.0.1:5173"]
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(AIError, ai_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    app.include_router(chat_router, prefix="/api")
    app.include_router(providers_router, prefix="/api")

    @app.get("/api/health")
    async def health():
        return {"status": "ok", "version": VERSION}

    return app


app = create_app()


def start():
    import uvicorn
    configure_logging()
    settings = get_settings()
    uvicorn.run("switchyard.main:app", host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    start()
