"""ASGI application: optimize and health endpoints over the global container."""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from codeopt import __version__
from codeopt.api.container import Container, get_container
from codeopt.api.dependencies import limiter
from codeopt.api.routes.optimize import router as optimize_router
from codeopt.shared.logging import setup_logging

log = structlog.get_logger()


def _configure_logging(container: Container) -> None:
    config = container.config
    setup_logging(
        level=config.log_level,
        file_path=config.log_file,
        rotation_max_mb=config.log_rotation_max_mb,
        rotation_backups=config.log_rotation_backups,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Configure logging on startup; stop background jobs and close the client on shutdown."""
    container = get_container()
    _configure_logging(container)
    llm_config = container.config.openai_compatible
    log.info(
        "startup",
        version=__version__,
        llm_base_url=llm_config.base_url,
        model=llm_config.model,
        pacing_delay=container.config.optimizer.pacing_delay,
    )
    if not llm_config.api_key:
        log.warning("openai_api_key_missing")
    yield
    # Only a use case that was ever built can hold running jobs
    if "optimization_use_case" in container.__dict__:
        await container.optimization_use_case.shutdown()
    try:
        await container.llm.close()
    except Exception:  # noqa: BLE001
        log.debug("llm_close_error", exc_info=True)
    log.info("shutdown")


def create_app() -> FastAPI:
    app = FastAPI(
        title="codeopt",
        version=__version__,
        description="Batch memory-optimization analysis of source files via an OpenAI-compatible LLM",
        lifespan=lifespan,
    )
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=get_container().config.security.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )
    app.include_router(optimize_router)

    @app.get("/health")
    @limiter.limit("100/minute")
    async def health(request: Request) -> dict:
        """Service status plus reachability of the completion endpoint."""
        container = get_container()
        return {
            "status": "ok",
            "service": "codeopt",
            "model": container.config.openai_compatible.model,
            "llm_available": await container.llm.is_available(),
        }

    return app


app = create_app()
