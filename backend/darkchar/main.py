"""FastAPI application entry point."""
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from darkchar.core.config import get_settings
from darkchar.core.logging import setup_logging

# Setup logging
logger = setup_logging("main")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Initialize services at startup."""
    settings = get_settings()
    try:
        from darkchar.services.bootstrap import build_services

        services = build_services(settings)
        app.state.services = services
        app.state.generation_service = services.generation_service
        logger.info(
            "Services initialized successfully",
            extra={"provider": services.context_store.get_active_provider_type().value},
        )
    except Exception as exc:
        logger.error(
            "Service initialization failed; running in degraded mode",
            exc_info=True,
            extra={"error_type": type(exc).__name__},
        )
        # Continue without services; endpoints return 503 until fixed

    yield


# Create FastAPI app
app = FastAPI(
    title="Dark Character Generator",
    description="Generates dark-fallen character narratives with a local fallback",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS configuration
settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=[f"http://localhost:{settings.frontend_port}"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
from darkchar.api.characters import router as characters_router  # noqa: E402
from darkchar.api.providers import router as providers_router  # noqa: E402

app.include_router(characters_router)
app.include_router(providers_router)


@app.get("/health")
async def health_check(request: Request) -> dict:
    """Health check endpoint.

    Always returns HTTP 200; check `services` for actual status.
    """
    generation_ok = getattr(request.app.state, "generation_service", None) is not None
    settings_ok = getattr(request.app.state, "services", None) is not None

    logger.info("Health check requested")
    return {
        "status": "ok",
        "version": app.version,
        "services": {
            "generation": "ok" if generation_ok else "unavailable",
            "provider_settings": "ok" if settings_ok else "unavailable",
        },
    }
