"""LAN Chat Backend Application.

This is the main entry point for the LAN chat hub: a realtime chat room
for devices on the same local network.

Modules:
    - chat: WebSocket presence, history and broadcast core
    - files: Upload endpoint and retrieval of uploaded files
    - network: LAN address discovery for display
"""
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from fastapi.staticfiles import StaticFiles

from lanchat.chat.broadcast import BroadcastService
from lanchat.chat.history import HistoryBuffer
from lanchat.chat.presence import PresenceRegistry
from lanchat.chat.router import router as chat_router
from lanchat.config import AppConfig, get_config
from lanchat.files.router import router as files_router
from lanchat.files.service import UploadStorage
from lanchat.network import get_local_ip

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

# uvicorn.access logs every static file request, which drowns out chat events.
for _noisy in ("uvicorn.access", "multipart", "python_multipart"):
    logging.getLogger(_noisy).setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown events."""
    # Startup
    config = app.state.config

    # Apply configured log level to root logger so that
    # `logging.level: "debug"` in lanchat.settings.yaml activates DEBUG output.
    configured_level = getattr(logging, config.logging.level.upper(), None)
    if configured_level is not None:
        logging.getLogger().setLevel(configured_level)
        logger.info("Root logger level set to %s", config.logging.level.upper())

    port = config.server.port
    logger.info("LAN chat started")
    logger.info("Local access: http://localhost:%d", port)
    logger.info("LAN access:   http://%s:%d", get_local_ip(), port)

    yield  # Application runs here

    # Shutdown
    logger.info(
        "Application shutdown complete (%d users online, %d messages in history)",
        app.state.presence_registry.count(),
        len(app.state.history_buffer),
    )


def create_app(config: Optional[AppConfig] = None) -> FastAPI:
    """Build the FastAPI application with its own chat state.

    The presence registry, history buffer and broadcast service are
    created here and live as long as the application does.

    Args:
        config: Configuration for this app, kept on ``app.state.config``.
            Defaults to get_config().
    """
    if config is None:
        config = get_config()

    app = FastAPI(
        title="LAN Chat API",
        description="Realtime presence and broadcast hub for a local-network chat room",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.allowed_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    registry = PresenceRegistry()
    history = HistoryBuffer(config.chat.max_history)
    app.state.config = config
    app.state.presence_registry = registry
    app.state.history_buffer = history
    app.state.broadcast_service = BroadcastService(
        registry,
        history,
        default_name_prefix=config.chat.default_name_prefix,
        max_name_length=config.chat.max_name_length,
    )
    app.state.upload_storage = UploadStorage(
        upload_dir=config.uploads.directory,
        max_file_size_bytes=config.uploads.max_file_size_bytes,
    )

    # Register all routers
    app.include_router(chat_router)
    app.include_router(files_router)

    @app.get("/health")
    async def health() -> dict:
        """Health check endpoint.

        Returns:
            dict: Status object indicating the server is running.
        """
        return {"status": "ok"}

    @app.get("/ip", response_class=PlainTextResponse)
    async def local_ip() -> str:
        """LAN address of this server, for display in the client."""
        return get_local_ip()

    # Web client last, so it never shadows the API routes
    public_dir = Path(config.server.public_dir)
    if public_dir.is_dir():
        app.mount("/", StaticFiles(directory=public_dir, html=True), name="public")
    else:
        logger.info("Public directory %s not found; web client not served", public_dir)

    return app


app = create_app()


def run() -> None:
    """Run the server with uvicorn using the configured host and port."""
    import uvicorn

    config = get_config()
    uvicorn.run(app, host=config.server.host, port=config.server.port)


if __name__ == "__main__":
    run()
