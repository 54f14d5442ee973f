"""
FastAPI hub application.

Serves the synchronized states to observers:
- WS  /ws              sync channel (initState on connect, then state/error messages)
- GET /state           current snapshot of every state, read-only
- GET /installUpdate   ask the host process to install a pending update
- GET /checkUpdate     ask the host process to check for updates
- GET /health, GET /   service info

Usage:
    config = HubConfig.load()
    hub = Hub.create(config)
    hub.registry.register('count', 0)
    run(config, hub)

Or embed the app in another ASGI server:
    app = create_app(hub, setup=lambda app, hub: app.include_router(my_router))
"""

import asyncio
import logging
from typing import Any, Callable, Dict, Optional

from fastapi import FastAPI, Request, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from fastapi.staticfiles import StaticFiles
from starlette.websockets import WebSocketDisconnect

from . import __version__
from .config import HubConfig
from .host import HostBridge, HostPost, register_host_states
from .persistence import DurableStore, JsonFileStore
from .relay import Connection, SyncRelay
from .state import StateRegistry

logger = logging.getLogger(__name__)

AppSetup = Callable[[FastAPI, "Hub"], None]

# RFC 6455 "Try Again Later", sent to connections evicted for a full queue
EVICTED_CLOSE_CODE = 1013


class Hub:
    """The authoritative side: registry, store, relay and host bridge of one process."""

    def __init__(
        self,
        registry: StateRegistry,
        relay: SyncRelay,
        host: HostBridge,
        config: Optional[HubConfig] = None,
    ):
        self.registry = registry
        self.relay = relay
        self.host = host
        self.config = config or HubConfig()

    @property
    def store(self) -> Optional[DurableStore]:
        return self.registry.store

    @classmethod
    def create(
        cls,
        config: HubConfig,
        store: Optional[DurableStore] = None,
        host_post: Optional[HostPost] = None,
    ) -> "Hub":
        """
        Build and wire a hub.

        Args:
            config: Resolved configuration
            store: Durable store, defaults to a JsonFileStore in config.data_dir
            host_post: Callable delivering messages to the host process, if any

        Raises:
            StoreError: If the store file exists but cannot be read
        """
        store = store if store is not None else JsonFileStore(config.store_path)
        registry = StateRegistry(store=store)
        register_host_states(registry)

        relay = SyncRelay(registry, error_broadcast=config.error_broadcast)
        relay.attach()

        host = HostBridge(registry, post=host_post)
        host.start()

        return cls(registry, relay, host, config)


async def _forward(relay: SyncRelay, connection: Connection, websocket: WebSocket) -> None:
    try:
        async for frame in relay.stream(connection):
            await websocket.send_text(frame)
        if connection.evicted:
            await websocket.close(code=EVICTED_CLOSE_CODE, reason="outbound queue full")
    except (WebSocketDisconnect, RuntimeError) as e:
        logger.debug(f"Stopped sending to {connection.id}: {e}")
    except Exception as e:
        logger.warning(f"Failed sending to {connection.id}: {e}")


def create_app(hub: Hub, setup: Optional[AppSetup] = None) -> FastAPI:
    """
    Create the FastAPI application for a hub.

    Args:
        hub: The hub whose states are served
        setup: Optional callback adding application routes. Runs after the
               built-in routes and before the static mount.
    """
    config = hub.config
    app = FastAPI(title="statehub", version=__version__)
    app.state.hub = hub

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS", "PUT", "PATCH", "DELETE"],
        allow_headers=["X-Requested-With", "Content-Type"],
    )

    @app.get("/", tags=["General"], summary="Service info")
    async def root() -> Dict[str, Any]:
        return {
            "service": "statehub",
            "version": __version__,
            "states": hub.registry.names(),
            "endpoints": {
                "/ws": "WebSocket sync channel",
                "/state": "GET - Snapshot of every state",
                "/installUpdate": "GET - Ask the host to install an update",
                "/checkUpdate": "GET - Ask the host to check for updates",
                "/health": "Health check",
            },
        }

    @app.get("/health", tags=["General"], summary="Health check")
    async def health() -> Dict[str, Any]:
        return {
            "status": "healthy",
            "service": "statehub",
            "version": __version__,
            "connections": hub.relay.connection_count,
        }

    @app.get("/state", tags=["State"], summary="Snapshot of every state")
    async def get_state() -> JSONResponse:
        return JSONResponse(hub.registry.snapshot())

    @app.get("/installUpdate", tags=["Host"], summary="Ask the host to install an update")
    async def install_update() -> PlainTextResponse:
        hub.host.install_update()
        return PlainTextResponse("OK")

    @app.get("/checkUpdate", tags=["Host"], summary="Ask the host to check for updates")
    async def check_update() -> PlainTextResponse:
        hub.host.check_update()
        return PlainTextResponse("OK")

    @app.websocket("/ws")
    async def sync_socket(websocket: WebSocket) -> None:
        await websocket.accept()
        relay = hub.relay
        connection = relay.connect()
        writer = asyncio.create_task(_forward(relay, connection, websocket))

        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
                text = message.get("text")
                if text is None:
                    logger.warning(f"Dropped binary frame from {connection.id}")
                    continue
                relay.handle_message(connection, text)
        except WebSocketDisconnect:
            pass
        finally:
            relay.disconnect(connection)
            writer.cancel()
            await asyncio.gather(writer, return_exceptions=True)

    @app.exception_handler(Exception)
    async def broadcast_unhandled(request: Request, exc: Exception) -> JSONResponse:
        logger.error(f"Unhandled error on {request.url.path}: {exc}", exc_info=exc)
        hub.relay.broadcast_error(str(exc))
        return JSONResponse(str(exc), status_code=500)

    if setup is not None:
        setup(app, hub)

    if config.static_dir is not None:
        app.mount("/", StaticFiles(directory=str(config.static_dir), html=True), name="static")
        logger.info(f"Serving static files from {config.static_dir}")

    return app


def run(config: HubConfig, hub: Optional[Hub] = None, setup: Optional[AppSetup] = None) -> None:
    """
    Serve a hub with uvicorn until interrupted.

    Raises:
        ImportError: If uvicorn is not installed
    """
    try:
        import uvicorn
    except ImportError:
        raise ImportError(
            "uvicorn is required to run the hub. Install with: pip install 'uvicorn[standard]'"
        )

    hub = hub or Hub.create(config)
    app = create_app(hub, setup=setup)

    ssl_options: Dict[str, Any] = {}
    if config.use_https:
        ssl_options = {"ssl_certfile": str(config.cert_path), "ssl_keyfile": str(config.key_path)}
        logger.info("HTTPS enabled")
    else:
        logger.info("HTTP enabled (HTTPS disabled)")

    logger.info(f"Starting statehub on {config.host}:{config.port} with {len(hub.registry)} states")
    uvicorn.run(
        app,
        host=config.host,
        port=config.port,
        log_level=config.log_level.lower(),
        **ssl_options,
    )


__all__ = ["Hub", "create_app", "run"]
