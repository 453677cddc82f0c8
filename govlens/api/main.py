"""
govlens HTTP service.

Serves the JSON-RPC interface on ``POST /rpc`` and a liveness check on
``GET /health``. One ``httpx.AsyncClient`` (timestamp service) and one web3
node client are opened on startup and shared by every request until shutdown.
"""

import time
from typing import Optional

import httpx
from fastapi import FastAPI
from fastapi.responses import Response
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from web3.providers import AsyncBaseProvider

from .. import __version__
from ..config.loader import GovLensConfig, load_config
from ..constants import LOG_MAX_PATH_LENGTH
from ..context import build_context
from ..logger import get_logger
from ..rpc.modules.gov import GovModule
from ..rpc.server import RPCServer

logger = get_logger(__name__)


def create_app(
    config: Optional[GovLensConfig] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    provider: Optional[AsyncBaseProvider] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        config:    Configuration; loaded from config.toml / env on startup when None
        transport: Custom httpx transport for the shared client
        provider:  Custom web3 provider for the node (default: AsyncHTTPProvider)
    """
    app = FastAPI(title="govlens", description="Governance proposal dashboard service.", version=__version__)
    app.state.started_at = time.time()
    app.state.http_client = None
    app.state.rpc_server = None
    app.state.context = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    @app.on_event("startup")
    async def startup():
        logger.info("Starting govlens service...")
        cfg = config or load_config()
        cfg.validate()

        app.state.http_client = httpx.AsyncClient(timeout=cfg.network.timeout, transport=transport)
        logger.info("Shared HTTP client initialized.")

        context = build_context(cfg, app.state.http_client, provider=provider)
        rpc_server = RPCServer()
        rpc_server.register_module(GovModule(context))
        app.state.context = context
        app.state.rpc_server = rpc_server
        logger.info(f"   RPC endpoint: http://{cfg.service.host}:{cfg.service.port}/rpc")

    @app.on_event("shutdown")
    async def shutdown():
        if app.state.context is not None:
            await app.state.context.rpc.close()
            app.state.context = None
            logger.info("Node client closed.")
        if app.state.http_client is not None:
            await app.state.http_client.aclose()
            app.state.http_client = None
            logger.info("Shared HTTP client closed.")

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start_time = time.time()
        client_ip = request.client.host if request.client else "unknown"
        path = request.url.path
        if len(path) > LOG_MAX_PATH_LENGTH:
            path = path[:LOG_MAX_PATH_LENGTH] + "...[TRUNCATED]"
        response = await call_next(request)
        logger.info(
            f"{client_ip} --> \"{request.method} {path}\" {response.status_code} "
            f"({time.time() - start_time:.3f}s)"
        )
        return response

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception on {request.url.path}: {exc}")
        return JSONResponse(status_code=500, content={"ok": False, "error": "Internal Server Error"})

    @app.post("/rpc")
    async def rpc_endpoint(request: Request):
        """JSON-RPC 2.0 endpoint (single or batch)."""
        result = await app.state.rpc_server.handle_request(await request.body())
        if result is None:
            return Response(status_code=204)
        # handle_request returns a JSON string; send it raw to avoid double-encoding
        return Response(content=result, media_type="application/json")

    @app.get("/health")
    async def health():
        context = app.state.context
        return {
            "ok": app.state.rpc_server is not None,
            "version": __version__,
            "network": context.network if context else None,
            "uptime": round(time.time() - app.state.started_at, 3),
            "methods": app.state.rpc_server.get_methods() if app.state.rpc_server else [],
        }

    return app


app = create_app()
