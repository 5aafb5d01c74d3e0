# src/wecom_relay/main.py
"""Main entry point for the WeCom relay."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from wecom_relay.api import callbacks_router, messages_router
from wecom_relay.core.errors import ConfigError, UpstreamError, WeComAPIError
from wecom_relay.core.settings import settings
from wecom_relay.services.forwarder import get_backend_forwarder
from wecom_relay.services.wecom import get_wecom_client

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    """Attach a root stream handler if none exists and set the relay log level."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger("wecom_relay").setLevel(level.upper())


# Initialize FastAPI app
app = FastAPI(
    title="WeCom Relay",
    description="Relay between WeCom callbacks/API and backend functions",
    version=settings.app_version,
)

app.include_router(callbacks_router)
app.include_router(messages_router)


@app.exception_handler(ConfigError)
async def config_error_handler(request: Request, exc: ConfigError) -> JSONResponse:
    logger.error("Configuration error on %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": str(exc)},
    )


@app.exception_handler(UpstreamError)
async def upstream_error_handler(request: Request, exc: UpstreamError) -> JSONResponse:
    logger.warning("Upstream error on %s: %s", request.url.path, exc)
    content: dict[str, object] = {"error": str(exc)}
    if isinstance(exc, WeComAPIError):
        content["wecom"] = exc.payload
    return JSONResponse(status_code=status.HTTP_502_BAD_GATEWAY, content=content)


@app.on_event("startup")
async def on_startup() -> None:
    configure_logging(settings.log_level)


@app.on_event("shutdown")
async def on_shutdown() -> None:
    await get_wecom_client().close()
    await get_backend_forwarder().close()


@app.get("/health")
async def health_check() -> dict[str, bool]:
    """Health check endpoint to verify the service is running."""
    return {"ok": True}


def run() -> None:
    """Start the relay with uvicorn using configured host and port."""
    import uvicorn

    configure_logging(settings.log_level)
    logger.info("Starting %s on %s:%d", settings.app_name, settings.host, settings.port)
    uvicorn.run(
        "wecom_relay.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
