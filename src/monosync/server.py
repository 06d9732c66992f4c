"""
HTTP server receiving GitHub webhooks.

Run with ``monosync-server`` (or ``uvicorn monosync.server:create_app --factory``).

Environment variables: see monosync.config. Additionally:
- MONOSYNC_HOST / MONOSYNC_PORT: Bind address (default 0.0.0.0:8000)
- MONOSYNC_SYNC_ON_STARTUP: Sync all open PRs at startup (default on)
"""

import asyncio
import json
import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Header, HTTPException, Request

from monosync import __version__
from monosync.config import Settings, configure_logging
from monosync.sync.service import SyncService
from monosync.webhook import WebhookHandler

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    service: Optional[SyncService] = None,
    sync_on_startup: Optional[bool] = None,
) -> FastAPI:
    """
    Build the webhook app.

    Args:
        settings: Settings (read from the environment if omitted)
        service: Sync service (built from ``settings`` if omitted)
        sync_on_startup: Sync all open PRs once the app starts

    Returns:
        FastAPI application
    """
    settings = settings or Settings.from_env()
    service = service or SyncService.from_settings(settings)
    if sync_on_startup is None:
        sync_on_startup = os.environ.get("MONOSYNC_SYNC_ON_STARTUP", "1").lower() not in ("0", "false", "no")

    handler = WebhookHandler(
        service,
        webhook_secret=settings.webhook_secret,
        allow_insecure=settings.allow_insecure,
        status_throttle=settings.status_throttle_seconds,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        startup_sync = asyncio.ensure_future(service.sync_all()) if sync_on_startup else None
        yield
        if startup_sync is not None and not startup_sync.done():
            startup_sync.cancel()
        await service.close()

    app = FastAPI(title="monosync", version=__version__, lifespan=lifespan)
    app.state.handler = handler

    @app.get("/health")
    async def health():
        return {"status": "ok", "version": __version__}

    @app.post("/webhook")
    async def webhook(
        request: Request,
        x_github_event: str = Header(...),
        x_hub_signature_256: Optional[str] = Header(None),
    ):
        body = await request.body()
        if not handler.verify_signature(body, x_hub_signature_256):
            raise HTTPException(status_code=401, detail="Invalid signature")

        try:
            payload = json.loads(body)
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid JSON payload")

        ok = await handler.handle(x_github_event, payload)
        return {"ok": ok}

    return app


def main() -> None:
    """Console entry point."""
    import uvicorn

    settings = Settings.from_env()
    configure_logging(settings.log_level)
    uvicorn.run(
        create_app(settings),
        host=os.environ.get("MONOSYNC_HOST", "0.0.0.0"),
        port=int(os.environ.get("MONOSYNC_PORT", "8000")),
    )


if __name__ == "__main__":
    main()
