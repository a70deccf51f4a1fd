"""
Pairing Code Store API

The small stateless service behind pairing sync. It only ever sees
encrypted blobs: the password stays on the devices.

Run with any ASGI server, e.g.::

    uvicorn app.main:app

DESIGN PRINCIPLES:
1. Server time decides expiry, never the client
2. A code is redeemed at most once
3. Every rejection maps to one status (400 / 404 / 409 / 410)
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI

from autoledger import __version__
from autoledger.audit import configure_logging
from autoledger.config import get_settings, validate_all_settings
from autoledger.pairing.api import create_pairing_router
from autoledger.pairing.code_store import PairingCodeStore


logger = structlog.get_logger(__name__)


def create_app(code_store: Optional[PairingCodeStore] = None) -> FastAPI:
    """
    Build the API around a code store.

    Args:
        code_store: Defaults to a PairingCodeStore over in-memory packages
    """
    code_store = code_store or PairingCodeStore()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        settings = get_settings().app
        configure_logging(settings.log_level, settings.log_json)
        invalid = [
            section for section, ok in validate_all_settings().items()
            if ok is False
        ]
        if invalid:
            logger.warning("settings_sections_invalid", sections=invalid)
        logger.info(
            "pairing_api_started",
            environment=settings.app_environment,
            version=__version__,
        )
        yield
        logger.info("pairing_api_stopped")

    app = FastAPI(
        title="autoledger pairing",
        description="One-time pairing codes for encrypted ledger snapshots.",
        version=__version__,
        lifespan=lifespan,
    )
    app.include_router(create_pairing_router(code_store))

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


app = create_app()
