"""
Pairing Code Store - API Router

Provides the two endpoints the mobile client calls:
- POST /upload   {payload}  → 200 {"data": {"pairingCode": "..."}}
- POST /download {code}     → 200 {"data": "<payload>"}

Errors answer ``{"error": message}`` with the status of the matching
PairingError (400 / 404 / 409 / 410).

Both endpoints accept the arguments flat or wrapped under ``data``, the way
callable-function clients send them.
"""

from typing import Any, Optional

import structlog
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, ValidationError

from autoledger.pairing.code_store import PairingCodeStore
from autoledger.pairing.errors import BadRequestError, PairingError


logger = structlog.get_logger(__name__)


# ==================== REQUEST MODELS ====================

class UploadArguments(BaseModel):
    """Arguments of an upload call"""
    payload: Optional[str] = Field(None, description="Encrypted ledger snapshot")


class DownloadArguments(BaseModel):
    """Arguments of a download call"""
    code: Optional[str] = Field(None, description="Pairing code to redeem")


def unwrap_arguments(body: Any, field: str) -> dict[str, Any]:
    """Flat body if it carries ``field``, else the ``data`` envelope."""
    if not isinstance(body, dict):
        return {}
    if body.get(field):
        return body
    wrapped = body.get("data")
    return wrapped if isinstance(wrapped, dict) else {}


def error_response(error: PairingError) -> JSONResponse:
    return JSONResponse(status_code=error.http_status, content={"error": error.message})


# ==================== ROUTER ====================

def create_pairing_router(code_store: PairingCodeStore) -> APIRouter:
    """Build the router around one code store."""
    router = APIRouter(tags=["Pairing Sync"])

    def get_code_store() -> PairingCodeStore:
        return code_store

    async def read_body(request: Request) -> Any:
        try:
            return await request.json()
        except ValueError:
            return None

    @router.post("/upload")
    async def upload_sync_data(
        request: Request,
        store: PairingCodeStore = Depends(get_code_store),
    ):
        """
        Park an encrypted snapshot and return a one-time pairing code.

        The password never reaches the server; only the encrypted blob does.
        """
        body = await read_body(request)
        try:
            arguments = UploadArguments.model_validate(unwrap_arguments(body, "payload"))
            pairing_code = await store.upload(arguments.payload)
        except ValidationError:
            return error_response(BadRequestError("payload must be a string"))
        except PairingError as e:
            logger.info("upload_rejected", status=e.http_status)
            return error_response(e)
        return {"data": {"pairingCode": pairing_code}}

    @router.post("/download")
    async def download_sync_data(
        request: Request,
        store: PairingCodeStore = Depends(get_code_store),
    ):
        """Redeem a pairing code once and return the encrypted snapshot."""
        body = await read_body(request)
        try:
            arguments = DownloadArguments.model_validate(unwrap_arguments(body, "code"))
            payload = await store.download(arguments.code)
        except ValidationError:
            return error_response(BadRequestError("code must be a string"))
        except PairingError as e:
            logger.info("download_rejected", status=e.http_status)
            return error_response(e)
        return {"data": payload}

    return router
