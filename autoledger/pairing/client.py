"""
HTTP client for the remote pairing code store.

Requests are sent the way the mobile client sends them: the arguments
wrapped under ``data``. Error statuses come back as the matching
PairingError; anything unexpected becomes SyncFailedError.

No retries: export and import are cheap to re-run by hand, and a retried
upload would park a second copy under a second code.
"""

from typing import Any, Optional

import httpx
import structlog

from autoledger.config import PairingSettings, get_settings
from autoledger.pairing.code_store import RemoteCodeStore
from autoledger.pairing.errors import PairingError, SyncFailedError, error_for_status


logger = structlog.get_logger(__name__)


class HttpRemoteCodeStore(RemoteCodeStore):
    """RemoteCodeStore over the /upload and /download endpoints."""

    def __init__(
        self,
        settings: Optional[PairingSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._settings = settings or get_settings().pairing
        self._transport = transport

    async def upload(self, payload: str) -> str:
        data = await self._post(self._settings.upload_url, {"payload": payload})
        if not isinstance(data, dict) or not data.get("pairingCode"):
            raise SyncFailedError("서버 응답에 코드가 없습니다.")
        return data["pairingCode"]

    async def download(self, code: str) -> str:
        data = await self._post(self._settings.download_url, {"code": code})
        if not isinstance(data, str) or not data:
            raise SyncFailedError("서버에 저장된 데이터가 없습니다.")
        return data

    async def _post(self, url: str, arguments: dict[str, Any]) -> Any:
        """POST ``{"data": arguments}`` and return the response's ``data``."""
        try:
            async with httpx.AsyncClient(
                timeout=self._settings.request_timeout_seconds,
                transport=self._transport,
            ) as client:
                response = await client.post(url, json={"data": arguments})
        except httpx.HTTPError as e:
            logger.warning("pairing_request_failed", url=url, error=str(e))
            raise SyncFailedError() from e

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if response.is_success:
            return body.get("data")

        message = body.get("error") if isinstance(body.get("error"), str) else None
        error: PairingError = error_for_status(response.status_code, message)
        logger.info(
            "pairing_request_rejected",
            url=url,
            status=response.status_code,
            error_type=type(error).__name__,
        )
        raise error
