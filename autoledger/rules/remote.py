"""
Remote rules snapshot client.

Fetches the parser-rules document so the rules can be updated without a
release. Transient network errors are retried; anything else surfaces as
RuleSnapshotError and the engine keeps its current rules.
"""

from typing import Any, Optional

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from autoledger.config import RulesSettings, get_settings
from autoledger.rules.engine import RuleSnapshotError


class RemoteRulesClient:
    """GET the rules snapshot from a configured URL."""

    def __init__(
        self,
        settings: Optional[RulesSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._settings = settings or get_settings().rules
        self._transport = transport

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    async def _get(self, url: str) -> httpx.Response:
        async with httpx.AsyncClient(
            timeout=self._settings.request_timeout_seconds,
            transport=self._transport,
        ) as client:
            return await client.get(url)

    async def fetch(self) -> dict[str, Any]:
        """
        Return the snapshot document.

        Raises:
            RuleSnapshotError: If no URL is configured, the request fails,
                or the body is not a JSON object
        """
        url = self._settings.snapshot_url
        if not url:
            raise RuleSnapshotError("No rules snapshot URL configured")

        try:
            response = await self._get(url)
            response.raise_for_status()
            document = response.json()
        except httpx.HTTPError as e:
            raise RuleSnapshotError(f"Rules snapshot request failed: {e}") from e
        except ValueError as e:
            raise RuleSnapshotError(f"Rules snapshot is not valid JSON: {e}") from e

        if not isinstance(document, dict):
            raise RuleSnapshotError("Rules snapshot must be a JSON object")
        return document
