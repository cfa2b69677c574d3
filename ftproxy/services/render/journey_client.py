"""
Journey API Client - renderer-side access to the proxy's /api routes
"""

from typing import Any, Dict, List, Optional
from loguru import logger

from ...core.http_client import HTTPClient
from ...core.exceptions import JourneyError
from .step_renderer import extract_api_error_message

JSON_HEADERS = {"Content-Type": "application/json", "accept": "application/json"}


class JourneyApiClient:
    """Thin POST wrapper; non-2xx responses become JourneyError with the best available message"""

    def __init__(self, base_url: str, http_client: Optional[HTTPClient] = None):
        self.base_url = base_url.rstrip("/")
        self.http_client = http_client or HTTPClient()
        self.logger = logger

    async def _post(self, path: str, body: Dict[str, Any], fallback_message: str) -> Any:
        url = f"{self.base_url}{path}"
        response = await self.http_client.post_response(url, json=body, headers=dict(JSON_HEADERS))
        payload = response.body()

        if not response.is_success():
            message = extract_api_error_message(payload, fallback_message)
            self.logger.debug(f"Proxy call failed: POST {path} status={response.status_code} message={message}")
            raise JourneyError(message)

        return payload

    async def init(self) -> Dict[str, Any]:
        return await self._post("/api/journey/init", {}, "Restart journey failed")

    async def load_step(self, external_id: str) -> Dict[str, Any]:
        return await self._post("/api/journey/load-step", {"externalId": external_id}, "Load step failed")

    async def navigate(self, action: str, external_id: str, values: List[Dict[str, Any]]) -> Dict[str, Any]:
        """POST /api/journey/{next|previous}"""
        return await self._post(
            f"/api/journey/{action}",
            {"externalId": external_id, "values": values},
            f"{action} failed",
        )

    async def view_item(self, external_id: str, journey_step: str) -> Any:
        return await self._post(
            "/api/journey/view-item",
            {"externalId": external_id, "journeyStep": journey_step},
            "Load summary offer failed",
        )
