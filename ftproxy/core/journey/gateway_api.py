"""
FintechOS journey engine REST operations
One method per remote endpoint; each call carries a bearer token and the culture query parameter
"""

from typing import Any, Dict, List, Optional
from urllib.parse import quote
from loguru import logger

from .journey_models import Direction, PLACEHOLDER_ACTION_VALUES
from ..config import ProxySettings
from ..http_client import HTTPClient, bearer_headers

LOG_LABEL = "FintechOS"
CORRELATION_FIELDS = ("nextStep", "externalId", "instanceId")


class FintechOSGateway:
    """
    Thin client over the journey engine endpoints
    Only accessible by services/journey/ (domain boundary rule)
    """

    def __init__(self, settings: ProxySettings, http_client: Optional[HTTPClient] = None):
        self.settings = settings
        self.http_client = http_client or HTTPClient(timeout=settings.http_timeout)
        self.logger = logger

    def absolute_url(self, endpoint: str, *segments: str) -> str:
        """Base URL + endpoint path + URL-encoded path segments"""
        url = f"{(self.settings.base_url or '').rstrip('/')}{endpoint}"
        for segment in segments:
            url += f"/{quote(str(segment), safe='')}"
        return url

    def _culture_params(self) -> Dict[str, str]:
        return {"culture": self.settings.culture}

    async def _request(self, method: str, url: str, token: str, data: Optional[Any] = None) -> Any:
        return await self.http_client.send(
            LOG_LABEL,
            method,
            url,
            headers=bearer_headers(token, has_body=data is not None),
            json=data,
            params=self._culture_params(),
            log_fields=CORRELATION_FIELDS,
        )

    async def fetch_metadata(self, token: str) -> Any:
        """Load journey metadata"""
        url = self.absolute_url(self.settings.load_metadata_endpoint)
        return await self._request("GET", url, token)

    async def start_instance(self, token: str) -> Any:
        """Start a new journey instance; response carries the new externalId"""
        url = self.absolute_url(self.settings.start_endpoint)
        return await self._request("POST", url, token, data={})

    async def load_step(self, token: str, external_id: str) -> Any:
        """Load the current step of an instance"""
        url = self.absolute_url(self.settings.load_step_endpoint, external_id)
        return await self._request("GET", url, token)

    async def advance(self, token: str, external_id: str,
                      values: Optional[List[Dict[str, Any]]],
                      direction: Direction) -> Any:
        """Submit values and move the instance forward or backward"""
        endpoint = (self.settings.next_endpoint if direction == Direction.NEXT
                    else self.settings.previous_endpoint)
        url = self.absolute_url(endpoint, external_id)
        return await self._request("POST", url, token, data={"values": values or []})

    async def invoke_step_action(self, token: str, action_id: Any, external_id: str) -> Any:
        """Invoke a named step action against an instance"""
        url = self.absolute_url(self.settings.call_step_action_endpoint, action_id, external_id)
        return await self._request("POST", url, token, data={"values": list(PLACEHOLDER_ACTION_VALUES)})

    async def fetch_view_item(self, token: str, external_id: str, journey_step: str) -> Any:
        """Read-only snapshot of a named step's data"""
        url = self.absolute_url(self.settings.view_item_endpoint, journey_step, external_id)
        return await self._request("GET", url, token)
