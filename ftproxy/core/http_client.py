"""
HTTP client utilities using httpx with injectable transports
Rich response objects plus labelled request/response/error logging for upstream calls
"""

import httpx
import json as json_module
from typing import Optional, Dict, Any, Iterable
from dataclasses import dataclass
from loguru import logger

from .exceptions import UpstreamError, NetworkError
from .logger import truncate_payload
from .version import get_version


@dataclass
class HTTPResponse:
    """Rich response object providing access to all response data"""
    status_code: int
    headers: Dict[str, str]
    text: str
    content: bytes
    url: str
    method: str = "GET"

    def body(self) -> Any:
        """JSON body when parseable, raw text otherwise, None when empty"""
        if not self.text:
            return None
        try:
            return json_module.loads(self.text)
        except json_module.JSONDecodeError:
            return self.text

    def is_success(self) -> bool:
        """Check if response is successful (2xx)"""
        return 200 <= self.status_code < 300

    def raise_for_status(self) -> None:
        """Raise UpstreamError for non-2xx responses, carrying status and body"""
        if not self.is_success():
            raise UpstreamError(self.status_code, self.body(), self.method, self.url)


def bearer_headers(token: str, accept: str = "application/json", has_body: bool = False) -> Dict[str, str]:
    """Standard headers for a bearer-authenticated upstream call"""
    headers = {
        "accept": accept,
        "Authorization": f"Bearer {token}",
    }
    if has_body:
        headers["Content-Type"] = "application/json"
    return headers


class HTTPClient:
    """Async HTTP client; a transport can be injected for tests"""

    def __init__(self,
                 timeout: float = 30,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.timeout = timeout
        self.transport = transport
        self.logger = logger

    def _create_client(self) -> httpx.AsyncClient:
        """Create configured httpx client"""

        client_kwargs = {
            "timeout": self.timeout,
            "headers": {"User-Agent": f"ftproxy/{get_version()}"}
        }

        if self.transport is not None:
            client_kwargs["transport"] = self.transport

        return httpx.AsyncClient(**client_kwargs)

    async def _make_request(self, method: str, url: str, **kwargs) -> HTTPResponse:
        """Internal method to make HTTP requests and return HTTPResponse"""
        try:
            async with self._create_client() as client:
                self.logger.debug(f"{method.upper()} {url}")

                response = await client.request(method, url, **kwargs)

                return HTTPResponse(
                    status_code=response.status_code,
                    headers=dict(response.headers),
                    text=response.text,
                    content=response.content,
                    url=str(response.url),
                    method=method.upper()
                )

        except httpx.RequestError as e:
            error_msg = f"Request error: {str(e)}"
            self.logger.error(f"Request error for {url}: {error_msg}")
            raise NetworkError(f"Network error: {error_msg}")

    async def get_response(self, url: str, headers: Optional[Dict[str, str]] = None,
                           params: Optional[Dict[str, str]] = None) -> HTTPResponse:
        """GET request returning HTTPResponse object"""
        return await self._make_request("GET", url, headers=headers, params=params)

    async def post_response(self, url: str, json: Optional[Any] = None,
                            headers: Optional[Dict[str, str]] = None,
                            params: Optional[Dict[str, str]] = None,
                            timeout: Optional[float] = None) -> HTTPResponse:
        """POST request returning HTTPResponse object"""
        kwargs = {"headers": headers, "params": params}
        if timeout:
            kwargs["timeout"] = timeout
        if json is not None:
            kwargs["json"] = json

        return await self._make_request("POST", url, **kwargs)

    # ==============================================================================
    # UPSTREAM CALLS (labelled debug logging, UpstreamError on non-2xx)
    # ==============================================================================

    async def send(self,
                   label: str,
                   method: str,
                   url: str,
                   headers: Optional[Dict[str, str]] = None,
                   json: Optional[Any] = None,
                   params: Optional[Dict[str, str]] = None,
                   log_fields: Iterable[str] = ()) -> Any:
        """
        Perform one upstream call and return its decoded body

        Args:
            label: Log label, e.g. "FintechOS" or "PFAPI"
            method: HTTP method
            url: Absolute URL
            headers: Request headers
            json: Optional JSON payload
            params: Optional query parameters
            log_fields: Response body keys echoed in the debug response line

        Raises:
            UpstreamError: On any non-2xx status
            NetworkError: On transport failures
        """
        method = method.upper()
        self.logger.debug(f"{label} request: {method} {url} params={params or {}} "
                          f"data={truncate_payload(json)}")

        if method == "GET":
            response = await self.get_response(url, headers=headers, params=params)
        else:
            kwargs = {"headers": headers, "params": params}
            if json is not None:
                kwargs["json"] = json
            response = await self._make_request(method, url, **kwargs)

        if not response.is_success():
            self.logger.debug(f"{label} error: {method} {url} status={response.status_code} "
                              f"response={truncate_payload(response.text)}")
            response.raise_for_status()

        body = response.body()
        echoed = ""
        if isinstance(body, dict):
            echoed = " ".join(f"{field}={body.get(field)}" for field in log_fields)
        self.logger.debug(f"{label} response: {method} {url} status={response.status_code} {echoed}".rstrip())
        return body
