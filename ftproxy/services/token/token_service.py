"""
Token Service - Internal API for bearer token acquisition
Two independent schemes: the journey engine and the product-offer API
"""

from typing import Any, Dict, Optional
from loguru import logger
import jwt

from ...core.token.token_models import TokenResult, TokenSource, extract_token, bearer_from_header
from ...core.config import ProxySettings
from ...core.http_client import HTTPClient
from ...core.exceptions import TokenError

LOG_LABEL = "Auth"
CLIENT_CREDENTIALS_ENDPOINT = "/pfapi/Authentication/token"
JSON_HEADERS = {
    "accept": "application/json",
    "Content-Type": "application/json",
}


class TokenService:
    """
    Service for token acquisition

    Service Layer Rules (from three-layer architecture):
    - Business logic, workflows, cross-service coordination
    - Access: core/* (shared), core/token/ (own domain), services/* (other services)
    """

    def __init__(self, settings: ProxySettings, http_client: Optional[HTTPClient] = None):
        self.settings = settings
        self.http_client = http_client or HTTPClient(timeout=settings.http_timeout)
        self.logger = logger

    @staticmethod
    def decode_claims(token: str) -> Optional[Dict[str, Any]]:
        """Unverified JWT claims, None for opaque tokens"""
        try:
            return jwt.decode(token, options={"verify_signature": False})
        except jwt.PyJWTError:
            return None

    def _log_token(self, result: TokenResult) -> None:
        claims = self.decode_claims(result.token) or {}
        self.logger.debug(
            f"Token info: source={result.source.value} azp={claims.get('azp')} "
            f"preferred_username={claims.get('preferred_username')} sub={claims.get('sub')}"
        )

    async def _exchange(self, url: str, body: Dict[str, Any], what: str) -> str:
        payload = await self.http_client.send(LOG_LABEL, "POST", url, headers=dict(JSON_HEADERS), json=body)
        token = extract_token(payload)
        if not token:
            raise TokenError(f"Could not extract token from {what} authentication response")
        return token

    async def get_engine_token(self) -> TokenResult:
        """Acquire a journey-engine token (username/password preferred over client credentials)"""
        base = (self.settings.base_url or "").rstrip("/")

        if self.settings.has_user_password():
            url = f"{base}{self.settings.auth_token_endpoint}"
            body = {"userName": self.settings.user_name, "password": self.settings.password}
            source = TokenSource.USER_PASSWORD
        elif self.settings.has_client_credentials():
            url = f"{base}{CLIENT_CREDENTIALS_ENDPOINT}"
            body = {"clientId": self.settings.client_id, "clientSecret": self.settings.client_secret}
            source = TokenSource.CLIENT_CREDENTIALS
        else:
            raise TokenError("No journey engine credentials configured")

        self.logger.debug(f"Auth request: mode={source.value} url={url}")
        token = await self._exchange(url, body, "journey engine")
        return TokenResult(token=token, source=source)

    async def resolve_engine_token(self, authorization: Optional[str] = None) -> str:
        """
        Token for a journey call

        A bearer token on the inbound request is forwarded as-is (trust delegation,
        only its presence is checked); otherwise one is acquired locally.
        """
        forwarded = bearer_from_header(authorization)
        if forwarded:
            result = TokenResult(token=forwarded, source=TokenSource.FORWARDED)
        else:
            result = await self.get_engine_token()

        self._log_token(result)
        return result.token

    async def get_offer_token(self) -> TokenResult:
        """Acquire a product-offer API token (always client credentials)"""
        base = (self.settings.pfapi_base_url or "").rstrip("/")
        url = f"{base}{self.settings.pfapi_token_endpoint}"
        self.logger.debug(f"PFAPI auth request: url={url}")

        body = {"clientId": self.settings.client_id, "clientSecret": self.settings.client_secret}
        token = await self._exchange(url, body, "PFAPI")
        return TokenResult(token=token, source=TokenSource.OFFER_API)

    def format_token(self, result: TokenResult, output_format: str = "token") -> str:
        """Format token output according to specified format"""
        if output_format == "bearer":
            return f"Bearer {result.token}"
        if output_format == "json":
            return result.model_dump_json()
        return result.token
