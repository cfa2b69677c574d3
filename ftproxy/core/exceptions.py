"""
Core exceptions for ftproxy
"""

from typing import Any, List, Optional


class ProxyError(Exception):
    """Base exception for ftproxy"""
    pass


class ConfigError(ProxyError):
    """Configuration related errors (missing settings, unreadable documents)"""

    def __init__(self, message: str, missing: Optional[List[str]] = None):
        super().__init__(message)
        self.missing = list(missing or [])


class ServiceError(ProxyError):
    """Service layer errors"""
    pass


class UpstreamError(ServiceError):
    """Non-2xx response from the journey engine or the offer API"""

    def __init__(self, status_code: int, body: Any, method: str = "", url: str = ""):
        self.status_code = status_code
        self.body = body
        self.method = method
        self.url = url
        super().__init__(f"HTTP {status_code} for {method} {url}".strip())

    @property
    def message(self) -> str:
        """Upstream `message` field, empty when the body carries none"""
        if isinstance(self.body, dict):
            value = self.body.get("message")
            if isinstance(value, str):
                return value
        return ""

    def is_not_found(self) -> bool:
        return self.status_code == 404


class NetworkError(ServiceError):
    """Transport-level failure (no upstream status available)"""
    pass


class TokenError(ServiceError):
    """Token acquisition or extraction errors"""
    pass


class JourneyError(ServiceError):
    """Journey service errors"""
    pass


class CorrelationError(ServiceError):
    """Step payload lacks the instance identifier needed for follow-up calls"""
    pass


class ClientValidationError(ProxyError):
    """Local validation failure raised before any network call"""
    pass
