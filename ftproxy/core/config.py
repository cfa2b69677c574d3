"""
Core configuration utilities for ftproxy
Handles environment settings, YAML/JSON document loading and request-time validation
"""

import os
from pathlib import Path
from typing import ClassVar, Dict, Any, List, Mapping, Optional
import yaml
from dotenv import load_dotenv
from loguru import logger
from pydantic import BaseModel, Field

from .exceptions import ConfigError


class PathConfig:
    """Centralized path configuration for ftproxy"""

    @staticmethod
    def get_package_root() -> Path:
        """Get package directory: ftproxy/"""
        return Path(__file__).resolve().parent.parent

    @staticmethod
    def get_configs_dir() -> Path:
        """Get bundled configs directory: ftproxy/configs/"""
        return PathConfig.get_package_root() / "configs"

    @staticmethod
    def get_step_overrides_file() -> Path:
        """Get default step override document: ftproxy/configs/step-overrides.json"""
        return PathConfig.get_configs_dir() / "step-overrides.json"


class ConfigLoader:
    """Core utility for configuration loading and parsing"""

    def __init__(self):
        self.logger = logger

    async def load_yaml(self, config_path: str | Path) -> Dict[str, Any]:
        """Load and parse a YAML (or JSON) configuration file"""
        config_path = Path(config_path)
        if not config_path.exists():
            raise ConfigError(f"Config file not found: {config_path}")

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {config_path}: {e}")
        except OSError as e:
            raise ConfigError(f"Failed to load config {config_path}: {e}")

        self.logger.debug(f"Loaded config from {config_path}")
        return config


def _env_flag(value: Optional[str]) -> Optional[bool]:
    if value is None:
        return None
    lowered = value.strip().lower()
    if lowered in ("true", "1", "yes", "on"):
        return True
    if lowered in ("false", "0", "no", "off"):
        return False
    return None


class ProxySettings(BaseModel):
    """Process settings for the journey proxy, sourced from the environment"""

    base_url: Optional[str] = Field(default=None, description="FintechOS base URL")
    auth_token_endpoint: str = Field(default="/ftosapi/authentication/keycloakToken")
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    user_name: Optional[str] = None
    password: Optional[str] = None
    culture: str = ""
    start_endpoint: Optional[str] = None
    load_metadata_endpoint: Optional[str] = None
    load_step_endpoint: Optional[str] = None
    next_endpoint: Optional[str] = None
    previous_endpoint: Optional[str] = None
    call_step_action_endpoint: Optional[str] = None
    view_item_endpoint: Optional[str] = None

    pfapi_base_url: Optional[str] = None
    pfapi_token_endpoint: str = Field(default="/pfapi/Authentication/token")
    available_offers_endpoint: Optional[str] = None
    offer_details_endpoint: str = Field(default="/pfapi/api/v1/product/offer")
    default_journey_product: str = "DAO6"
    default_journey_class: str = "Personal"
    default_product_dependency: str = "SharesAccount"

    step_overrides_path: Path = Field(default_factory=PathConfig.get_step_overrides_file)
    debug_http: bool = True
    http_timeout: float = 30
    host: str = "0.0.0.0"
    port: int = 3000
    allowed_origins: List[str] = Field(default_factory=lambda: ["*"])

    # Env var names reported back when a setting is missing
    ENV_NAMES: ClassVar[Dict[str, str]] = {
        "base_url": "FINTECHOS_BASE_URL",
        "culture": "FINTECHOS_CULTURE",
        "start_endpoint": "FINTECHOS_START_ENDPOINT",
        "load_metadata_endpoint": "FINTECHOS_LOAD_METADATA_ENDPOINT",
        "load_step_endpoint": "FINTECHOS_LOAD_STEP_ENDPOINT",
        "next_endpoint": "FINTECHOS_NEXT_ENDPOINT",
        "previous_endpoint": "FINTECHOS_PREVIOUS_ENDPOINT",
        "call_step_action_endpoint": "FINTECHOS_CALL_STEP_ACTION_ENDPOINT",
        "view_item_endpoint": "FINTECHOS_CALL_VIEW_ITEM",
        "pfapi_base_url": "FINTECHOS_PFAPI_BASE_URL",
        "pfapi_token_endpoint": "FINTECHOS_PFAPI_TOKEN_ENDPOINT",
        "available_offers_endpoint": "FINTECHOS_AVAILABLE_OFFERS",
        "offer_details_endpoint": "FINTECHOS_OFFER_DETAILS_ENDPOINT",
        "client_id": "FINTECHOS_CLIENT_ID",
        "client_secret": "FINTECHOS_CLIENT_SECRET",
    }

    JOURNEY_REQUIRED: ClassVar[List[str]] = [
        "base_url",
        "culture",
        "start_endpoint",
        "load_metadata_endpoint",
        "load_step_endpoint",
        "next_endpoint",
        "previous_endpoint",
        "call_step_action_endpoint",
    ]

    OFFER_REQUIRED: ClassVar[List[str]] = [
        "pfapi_base_url",
        "pfapi_token_endpoint",
        "available_offers_endpoint",
        "offer_details_endpoint",
        "client_id",
        "client_secret",
    ]

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None,
                 env_file: Optional[str | Path] = None) -> "ProxySettings":
        """Build settings from a mapping (defaults to os.environ after loading .env)"""
        if env is None:
            load_dotenv(env_file)
            env = os.environ

        def get(name: str) -> Optional[str]:
            value = env.get(name)
            if value is None:
                return None
            value = value.strip()
            return value or None

        data: Dict[str, Any] = {
            "base_url": get("FINTECHOS_BASE_URL"),
            "client_id": get("FINTECHOS_CLIENT_ID"),
            "client_secret": get("FINTECHOS_CLIENT_SECRET"),
            "user_name": get("FINTECHOS_USER_NAME"),
            "password": get("FINTECHOS_PASSWORD"),
            "culture": get("FINTECHOS_CULTURE") or "",
            "start_endpoint": get("FINTECHOS_START_ENDPOINT"),
            "load_metadata_endpoint": get("FINTECHOS_LOAD_METADATA_ENDPOINT"),
            "load_step_endpoint": get("FINTECHOS_LOAD_STEP_ENDPOINT"),
            "next_endpoint": get("FINTECHOS_NEXT_ENDPOINT"),
            "previous_endpoint": get("FINTECHOS_PREVIOUS_ENDPOINT"),
            "call_step_action_endpoint": get("FINTECHOS_CALL_STEP_ACTION_ENDPOINT"),
            "view_item_endpoint": get("FINTECHOS_CALL_VIEW_ITEM"),
            "pfapi_base_url": get("FINTECHOS_PFAPI_BASE_URL") or get("FINTECHOS_BASE_URL"),
            "available_offers_endpoint": get("FINTECHOS_AVAILABLE_OFFERS"),
        }

        optional = {
            "auth_token_endpoint": get("FINTECHOS_AUTH_TOKEN_ENDPOINT"),
            "pfapi_token_endpoint": get("FINTECHOS_PFAPI_TOKEN_ENDPOINT") or get("FINTECHOS_AUTH_PFAPI_TOKEN_ENDPOINT"),
            "offer_details_endpoint": get("FINTECHOS_OFFER_DETAILS_ENDPOINT"),
            "default_journey_product": get("DEFAULT_JOURNEY_PRODUCT"),
            "default_journey_class": get("DEFAULT_JOURNEY_CLASS"),
            "default_product_dependency": get("DEFAULT_PRODUCT_DEPENDENCY"),
            "step_overrides_path": get("STEP_OVERRIDES_PATH"),
            "http_timeout": get("HTTP_TIMEOUT"),
            "host": get("HOST"),
            "port": get("PORT"),
        }
        data.update({key: value for key, value in optional.items() if value is not None})

        origins = get("ALLOWED_ORIGINS")
        if origins:
            data["allowed_origins"] = [o.strip() for o in origins.split(",") if o.strip()]

        environment = (get("ENVIRONMENT") or get("NODE_ENV") or "development").lower()
        debug_flag = _env_flag(get("DEBUG_HTTP"))
        data["debug_http"] = debug_flag if debug_flag is not None else environment != "production"

        return cls(**data)

    def has_user_password(self) -> bool:
        return bool(self.user_name and self.password)

    def has_client_credentials(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def _missing(self, keys: List[str]) -> List[str]:
        return [self.ENV_NAMES.get(key, key) for key in keys if not getattr(self, key)]

    def missing_journey_settings(self) -> List[str]:
        """Missing settings for any journey-engine call"""
        missing = self._missing(self.JOURNEY_REQUIRED)
        if not self.has_user_password() and not self.has_client_credentials():
            missing.append("auth credentials (FINTECHOS_USER_NAME/PASSWORD or FINTECHOS_CLIENT_ID/SECRET)")
        return missing

    def missing_offer_settings(self) -> List[str]:
        """Missing settings for the product-offer API"""
        return self._missing(self.OFFER_REQUIRED)

    def missing_view_item_settings(self) -> List[str]:
        return self._missing(["view_item_endpoint"])

    def require_journey(self) -> None:
        missing = self.missing_journey_settings()
        if missing:
            raise ConfigError(f"Missing env vars: {', '.join(missing)}", missing=missing)

    def require_offers(self) -> None:
        missing = self.missing_offer_settings()
        if missing:
            raise ConfigError(f"Missing PFAPI env vars: {', '.join(missing)}", missing=missing)

    def require_view_item(self) -> None:
        missing = self.missing_view_item_settings()
        if missing:
            raise ConfigError(f"Missing env vars: {', '.join(missing)}", missing=missing)
