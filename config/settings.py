"""
Settings Management

Pydantic-based settings schema with environment variable support.
Merges the optional TOML config with environment variables and validates
the result once at startup.

@.architecture
Incoming: utils/config.py, Environment variables, config/gateway.toml --- {Dict from load_toml_config, str from os.getenv}
Processing: get_settings(), reload_settings(), validate_settings(), field_validator() --- {4 jobs: configuration_loading, environment_variable_merging, schema_validation, caching}
Outgoing: app.py, api/dependencies.py, security/*.py, core/*.py, ws/*.py --- {Settings Pydantic model with typed config sections}
"""

import os
from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, Field, field_validator
from functools import lru_cache

from core.errors import ConfigurationError
from utils.config import load_config as load_toml_config


# =============================================================================
# Settings Schemas
# =============================================================================

class SecuritySettings(BaseModel):
    """Network binding and origin policy."""
    bind_host: str = "0.0.0.0"
    bind_port: int = 8000
    allowed_origins: List[str] = Field(
        default_factory=lambda: [
            "http://localhost:5173",
            "http://localhost:3000",
        ]
    )
    cors_allow_credentials: bool = True

    @field_validator('allowed_origins', mode='before')
    @classmethod
    def split_origins(cls, v: Any) -> Any:
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    def origin_allowed(self, origin: Optional[str]) -> bool:
        """Non-browser clients send no Origin header and are let through."""
        if not self.allowed_origins or "*" in self.allowed_origins:
            return True
        if origin is None:
            return True
        return origin in self.allowed_origins


class IdentitySettings(BaseModel):
    """Identity provider (Privy) credentials and address policy."""
    app_id: Optional[str] = None
    app_secret: Optional[str] = None
    verification_key: Optional[str] = None
    api_base: str = "https://auth.privy.io/api/v1"
    issuer: str = "privy.io"
    preferred_chain: str = "solana"

    # provider: wallet address comes from the identity provider (authoritative)
    # handshake: wallet address is taken from the client's handshake
    address_source: Literal["provider", "handshake"] = "provider"


class LedgerSettings(BaseModel):
    """Balance oracle and eligibility gate."""
    rpc_url: str = "https://api.mainnet-beta.solana.com"
    commitment: str = "confirmed"
    token_mint: Optional[str] = None
    token_decimals: int = 6
    min_balance: Decimal = Decimal("100000")
    cache_ttl: float = 30.0
    eligibility_enabled: bool = True

    @field_validator('token_decimals')
    @classmethod
    def validate_decimals(cls, v: int) -> int:
        if v < 0:
            raise ValueError("token_decimals must be >= 0")
        return v

    @field_validator('cache_ttl')
    @classmethod
    def validate_ttl(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("cache_ttl must be positive")
        return v

    @field_validator('min_balance')
    @classmethod
    def validate_min_balance(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("min_balance must be >= 0")
        return v

    @property
    def min_balance_base_units(self) -> int:
        """Minimum balance at the token's native precision."""
        return int(self.min_balance * (Decimal(10) ** self.token_decimals))

    @property
    def min_balance_display(self) -> str:
        return f"{self.min_balance:.2f}"


class BusSettings(BaseModel):
    """Message bus and inbound transport."""
    redis_url: str = "redis://localhost:6379"
    response_channel: str = "chat:responses"
    inbound_transport: Literal["bus", "http"] = "bus"
    inbound_queue_template: str = "chat:message:{message_id}"
    chat_api_url: Optional[str] = None
    resubscribe_delay: float = 1.0


class GatewaySettings(BaseModel):
    """Client-facing behaviour."""
    welcome_message: str = "👋 Connected to Nova Dova AI"
    echo_inputs: bool = False
    send_timeout: float = 3.0


class MonitoringSettings(BaseModel):
    """Logging configuration."""
    log_level: str = "INFO"
    log_format: str = "json"  # json|text


class Settings(BaseModel):
    """
    Main application settings.

    Loads configuration from:
    1. TOML config file (config/gateway.toml)
    2. Environment variables
    3. Defaults defined in schemas

    Priority: Environment variables > TOML config > Defaults
    """

    app_name: str = "Nova Gateway"
    app_version: str = "1.0.0"
    environment: str = "development"  # development|production|test

    security: SecuritySettings = Field(default_factory=SecuritySettings)
    identity: IdentitySettings = Field(default_factory=IdentitySettings)
    ledger: LedgerSettings = Field(default_factory=LedgerSettings)
    bus: BusSettings = Field(default_factory=BusSettings)
    gateway: GatewaySettings = Field(default_factory=GatewaySettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)

    @field_validator('environment')
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment value."""
        allowed = ['development', 'production', 'test']
        if v not in allowed:
            raise ValueError(f"Environment must be one of {allowed}")
        return v


# =============================================================================
# Settings Loader
# =============================================================================

# Environment variable -> (section, field). None section means top level.
_ENV_OVERRIDES = {
    "GATEWAY_ENVIRONMENT": (None, "environment"),
    "GATEWAY_HOST": ("security", "bind_host"),
    "PORT": ("security", "bind_port"),
    "GATEWAY_ALLOWED_ORIGINS": ("security", "allowed_origins"),
    "PRIVY_APP_ID": ("identity", "app_id"),
    "PRIVY_APP_SECRET": ("identity", "app_secret"),
    "PRIVY_VERIFICATION_KEY": ("identity", "verification_key"),
    "PRIVY_API_BASE": ("identity", "api_base"),
    "GATEWAY_ADDRESS_SOURCE": ("identity", "address_source"),
    "SOLANA_RPC_URL": ("ledger", "rpc_url"),
    "DOVA_TOKEN_ADDRESS": ("ledger", "token_mint"),
    "GATEWAY_TOKEN_DECIMALS": ("ledger", "token_decimals"),
    "GATEWAY_MIN_BALANCE": ("ledger", "min_balance"),
    "GATEWAY_BALANCE_CACHE_TTL": ("ledger", "cache_ttl"),
    "GATEWAY_ELIGIBILITY_ENABLED": ("ledger", "eligibility_enabled"),
    "REDIS_URL": ("bus", "redis_url"),
    "GATEWAY_RESPONSE_CHANNEL": ("bus", "response_channel"),
    "GATEWAY_INBOUND_TRANSPORT": ("bus", "inbound_transport"),
    "CHAT_API_URL": ("bus", "chat_api_url"),
    "GATEWAY_WELCOME_MESSAGE": ("gateway", "welcome_message"),
    "GATEWAY_ECHO_INPUTS": ("gateway", "echo_inputs"),
    "GATEWAY_LOG_LEVEL": ("monitoring", "log_level"),
    "GATEWAY_LOG_FORMAT": ("monitoring", "log_format"),
}


def _redis_url_from_parts() -> Optional[str]:
    """Build a Redis URL from the REDIS_HOSTNAME/PORT/PASSWORD triple."""
    hostname = os.getenv("REDIS_HOSTNAME")
    if not hostname:
        return None
    port = os.getenv("REDIS_PORT", "6379")
    password = os.getenv("REDIS_PASSWORD")
    auth = f":{password}@" if password else ""
    return f"redis://{auth}{hostname}:{port}"


def _collect_overrides(toml_config: Dict[str, Any]) -> Dict[str, Any]:
    settings_dict: Dict[str, Any] = {}

    for key, value in toml_config.items():
        if isinstance(value, dict):
            settings_dict[key] = dict(value)
        else:
            settings_dict[key] = value

    if redis_url := _redis_url_from_parts():
        settings_dict.setdefault("bus", {})["redis_url"] = redis_url

    for env_name, (section, field_name) in _ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value is None or value == "":
            continue
        if section is None:
            settings_dict[field_name] = value
        else:
            settings_dict.setdefault(section, {})[field_name] = value

    return settings_dict


@lru_cache()
def get_settings() -> Settings:
    """
    Load and return application settings (cached).

    Returns:
        Settings: Complete application settings
    """
    toml_config = load_toml_config()
    return Settings(**_collect_overrides(toml_config))


def reload_settings() -> Settings:
    """
    Reload settings (clears cache).

    Returns:
        Settings: Reloaded application settings
    """
    get_settings.cache_clear()
    return get_settings()


def validate_settings(settings: Settings) -> Settings:
    """
    Check that every collaborator the gateway needs is configured.

    Raises:
        ConfigurationError: listing every missing value
    """
    missing: List[str] = []

    if not settings.identity.app_id:
        missing.append("PRIVY_APP_ID")
    if not settings.identity.app_secret:
        missing.append("PRIVY_APP_SECRET")
    if not settings.identity.verification_key:
        missing.append("PRIVY_VERIFICATION_KEY")

    if settings.ledger.eligibility_enabled and not settings.ledger.token_mint:
        missing.append("DOVA_TOKEN_ADDRESS")

    if not settings.bus.redis_url:
        missing.append("REDIS_URL")

    if settings.bus.inbound_transport == "http" and not settings.bus.chat_api_url:
        missing.append("CHAT_API_URL")

    if missing:
        raise ConfigurationError(missing)

    return settings

