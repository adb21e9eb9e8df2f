"""Client configuration.

ClientOptions is an explicitly constructed, immutable value that is passed to
every component that needs it. There is no module-level mutable configuration.
"""

from __future__ import annotations

from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .enums import Environment, SigningScheme, WsAuthMode

REST_BASE_URLS = {
    Environment.PRODUCTION: "https://api.elections.kalshi.com/trade-api/v2",
    Environment.DEMO: "https://demo-api.kalshi.co/trade-api/v2",
}

WS_URLS = {
    Environment.PRODUCTION: "wss://api.elections.kalshi.com/trade-api/ws/v2",
    Environment.DEMO: "wss://demo-api.kalshi.co/trade-api/ws/v2",
}

WS_PATH = "/trade-api/ws/v2"

ENV_PREFIX = "KALSHI_"


class ClientOptions(BaseModel):
    """Connection, credential and runtime settings for the client."""

    api_key: str = Field(..., min_length=1)
    # HMAC secret or RSA private key PEM, depending on signing_scheme
    api_secret: SecretStr
    signing_scheme: SigningScheme = SigningScheme.RSA_PSS
    environment: Environment = Environment.PRODUCTION
    base_url: str | None = None
    ws_url: str | None = None
    timeout: float = Field(30.0, gt=0)

    enable_rate_limiting: bool = True
    rate_limit_capacity: int = Field(20, gt=0)
    rate_limit_refill_rate: float = Field(10.0, gt=0)
    rate_limit_max_queue: int = Field(100, gt=0)

    ws_auth_mode: WsAuthMode = WsAuthMode.HEADERS
    auto_reconnect: bool = True
    reconnect_initial_delay: float = Field(1.0, gt=0)
    reconnect_max_delay: float = Field(30.0, gt=0)
    reconnect_multiplier: float = Field(2.0, gt=1.0)
    reconnect_max_attempts: int | None = Field(None, gt=0)
    shutdown_timeout: float = Field(5.0, gt=0)
    ping_interval: float | None = 20.0
    ping_timeout: float | None = 20.0

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    @model_validator(mode="after")
    def _check_reconnect_bounds(self) -> ClientOptions:
        if self.reconnect_max_delay < self.reconnect_initial_delay:
            raise ValueError("reconnect_max_delay must be >= reconnect_initial_delay")
        return self

    def get_effective_base_url(self) -> str:
        """REST base URL: explicit override, else the environment default."""
        return (self.base_url or REST_BASE_URLS[self.environment]).rstrip("/")

    def get_ws_url(self) -> str:
        """Streaming URL: explicit override, else derived from base_url, else default."""
        if self.ws_url:
            return self.ws_url
        if self.base_url:
            parsed = urlparse(self.base_url)
            scheme = "wss" if parsed.scheme == "https" else "ws"
            return f"{scheme}://{parsed.netloc}{WS_PATH}"
        return WS_URLS[self.environment]

    @classmethod
    def from_env(cls, env_file: str | None = None, **overrides) -> ClientOptions:
        """Build options from ``KALSHI_*`` environment variables.

        ``KALSHI_API_KEY`` and either ``KALSHI_API_SECRET`` or
        ``KALSHI_PRIVATE_KEY_PATH`` are required. Any other field can be set
        as ``KALSHI_<FIELD_NAME>``, optionally from a dotenv ``env_file``;
        keyword overrides win.
        """
        return KalshiEnvSettings(_env_file=env_file).to_options(**overrides)


class KalshiEnvSettings(BaseSettings):
    """``KALSHI_*`` environment source for :class:`ClientOptions`.

    Every field is optional here; unset values fall back to the
    ClientOptions defaults and required ones are enforced there.
    """

    api_key: str | None = None
    api_secret: SecretStr | None = None
    private_key_path: str | None = None
    signing_scheme: SigningScheme | None = None
    environment: Environment | None = None
    base_url: str | None = None
    ws_url: str | None = None
    timeout: float | None = None

    enable_rate_limiting: bool | None = None
    rate_limit_capacity: int | None = None
    rate_limit_refill_rate: float | None = None
    rate_limit_max_queue: int | None = None

    ws_auth_mode: WsAuthMode | None = None
    auto_reconnect: bool | None = None
    reconnect_initial_delay: float | None = None
    reconnect_max_delay: float | None = None
    reconnect_multiplier: float | None = None
    reconnect_max_attempts: int | None = None
    shutdown_timeout: float | None = None
    ping_interval: float | None = None
    ping_timeout: float | None = None

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    def to_options(self, **overrides) -> ClientOptions:
        values = self.model_dump(exclude_none=True, exclude={"private_key_path"})
        if "api_secret" not in values and self.private_key_path:
            with open(self.private_key_path, encoding="utf-8") as fh:
                values["api_secret"] = fh.read()
        values.update(overrides)
        return ClientOptions.model_validate(values)
