from pydantic import AliasChoices, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from wallet_tracker.errors import ConfigError

SOL_MINT = "So11111111111111111111111111111111111111112"
LAMPORTS_PER_SOL = 1_000_000_000


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=(".env",), env_prefix="TRACKER_", extra="allow", populate_by_name=True
    )

    # Helius
    helius_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("HELIUS_API_KEY", "TRACKER_HELIUS_API_KEY"),
    )
    helius_rpc_base: str = "https://mainnet.helius-rpc.com"
    helius_ws_base: str = "wss://mainnet.helius-rpc.com"
    helius_api_base: str = "https://api.helius.xyz"
    http_timeout_sec: float = 20.0

    # Rendering
    min_fee_sol: float = 0.001  # transactions paying less are treated as noise
    sol_mint: str = SOL_MINT
    default_token_icon: str = (
        "https://raw.githubusercontent.com/solana-labs/token-list/main/assets/mainnet/"
        "So11111111111111111111111111111111111111112/logo.png"
    )
    asset_cache_ttl_sec: int = 3600
    token_image_px: int = 16

    # Subscription
    heartbeat_interval_sec: float = 30.0
    reconnect_delay_sec: float = 5.0
    reconnect_max_delay_sec: float = 5.0  # > reconnect_delay_sec enables exponential backoff
    max_reconnects: int | None = None  # None retries forever
    failure_alert_every: int = 10

    # Fetch
    default_fetch_limit: int = 5
    max_fetch_limit: int = 100

    # CLI
    splash_seconds: float = 2.0
    log_level: str = "INFO"
    debug: bool = Field(default=False, validation_alias=AliasChoices("DEBUG", "TRACKER_DEBUG"))

    @field_validator("helius_api_key", "max_reconnects", mode="before")
    @classmethod
    def _empty_str_to_none(cls, v):
        if v == "":
            return None
        return v

    @field_validator("debug", mode="before")
    @classmethod
    def _empty_str_to_false(cls, v):
        if v == "":
            return False
        return v

    @property
    def rpc_url(self) -> str:
        return f"{self.helius_rpc_base.rstrip('/')}/?api-key={self.require_api_key()}"

    @property
    def ws_url(self) -> str:
        return f"{self.helius_ws_base.rstrip('/')}/?api-key={self.require_api_key()}"

    @property
    def transactions_url(self) -> str:
        return f"{self.helius_api_base.rstrip('/')}/v0/transactions/?api-key={self.require_api_key()}"

    def require_api_key(self) -> str:
        if not self.helius_api_key:
            raise ConfigError(
                "HELIUS_API_KEY is not set. Export it or add it to a .env file."
            )
        return self.helius_api_key

    def clamp_limit(self, limit: int | None) -> int:
        if limit is None:
            limit = self.default_fetch_limit
        return max(1, min(int(limit), self.max_fetch_limit))


def load_settings(**overrides) -> AppSettings:
    try:
        return AppSettings(**overrides)
    except ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        raise ConfigError(f"Invalid configuration value for {fields}:\n{e}") from e
