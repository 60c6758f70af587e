"""Configuration management for hpbot."""

from pathlib import Path
from typing import Annotated, Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Wallet Configuration
    private_key: Optional[SecretStr] = Field(
        default=None,
        description="Private key for signing orders (hex string with 0x prefix)",
    )
    wallet_address: Optional[str] = Field(
        default=None,
        description="Wallet address for trading",
    )
    proxy_address: Optional[str] = Field(
        default=None,
        description="Polymarket proxy (funder) address for Email/Magic or browser wallets",
    )
    signature_type: Optional[int] = Field(
        default=None,
        description="Signature type: 1 = Email/Magic, 2 = browser wallet proxy (unset = EOA)",
        ge=0,
        le=2,
    )
    chain_id: int = Field(
        default=137,
        description="Chain ID (137 for Polygon mainnet)",
    )

    # API Endpoints
    clob_base_url: str = Field(
        default="https://clob.polymarket.com",
        description="Polymarket CLOB API base URL",
    )
    gamma_base_url: str = Field(
        default="https://gamma-api.polymarket.com",
        description="Polymarket Gamma API base URL",
    )

    # Polymarket API Credentials (L2 Auth) - derived from private key when unset
    poly_api_key: Optional[str] = Field(
        default=None,
        description="Polymarket API key for L2 authentication",
    )
    poly_api_secret: Optional[SecretStr] = Field(
        default=None,
        description="Polymarket API secret for L2 authentication",
    )
    poly_api_passphrase: Optional[SecretStr] = Field(
        default=None,
        description="Polymarket API passphrase for L2 authentication",
    )

    # Trading Parameters
    trade_size: float = Field(
        default=5.0,
        description="Shares to buy per approved opportunity",
        gt=0.0,
    )
    probability_threshold: float = Field(
        default=0.95,
        description="Minimum implied probability for an outcome to be flagged (0.95 = 95%)",
        gt=0.0,
        lt=1.0,
    )
    order_price: Optional[float] = Field(
        default=None,
        description="Fixed limit price for approved orders (unset = observed probability)",
        gt=0.0,
        le=1.0,
    )
    poll_interval_seconds: float = Field(
        default=30.0,
        description="Seconds between scan and tracking cycles",
        ge=0.5,
        le=600.0,
    )
    window_seconds: int = Field(
        default=900,
        description="Length of the recurring market window used for pause fallback and slugs",
        ge=60,
        le=86400,
    )

    # Market filtering
    event_slug: Optional[str] = Field(
        default=None,
        description="Monitor a single event by slug (window-series prefixes are regenerated)",
    )
    market_keywords: Annotated[list[str], NoDecode] = Field(
        default_factory=list,
        description="Only keep markets whose question contains one of these keywords",
    )

    # Mode
    dry_run: bool = Field(
        default=True,
        description="If true, simulate order submission without touching the venue",
    )

    # Order event history
    ledger_db_path: Path = Field(
        default=Path.home() / ".hpbot" / "hpbot.db",
        description="SQLite file for the durable order event log",
    )
    ledger_db_enabled: bool = Field(
        default=True,
        description="If true, mirror ledger entries to the SQLite order event log",
    )

    # Dashboard
    dashboard_username: str = Field(
        default="admin",
        description="Dashboard login username",
    )
    dashboard_password: str = Field(
        default="",
        description="Dashboard login password (empty = no authentication)",
    )
    dashboard_host: str = Field(
        default="0.0.0.0",
        description="Dashboard bind address",
    )
    dashboard_port: int = Field(
        default=3000,
        description="Dashboard web server port",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )

    @field_validator("wallet_address", "proxy_address", mode="before")
    @classmethod
    def validate_address(cls, v: Optional[str]) -> Optional[str]:
        if v is None or v == "":
            return None
        if not v.startswith("0x") or len(v) != 42:
            raise ValueError("Address must be a valid Ethereum address (0x + 40 hex chars)")
        return v.lower()

    @field_validator("private_key", mode="before")
    @classmethod
    def validate_private_key(cls, v: Optional[str]) -> Optional[str]:
        if v is None or v == "":
            return None
        if not v.startswith("0x"):
            raise ValueError("Private key must start with 0x")
        if len(v) != 66:  # 0x + 64 hex chars
            raise ValueError("Private key must be 32 bytes (64 hex chars + 0x prefix)")
        return v

    @field_validator("market_keywords", mode="before")
    @classmethod
    def split_keywords(cls, v: object) -> object:
        # MARKET_KEYWORDS=bitcoin,ethereum
        if isinstance(v, str):
            return [k.strip() for k in v.split(",") if k.strip()]
        return v

    def is_trading_enabled(self) -> bool:
        """Check if Polymarket trading credentials are configured."""
        return self.private_key is not None

    def has_api_credentials(self) -> bool:
        """Check if L2 API credentials are configured explicitly."""
        return (
            self.poly_api_key is not None
            and self.poly_api_secret is not None
            and self.poly_api_passphrase is not None
        )


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings() -> Settings:
    """Reload settings from environment."""
    global _settings
    _settings = Settings()
    return _settings
