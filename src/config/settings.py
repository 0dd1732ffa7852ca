"""
Environment Configuration

pydantic-settings model for everything that changes between deployments:
RPC endpoints, credentials, the target file, polling intervals and logging.
Static constants live in config.constants.

Usage:
    from config.settings import get_settings

    settings = get_settings()
    for label, url in settings.rpc_endpoint_list:
        ...

    # Override via environment or .env:
    # export RPC_ENDPOINTS="ethereum::https://eth.example/rpc,base::https://base.example/rpc"
    # export DRY_RUN=true
"""

from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator

from config.constants import (
    DEFAULT_COLLECTION_PATH,
    DEFAULT_POLLING_INTERVAL_SEC,
    LOG_FILE_PATH,
    LOG_LEVEL,
    OPENSEA_API_URL,
    STRUCTURED_LOGGING,
)


class BotSettings(BaseSettings):
    """
    Market-Making Bot Configuration

    All parameters can be overridden via environment variables.
    Example: DRY_RUN=true nft-market-maker
    """

    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=False,
        extra='ignore'
    )

    # ============================================================================
    # NETWORKS & TARGETS
    # ============================================================================

    rpc_endpoints: str = Field(
        default='',
        description="Comma-separated 'label::url' RPC endpoints, e.g. ethereum::https://..."
    )

    collection_path: str = Field(
        default=DEFAULT_COLLECTION_PATH,
        description="Path to the JSON file listing tracked listings and offers"
    )

    # ============================================================================
    # CREDENTIALS
    # ============================================================================

    opensea_api_key: Optional[str] = Field(
        default=None,
        description="OpenSea API key (or OPENSEA_API_KEY in the AWS secret)"
    )

    opensea_api_url: str = Field(
        default=OPENSEA_API_URL,
        description="OpenSea API base URL"
    )

    private_key: Optional[str] = Field(
        default=None,
        description="Owner wallet private key (or PRIVATE_KEY in the AWS secret)"
    )

    aws_secret_id: Optional[str] = Field(
        default=None,
        description="AWS Secrets Manager secret holding PRIVATE_KEY / OPENSEA_API_KEY"
    )

    aws_region: str = Field(
        default='us-east-1',
        description="AWS region of the secret"
    )

    order_signer: Optional[str] = Field(
        default=None,
        description="OrderSigner implementation as 'package.module:ClassName'"
    )

    dry_run: bool = Field(
        default=False,
        description="Log intended orders and cancellations without sending them"
    )

    # ============================================================================
    # POLLING
    # ============================================================================

    polling_interval_seconds: float = Field(
        default=DEFAULT_POLLING_INTERVAL_SEC,
        description="Pause between listing cycles (seconds)",
        gt=0
    )

    offer_polling_interval_seconds: float = Field(
        default=DEFAULT_POLLING_INTERVAL_SEC,
        description="Pause between offer cycles (seconds)",
        gt=0
    )

    cleanup_polling_interval_seconds: float = Field(
        default=DEFAULT_POLLING_INTERVAL_SEC,
        description="Pause between redundant-offer cleanup cycles (seconds)",
        gt=0
    )

    # ============================================================================
    # LOGGING
    # ============================================================================

    log_level: str = Field(default=LOG_LEVEL, description="DEBUG, INFO, WARNING, ERROR or CRITICAL")
    log_file: str = Field(default=LOG_FILE_PATH, description="Rotating log file path")
    structured_logging: bool = Field(default=STRUCTURED_LOGGING, description="JSON log file")

    # ============================================================================
    # VALIDATORS
    # ============================================================================

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in {'DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'}:
            raise ValueError(f"Invalid log level: {v}")
        return level

    @field_validator('opensea_api_key', 'private_key', 'aws_secret_id', 'order_signer')
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        return v.strip()

    @property
    def rpc_endpoint_list(self) -> List[str]:
        """RPC_ENDPOINTS split into its non-empty entries"""
        return [entry.strip() for entry in self.rpc_endpoints.split(',') if entry.strip()]


# Singleton instance
_settings: Optional[BotSettings] = None


def get_settings() -> BotSettings:
    """
    Get singleton settings instance.

    Returns:
        BotSettings: Configured settings instance
    """
    global _settings
    if _settings is None:
        _settings = BotSettings()
    return _settings


def reload_settings() -> BotSettings:
    """
    Force reload settings from environment.

    Returns:
        BotSettings: New settings instance
    """
    global _settings
    _settings = BotSettings()
    return _settings


__all__ = ['get_settings', 'reload_settings', 'BotSettings']
