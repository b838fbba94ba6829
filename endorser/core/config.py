"""
Configuration management using Pydantic Settings.
Values are read from the environment and an optional .env file.
"""

from typing import Optional, List
from pydantic import Field, validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Validator client settings with environment-based configuration."""

    # Application
    app_name: str = "Bitcoin Block Endorser"
    app_version: str = "0.1.0"
    environment: str = Field(default="development")

    # Retry behaviour
    max_retries: int = 3
    retry_interval_ms: int = 2000
    rpc_timeout: int = 30  # seconds

    # Ledger chain API endpoints, JSON list in the environment
    exsat_rpc_urls: List[str] = Field(default_factory=list)

    # Bitcoin node
    btc_rpc_url: str = Field(default="http://127.0.0.1:8332")
    btc_rpc_username: str = ""
    btc_rpc_password: str = ""

    # Validator jobs, periods in seconds
    validator_jobs_endorse: float = 10
    validator_jobs_endorse_check: float = 5
    validator_keystore_file: str = ""
    validator_keystore_password: str = ""

    # Catch-up resumes from the last endorsed height only while it sits
    # more than this many blocks below the tip
    catchup_resume_window: int = 6

    # Contracts and tables
    endorse_contract: str = "blkendt.xsat"
    endorse_action: str = "endorse"
    endorsement_table: str = "endorsements"
    chainstate_contract: str = "utxomng.xsat"
    chainstate_table: str = "chainstate"
    startup_contract: str = "rescmng.xsat"
    startup_table: str = "config"
    transaction_expiration: int = 60  # seconds

    # Liveness probe
    health_enabled: bool = True
    health_host: str = "0.0.0.0"
    health_port: int = 8081

    # Logging
    log_level: str = "INFO"
    log_format: str = "console"  # json or console
    log_file: Optional[str] = None

    @validator("environment")
    def validate_environment(cls, v: str) -> str:
        allowed = ["development", "staging", "production"]
        if v not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v

    @validator("log_level")
    def validate_log_level(cls, v: str) -> str:
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed:
            raise ValueError(f"Log level must be one of: {allowed}")
        return v.upper()

    @validator("catchup_resume_window", "max_retries")
    def validate_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("Value must not be negative")
        return v

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def retry_interval_seconds(self) -> float:
        return self.retry_interval_ms / 1000

    class Config:
        env_file = ".env"
        case_sensitive = False


# Global settings instance
settings = Settings()


class BitcoinConfig:
    """Bitcoin node RPC configuration."""

    @staticmethod
    def get_rpc_config() -> dict:
        """Get Bitcoin JSON-RPC client configuration."""
        return {
            "url": settings.btc_rpc_url,
            "username": settings.btc_rpc_username,
            "password": settings.btc_rpc_password,
            "timeout": settings.rpc_timeout,
        }


class LedgerConfig:
    """Ledger chain API configuration and contract names."""

    # Failure messages the endorsement contract asserts with
    ENDORSE_PARSED_MESSAGE = "the block has been parsed and does not need to be endorsed"
    ENDORSE_DISABLED_MESSAGE = "the current endorsement status is disabled"

    @staticmethod
    def get_rpc_config() -> dict:
        """Get ledger client configuration."""
        return {
            "endpoints": list(settings.exsat_rpc_urls),
            "timeout": settings.rpc_timeout,
            "max_retries": settings.max_retries,
            "expiration": settings.transaction_expiration,
        }
