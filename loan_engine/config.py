"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from decimal import Decimal
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineConfig(BaseSettings):
    """Loan engine configuration"""

    model_config = SettingsConfigDict(
        env_prefix="LOAN_ENGINE_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Storage configuration
    database_url: str = "sqlite:///loan_engine.db"  # or memory://

    # Business rules configuration
    currency: str = "INR"
    rounding_tolerance: str = "1.00"  # Payment vs. due mismatch forgiven/carried forward
    outstanding_tolerance: str = "1.00"  # Residual principal allowed at close
    paid_epsilon: str = "0.01"  # Equality threshold for marking an installment paid
    reject_overpayment: bool = False  # False keeps the absorb-and-report behaviour
    loan_number_prefix: str = "LN"

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stderr

    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8095

    @property
    def rounding_tolerance_amount(self) -> Decimal:
        return Decimal(self.rounding_tolerance)

    @property
    def outstanding_tolerance_amount(self) -> Decimal:
        return Decimal(self.outstanding_tolerance)

    @property
    def paid_epsilon_amount(self) -> Decimal:
        return Decimal(self.paid_epsilon)


# Global configuration instance
config = EngineConfig()


def get_config() -> EngineConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> EngineConfig:
    """Reload configuration from environment"""
    global config
    config = EngineConfig()
    return config
