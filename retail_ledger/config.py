"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class LedgerConfig(BaseSettings):
    """Retail ledger configuration"""
    
    # Account rules
    minimum_deposit: str = "1.00"
    default_daily_withdrawal_limit: str = "5000.00"  # In base currency
    minimum_daily_withdrawal_limit: str = "100.00"
    credential_min_length: int = 6
    owner_name_min_length: int = 2
    
    # Interest
    interest_log_threshold: str = "0.01"
    
    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stdout
    
    class Config:
        env_prefix = "LEDGER_"
        env_file = ".env"
        case_sensitive = False


# Global configuration instance
config = LedgerConfig()


def get_config() -> LedgerConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> LedgerConfig:
    """Reload configuration from environment"""
    global config
    config = LedgerConfig()
    return config
