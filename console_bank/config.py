"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class BankConfig(BaseSettings):
    """Console bank configuration"""
    
    # Persistence configuration
    data_file: str = "bank_data.txt"
    storage_format: str = "text"  # text or json
    verify_balances: bool = True  # Reject files whose balances disagree with history
    autosave: bool = False  # Save after every mutating shell command
    
    # Logging configuration
    log_level: str = "WARNING"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stderr
    
    class Config:
        env_prefix = "CONSOLE_BANK_"
        env_file = ".env"
        case_sensitive = False


# Global configuration instance
config = BankConfig()


def get_config() -> BankConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> BankConfig:
    """Reload configuration from environment"""
    global config
    config = BankConfig()
    return config
