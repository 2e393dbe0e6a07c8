"""
fundgov Configuration

Loads fundgov.toml at startup.
Environment variables override TOML values.
"""

from .loader import (
    FundGovConfig,
    GovernanceConfig,
    LoggingConfig,
    load_config,
)

__all__ = [
    "FundGovConfig",
    "GovernanceConfig",
    "LoggingConfig",
    "load_config",
]
