"""
govlens Configuration

Loads all sections of config.toml at startup.
Environment variables override TOML values.
"""

from .loader import (
    ContractsConfig,
    GovernanceConfig,
    GovLensConfig,
    NetworkConfig,
    OracleConfig,
    ServiceConfig,
    load_config,
)

__all__ = [
    "ContractsConfig",
    "GovernanceConfig",
    "GovLensConfig",
    "NetworkConfig",
    "OracleConfig",
    "ServiceConfig",
    "load_config",
]
