"""
govlens TOML Configuration Loader

Loads config.toml at startup with environment variable overrides.
Defaults come from ``govlens.constants`` (which reads ``.env``).

Environment variable mapping:
    [network] name          → GOVLENS_NETWORK
    [network] rpc_url       → GOVLENS_RPC_URL
    [oracle] timestamp_url  → GOVLENS_TIMESTAMP_URL
    [contracts] governor    → GOVLENS_GOVERNOR
    [service] port          → GOVLENS_SERVICE_PORT
    ...
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

try:
    import tomllib as tomli  # Python 3.11+
except ImportError:
    import tomli  # type: ignore[no-redef]

from ..chain.abi import GovernorVariant
from ..constants import (
    CONNECTION_TIMEOUT,
    DEFAULT_QUORUM_VOTES,
    DEFAULT_SECONDS_PER_BLOCK,
    DEFAULT_TOKEN_DECIMALS,
    GOVLENS_CONFIG_PATH,
    GOVLENS_NETWORK,
    GOVLENS_RPC_URL,
    GOVLENS_SERVICE_HOST,
    GOVLENS_SERVICE_PORT,
    GOVLENS_TIMESTAMP_URL,
    TIMELOCK_DELAY_SECONDS,
    TIMELOCK_GRACE_PERIOD_SECONDS,
)
from ..crypto.contract import normalize_address
from ..exceptions import ConfigurationError
from ..governance.proposals import GovernanceParams
from ..logger import get_logger
from ..numeric import parse_wei

logger = get_logger(__name__)

TIMESTAMP_SOURCES = ("http", "rpc")

# ---------------------------------------------------------------------------
# Section dataclasses, one per [section] of config.example.toml
# ---------------------------------------------------------------------------


@dataclass
class NetworkConfig:
    """[network] section."""
    name: str = str(GOVLENS_NETWORK)
    rpc_url: str = str(GOVLENS_RPC_URL)
    timeout: float = CONNECTION_TIMEOUT

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NetworkConfig":
        return cls(
            name=data.get("name", str(GOVLENS_NETWORK)),
            rpc_url=data.get("rpc_url", str(GOVLENS_RPC_URL)),
            timeout=float(data.get("timeout", CONNECTION_TIMEOUT)),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("GOVLENS_NETWORK"):
            self.name = v
        if v := os.environ.get("GOVLENS_RPC_URL"):
            self.rpc_url = v
        if v := os.environ.get("GOVLENS_RPC_TIMEOUT"):
            self.timeout = float(v)


@dataclass
class OracleConfig:
    """[oracle] section."""
    source: str = "http"
    timestamp_url: str = str(GOVLENS_TIMESTAMP_URL)
    cache_enabled: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OracleConfig":
        return cls(
            source=data.get("source", "http"),
            timestamp_url=data.get("timestamp_url", str(GOVLENS_TIMESTAMP_URL)),
            cache_enabled=data.get("cache_enabled", False),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("GOVLENS_TIMESTAMP_SOURCE"):
            self.source = v
        if v := os.environ.get("GOVLENS_TIMESTAMP_URL"):
            self.timestamp_url = v
        if v := os.environ.get("GOVLENS_TIMESTAMP_CACHE"):
            self.cache_enabled = v.strip().lower() in ("1", "true", "yes")


@dataclass
class GovernanceConfig:
    """
    [governance] section.

    ``quorum_votes`` is a token mantissa and usually exceeds the TOML integer
    range, so it may be given as a decimal string.
    """
    quorum_votes: int = DEFAULT_QUORUM_VOTES
    seconds_per_block: float = DEFAULT_SECONDS_PER_BLOCK
    timelock_delay: int = TIMELOCK_DELAY_SECONDS
    grace_period: int = TIMELOCK_GRACE_PERIOD_SECONDS

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GovernanceConfig":
        return cls(
            quorum_votes=parse_wei(data.get("quorum_votes", DEFAULT_QUORUM_VOTES)),
            seconds_per_block=float(data.get("seconds_per_block", DEFAULT_SECONDS_PER_BLOCK)),
            timelock_delay=int(data.get("timelock_delay", TIMELOCK_DELAY_SECONDS)),
            grace_period=int(data.get("grace_period", TIMELOCK_GRACE_PERIOD_SECONDS)),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("GOVLENS_QUORUM_VOTES"):
            self.quorum_votes = parse_wei(v)

    def to_params(self) -> GovernanceParams:
        return GovernanceParams(
            quorum_votes=self.quorum_votes,
            seconds_per_block=self.seconds_per_block,
            timelock_delay=self.timelock_delay,
            grace_period=self.grace_period,
        )


@dataclass
class ContractsConfig:
    """[contracts] section. Addresses are optional; requests may name their own."""
    governor: str = ""
    variant: str = GovernorVariant.BRAVO.value
    lens: str = ""
    token: str = ""
    timelock: str = ""
    decimals: int = DEFAULT_TOKEN_DECIMALS
    initial_block: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ContractsConfig":
        return cls(
            governor=data.get("governor", ""),
            variant=data.get("variant", GovernorVariant.BRAVO.value),
            lens=data.get("lens", ""),
            token=data.get("token", ""),
            timelock=data.get("timelock", ""),
            decimals=data.get("decimals", DEFAULT_TOKEN_DECIMALS),
            initial_block=data.get("initial_block", 0),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("GOVLENS_GOVERNOR"):
            self.governor = v
        if v := os.environ.get("GOVLENS_GOVERNOR_VARIANT"):
            self.variant = v
        if v := os.environ.get("GOVLENS_LENS"):
            self.lens = v
        if v := os.environ.get("GOVLENS_TOKEN"):
            self.token = v
        if v := os.environ.get("GOVLENS_TIMELOCK"):
            self.timelock = v
        if v := os.environ.get("GOVLENS_INITIAL_BLOCK"):
            self.initial_block = int(v)

    def validate(self) -> None:
        GovernorVariant.parse(self.variant)
        for name in ("governor", "lens", "token", "timelock"):
            value = getattr(self, name)
            if value:
                normalize_address(value)
        if self.decimals < 0:
            raise ValueError("decimals must be >= 0")
        if self.initial_block < 0:
            raise ValueError("initial_block must be >= 0")


@dataclass
class ServiceConfig:
    """[service] section."""
    host: str = str(GOVLENS_SERVICE_HOST)
    port: int = int(GOVLENS_SERVICE_PORT)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ServiceConfig":
        return cls(
            host=data.get("host", str(GOVLENS_SERVICE_HOST)),
            port=data.get("port", int(GOVLENS_SERVICE_PORT)),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("GOVLENS_SERVICE_HOST"):
            self.host = v
        if v := os.environ.get("GOVLENS_SERVICE_PORT"):
            self.port = int(v)


# -----------------------------------------------------------------------
# Top-level config
# -----------------------------------------------------------------------

@dataclass
class GovLensConfig:
    """
    Unified govlens configuration.

    Loads every section of config.toml and applies environment variable
    overrides. This is the single source of truth at runtime.
    """
    network: NetworkConfig = field(default_factory=NetworkConfig)
    oracle: OracleConfig = field(default_factory=OracleConfig)
    governance: GovernanceConfig = field(default_factory=GovernanceConfig)
    contracts: ContractsConfig = field(default_factory=ContractsConfig)
    service: ServiceConfig = field(default_factory=ServiceConfig)

    # --- factories --------------------------------------------------------

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GovLensConfig":
        """Create GovLensConfig from a parsed TOML dict."""
        try:
            return cls(
                network=NetworkConfig.from_dict(data.get("network", {})),
                oracle=OracleConfig.from_dict(data.get("oracle", {})),
                governance=GovernanceConfig.from_dict(data.get("governance", {})),
                contracts=ContractsConfig.from_dict(data.get("contracts", {})),
                service=ServiceConfig.from_dict(data.get("service", {})),
            )
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"Invalid configuration: {exc}") from exc

    @classmethod
    def from_file(cls, config_path: str) -> "GovLensConfig":
        """
        Load configuration from a TOML file.

        A missing file is not an error: defaults plus environment overrides
        are used instead.
        """
        path = Path(config_path)
        if not path.exists():
            logger.warning(f"Config file not found: {config_path}, using defaults")
            cfg = cls()
            cfg.apply_env()
            return cfg

        try:
            with open(path, "rb") as f:
                raw = tomli.load(f)
        except tomli.TOMLDecodeError as exc:
            raise ConfigurationError(f"Cannot parse {config_path}: {exc}") from exc

        cfg = cls.from_dict(raw)
        cfg.apply_env()
        logger.debug(f"Loaded configuration from {config_path}")
        return cfg

    # --- env overrides ----------------------------------------------------

    def apply_env(self) -> None:
        """Apply environment variable overrides to all sections."""
        try:
            self.network.apply_env()
            self.oracle.apply_env()
            self.governance.apply_env()
            self.contracts.apply_env()
            self.service.apply_env()
        except ValueError as exc:
            raise ConfigurationError(f"Invalid environment override: {exc}") from exc

    # --- validation -------------------------------------------------------

    def validate(self) -> bool:
        """
        Validate all configuration sections.

        Raises:
            ConfigurationError: on invalid config
        """
        try:
            if not self.network.rpc_url.startswith(("http://", "https://")):
                raise ValueError(f"rpc_url must be an http(s) URL: {self.network.rpc_url}")
            if self.network.timeout <= 0:
                raise ValueError("timeout must be > 0")
            if self.oracle.source not in TIMESTAMP_SOURCES:
                raise ValueError(f"Invalid oracle source: {self.oracle.source}")
            if self.oracle.source == "http" and not self.oracle.timestamp_url:
                raise ValueError("oracle source 'http' needs timestamp_url")
            if not 0 < self.service.port < 65536:
                raise ValueError(f"Invalid service port: {self.service.port}")
            self.governance.to_params()
            self.contracts.validate()
        except ValueError as exc:
            raise ConfigurationError(str(exc)) from exc
        return True

    # --- serialisation ----------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict (for diagnostics, NOT for re-creating TOML)."""
        return {
            "network": {
                "name": self.network.name,
                "rpc_url": self.network.rpc_url,
                "timeout": self.network.timeout,
            },
            "oracle": {
                "source": self.oracle.source,
                "timestamp_url": self.oracle.timestamp_url,
                "cache_enabled": self.oracle.cache_enabled,
            },
            "governance": self.governance.to_params().to_dict(),
            "contracts": {
                "governor": self.contracts.governor,
                "variant": self.contracts.variant,
                "lens": self.contracts.lens,
                "token": self.contracts.token,
                "timelock": self.contracts.timelock,
                "decimals": self.contracts.decimals,
                "initial_block": self.contracts.initial_block,
            },
            "service": {
                "host": self.service.host,
                "port": self.service.port,
            },
        }


# -----------------------------------------------------------------------
# Convenience function
# -----------------------------------------------------------------------

def load_config(path: Optional[str] = None) -> GovLensConfig:
    """
    Load govlens configuration.

    Resolution order:
        1. Explicit *path* argument
        2. GOVLENS_CONFIG_PATH env var / .env
        3. ./config.toml in current directory
        4. Defaults (with env overrides)
    """
    if path is None:
        path = os.environ.get("GOVLENS_CONFIG_PATH", str(GOVLENS_CONFIG_PATH))

    return GovLensConfig.from_file(path)
