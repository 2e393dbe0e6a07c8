"""
fundgov TOML Configuration Loader

Loads fundgov.toml at startup with environment variable overrides.

Environment variable mapping:
    [governance] quorum_fraction → FUNDGOV_QUORUM_FRACTION
    [logging] level              → FUNDGOV_LOG_LEVEL

Configuration is fixed once a governor has been built from it.
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from ..constants import (
    FUNDGOV_CONFIG,
    FUNDGOV_QUORUM_FRACTION,
    GOVERNANCE_DEFAULT_QUORUM_FRACTION,
    GOVERNANCE_MAX_QUORUM_FRACTION,
    GOVERNANCE_MIN_QUORUM_FRACTION,
    LOG_LEVEL,
)
from ..logger import get_logger, set_log_level

logger = get_logger(__name__)

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _default_quorum_fraction() -> int:
    """Quorum fraction from .env, falling back to the built-in default."""
    try:
        return int(str(FUNDGOV_QUORUM_FRACTION))
    except ValueError:
        logger.warning(
            "Ignoring non-integer FUNDGOV_QUORUM_FRACTION=%r in .env",
            str(FUNDGOV_QUORUM_FRACTION),
        )
        return GOVERNANCE_DEFAULT_QUORUM_FRACTION


# ---------------------------------------------------------------------------
# Section dataclasses
# ---------------------------------------------------------------------------


@dataclass
class GovernanceConfig:
    """[governance] section."""
    quorum_fraction: int = field(default_factory=_default_quorum_fraction)
    start_time: int = 0
    # [governance.balances] voter → weight, used by the static oracle
    balances: Dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GovernanceConfig":
        return cls(
            quorum_fraction=data.get("quorum_fraction", _default_quorum_fraction()),
            start_time=data.get("start_time", 0),
            balances=dict(data.get("balances", {})),
        )

    def apply_env(self) -> None:
        """Override from environment variables."""
        if v := os.environ.get("FUNDGOV_QUORUM_FRACTION"):
            self.quorum_fraction = int(v)

    def validate(self) -> None:
        q = self.quorum_fraction
        if isinstance(q, bool) or not isinstance(q, int):
            raise ValueError(f"quorum_fraction must be an integer, got {q!r}")
        if not GOVERNANCE_MIN_QUORUM_FRACTION <= q <= GOVERNANCE_MAX_QUORUM_FRACTION:
            raise ValueError(
                f"quorum_fraction must be in "
                f"[{GOVERNANCE_MIN_QUORUM_FRACTION}, {GOVERNANCE_MAX_QUORUM_FRACTION}], got {q}"
            )
        if isinstance(self.start_time, bool) or not isinstance(self.start_time, (int, float)):
            raise ValueError(f"start_time must be a number, got {self.start_time!r}")
        for voter, amount in self.balances.items():
            if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
                raise ValueError(
                    f"balance of {voter} must be a non-negative integer, got {amount!r}"
                )


@dataclass
class LoggingConfig:
    """[logging] section."""
    level: str = field(default_factory=lambda: str(LOG_LEVEL))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LoggingConfig":
        return cls(level=str(data.get("level", LOG_LEVEL)).upper())

    def apply_env(self) -> None:
        if v := os.environ.get("FUNDGOV_LOG_LEVEL"):
            self.level = v.upper()

    def validate(self) -> None:
        if self.level not in _LOG_LEVELS:
            raise ValueError(f"Invalid log level: {self.level}")


# ---------------------------------------------------------------------------
# Root config
# ---------------------------------------------------------------------------


@dataclass
class FundGovConfig:
    """
    Unified configuration.

    Loads every section of fundgov.toml and applies environment variable
    overrides. This is the single source of truth at startup.
    """
    governance: GovernanceConfig = field(default_factory=GovernanceConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # --- factories --------------------------------------------------------

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FundGovConfig":
        """Create FundGovConfig from a parsed TOML dict."""
        return cls(
            governance=GovernanceConfig.from_dict(data.get("governance", {})),
            logging=LoggingConfig.from_dict(data.get("logging", {})),
        )

    @classmethod
    def from_file(cls, config_path: str) -> "FundGovConfig":
        """
        Load configuration from a TOML file.

        A missing file yields defaults (with env overrides) and a warning.
        """
        path = Path(config_path)
        if not path.exists():
            logger.warning("Config file not found: %s, using defaults", config_path)
            cfg = cls()
            cfg.apply_env()
            return cfg

        with open(path, "rb") as f:
            raw = tomllib.load(f)

        cfg = cls.from_dict(raw)
        cfg.apply_env()
        return cfg

    # --- env overrides ----------------------------------------------------

    def apply_env(self) -> None:
        """Apply environment variable overrides to all sections."""
        self.governance.apply_env()
        self.logging.apply_env()

    # --- validation -------------------------------------------------------

    def validate(self) -> bool:
        """
        Validate all configuration sections.

        Raises:
            ValueError: on invalid config
        """
        self.governance.validate()
        self.logging.validate()
        return True

    def apply_logging(self) -> None:
        """Validate the [logging] section and make it the active log level."""
        self.logging.validate()
        set_log_level(self.logging.level)

    # --- serialisation ----------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict (for diagnostics, NOT for re-creating TOML)."""
        return {
            "governance": {
                "quorum_fraction": self.governance.quorum_fraction,
                "start_time": self.governance.start_time,
                "balances": dict(self.governance.balances),
            },
            "logging": {
                "level": self.logging.level,
            },
        }


# -----------------------------------------------------------------------
# Convenience function
# -----------------------------------------------------------------------

def load_config(path: Optional[str] = None) -> FundGovConfig:
    """
    Load configuration.

    Resolution order:
        1. Explicit *path* argument
        2. FUNDGOV_CONFIG env var
        3. FUNDGOV_CONFIG from .env, else ./fundgov.toml
        4. Defaults (with env overrides)

    The [logging] level becomes the active log level.

    Raises:
        ValueError: on an invalid [logging] level
    """
    if path is None:
        path = os.environ.get("FUNDGOV_CONFIG", str(FUNDGOV_CONFIG))

    cfg = FundGovConfig.from_file(path)
    cfg.apply_logging()
    return cfg
