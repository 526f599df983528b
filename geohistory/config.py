"""
Configuration for geohistory caches.

Provides dataclasses for the eviction limits of the memory tier, the durable
tier and the revision histories, plus loaders for dictionaries, YAML files
and environment variables.
"""

import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)


@dataclass
class EvictionLimits:
    """
    Bounded-size/bounded-age policy for one eviction sweep.

    An eviction sweep removes oldest entries until both limits hold.

    Attributes:
        max_count: Maximum number of entries kept (0 = keep none)
        max_age_seconds: Maximum age of the oldest entry
    """

    max_count: int
    max_age_seconds: float

    def __post_init__(self):
        """Validate limits."""
        if self.max_count < 0:
            raise ValueError(f"max_count must be >= 0, got {self.max_count}")
        if self.max_age_seconds < 0:
            raise ValueError(f"max_age_seconds must be >= 0, got {self.max_age_seconds}")

    def to_dict(self) -> Dict[str, Any]:
        return {"max_count": self.max_count, "max_age_seconds": self.max_age_seconds}


@dataclass
class CacheConfig:
    """
    Complete configuration for an item cache.

    Attributes:
        memory: Limits for the in-memory tier
        durable: Limits for the durable overflow tier
        history: Limits for per-identifier revision histories
        db_path: SQLite database for the durable tier (None = memory only)
        scheduler_interval_seconds: Interval of the optional eviction scheduler
    """

    memory: EvictionLimits = field(default_factory=lambda: EvictionLimits(0, 600))
    durable: EvictionLimits = field(default_factory=lambda: EvictionLimits(5000, 86400))
    history: EvictionLimits = field(default_factory=lambda: EvictionLimits(1000, 86400))
    db_path: Optional[str] = None
    scheduler_interval_seconds: float = 300.0

    def __post_init__(self):
        """Validate configuration."""
        if self.scheduler_interval_seconds <= 0:
            raise ValueError(
                f"scheduler_interval_seconds must be > 0, got {self.scheduler_interval_seconds}"
            )

    @classmethod
    def for_versioned(cls, **kwargs) -> "CacheConfig":
        """Defaults for caches of versioned objects, which keep more in memory."""
        kwargs.setdefault("memory", EvictionLimits(1000, 86400))
        return cls(**kwargs)

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> "CacheConfig":
        """
        Create configuration from dictionary.

        Args:
            config_dict: Configuration dictionary

        Returns:
            CacheConfig instance
        """
        defaults = cls()

        def limits(name: str) -> EvictionLimits:
            base: EvictionLimits = getattr(defaults, name)
            section = config_dict.get(name) or {}
            return EvictionLimits(
                max_count=int(section.get("max_count", base.max_count)),
                max_age_seconds=float(section.get("max_age_seconds", base.max_age_seconds)),
            )

        return cls(
            memory=limits("memory"),
            durable=limits("durable"),
            history=limits("history"),
            db_path=config_dict.get("db_path"),
            scheduler_interval_seconds=float(
                config_dict.get(
                    "scheduler_interval_seconds", defaults.scheduler_interval_seconds
                )
            ),
        )

    @classmethod
    def from_yaml(cls, yaml_path: str) -> "CacheConfig":
        """
        Load configuration from YAML file.

        Args:
            yaml_path: Path to YAML configuration file

        Returns:
            CacheConfig instance
        """
        path = Path(yaml_path).expanduser()
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {yaml_path}")

        with open(path, "r") as f:
            config_dict = yaml.safe_load(f) or {}

        # Extract cache section if present
        if "cache" in config_dict:
            config_dict = config_dict["cache"] or {}

        return cls.from_dict(config_dict)

    @classmethod
    def from_environment(cls, base: Optional["CacheConfig"] = None) -> "CacheConfig":
        """
        Apply environment variable overrides.

        Environment variables override values of ``base`` (or the defaults):
        - GEOHISTORY_DB_PATH
        - GEOHISTORY_MEMORY_MAX_COUNT / GEOHISTORY_MEMORY_MAX_AGE
        - GEOHISTORY_DURABLE_MAX_COUNT / GEOHISTORY_DURABLE_MAX_AGE
        - GEOHISTORY_HISTORY_MAX_COUNT / GEOHISTORY_HISTORY_MAX_AGE

        ``base`` itself is left unchanged.

        Returns:
            New CacheConfig instance
        """
        base = base or cls()
        overrides: Dict[str, Any] = {}

        if os.environ.get("GEOHISTORY_DB_PATH"):
            overrides["db_path"] = os.environ["GEOHISTORY_DB_PATH"]

        for name in ("memory", "durable", "history"):
            limits: EvictionLimits = getattr(base, name)
            prefix = f"GEOHISTORY_{name.upper()}"
            max_count = limits.max_count
            max_age = limits.max_age_seconds

            raw_count = os.environ.get(f"{prefix}_MAX_COUNT")
            if raw_count:
                try:
                    max_count = int(raw_count)
                except ValueError:
                    logger.warning(f"Ignoring invalid {prefix}_MAX_COUNT={raw_count!r}")

            raw_age = os.environ.get(f"{prefix}_MAX_AGE")
            if raw_age:
                try:
                    max_age = float(raw_age)
                except ValueError:
                    logger.warning(f"Ignoring invalid {prefix}_MAX_AGE={raw_age!r}")

            overrides[name] = EvictionLimits(max_count, max_age)

        return replace(base, **overrides)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            "memory": self.memory.to_dict(),
            "durable": self.durable.to_dict(),
            "history": self.history.to_dict(),
            "db_path": self.db_path,
            "scheduler_interval_seconds": self.scheduler_interval_seconds,
        }


def load_config(
    yaml_path: Optional[str] = None,
    use_environment: bool = True,
) -> CacheConfig:
    """
    Load cache configuration with fallback chain.

    Priority order:
    1. Explicit YAML path (if provided)
    2. Default config locations (./geohistory.yaml, ~/.geohistory/config.yaml)
    3. Built-in defaults
    Environment variables are applied on top when use_environment is set.

    Args:
        yaml_path: Optional explicit path to YAML config
        use_environment: Whether to apply environment variable overrides

    Returns:
        CacheConfig instance
    """
    config: Optional[CacheConfig] = None

    if yaml_path:
        config = CacheConfig.from_yaml(yaml_path)
    else:
        default_paths = [
            Path.cwd() / "geohistory.yaml",
            Path.home() / ".geohistory" / "config.yaml",
        ]
        for path in default_paths:
            if path.exists():
                try:
                    config = CacheConfig.from_yaml(str(path))
                    logger.debug(f"Loaded cache config from {path}")
                    break
                except (OSError, ValueError, yaml.YAMLError) as e:
                    logger.warning(f"Failed to load config from {path}: {e}")

    if config is None:
        config = CacheConfig()

    if use_environment:
        config = CacheConfig.from_environment(config)

    return config
