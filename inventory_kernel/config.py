"""
Configuration (``inventory_kernel.config``).

Responsibility
--------------
Defines the typed runtime configuration of the inventory kernel, loads it
from a YAML file, applies environment overrides, and holds the single
process-wide active configuration.

Lifecycle
---------
``configure()`` is called once at process start.  After that the active
configuration is read-only; ``get_active_config()`` is the only runtime
accessor.  ``reset_config()`` exists for tests.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown keys or out-of-range values  -> ``ValueError``.
* ``configure()`` called twice  -> ``RuntimeError``.
"""

from __future__ import annotations

import os
import threading
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

import yaml

from inventory_kernel.logging_config import get_logger

logger = get_logger("config")

ENV_DATABASE_URL = "INVENTORY_DATABASE_URL"
ENV_LOG_LEVEL = "INVENTORY_LOG_LEVEL"

VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


@dataclass(frozen=True)
class InventoryConfig:
    """
    Runtime settings for the inventory kernel.

    Field defaults suit a single-process deployment.  Override at
    instantiation or through a YAML file:

        config = load_config("inventory.yaml")
    """

    database_url: str = "sqlite:///inventory.db"
    echo_sql: bool = False

    # Item-scoped locking and retry of transient contention
    lock_timeout_seconds: float = 5.0
    max_attempts: int = 3
    backoff_base_seconds: float = 0.05
    backoff_max_seconds: float = 1.0

    log_level: str = "INFO"

    # inventory_share without final_assignee is rejected at creation
    require_final_assignee_on_create: bool = True
    # Allocation rows are deleted when their balance reaches zero
    prune_zero_allocations: bool = True

    def __post_init__(self):
        if self.lock_timeout_seconds <= 0:
            raise ValueError("lock_timeout_seconds must be positive")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.backoff_base_seconds < 0 or self.backoff_max_seconds < 0:
            raise ValueError("backoff durations cannot be negative")
        if self.log_level.upper() not in VALID_LOG_LEVELS:
            raise ValueError(
                f"log_level must be one of {sorted(VALID_LOG_LEVELS)}, "
                f"got '{self.log_level}'"
            )

    def backoff_for(self, attempt: int) -> float:
        """Exponential backoff before retry number ``attempt`` (1-based)."""
        delay = self.backoff_base_seconds * (2 ** (attempt - 1))
        return min(delay, self.backoff_max_seconds)


def config_from_dict(data: dict[str, Any]) -> InventoryConfig:
    """Build an InventoryConfig from a parsed mapping.

    Raises:
        ValueError: if the mapping contains keys InventoryConfig does not define.
    """
    known = {f.name for f in fields(InventoryConfig)}
    unknown = set(data) - known
    if unknown:
        raise ValueError(f"Unknown configuration keys: {sorted(unknown)}")
    return InventoryConfig(**data)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a single YAML file and return its top-level mapping."""
    with open(path) as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at top level")
    # Settings may live under an "inventory" section or at the top level
    section = data.get("inventory", data)
    if not isinstance(section, dict):
        raise ValueError(f"{path}: 'inventory' section must be a mapping")
    return section


def apply_env_overrides(
    config: InventoryConfig,
    environ: dict[str, str] | None = None,
) -> InventoryConfig:
    """Return ``config`` with values overridden from environment variables."""
    env = os.environ if environ is None else environ
    overrides: dict[str, Any] = {}
    if env.get(ENV_DATABASE_URL):
        overrides["database_url"] = env[ENV_DATABASE_URL]
    if env.get(ENV_LOG_LEVEL):
        overrides["log_level"] = env[ENV_LOG_LEVEL].upper()
    if not overrides:
        return config
    return replace(config, **overrides)


def load_config(
    path: str | Path | None = None,
    environ: dict[str, str] | None = None,
) -> InventoryConfig:
    """
    Load configuration from YAML (optional) and the environment.

    Args:
        path: YAML file to read. When None, defaults are used.
        environ: Environment mapping (defaults to ``os.environ``).

    Returns:
        A validated, frozen InventoryConfig.
    """
    data = load_yaml_file(Path(path)) if path is not None else {}
    config = apply_env_overrides(config_from_dict(data), environ)
    logger.info(
        "config_loaded",
        extra={
            "source": str(path) if path is not None else "defaults",
            "max_attempts": config.max_attempts,
            "lock_timeout_seconds": config.lock_timeout_seconds,
        },
    )
    return config


# ---------------------------------------------------------------------------
# Process-wide active configuration
# ---------------------------------------------------------------------------

_active: InventoryConfig | None = None
_active_lock = threading.Lock()


def configure(config: InventoryConfig) -> InventoryConfig:
    """Install the process-wide configuration. May be called once."""
    global _active
    with _active_lock:
        if _active is not None:
            raise RuntimeError(
                "Configuration already installed; it is read-only after start-up"
            )
        _active = config
    return config


def get_active_config() -> InventoryConfig:
    """Return the installed configuration.

    Raises:
        RuntimeError: If ``configure()`` has not been called.
    """
    if _active is None:
        raise RuntimeError("Configuration not installed. Call configure() first.")
    return _active


def reset_config() -> None:
    """Drop the installed configuration. FOR TESTING ONLY."""
    global _active
    with _active_lock:
        _active = None
