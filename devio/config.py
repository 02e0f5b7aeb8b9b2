"""
devio.config — YAML Configuration Loader
=========================================

Reads ``config.yaml`` for deployment settings (platform identity, API port,
history paging, side-effect worker pool).  Secrets such as ``DATABASE_URL``
and ``JWT_SECRET`` come from the environment (``.env``), never from YAML.

Usage::

    from devio.config import load_config

    cfg = load_config()          # reads ./config.yaml by default
    print(cfg.platform_name)     # "Devio"
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml

from devio.constants import DEFAULT_HISTORY_LIMIT, MAX_HISTORY_LIMIT


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class DevioConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Identity
    platform_name: str

    # API
    api_port: int = 8000

    # History paging
    history_page_size: int = DEFAULT_HISTORY_LIMIT
    max_history_page_size: int = MAX_HISTORY_LIMIT

    # Background side effects (notifications, post-commit awards)
    side_effect_workers: int = 4


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> DevioConfig:
    """Read *path* and return a :class:`DevioConfig` instance.

    A missing file yields the defaults, so the API can boot in a fresh
    checkout.  Only ``platform_name`` is required when the file exists.

    Raises
    ------
    KeyError
        If the YAML file exists but lacks ``platform_name``.
    ValueError
        If a paging value is not a positive integer.
    """
    config_path = Path(path)
    if not config_path.exists():
        return DevioConfig(platform_name="Devio")

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    cfg = DevioConfig(
        platform_name=raw["platform_name"],
        api_port=int(raw.get("api_port", 8000)),
        history_page_size=int(raw.get("history_page_size", DEFAULT_HISTORY_LIMIT)),
        max_history_page_size=int(raw.get("max_history_page_size", MAX_HISTORY_LIMIT)),
        side_effect_workers=int(raw.get("side_effect_workers", 4)),
    )
    if cfg.history_page_size <= 0 or cfg.max_history_page_size < cfg.history_page_size:
        raise ValueError(
            "history_page_size must be positive and not exceed max_history_page_size"
        )
    return cfg
