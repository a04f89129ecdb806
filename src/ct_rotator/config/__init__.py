"""Configuration sub-package.

Quick usage::

    from ct_rotator.config import get_config

    cfg = get_config()
    print(cfg.get("rotation.fill_value"))
"""

from __future__ import annotations

from ct_rotator.config.settings import DEFAULT_CONFIG_PATH, get_config

__all__ = [
    "DEFAULT_CONFIG_PATH",
    "get_config",
]
