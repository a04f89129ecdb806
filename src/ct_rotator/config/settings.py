"""Settings module -- single entry point for application configuration.

:func:`get_config` returns the merged :class:`AppConfig`.  It loads
``config/default.yaml``, overlays an optional user file, and finally
applies any ``CTR_`` prefixed environment variable overrides.
"""

from __future__ import annotations

import functools
from pathlib import Path

from ct_rotator.domain.models import AppConfig

# Project root is three levels up from ``src/ct_rotator/config/``.
_PROJECT_ROOT = Path(__file__).resolve().parents[3]

DEFAULT_CONFIG_PATH = _PROJECT_ROOT / "config" / "default.yaml"


@functools.lru_cache(maxsize=8)
def get_config(overlay_path: str | None = None) -> AppConfig:
    """Return the fully merged configuration.

    The result is cached per overlay path so that repeated calls within the
    same process are essentially free.

    Resolution order:

    1. ``config/default.yaml``
    2. *overlay_path* if given and the file exists
    3. Environment variables with ``CTR_`` prefix

    Parameters
    ----------
    overlay_path:
        Optional YAML file merged on top of the defaults.

    Returns
    -------
    AppConfig
        Frozen configuration object.
    """
    return AppConfig.load(
        default_path=DEFAULT_CONFIG_PATH,
        overlay_path=overlay_path,
        env_prefix="CTR_",
    )
