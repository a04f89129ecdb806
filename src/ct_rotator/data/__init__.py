"""Synthetic data helpers."""
from __future__ import annotations

from ct_rotator.data.phantom import make_phantom, write_phantom_series

__all__ = ["make_phantom", "write_phantom_series"]
