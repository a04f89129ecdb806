"""Domain layer -- models, errors, protocols, and events.

Re-exports the public domain types for convenient access::

    from ct_rotator.domain import Volume, RotationState, Plane
"""

from __future__ import annotations

from ct_rotator.domain.errors import (
    CTRotatorError,
    FormatError,
    NotFoundError,
    SliceIOError,
)
from ct_rotator.domain.events import (
    SERIES_WRITTEN,
    SLICE_WRITTEN,
    VOLUME_LOADED,
    VOLUME_ROTATED,
    Event,
    EventBus,
)
from ct_rotator.domain.models import (
    AppConfig,
    Plane,
    PlaneImage,
    RotationState,
    SliceRecord,
    Volume,
    default_index,
    plane_extent,
)
from ct_rotator.domain.protocols import SliceAttachment

__all__ = [
    # Models
    "AppConfig",
    "Plane",
    "PlaneImage",
    "RotationState",
    "SliceRecord",
    "Volume",
    "default_index",
    "plane_extent",
    # Errors
    "CTRotatorError",
    "FormatError",
    "NotFoundError",
    "SliceIOError",
    # Events
    "SERIES_WRITTEN",
    "SLICE_WRITTEN",
    "VOLUME_LOADED",
    "VOLUME_ROTATED",
    "Event",
    "EventBus",
    # Protocols
    "SliceAttachment",
]
