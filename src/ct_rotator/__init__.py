"""CT volume rotation.

Reconstructs a 3-D CT volume from an ordered stack of axial slices, derives
axial, sagittal and coronal views from it, and applies a rigid 3-D rotation
to the whole volume, writing the resampled result back out as a new slice
stack with the original per-slice metadata.
"""

from __future__ import annotations

__version__ = "0.1.0"
