"""Version of the lexitree packages."""

from __future__ import annotations

from lexitree_schemas.version import VersionInfo

VERSION = VersionInfo(major=0, minor=1, patch=0)
