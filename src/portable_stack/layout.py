"""Filesystem layout of managed installs.

``{base_dir}/{install_subpath}/{version}/...`` holds one instance; the
directory's presence is the source of truth for "installed".
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass
from pathlib import Path

from .catalog import PackageDescriptor
from .errors import VersionNotFound

# Written as the last install step; marks a completed extraction
MARKER_FILE = ".portable-stack.json"


@dataclass(frozen=True)
class InstallLayout:
    """Path conventions rooted at ``base_dir``."""

    base_dir: Path

    @property
    def scratch_dir(self) -> Path:
        return self.base_dir / ".temp"

    def package_dir(self, package: PackageDescriptor) -> Path:
        return self.base_dir / package.install_subpath

    def install_path(self, package: PackageDescriptor, version: str) -> Path:
        """Instance directory for a catalog version.

        Raises VersionNotFound for versions the catalog does not list, and for
        any name that would land outside the package directory.
        """
        package.get_version(version)
        if version in ("", ".", "..") or any(sep in version for sep in "/\\"):
            raise VersionNotFound(
                f"invalid version path: {version!r}",
                {"package_id": package.id, "version": version},
            )
        return self.package_dir(package) / version

    def staging_path(self, package: PackageDescriptor, version: str) -> Path:
        """Sibling directory an archive is extracted into before it replaces the instance."""
        return self.install_path(package, version).with_name(f".{version}.partial")

    def is_installed(self, package: PackageDescriptor, version: str) -> bool:
        return self.install_path(package, version).is_dir()

    def marker_path(self, package: PackageDescriptor, version: str) -> Path:
        return self.install_path(package, version) / MARKER_FILE

    def is_complete(self, package: PackageDescriptor, version: str) -> bool:
        return self.marker_path(package, version).is_file()

    def write_marker(self, package: PackageDescriptor, version: str, url: str) -> Path:
        path = self.marker_path(package, version)
        data = {
            "package_id": package.id,
            "version": version,
            "source_url": url,
            "installed_at": time.time(),
        }
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        return path
