"""
Catalog of installable portable packages.

A catalog is built once at startup (from the built-in entries or a JSON
file) and handed to every component that needs it. Descriptors are frozen;
nothing mutates the catalog after construction.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Iterator, Mapping, Optional

from ..errors import PackageNotFound, VersionNotFound

logger = logging.getLogger(__name__)

# Download key for platform-independent archives
ALL_PLATFORMS = "all"

DEFAULT_FAMILY = "generic"


@dataclass(frozen=True)
class VersionDescriptor:
    """One downloadable version of a package."""
    version: str
    latest: bool = False
    lts: bool = False
    downloads: Mapping[str, str] = field(default_factory=dict)  # "os/arch" or "all" -> URL

    def __post_init__(self):
        object.__setattr__(self, "downloads", MappingProxyType(dict(self.downloads)))

    def to_dict(self) -> dict:
        return {
            "version": self.version,
            "latest": self.latest,
            "lts": self.lts,
            "downloads": dict(self.downloads),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "VersionDescriptor":
        version = data.get("version", "")
        if not version:
            raise ValueError("catalog version entry without 'version'")
        return cls(
            version=str(version),
            latest=bool(data.get("latest", False)),
            lts=bool(data.get("lts", False)),
            downloads=dict(data.get("downloads", {})),
        )


@dataclass(frozen=True)
class PackageDescriptor:
    """Immutable catalog entry for an installable bundle."""

    id: str
    name: str
    category: str
    install_subpath: str  # relative path like "database/mysql"
    description: str = ""
    family: str = DEFAULT_FAMILY  # lifecycle strategy key

    versions: tuple[VersionDescriptor, ...] = ()
    executable: Mapping[str, str] = field(default_factory=dict)  # os -> relative path
    config_file: Optional[str] = None
    ports: tuple[int, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "executable", MappingProxyType(dict(self.executable)))
        object.__setattr__(self, "versions", tuple(self.versions))
        object.__setattr__(self, "ports", tuple(self.ports))

    def get_version(self, version: str) -> VersionDescriptor:
        for candidate in self.versions:
            if candidate.version == version:
                return candidate
        raise VersionNotFound(
            f"version {version} not found for {self.id}",
            {"package_id": self.id, "version": version},
        )

    def executable_for(self, os_name: str) -> Optional[str]:
        return self.executable.get(os_name) or None

    @property
    def primary_port(self) -> Optional[int]:
        return self.ports[0] if self.ports else None

    def to_dict(self) -> dict:
        """Convert to the JSON catalog schema."""
        data = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "family": self.family,
            "install_subpath": self.install_subpath,
            "executable": dict(self.executable),
            "versions": [v.to_dict() for v in self.versions],
        }
        if self.config_file:
            data["config_file"] = self.config_file
        if self.ports:
            data["ports"] = list(self.ports)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "PackageDescriptor":
        package_id = data.get("id", "")
        if not package_id:
            raise ValueError("catalog entry without 'id'")
        install_subpath = data.get("install_subpath") or data.get("install_path")
        if not install_subpath:
            raise ValueError(f"catalog entry {package_id} without 'install_subpath'")
        return cls(
            id=package_id,
            name=data.get("name", package_id),
            description=data.get("description", ""),
            category=data.get("category", "tools"),
            family=data.get("family", DEFAULT_FAMILY),
            install_subpath=install_subpath,
            versions=tuple(VersionDescriptor.from_dict(v) for v in data.get("versions", [])),
            executable=dict(data.get("executable") or {}),
            config_file=data.get("config_file") or None,
            ports=tuple(int(p) for p in data.get("ports") or ()),
        )


class Catalog:
    """
    Read-only registry of package descriptors keyed by id.

    Iteration follows registration order.
    """

    def __init__(self, packages: list[PackageDescriptor]):
        self._packages: dict[str, PackageDescriptor] = {}
        for package in packages:
            if package.id in self._packages:
                raise ValueError(f"duplicate catalog id: {package.id}")
            self._packages[package.id] = package

    def __iter__(self) -> Iterator[PackageDescriptor]:
        return iter(self._packages.values())

    def __len__(self) -> int:
        return len(self._packages)

    def __contains__(self, package_id: object) -> bool:
        return package_id in self._packages

    def get(self, package_id: str) -> PackageDescriptor:
        """Get a package by id or raise PackageNotFound."""
        package = self._packages.get(package_id)
        if package is None:
            raise PackageNotFound(f"package not found: {package_id}", {"package_id": package_id})
        return package

    def by_category(self, category: Optional[str] = None) -> list[PackageDescriptor]:
        """Packages in a category ('all' or None for every package)."""
        if not category or category == "all":
            return list(self._packages.values())
        return [p for p in self._packages.values() if p.category == category]

    @property
    def categories(self) -> list[str]:
        seen: list[str] = []
        for package in self._packages.values():
            if package.category not in seen:
                seen.append(package.category)
        return seen

    def to_list(self) -> list[dict]:
        return [p.to_dict() for p in self._packages.values()]

    @classmethod
    def from_list(cls, entries: list[dict]) -> "Catalog":
        return cls([PackageDescriptor.from_dict(entry) for entry in entries])


def load_catalog(path: Path) -> Catalog:
    """
    Load a catalog from a JSON file.

    The file holds either a list of package entries or an object with a
    "packages" list.
    """
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    entries = data.get("packages", []) if isinstance(data, dict) else data
    catalog = Catalog.from_list(entries)
    logger.info(f"Loaded {len(catalog)} packages from {path}")
    return catalog
