"""Installation metadata storage.

A best-effort secondary index over the install tree: the directory on disk
decides whether an instance is installed, this store only keeps the
convenience record (name, category, path, install time).
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)


@dataclass
class InstalledRecord:
    """Persisted record of an installed (package id, version)."""

    package_id: str
    name: str
    version: str
    category: str
    install_path: str
    installed_at: float = field(default_factory=time.time)
    status: str = "installed"

    @property
    def key(self) -> Tuple[str, str]:
        return (self.package_id, self.version)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "package_id": self.package_id,
            "name": self.name,
            "version": self.version,
            "category": self.category,
            "install_path": self.install_path,
            "installed_at": self.installed_at,
            "status": self.status,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InstalledRecord":
        """Create from dictionary."""
        return cls(
            package_id=data["package_id"],
            name=data.get("name", data["package_id"]),
            version=data["version"],
            category=data.get("category", ""),
            install_path=data.get("install_path", ""),
            installed_at=float(data.get("installed_at", time.time())),
            status=data.get("status", "installed"),
        )


class MetadataStore(ABC):
    """Where install records are kept."""

    @abstractmethod
    async def record(self, entry: InstalledRecord) -> None:
        """Insert or replace the record for (package id, version)."""

    @abstractmethod
    async def remove(self, package_id: str, version: str) -> bool:
        """Delete the record; returns False when there was none."""

    @abstractmethod
    async def list_records(self) -> List[InstalledRecord]:
        """All stored records."""


@dataclass
class JsonMetadataStore(MetadataStore):
    """Keeps install records in a JSON file with an in-memory cache."""

    path: Path
    records: Dict[str, InstalledRecord] = field(default_factory=dict)
    _loaded: bool = field(default=False, repr=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    @staticmethod
    def _key(package_id: str, version: str) -> str:
        return f"{package_id}@{version}"

    async def ensure_loaded(self) -> None:
        """Load records from disk if not already loaded."""
        if self._loaded:
            return
        await self.load()

    async def load(self) -> None:
        """Load records from the JSON file."""

        def _read() -> Dict[str, InstalledRecord]:
            if not self.path.exists():
                return {}
            try:
                with open(self.path, "r", encoding="utf-8") as f:
                    data = json.load(f)
                entries = [InstalledRecord.from_dict(item) for item in data.get("installed", [])]
                return {self._key(*e.key): e for e in entries}
            except (json.JSONDecodeError, KeyError, ValueError) as e:
                logger.error(f"Failed to load install records from {self.path}: {e}")
                return {}

        self.records = await asyncio.to_thread(_read)
        self._loaded = True

    async def save(self) -> None:
        """Save records to the JSON file."""
        snapshot = [r.to_dict() for r in self.records.values()]

        def _write() -> None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.path.with_suffix(".tmp")
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump({"version": 1, "installed": snapshot}, f, indent=2)
            tmp_path.replace(self.path)

        await asyncio.to_thread(_write)

    async def record(self, entry: InstalledRecord) -> None:
        async with self._lock:
            await self.ensure_loaded()
            self.records[self._key(*entry.key)] = entry
            await self.save()

    async def remove(self, package_id: str, version: str) -> bool:
        async with self._lock:
            await self.ensure_loaded()
            if self.records.pop(self._key(package_id, version), None) is None:
                return False
            await self.save()
            return True

    async def list_records(self) -> List[InstalledRecord]:
        await self.ensure_loaded()
        return list(self.records.values())
