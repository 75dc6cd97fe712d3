"""
Facade wiring the catalog, installer, supervisor and config manager.

The handlers, the HTTP API and the CLI all talk to one ``PortableService``.
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Optional

from . import __version__
from .catalog import Catalog, builtin_catalog, load_catalog, resolve_version_url
from .configs import ConfigManager
from .errors import NoDownloadForPlatform
from .installer import Installer, JsonMetadataStore, MetadataStore
from .installer.orchestrator import ProgressCallback
from .layout import MARKER_FILE, InstallLayout
from .locking import KeyedLocks
from .models import ActionResult, InstallProgress, ServiceStatus
from .platform import PlatformInfo, detect_platform
from .settings import Settings
from .supervisor import ProcessController, Supervisor

logger = logging.getLogger(__name__)


class PortableService:
    """Every operation of the portable package manager behind one object."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        catalog: Optional[Catalog] = None,
        platform: Optional[PlatformInfo] = None,
        store: Optional[MetadataStore] = None,
        processes: Optional[ProcessController] = None,
        downloader=None,
    ):
        self.settings = settings or Settings.from_env()
        self.platform = platform or detect_platform()
        if catalog is None:
            catalog = (
                load_catalog(self.settings.catalog_file)
                if self.settings.catalog_file
                else builtin_catalog()
            )
        self.catalog = catalog
        self.layout = InstallLayout(self.settings.base_dir)
        self.config_manager = ConfigManager(self.catalog, self.layout, self.platform)
        self.store = store if store is not None else JsonMetadataStore(self.settings.metadata_file)

        locks = KeyedLocks()
        self.installer = Installer(
            self.catalog,
            self.layout,
            self.config_manager,
            store=self.store,
            platform=self.platform,
            locks=locks,
            downloader=downloader,
            download_timeout=self.settings.download_timeout,
        )
        self.supervisor = Supervisor(
            self.catalog,
            self.layout,
            self.config_manager,
            processes=processes,
            platform=self.platform,
            locks=locks,
            init_timeout=self.settings.init_timeout,
            stop_timeout=self.settings.stop_timeout,
        )
        logger.info(
            f"Portable service ready: {len(self.catalog)} packages, "
            f"base dir {self.settings.base_dir}, platform {self.platform.key}"
        )

    # Catalog

    async def list_packages(self, category: Optional[str] = None) -> list[dict[str, Any]]:
        """Catalog entries with per-version install/running flags."""
        packages = []
        for package in self.catalog.by_category(category):
            versions = []
            for descriptor in package.versions:
                installed = self.layout.is_installed(package, descriptor.version)
                running = False
                if installed:
                    status = await self.supervisor.status(package.id, descriptor.version)
                    running = status.running
                versions.append(
                    {
                        "version": descriptor.version,
                        "latest": descriptor.latest,
                        "lts": descriptor.lts,
                        "available": self._has_download(package, descriptor),
                        "installed": installed,
                        "running": running,
                    }
                )
            packages.append(
                {
                    "id": package.id,
                    "name": package.name,
                    "description": package.description,
                    "category": package.category,
                    "install_path": package.install_subpath,
                    "ports": list(package.ports),
                    "versions": versions,
                }
            )
        return packages

    def _has_download(self, package, descriptor) -> bool:
        try:
            resolve_version_url(package, descriptor, self.platform)
            return True
        except NoDownloadForPlatform:
            return False

    async def list_installed(self) -> list[dict[str, Any]]:
        """
        Installed instances found on disk (the directory tree is authoritative).

        ``recorded`` tells whether the metadata store knows the instance, so
        directories copied in by hand show up as drift.
        """
        try:
            recorded = {r.key for r in await self.store.list_records()}
        except Exception as e:
            logger.warning(f"Could not read install records: {e}")
            recorded = set()

        def _scan() -> list[dict[str, Any]]:
            found = []
            for package in self.catalog:
                package_dir = self.layout.package_dir(package)
                if not package_dir.is_dir():
                    continue
                for entry in sorted(package_dir.iterdir()):
                    if not entry.is_dir() or entry.name.startswith("."):
                        continue
                    found.append(
                        {
                            "package_id": package.id,
                            "name": package.name,
                            "version": entry.name,
                            "category": package.category,
                            "install_path": str(entry),
                            "installed_at": entry.stat().st_mtime,
                            "complete": (entry / MARKER_FILE).is_file(),
                            "recorded": (package.id, entry.name) in recorded,
                        }
                    )
            return found

        return await asyncio.to_thread(_scan)

    def preview_install(self, package_id: str, version: str) -> dict[str, Any]:
        """Where an install would download from and extract to, without doing it."""
        package = self.catalog.get(package_id)
        descriptor = package.get_version(version)
        url = resolve_version_url(package, descriptor, self.platform)
        return {
            "package_id": package.id,
            "name": package.name,
            "version": version,
            "url": url,
            "install_path": str(self.layout.install_path(package, version)),
            "installed": self.layout.is_complete(package, version),
            "platform": self.platform.key,
        }

    def system_info(self) -> dict[str, Any]:
        return {
            "version": __version__,
            "mode": "portable",
            "base_dir": str(self.settings.base_dir),
            "platform": self.platform.to_dict(),
            "categories": self.catalog.categories,
            "package_count": len(self.catalog),
        }

    # Install

    async def install(
        self,
        package_id: str,
        version: str,
        force: bool = False,
        on_progress: Optional[ProgressCallback] = None,
    ) -> InstallProgress:
        return await self.installer.install(package_id, version, force=force, on_progress=on_progress)

    async def uninstall(self, package_id: str, version: str) -> ActionResult:
        return await self.installer.uninstall(package_id, version)

    # Services

    async def status(self, package_id: str, version: str) -> ServiceStatus:
        return await self.supervisor.status(package_id, version)

    async def start(self, package_id: str, version: str) -> ActionResult:
        return await self.supervisor.start(package_id, version)

    async def stop(self, package_id: str, version: str) -> ActionResult:
        return await self.supervisor.stop(package_id, version)

    async def restart(self, package_id: str, version: str) -> ActionResult:
        return await self.supervisor.restart(package_id, version)

    async def read_log(
        self, package_id: str, version: str, tail_lines: Optional[int] = None
    ) -> tuple[Optional[Path], str]:
        return await self.supervisor.read_log(package_id, version, tail_lines)

    # Configuration

    async def read_config(self, package_id: str, version: str) -> tuple[Path, str]:
        return await asyncio.to_thread(self.config_manager.read, package_id, version)

    async def write_config(self, package_id: str, version: str, content: str) -> Path:
        return await asyncio.to_thread(self.config_manager.write, package_id, version, content)


# Singleton
_service: Optional[PortableService] = None


def get_portable_service() -> PortableService:
    """Get the singleton PortableService built from the environment."""
    global _service
    if _service is None:
        _service = PortableService()
    return _service
