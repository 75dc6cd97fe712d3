"""
Install orchestrator - resolve, download, extract, configure, record.

Stages run strictly in sequence:

    downloading (0-50) -> extracting (50-90) -> configuring (90-100) -> complete

or ``error`` from any stage. The terminal InstallProgress is returned on
success; on failure ``InstallFailed`` carries it so callers can tell how
far the pipeline got.
"""

import asyncio
import logging
import shutil
from pathlib import Path
from typing import Awaitable, Callable, Optional

from ..catalog import Catalog, resolve_version_url
from ..configs import ConfigManager
from ..errors import (
    AlreadyInstalled,
    ConfigWriteFailed,
    DeleteFailed,
    DownloadFailed,
    ExtractionFailed,
    InstallFailed,
    InternalError,
    NotInstalled,
    PortableError,
)
from ..layout import InstallLayout
from ..locking import SCOPE_INSTALL, KeyedLocks
from ..models import ActionResult, InstallProgress, InstallStatus
from ..platform import PlatformInfo, detect_platform
from .downloader import ProgressFn, download_file, filename_from_url
from .extractor import extract
from .store import InstalledRecord, MetadataStore

logger = logging.getLogger(__name__)

# Progress bands per stage
DOWNLOAD_SHARE = 50.0
EXTRACT_START = 50.0
EXTRACT_END = 90.0
CONFIGURE_END = 100.0

Downloader = Callable[[str, Path, Optional[ProgressFn]], Awaitable[int]]
ProgressCallback = Callable[[InstallProgress], None]


class Installer:
    """
    Installs and uninstalls portable packages.

    At most one install/uninstall runs per (package id, version) at a time.
    """

    def __init__(
        self,
        catalog: Catalog,
        layout: InstallLayout,
        config_manager: ConfigManager,
        store: Optional[MetadataStore] = None,
        platform: Optional[PlatformInfo] = None,
        locks: Optional[KeyedLocks] = None,
        downloader: Optional[Downloader] = None,
        download_timeout: Optional[float] = 60.0,
    ):
        self.catalog = catalog
        self.layout = layout
        self.config_manager = config_manager
        self.store = store
        self.platform = platform or detect_platform()
        self.locks = locks or KeyedLocks()
        self._downloader = downloader
        self._download_timeout = download_timeout

    async def _download(self, url: str, dest: Path, on_progress: ProgressFn) -> int:
        if self._downloader is not None:
            return await self._downloader(url, dest, on_progress)
        return await download_file(url, dest, on_progress, read_timeout=self._download_timeout)

    async def install(
        self,
        package_id: str,
        version: str,
        force: bool = False,
        on_progress: Optional[ProgressCallback] = None,
    ) -> InstallProgress:
        """
        Install ``package_id`` at ``version``.

        Args:
            package_id: Catalog id
            version: Version string from the catalog
            force: Replace a completed install instead of rejecting it
            on_progress: Receives a snapshot after every progress change

        Returns:
            Terminal InstallProgress with status ``complete``

        Raises:
            InstallFailed: Terminal snapshot in status ``error``; the
                triggering exception is chained as ``__cause__``
        """
        async with self.locks.hold(SCOPE_INSTALL, package_id, version):
            progress = InstallProgress(
                package_id=package_id,
                version=version,
                message="Resolving download...",
            )

            def emit(status: InstallStatus, value: float, message: str) -> None:
                if status != progress.status:
                    logger.info(f"[{package_id}] {status.value}: {message}")
                progress.status = status
                progress.progress = value
                progress.message = message
                if on_progress is not None:
                    try:
                        on_progress(progress.snapshot())
                    except Exception as e:
                        logger.warning(f"[{package_id}] Progress callback failed: {e}")

            pending: list[Path] = []

            async def fail(error: PortableError) -> InstallFailed:
                progress.error = error.message
                progress.error_code = error.code
                emit(InstallStatus.ERROR, progress.progress, f"Installation failed: {error.message}")
                logger.error(f"[{package_id}] Install of {version} failed: {error.message}")
                while pending:
                    await self._discard(progress, pending.pop())
                return InstallFailed(progress.snapshot(), error)

            try:
                package = self.catalog.get(package_id)
                descriptor = package.get_version(version)
                url = resolve_version_url(package, descriptor, self.platform)

                install_path = self.layout.install_path(package, version)
                staging = self.layout.staging_path(package, version)
                progress.install_path = str(install_path)

                if self.layout.is_complete(package, version) and not force:
                    raise AlreadyInstalled(
                        f"{package_id} {version} is already installed",
                        {"install_path": str(install_path)},
                    )

                try:
                    self.layout.scratch_dir.mkdir(parents=True, exist_ok=True)
                except OSError as e:
                    raise DownloadFailed(f"failed to create scratch directory: {e}") from e

                # 1. Download
                emit(InstallStatus.DOWNLOADING, 0.0, "Starting download...")
                archive = self.layout.scratch_dir / filename_from_url(url)
                logger.info(f"[{package_id}] Downloading {url}")

                def on_chunk(downloaded: int, total: Optional[int]) -> None:
                    if total:
                        share = min(downloaded / total, 1.0) * DOWNLOAD_SHARE
                        emit(
                            InstallStatus.DOWNLOADING,
                            share,
                            f"Downloading... {share * 100 / DOWNLOAD_SHARE:.1f}%",
                        )
                    else:
                        emit(
                            InstallStatus.DOWNLOADING,
                            progress.progress,
                            f"Downloading... {downloaded / (1024 * 1024):.1f} MB",
                        )

                await self._download(url, archive, on_chunk)

                # 2. Extract into a staging directory; an existing install stays until the swap
                emit(InstallStatus.EXTRACTING, EXTRACT_START, "Extracting files...")
                pending.append(staging)
                try:
                    if staging.exists():
                        await asyncio.to_thread(shutil.rmtree, staging)
                    staging.mkdir(parents=True)
                except OSError as e:
                    raise ExtractionFailed(f"failed to create staging directory: {e}") from e
                await asyncio.to_thread(extract, archive, staging)
                emit(InstallStatus.EXTRACTING, EXTRACT_END, "Extracted files")

                try:
                    archive.unlink()
                except OSError as e:
                    self._warn(progress, f"could not remove scratch file {archive}: {e}")

                previous = await asyncio.to_thread(self._swap_in, staging, install_path)
                pending[:] = [install_path]
                if previous is not None:
                    await self._discard(progress, previous)

                # 3. Configure
                emit(InstallStatus.CONFIGURING, EXTRACT_END, "Configuring...")
                if package.config_file:
                    self.config_manager.ensure_default(package, install_path)
                try:
                    self.layout.write_marker(package, version, url)
                except OSError as e:
                    raise ConfigWriteFailed(f"cannot write install marker: {e}") from e
                pending.clear()

                # 4. Record (best effort, the directory is authoritative)
                await self._record(progress, package, version, install_path)

                emit(
                    InstallStatus.COMPLETE,
                    CONFIGURE_END,
                    f"{package.name} {version} installed successfully",
                )
                logger.info(f"[{package_id}] Installed {version} at {install_path}")
                return progress

            except PortableError as e:
                raise await fail(e) from e
            except Exception as e:
                logger.exception(f"[{package_id}] Unexpected error installing {version}")
                raise await fail(InternalError(f"unexpected error: {e}")) from e
            finally:
                # Only non-empty when the install was cancelled
                for path in pending:
                    await self._discard(progress, path)

    async def uninstall(self, package_id: str, version: str) -> ActionResult:
        """
        Delete an installed instance and its metadata record.

        The metadata record is removed even if deleting the directory fails
        part-way, so no record points at a half-deleted path.

        Raises:
            PackageNotFound, VersionNotFound, NotInstalled, DeleteFailed
        """
        async with self.locks.hold(SCOPE_INSTALL, package_id, version):
            package = self.catalog.get(package_id)
            install_path = self.layout.install_path(package, version)
            if not install_path.is_dir():
                raise NotInstalled(
                    f"package not installed: {package_id} {version}",
                    {"package_id": package_id, "version": version},
                )

            result = ActionResult(action="uninstall", package_id=package_id, version=version)

            delete_error: Optional[OSError] = None
            try:
                await asyncio.to_thread(shutil.rmtree, install_path)
            except OSError as e:
                delete_error = e

            if self.store is not None:
                try:
                    await self.store.remove(package_id, version)
                except Exception as e:
                    result.warn(f"failed to remove install record: {e}")
                    logger.warning(f"[{package_id}] Failed to remove install record: {e}")

            if delete_error is not None:
                raise DeleteFailed(
                    f"failed to delete {install_path}: {delete_error}",
                    {"install_path": str(install_path)},
                ) from delete_error

            result.message = f"{package.name} {version} uninstalled"
            logger.info(f"[{package_id}] Uninstalled {version}")
            return result

    async def _record(self, progress, package, version: str, install_path: Path) -> None:
        if self.store is None:
            return
        entry = InstalledRecord(
            package_id=package.id,
            name=package.name,
            version=version,
            category=package.category,
            install_path=str(install_path),
        )
        try:
            await self.store.record(entry)
        except Exception as e:
            self._warn(progress, f"failed to record install: {e}")

    @staticmethod
    def _swap_in(staging: Path, install_path: Path) -> Optional[Path]:
        """Move ``staging`` into place, returning the retired previous install if any."""
        previous = None
        try:
            if install_path.exists():
                previous = install_path.with_name(f".{install_path.name}.old")
                if previous.exists():
                    shutil.rmtree(previous)
                install_path.rename(previous)
            try:
                staging.rename(install_path)
            except OSError:
                if previous is not None:
                    previous.rename(install_path)
                raise
        except OSError as e:
            raise ExtractionFailed(f"cannot replace {install_path}: {e}") from e
        return previous

    async def _discard(self, progress: InstallProgress, path: Path) -> None:
        try:
            await asyncio.to_thread(shutil.rmtree, path)
            logger.info(f"[{progress.package_id}] Removed {path}")
        except FileNotFoundError:
            pass
        except OSError as e:
            self._warn(progress, f"could not remove {path}: {e}")

    def _warn(self, progress: InstallProgress, message: str) -> None:
        progress.warnings.append(message)
        logger.warning(f"[{progress.package_id}] {message}")
