"""
Process supervisor for installed packages.

Running state is never cached: every status call enumerates OS processes
again. Daemons are spawned detached, so they keep running when this
process exits and are found again by name on the next call.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional

from ..catalog import Catalog
from ..configs import ConfigManager
from ..errors import (
    ConfigWriteFailed,
    NotInstalled,
    ProcessError,
    StartFailed,
    StopFailed,
)
from ..layout import InstallLayout
from ..locking import SCOPE_SERVICE, KeyedLocks
from ..models import ActionResult, ServiceStatus
from ..platform import PlatformInfo, detect_platform
from .lifecycles import InstanceContext, Lifecycle, get_lifecycle
from .process import ProcessController

logger = logging.getLogger(__name__)

LOG_MISSING = "Log file is empty or does not exist yet."
LOG_UNDEFINED = "No log file defined for this service."


class Supervisor:
    """Starts, stops and probes installed package instances."""

    def __init__(
        self,
        catalog: Catalog,
        layout: InstallLayout,
        config_manager: ConfigManager,
        processes: Optional[ProcessController] = None,
        platform: Optional[PlatformInfo] = None,
        locks: Optional[KeyedLocks] = None,
        lifecycles: Optional[dict[str, Lifecycle]] = None,
        init_timeout: Optional[float] = 300.0,
        stop_timeout: Optional[float] = 30.0,
    ):
        self.catalog = catalog
        self.layout = layout
        self.config_manager = config_manager
        self.processes = processes or ProcessController()
        self.platform = platform or detect_platform()
        self.locks = locks or KeyedLocks()
        self.lifecycles = lifecycles
        self.init_timeout = init_timeout
        self.stop_timeout = stop_timeout

    def _resolve(self, package_id: str, version: str) -> tuple[Lifecycle, InstanceContext]:
        package = self.catalog.get(package_id)
        ctx = InstanceContext(
            package=package,
            version=version,
            install_path=self.layout.install_path(package, version),
            platform=self.platform,
            config_manager=self.config_manager,
        )
        return get_lifecycle(package, self.lifecycles), ctx

    @staticmethod
    def _require_installed(ctx: InstanceContext) -> None:
        if not ctx.install_path.is_dir():
            raise NotInstalled(
                f"package not installed: {ctx.package.id} {ctx.version}",
                {"package_id": ctx.package.id, "version": ctx.version},
            )

    async def _find_pid(self, lifecycle: Lifecycle, ctx: InstanceContext) -> Optional[int]:
        return await asyncio.to_thread(
            self.processes.find_pid, lifecycle.process_names(ctx), ctx.install_path
        )

    async def status(self, package_id: str, version: str) -> ServiceStatus:
        """
        Probe the live state of an installed instance.

        Raises:
            PackageNotFound, VersionNotFound, NotInstalled
        """
        lifecycle, ctx = self._resolve(package_id, version)
        self._require_installed(ctx)

        status = ServiceStatus(
            package_id=package_id,
            name=ctx.package.name,
            version=version,
            install_path=str(ctx.install_path),
            port=ctx.package.primary_port or lifecycle.default_port,
            is_daemon=lifecycle.is_daemon,
        )
        config = ctx.config_path
        status.config_path = str(config) if config is not None else None
        log = lifecycle.log_path(ctx)
        status.log_path = str(log) if log is not None else None

        if lifecycle.is_daemon:
            status.pid = await self._find_pid(lifecycle, ctx)
            status.running = status.pid is not None
        else:
            exe = lifecycle.executable(ctx)
            status.running = exe is not None and exe.exists()
        return status

    async def start(self, package_id: str, version: str) -> ActionResult:
        """
        Start an installed instance.

        Raises:
            PackageNotFound, VersionNotFound, NotInstalled, StartFailed
        """
        lifecycle, ctx = self._resolve(package_id, version)
        async with self.locks.hold(SCOPE_SERVICE, package_id, version):
            return await self._start(lifecycle, ctx)

    async def stop(self, package_id: str, version: str) -> ActionResult:
        """
        Stop an instance: graceful command first, then a forceful kill.

        Stopping something that is not running succeeds.

        Raises:
            PackageNotFound, VersionNotFound, NotInstalled, StopFailed
        """
        lifecycle, ctx = self._resolve(package_id, version)
        async with self.locks.hold(SCOPE_SERVICE, package_id, version):
            return await self._stop(lifecycle, ctx)

    async def restart(self, package_id: str, version: str) -> ActionResult:
        """
        Stop then start. A failed stop is reported as a warning and the
        start is attempted anyway.
        """
        lifecycle, ctx = self._resolve(package_id, version)
        async with self.locks.hold(SCOPE_SERVICE, package_id, version):
            self._require_installed(ctx)
            warnings: list[str] = []
            try:
                stopped = await self._stop(lifecycle, ctx)
                warnings.extend(stopped.warnings)
            except ProcessError as e:
                warnings.append(f"stop failed: {e.message}")
                logger.warning(f"[{package_id}] Stop failed during restart: {e.message}")

            result = await self._start(lifecycle, ctx)
            result.action = "restart"
            result.warnings = warnings + result.warnings
            return result

    async def _start(self, lifecycle: Lifecycle, ctx: InstanceContext) -> ActionResult:
        self._require_installed(ctx)
        package = ctx.package
        exe = lifecycle.executable(ctx)
        if exe is None or not exe.exists():
            raise NotInstalled(
                f"executable not found for {package.id} {ctx.version}",
                {"package_id": package.id, "executable": str(exe) if exe else None},
            )

        result = ActionResult(action="start", package_id=package.id, version=ctx.version)
        if not lifecycle.is_daemon:
            result.message = f"{package.name} is available (not a service)"
            return result

        try:
            await asyncio.to_thread(lifecycle.prepare, ctx)
        except ConfigWriteFailed as e:
            raise StartFailed(f"cannot prepare {package.id}: {e.message}", e.details) from e
        except OSError as e:
            raise StartFailed(f"cannot prepare {package.id}: {e}") from e

        init_cmd = lifecycle.build_init_command(ctx)
        if init_cmd:
            # Must finish before the daemon touches the data directory
            logger.info(f"[{package.id}] Initializing data directory")
            try:
                outcome = await self.processes.run(init_cmd, cwd=ctx.install_path, timeout=self.init_timeout)
                if not outcome.ok:
                    result.warn(f"initialization failed: {outcome.summary()}")
            except ProcessError as e:
                result.warn(f"initialization failed: {e.message}")
            if result.warnings:
                logger.warning(f"[{package.id}] {result.warnings[-1]}")

        cmd = lifecycle.build_start_command(ctx)
        result.pid = self.processes.spawn_detached(
            cmd, cwd=ctx.install_path, log_file=lifecycle.console_log(ctx)
        )
        result.message = f"{package.name} started"
        logger.info(f"[{package.id}] Started {ctx.version} (PID {result.pid})")
        return result

    async def _stop(self, lifecycle: Lifecycle, ctx: InstanceContext) -> ActionResult:
        self._require_installed(ctx)
        package = ctx.package
        result = ActionResult(action="stop", package_id=package.id, version=ctx.version)

        if not lifecycle.is_daemon:
            result.message = f"{package.name} is not a service"
            return result

        pid = await self._find_pid(lifecycle, ctx)
        if pid is None:
            result.message = f"{package.name} is not running"
            return result

        graceful = False
        stop_cmd = lifecycle.build_stop_command(ctx)
        if stop_cmd:
            try:
                outcome = await self.processes.run(stop_cmd, cwd=ctx.install_path, timeout=self.stop_timeout)
                graceful = outcome.ok
                if not graceful:
                    result.warn(f"graceful shutdown failed ({outcome.summary()}), process killed")
            except ProcessError as e:
                result.warn(f"graceful shutdown failed ({e.message}), process killed")

        if not graceful:
            try:
                await asyncio.to_thread(self.processes.kill, lifecycle.process_names(ctx))
            except ProcessError as e:
                raise StopFailed(f"failed to stop {package.id}: {e.message}", e.details) from e
            if result.warnings:
                logger.warning(f"[{package.id}] {result.warnings[-1]}")

        result.message = f"{package.name} stopped"
        logger.info(f"[{package.id}] Stopped {ctx.version}")
        return result

    async def read_log(
        self,
        package_id: str,
        version: str,
        tail_lines: Optional[int] = None,
    ) -> tuple[Optional[Path], str]:
        """
        Read the instance's log file.

        Returns:
            (log path or None, content). Missing or undefined logs yield a
            human-readable placeholder instead of an error.
        """
        lifecycle, ctx = self._resolve(package_id, version)
        self._require_installed(ctx)

        path = lifecycle.log_path(ctx)
        if path is None:
            return None, LOG_UNDEFINED

        def _read() -> Optional[str]:
            try:
                return path.read_text(encoding="utf-8", errors="replace")
            except FileNotFoundError:
                return None

        content = await asyncio.to_thread(_read)
        if not content:
            return path, LOG_MISSING
        if tail_lines is not None and tail_lines > 0:
            content = "\n".join(content.splitlines()[-tail_lines:])
        return path, content
