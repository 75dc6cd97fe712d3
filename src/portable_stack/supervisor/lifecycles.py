"""
Per-family lifecycle strategies.

A lifecycle knows how one package family is prepared, started, stopped
and recognised in the process table. Strategies are stateless; the
per-instance facts travel in an ``InstanceContext``.
"""

import logging
import shutil
import socket
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..catalog import PackageDescriptor
from ..configs import FASTCGI_ADDRESS, ConfigManager
from ..errors import NoConfigFile
from ..platform import PlatformInfo

logger = logging.getLogger(__name__)


@dataclass
class InstanceContext:
    """An installed (package, version) on this host."""
    package: PackageDescriptor
    version: str
    install_path: Path
    platform: PlatformInfo
    config_manager: ConfigManager

    def binary(self, *parts: str) -> Path:
        """Path of an executable shipped in the bundle, with the platform suffix."""
        *dirs, name = parts
        return self.install_path.joinpath(*dirs, name + self.platform.exe_suffix)

    @property
    def catalog_executable(self) -> Optional[Path]:
        relative = self.package.executable_for(self.platform.os)
        return self.install_path / relative if relative else None

    @property
    def config_path(self) -> Optional[Path]:
        try:
            return self.config_manager.config_path(self.package, self.install_path)
        except NoConfigFile:
            return None

    def ensure_config(self) -> Optional[Path]:
        return self.config_manager.ensure_default(self.package, self.install_path)


class Lifecycle(ABC):
    """How one package family runs."""

    family: str = ""
    is_daemon: bool = True
    default_port: Optional[int] = None

    def executable(self, ctx: InstanceContext) -> Optional[Path]:
        """The file whose presence means the instance can be started."""
        return ctx.catalog_executable

    def process_names(self, ctx: InstanceContext) -> list[str]:
        """Process-name prefixes identifying a running instance."""
        exe = self.executable(ctx)
        if exe is None:
            return [ctx.package.id]
        name = exe.name
        return [name[:-4] if name.lower().endswith(".exe") else name]

    def log_path(self, ctx: InstanceContext) -> Optional[Path]:
        return None

    def console_log(self, ctx: InstanceContext) -> Optional[Path]:
        """Where the spawned daemon's stdout/stderr go (None discards them)."""
        return None

    def prepare(self, ctx: InstanceContext) -> None:
        """Filesystem setup before start (directories, default config)."""

    def build_init_command(self, ctx: InstanceContext) -> Optional[list[str]]:
        """One-time initialization to run before the daemon, if still needed."""
        return None

    @abstractmethod
    def build_start_command(self, ctx: InstanceContext) -> list[str]:
        """Command line of the long-running process."""

    def build_stop_command(self, ctx: InstanceContext) -> Optional[list[str]]:
        """Graceful shutdown command; None goes straight to a forceful kill."""
        return None


class GenericLifecycle(Lifecycle):
    """Bare executable without arguments."""

    family = "generic"

    def build_start_command(self, ctx: InstanceContext) -> list[str]:
        return [str(self.executable(ctx))]


class MySQLLifecycle(Lifecycle):
    family = "mysql"
    default_port = 3306

    # Present once the data directory has been initialized
    PRIMARY_DATA_FILE = "ibdata1"

    def data_dir(self, ctx: InstanceContext) -> Path:
        return ctx.install_path / "data"

    def port(self, ctx: InstanceContext) -> int:
        return ctx.package.primary_port or self.default_port

    def executable(self, ctx: InstanceContext) -> Optional[Path]:
        return ctx.binary("bin", "mysqld")

    def process_names(self, ctx: InstanceContext) -> list[str]:
        return ["mysqld", "mariadbd"]

    def log_path(self, ctx: InstanceContext) -> Optional[Path]:
        data_dir = self.data_dir(ctx)
        error_log = data_dir / "error.log"
        if error_log.exists():
            return error_log
        host_log = data_dir / f"{socket.gethostname()}.err"
        if host_log.exists():
            return host_log
        return error_log

    def console_log(self, ctx: InstanceContext) -> Optional[Path]:
        return self.data_dir(ctx) / "error.log"

    def needs_init(self, ctx: InstanceContext) -> bool:
        return not (self.data_dir(ctx) / self.PRIMARY_DATA_FILE).exists()

    def prepare(self, ctx: InstanceContext) -> None:
        data_dir = self.data_dir(ctx)
        if self.needs_init(ctx) and data_dir.exists():
            # Leftovers of an interrupted initialization make it refuse to run
            logger.info(f"[{ctx.package.id}] Clearing uninitialized data directory {data_dir}")
            shutil.rmtree(data_dir)
        data_dir.mkdir(parents=True, exist_ok=True)
        ctx.ensure_config()

    def build_init_command(self, ctx: InstanceContext) -> Optional[list[str]]:
        if not self.needs_init(ctx):
            return None
        return [
            str(self.executable(ctx)),
            "--initialize-insecure",
            f"--basedir={ctx.install_path}",
            f"--datadir={self.data_dir(ctx)}",
            "--console",
        ]

    def build_start_command(self, ctx: InstanceContext) -> list[str]:
        cmd = [str(self.executable(ctx))]
        config = ctx.config_path
        if config is not None and config.exists():
            # Must be the first option
            cmd.append(f"--defaults-file={config}")
        cmd += [
            f"--basedir={ctx.install_path}",
            f"--datadir={self.data_dir(ctx)}",
            f"--port={self.port(ctx)}",
            "--console",
        ]
        return cmd

    def admin_client(self, ctx: InstanceContext) -> Path:
        return ctx.binary("bin", "mysqladmin")

    def build_stop_command(self, ctx: InstanceContext) -> Optional[list[str]]:
        client = self.admin_client(ctx)
        if not client.exists():
            return None
        return [
            str(client),
            "-u", "root",
            "--host=127.0.0.1",
            f"--port={self.port(ctx)}",
            "shutdown",
        ]


class MariaDBLifecycle(MySQLLifecycle):
    family = "mariadb"

    def executable(self, ctx: InstanceContext) -> Optional[Path]:
        return ctx.catalog_executable or ctx.binary("bin", "mariadbd")

    def process_names(self, ctx: InstanceContext) -> list[str]:
        return ["mariadbd", "mysqld"]

    def build_init_command(self, ctx: InstanceContext) -> Optional[list[str]]:
        if not self.needs_init(ctx):
            return None
        data_dir = self.data_dir(ctx)
        if ctx.platform.is_windows:
            return [str(ctx.binary("bin", "mariadb-install-db")), f"--datadir={data_dir}"]
        return [
            str(ctx.install_path / "scripts" / "mariadb-install-db"),
            "--no-defaults",
            f"--basedir={ctx.install_path}",
            f"--datadir={data_dir}",
            "--auth-root-authentication-method=normal",
        ]

    def admin_client(self, ctx: InstanceContext) -> Path:
        client = ctx.binary("bin", "mariadb-admin")
        return client if client.exists() else super().admin_client(ctx)


class NginxLifecycle(Lifecycle):
    family = "nginx"
    default_port = 80

    def process_names(self, ctx: InstanceContext) -> list[str]:
        return ["nginx"]

    def log_path(self, ctx: InstanceContext) -> Optional[Path]:
        return ctx.install_path / "logs" / "error.log"

    def prepare(self, ctx: InstanceContext) -> None:
        # nginx refuses to start when its log/temp directories are missing
        (ctx.install_path / "logs").mkdir(parents=True, exist_ok=True)
        (ctx.install_path / "temp").mkdir(parents=True, exist_ok=True)
        ctx.ensure_config()

    def _prefix_args(self, ctx: InstanceContext) -> list[str]:
        args = ["-p", str(ctx.install_path)]
        config = ctx.config_path
        if not ctx.platform.is_windows and config is not None:
            args += ["-c", str(config)]
        return args

    def build_start_command(self, ctx: InstanceContext) -> list[str]:
        return [str(self.executable(ctx))] + self._prefix_args(ctx)

    def build_stop_command(self, ctx: InstanceContext) -> Optional[list[str]]:
        return [str(self.executable(ctx)), "-s", "stop"] + self._prefix_args(ctx)


class RedisLifecycle(Lifecycle):
    family = "redis"
    default_port = 6379

    def process_names(self, ctx: InstanceContext) -> list[str]:
        return ["redis-server"]

    def port(self, ctx: InstanceContext) -> int:
        return ctx.package.primary_port or self.default_port

    def log_path(self, ctx: InstanceContext) -> Optional[Path]:
        return ctx.install_path / "redis-server.log"

    def prepare(self, ctx: InstanceContext) -> None:
        ctx.ensure_config()

    def build_start_command(self, ctx: InstanceContext) -> list[str]:
        cmd = [str(self.executable(ctx))]
        config = ctx.config_path
        if config is not None and config.exists():
            cmd.append(str(config))
        return cmd

    def build_stop_command(self, ctx: InstanceContext) -> Optional[list[str]]:
        if ctx.platform.is_windows:
            client = ctx.binary("redis-cli")
        else:
            client = ctx.install_path / "src" / "redis-cli"
        if not client.exists():
            return None
        return [str(client), "-p", str(self.port(ctx)), "shutdown"]


class PhpFastCgiLifecycle(Lifecycle):
    """PHP's CGI binary serving FastCGI on the loopback port nginx forwards to."""

    family = "php-fcgi"
    default_port = int(FASTCGI_ADDRESS.rsplit(":", 1)[1])

    def executable(self, ctx: InstanceContext) -> Optional[Path]:
        if ctx.platform.is_windows:
            return ctx.binary("php-cgi")
        return ctx.binary("bin", "php-cgi")

    def process_names(self, ctx: InstanceContext) -> list[str]:
        return ["php-cgi"]

    def log_path(self, ctx: InstanceContext) -> Optional[Path]:
        return ctx.install_path / "php_errors.log"

    def prepare(self, ctx: InstanceContext) -> None:
        ctx.ensure_config()

    def build_start_command(self, ctx: InstanceContext) -> list[str]:
        cmd = [str(self.executable(ctx)), "-b", FASTCGI_ADDRESS]
        config = ctx.config_path
        if config is not None and config.exists():
            cmd += ["-c", str(config)]
        return cmd


class RuntimeLifecycle(Lifecycle):
    """Interpreters: "running" means the executable is present."""

    family = "runtime"
    is_daemon = False

    def build_start_command(self, ctx: InstanceContext) -> list[str]:
        return []


class ToolLifecycle(RuntimeLifecycle):
    family = "tool"


DEFAULT_LIFECYCLES: dict[str, Lifecycle] = {
    lifecycle.family: lifecycle
    for lifecycle in (
        MySQLLifecycle(),
        MariaDBLifecycle(),
        NginxLifecycle(),
        RedisLifecycle(),
        PhpFastCgiLifecycle(),
        RuntimeLifecycle(),
        ToolLifecycle(),
        GenericLifecycle(),
    )
}


def get_lifecycle(
    package: PackageDescriptor,
    registry: Optional[dict[str, Lifecycle]] = None,
) -> Lifecycle:
    """Lifecycle for the package's family; unknown families run generically."""
    registry = registry if registry is not None else DEFAULT_LIFECYCLES
    lifecycle = registry.get(package.family)
    if lifecycle is None:
        logger.debug(f"No lifecycle for family {package.family!r}, using generic")
        return registry.get("generic", DEFAULT_LIFECYCLES["generic"])
    return lifecycle
