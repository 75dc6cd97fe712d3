"""
Configuration file management for installed packages.

Each package family knows where its configuration lives and what a sane
default looks like. Reading never fails just because the file is missing:
the default template is returned instead (without touching the disk).
Writing overwrites unconditionally; the content is not validated.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Dict, Optional, Tuple

from .catalog import Catalog, PackageDescriptor
from .errors import ConfigWriteFailed, NoConfigFile
from .layout import InstallLayout
from .platform import PlatformInfo, detect_platform

logger = logging.getLogger(__name__)

FASTCGI_ADDRESS = "127.0.0.1:9000"


def _nginx_template(install_path: Path) -> str:
    return f"""worker_processes 1;

events {{
    worker_connections 1024;
}}

http {{
    include       mime.types;
    default_type  application/octet-stream;
    sendfile      on;
    keepalive_timeout 65;

    server {{
        listen       80;
        server_name  localhost;

        root   {install_path.as_posix()}/html;
        index  index.html index.htm index.php;

        location / {{
            try_files $uri $uri/ =404;
        }}

        location ~ \\.php$ {{
            fastcgi_pass   {FASTCGI_ADDRESS};
            fastcgi_index  index.php;
            fastcgi_param  SCRIPT_FILENAME  $document_root$fastcgi_script_name;
            include        fastcgi_params;
        }}
    }}
}}
"""


def _mysql_template(install_path: Path) -> str:
    base = install_path.as_posix()
    return f"""[mysqld]
port=3306
basedir={base}
datadir={base}/data
socket={base}/mysql.sock
log-error={base}/data/error.log
pid-file={base}/mysql.pid

[client]
port=3306
socket={base}/mysql.sock
"""


def _redis_template(install_path: Path) -> str:
    return """bind 127.0.0.1
port 6379
daemonize no
loglevel notice
logfile "redis-server.log"
databases 16
save 900 1
save 300 10
save 60 10000
"""


def _php_template(install_path: Path) -> str:
    # Absolute, forward-slash path so the log does not depend on the cwd
    log_path = (install_path / "php_errors.log").as_posix()
    return f"""[PHP]
engine = On
short_open_tag = Off
precision = 14
output_buffering = 4096
zlib.output_compression = Off
implicit_flush = Off
serialize_precision = -1
disable_functions =
disable_classes =
zend.enable_gc = On
expose_php = Off
max_execution_time = 30
max_input_time = 60
memory_limit = 256M
error_reporting = E_ALL
display_errors = Off
display_startup_errors = Off
log_errors = On
error_log = "{log_path}"
post_max_size = 128M
upload_max_filesize = 128M
max_file_uploads = 20
cgi.fix_pathinfo=1

[Session]
session.save_handler = files
session.use_strict_mode = 1
session.use_cookies = 1
session.use_only_cookies = 1
session.name = PHPSESSID
session.auto_start = 0
session.cookie_lifetime = 0
session.gc_maxlifetime = 1440
"""


TEMPLATES: Dict[str, Callable[[Path], str]] = {
    "nginx": _nginx_template,
    "mysql": _mysql_template,
    "mariadb": _mysql_template,
    "redis": _redis_template,
    "php-fcgi": _php_template,
}


class ConfigManager:
    """Reads and writes per-instance configuration files."""

    def __init__(
        self,
        catalog: Catalog,
        layout: InstallLayout,
        platform: Optional[PlatformInfo] = None,
    ):
        self.catalog = catalog
        self.layout = layout
        self.platform = platform or detect_platform()

    def config_relpath(self, package: PackageDescriptor) -> str:
        """Config file location relative to the install directory."""
        family = package.family
        if family == "nginx":
            return "conf/nginx.conf"
        if family in ("mysql", "mariadb"):
            return "my.ini" if self.platform.is_windows else "my.cnf"
        if family == "redis":
            return "redis.conf"
        if family == "php-fcgi":
            return "php.ini"
        if package.config_file:
            return package.config_file
        raise NoConfigFile(f"no config file for {package.id}", {"package_id": package.id})

    def config_path(self, package: PackageDescriptor, install_path: Path) -> Path:
        return install_path / self.config_relpath(package)

    def default_config(self, package: PackageDescriptor, install_path: Path) -> str:
        """Default template for the package family ('' when there is none)."""
        template = TEMPLATES.get(package.family)
        return template(install_path) if template else ""

    def read(self, package_id: str, version: str) -> Tuple[Path, str]:
        """
        Read the configuration of an instance.

        Returns:
            (config path, content). Missing files yield the default template.
        """
        package = self.catalog.get(package_id)
        install_path = self.layout.install_path(package, version)
        path = self.config_path(package, install_path)
        try:
            return path, path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return path, self.default_config(package, install_path)

    def write(self, package_id: str, version: str, content: str) -> Path:
        """Overwrite the configuration of an instance, creating parent directories."""
        package = self.catalog.get(package_id)
        install_path = self.layout.install_path(package, version)
        path = self.config_path(package, install_path)
        self._write(path, content)
        logger.info(f"Saved config for {package_id} {version}: {path}")
        return path

    def ensure_default(self, package: PackageDescriptor, install_path: Path) -> Optional[Path]:
        """
        Write the default template if no config file exists yet.

        Returns:
            The path written, or None when a file already existed or the
            family has no template.
        """
        try:
            path = self.config_path(package, install_path)
        except NoConfigFile:
            return None
        if path.exists():
            return None

        content = self.default_config(package, install_path)
        if not content:
            return None

        self._write(path, content)
        logger.info(f"Created default config for {package.id}: {path}")
        return path

    def _write(self, path: Path, content: str) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        except OSError as e:
            raise ConfigWriteFailed(f"cannot write {path}: {e}", {"path": str(path)}) from e
