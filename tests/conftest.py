"""Pytest configuration for portable_stack tests."""

from __future__ import annotations

import io
import tarfile
import zipfile
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from portable_stack.catalog import Catalog
from portable_stack.configs import ConfigManager
from portable_stack.errors import DownloadFailed, ProcessError
from portable_stack.layout import InstallLayout
from portable_stack.platform import PlatformInfo
from portable_stack.service import PortableService
from portable_stack.settings import Settings
from portable_stack.supervisor import CommandResult


LINUX = PlatformInfo(os="linux", arch="amd64")
WINDOWS = PlatformInfo(os="windows", arch="amd64")

BASE_URL = "http://downloads.test"


CATALOG_ENTRIES = [
    {
        "id": "mysql",
        "name": "MySQL Server",
        "category": "database",
        "family": "mysql",
        "install_subpath": "database/mysql",
        "executable": {"windows": "bin/mysqld.exe", "linux": "bin/mysqld"},
        "config_file": "my.cnf",
        "ports": [3306],
        "versions": [
            {
                "version": "8.0.35",
                "latest": True,
                "downloads": {
                    "windows/amd64": f"{BASE_URL}/mysql-8.0.35-winx64.zip",
                    "linux/amd64": f"{BASE_URL}/mysql-8.0.35-linux.tar.gz",
                },
            }
        ],
    },
    {
        "id": "redis",
        "name": "Redis",
        "category": "database",
        "family": "redis",
        "install_subpath": "database/redis",
        "executable": {"windows": "redis-server.exe", "linux": "src/redis-server"},
        "ports": [6379],
        "versions": [
            {
                "version": "7.2.3",
                "latest": True,
                "downloads": {"linux/amd64": f"{BASE_URL}/redis-7.2.3.tar.gz"},
            }
        ],
    },
    {
        "id": "nginx",
        "name": "Nginx",
        "category": "webserver",
        "family": "nginx",
        "install_subpath": "webserver/nginx",
        "executable": {"windows": "nginx.exe", "linux": "sbin/nginx"},
        "config_file": "conf/nginx.conf",
        "ports": [80],
        "versions": [
            {"version": "1.25.3", "downloads": {"all": f"{BASE_URL}/nginx-1.25.3.tar.gz"}}
        ],
    },
    {
        "id": "php",
        "name": "PHP",
        "category": "runtime",
        "family": "php-fcgi",
        "install_subpath": "runtime/php",
        "executable": {"windows": "php.exe", "linux": "bin/php"},
        "versions": [
            {"version": "8.3.29", "downloads": {"all": f"{BASE_URL}/php-8.3.29.zip"}}
        ],
    },
    {
        "id": "nodejs",
        "name": "Node.js",
        "category": "runtime",
        "family": "runtime",
        "install_subpath": "runtime/nodejs",
        "executable": {"windows": "node.exe", "linux": "bin/node"},
        "versions": [
            {"version": "20.10.0", "lts": True, "downloads": {"all": f"{BASE_URL}/node-v20.10.0.tar.xz"}}
        ],
    },
    {
        "id": "adminer",
        "name": "Adminer",
        "category": "tools",
        "family": "tool",
        "install_subpath": "addons/adminer",
        "versions": [
            {"version": "4.8.1", "downloads": {"all": f"{BASE_URL}/adminer-4.8.1.php"}}
        ],
    },
    {
        "id": "memcached",
        "name": "Memcached",
        "category": "database",
        "install_subpath": "database/memcached",
        "executable": {"linux": "memcached"},
        "versions": [
            {"version": "1.6.22", "downloads": {"linux/amd64": f"{BASE_URL}/memcached-1.6.22.tar.gz"}}
        ],
    },
]


def build_zip(path: Path, files: Dict[str, bytes], dirs: Optional[List[str]] = None) -> Path:
    """Write a zip archive with the given member names and contents."""
    with zipfile.ZipFile(path, "w") as zf:
        for name in dirs or []:
            zf.writestr(name.rstrip("/") + "/", "")
        for name, content in files.items():
            zf.writestr(name, content)
    return path


def build_tar(path: Path, files: Dict[str, bytes], mode: str = "w:gz") -> Path:
    """Write a compressed tar archive with the given member names and contents."""
    with tarfile.open(path, mode) as tf:
        for name, content in files.items():
            info = tarfile.TarInfo(name)
            info.size = len(content)
            info.mode = 0o755
            tf.addfile(info, io.BytesIO(content))
    return path


def archive_for(url: str, tmp_dir: Path, files: Dict[str, bytes]) -> bytes:
    """Archive bytes matching the suffix of ``url``."""
    name = url.rsplit("/", 1)[-1]
    target = tmp_dir / name
    if name.endswith(".zip"):
        build_zip(target, files)
    elif name.endswith((".tar.gz", ".tgz")):
        build_tar(target, files, "w:gz")
    elif name.endswith((".tar.xz", ".txz")):
        build_tar(target, files, "w:xz")
    else:
        return next(iter(files.values()))
    return target.read_bytes()


class FakeDownloader:
    """Serves prepared payloads by URL instead of hitting the network."""

    def __init__(self) -> None:
        self.payloads: Dict[str, bytes] = {}
        self.calls: List[str] = []

    def add(self, url: str, payload: bytes) -> None:
        self.payloads[url] = payload

    async def __call__(self, url, dest, on_progress=None) -> int:
        self.calls.append(url)
        payload = self.payloads.get(url)
        if payload is None:
            raise DownloadFailed("download failed: HTTP 404 Not Found", status=404)
        half = len(payload) // 2
        with open(dest, "wb") as f:
            f.write(payload[:half])
            if on_progress:
                on_progress(half, len(payload))
            f.write(payload[half:])
            if on_progress:
                on_progress(len(payload), len(payload))
        return len(payload)


class FakeProcessController:
    """Records process operations; nothing is ever spawned."""

    def __init__(self) -> None:
        self.running: Dict[str, int] = {}  # process name -> pid
        self.calls: List[tuple] = []
        self.command_results: Dict[str, int] = {}  # executable name -> exit code
        self.fail_kill = False
        self._next_pid = 4000

    def find_pid(self, names, prefer_under=None):
        for name in names:
            if name in self.running:
                return self.running[name]
        return None

    def kill(self, names, timeout=5.0):
        self.calls.append(("kill", list(names)))
        if self.fail_kill:
            raise ProcessError("permission denied")
        killed = [n for n in names if self.running.pop(n, None) is not None]
        return len(killed)

    async def run(self, args, cwd=None, timeout=None):
        args = [str(a) for a in args]
        self.calls.append(("run", args))
        exe = Path(args[0]).name
        code = self.command_results.get(exe, 0)
        if code == 0 and exe in ("mysqladmin", "mariadb-admin", "redis-cli", "nginx"):
            self.running.clear()
        return CommandResult(args=args, returncode=code, output="" if code == 0 else "boom")

    def spawn_detached(self, args, cwd=None, log_file=None):
        args = [str(a) for a in args]
        self.calls.append(("spawn", args))
        self._next_pid += 1
        return self._next_pid

    def commands(self, kind: str) -> List[List[str]]:
        return [c[1] for c in self.calls if c[0] == kind]


def make_executable(install_path: Path, relative: str, content: bytes = b"#!/bin/sh\n") -> Path:
    path = install_path / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
    path.chmod(0o755)
    return path


@pytest.fixture
def catalog() -> Catalog:
    """Synthetic catalog covering every package family."""
    return Catalog.from_list(CATALOG_ENTRIES)


@pytest.fixture
def base_dir(tmp_path) -> Path:
    """Install root inside the test's temporary directory."""
    path = tmp_path / "server"
    path.mkdir()
    return path


@pytest.fixture
def layout(base_dir) -> InstallLayout:
    return InstallLayout(base_dir)


@pytest.fixture
def config_manager(catalog, layout) -> ConfigManager:
    return ConfigManager(catalog, layout, LINUX)


@pytest.fixture
def fake_processes() -> FakeProcessController:
    return FakeProcessController()


@pytest.fixture
def fake_downloader() -> FakeDownloader:
    return FakeDownloader()


@pytest.fixture
def sample_hello_message() -> Dict[str, str]:
    """Return a sample hello message."""
    return {"type": "hello", "request_id": "test-123"}


@pytest.fixture
def service(catalog, base_dir, fake_processes, fake_downloader) -> PortableService:
    """PortableService over the synthetic catalog with faked I/O."""
    return PortableService(
        settings=Settings(base_dir=base_dir),
        catalog=catalog,
        platform=LINUX,
        processes=fake_processes,
        downloader=fake_downloader,
    )
