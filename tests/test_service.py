"""Tests for the PortableService facade."""

from __future__ import annotations

import pytest

from conftest import BASE_URL, WINDOWS
from portable_stack import __version__
from portable_stack.errors import NoDownloadForPlatform, VersionNotFound
from portable_stack.installer import InstalledRecord
from portable_stack.layout import MARKER_FILE
from portable_stack.service import PortableService
from portable_stack.settings import Settings


def version_flags(packages, package_id):
    package = next(p for p in packages if p["id"] == package_id)
    return package["versions"][0]


class TestListPackages:
    """Tests for list_packages."""

    @pytest.mark.asyncio
    async def test_all_categories(self, service, catalog):
        packages = await service.list_packages()

        assert [p["id"] for p in packages] == [p.id for p in catalog]
        mysql = packages[0]
        assert mysql["install_path"] == "database/mysql"
        assert mysql["ports"] == [3306]

    @pytest.mark.asyncio
    async def test_category_filter(self, service):
        packages = await service.list_packages("database")

        assert {p["id"] for p in packages} == {"mysql", "redis", "memcached"}

    @pytest.mark.asyncio
    async def test_fresh_flags(self, service):
        flags = version_flags(await service.list_packages(), "nodejs")

        assert flags == {
            "version": "20.10.0",
            "latest": False,
            "lts": True,
            "available": True,
            "installed": False,
            "running": False,
        }

    @pytest.mark.asyncio
    async def test_installed_and_running(self, service, base_dir, fake_processes):
        """Test installed daemons report the live process state."""
        (base_dir / "database" / "mysql" / "8.0.35").mkdir(parents=True)
        fake_processes.running["mysqld"] = 99

        flags = version_flags(await service.list_packages(), "mysql")

        assert flags["installed"] is True
        assert flags["running"] is True

    @pytest.mark.asyncio
    async def test_unavailable_on_platform(self, catalog, base_dir, fake_processes):
        """Test versions without a download for the host are marked unavailable."""
        service = PortableService(
            settings=Settings(base_dir=base_dir),
            catalog=catalog,
            platform=WINDOWS,
            processes=fake_processes,
        )

        packages = await service.list_packages()

        assert version_flags(packages, "redis")["available"] is False
        assert version_flags(packages, "mysql")["available"] is True


class TestListInstalled:
    """Tests for list_installed."""

    @pytest.mark.asyncio
    async def test_scans_disk(self, service, base_dir):
        complete = base_dir / "webserver" / "nginx" / "1.25.3"
        complete.mkdir(parents=True)
        (complete / MARKER_FILE).write_text("{}")
        (base_dir / "webserver" / "nginx" / "1.24.0").mkdir()
        (base_dir / "webserver" / "nginx" / ".trash").mkdir()

        installed = await service.list_installed()

        assert [(i["package_id"], i["version"], i["complete"]) for i in installed] == [
            ("nginx", "1.24.0", False),
            ("nginx", "1.25.3", True),
        ]
        assert installed[1]["install_path"] == str(complete)
        assert installed[1]["category"] == "webserver"
        assert [i["recorded"] for i in installed] == [False, False]

    @pytest.mark.asyncio
    async def test_recorded_flag(self, service, base_dir):
        """Test instances known to the metadata store are flagged as recorded."""
        await service.store.record(
            InstalledRecord(
                package_id="nginx",
                name="Nginx",
                version="1.25.3",
                category="webserver",
                install_path=str(base_dir / "webserver" / "nginx" / "1.25.3"),
            )
        )
        (base_dir / "webserver" / "nginx" / "1.25.3").mkdir(parents=True)
        (base_dir / "database" / "redis" / "7.2.3").mkdir(parents=True)

        installed = await service.list_installed()

        assert {i["package_id"]: i["recorded"] for i in installed} == {"redis": False, "nginx": True}

    @pytest.mark.asyncio
    async def test_empty(self, service):
        assert await service.list_installed() == []


class TestPreviewInstall:
    """Tests for preview_install."""

    def test_preview(self, service, base_dir):
        preview = service.preview_install("mysql", "8.0.35")

        assert preview == {
            "package_id": "mysql",
            "name": "MySQL Server",
            "version": "8.0.35",
            "url": f"{BASE_URL}/mysql-8.0.35-linux.tar.gz",
            "install_path": str(base_dir / "database" / "mysql" / "8.0.35"),
            "installed": False,
            "platform": "linux/amd64",
        }
        assert not (base_dir / "database").exists()

    def test_unknown_version(self, service):
        with pytest.raises(VersionNotFound):
            service.preview_install("mysql", "9.9.9")

    def test_no_download(self, catalog, base_dir):
        service = PortableService(settings=Settings(base_dir=base_dir), catalog=catalog, platform=WINDOWS)

        with pytest.raises(NoDownloadForPlatform):
            service.preview_install("memcached", "1.6.22")


class TestSystemInfo:
    def test_system_info(self, service, base_dir):
        info = service.system_info()

        assert info["version"] == __version__
        assert info["mode"] == "portable"
        assert info["base_dir"] == str(base_dir)
        assert info["categories"] == ["database", "webserver", "runtime", "tools"]
        assert info["package_count"] == 7


class TestInstanceAddressing:
    """Tests for versions that do not name a catalog instance."""

    @pytest.mark.asyncio
    async def test_uninstall_parent_directory(self, service, base_dir):
        """Test '..' as a version cannot delete the package directory."""
        keep = base_dir / "webserver" / "nginx" / "1.25.3" / "keep.txt"
        keep.parent.mkdir(parents=True)
        keep.write_text("x")

        with pytest.raises(VersionNotFound):
            await service.uninstall("nginx", "..")

        assert keep.read_text() == "x"

    @pytest.mark.asyncio
    async def test_write_config_outside_base(self, service, base_dir):
        """Test a traversing version cannot place a config file outside the install root."""
        version = "../../../../outside"

        with pytest.raises(VersionNotFound):
            await service.write_config("redis", version, "port 1\n")

        assert not (base_dir / "database" / "redis" / version / "redis.conf").exists()

    @pytest.mark.asyncio
    async def test_status_and_start(self, service, fake_processes):
        with pytest.raises(VersionNotFound):
            await service.status("redis", "..")
        with pytest.raises(VersionNotFound):
            await service.start("redis", "..")
        assert fake_processes.calls == []

    @pytest.mark.asyncio
    async def test_unlisted_version(self, service, base_dir):
        """Test a directory for a version the catalog does not list is not addressable."""
        (base_dir / "webserver" / "nginx" / "1.24.0").mkdir(parents=True)

        with pytest.raises(VersionNotFound):
            await service.read_config("nginx", "1.24.0")
