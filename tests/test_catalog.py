"""Tests for the catalog and download URL resolution."""

from __future__ import annotations

import json

import pytest

from conftest import CATALOG_ENTRIES, LINUX, WINDOWS
from portable_stack.catalog import (
    Catalog,
    PackageDescriptor,
    VersionDescriptor,
    builtin_catalog,
    load_catalog,
    resolve,
    resolve_version_url,
)
from portable_stack.errors import NoDownloadForPlatform, PackageNotFound, VersionNotFound
from portable_stack.platform import PlatformInfo


class TestPackageDescriptor:
    """Tests for PackageDescriptor."""

    def test_from_dict(self):
        """Test building a descriptor from a catalog entry."""
        package = PackageDescriptor.from_dict(CATALOG_ENTRIES[0])

        assert package.id == "mysql"
        assert package.family == "mysql"
        assert package.install_subpath == "database/mysql"
        assert package.primary_port == 3306
        assert package.versions[0].version == "8.0.35"
        assert package.versions[0].latest is True

    def test_from_dict_accepts_install_path(self):
        """Test the alternative install_path key and generic default family."""
        package = PackageDescriptor.from_dict(
            {"id": "tool", "install_path": "addons/tool", "versions": []}
        )

        assert package.install_subpath == "addons/tool"
        assert package.family == "generic"
        assert package.name == "tool"

    def test_from_dict_requires_id(self):
        """Test entries without an id are rejected."""
        with pytest.raises(ValueError):
            PackageDescriptor.from_dict({"install_subpath": "x"})

    def test_round_trip(self):
        """Test to_dict produces an entry from_dict reads back identically."""
        package = PackageDescriptor.from_dict(CATALOG_ENTRIES[2])

        assert PackageDescriptor.from_dict(package.to_dict()) == package

    def test_get_version(self):
        """Test looking up versions."""
        package = PackageDescriptor.from_dict(CATALOG_ENTRIES[0])

        assert package.get_version("8.0.35").version == "8.0.35"
        with pytest.raises(VersionNotFound) as exc:
            package.get_version("9.9.9")
        assert exc.value.details == {"package_id": "mysql", "version": "9.9.9"}

    def test_executable_for(self):
        """Test per-OS executable lookup."""
        package = PackageDescriptor.from_dict(CATALOG_ENTRIES[0])

        assert package.executable_for("windows") == "bin/mysqld.exe"
        assert package.executable_for("darwin") is None

    def test_mappings_are_read_only(self):
        """Test descriptor mappings cannot be changed after construction."""
        entry = CATALOG_ENTRIES[0]
        package = PackageDescriptor.from_dict(entry)
        descriptor = package.get_version("8.0.35")

        with pytest.raises(TypeError):
            descriptor.downloads["linux/amd64"] = "http://elsewhere.test/mysql.tar.gz"
        with pytest.raises(TypeError):
            package.executable["linux"] = "bin/other"
        assert descriptor.downloads["linux/amd64"] == entry["versions"][0]["downloads"]["linux/amd64"]
        assert package.executable_for("linux") == "bin/mysqld"


class TestCatalog:
    """Tests for the Catalog registry."""

    def test_get(self, catalog):
        """Test getting a package by id."""
        assert catalog.get("redis").name == "Redis"
        assert "redis" in catalog
        assert "missing" not in catalog

    def test_get_missing(self, catalog):
        """Test unknown ids raise PackageNotFound."""
        with pytest.raises(PackageNotFound) as exc:
            catalog.get("missing")
        assert exc.value.code == "package_not_found"

    def test_by_category(self, catalog):
        """Test filtering by category."""
        ids = [p.id for p in catalog.by_category("database")]

        assert ids == ["mysql", "redis", "memcached"]
        assert len(catalog.by_category("all")) == len(catalog)
        assert len(catalog.by_category(None)) == len(catalog)
        assert catalog.by_category("nothing") == []

    def test_categories_in_registration_order(self, catalog):
        """Test category listing keeps first-seen order."""
        assert catalog.categories == ["database", "webserver", "runtime", "tools"]

    def test_duplicate_ids_rejected(self):
        """Test a catalog cannot hold the same id twice."""
        with pytest.raises(ValueError):
            Catalog.from_list([CATALOG_ENTRIES[0], CATALOG_ENTRIES[0]])

    def test_load_catalog_list(self, tmp_path):
        """Test loading a catalog file holding a plain list."""
        path = tmp_path / "catalog.json"
        path.write_text(json.dumps(CATALOG_ENTRIES[:2]))

        catalog = load_catalog(path)

        assert [p.id for p in catalog] == ["mysql", "redis"]

    def test_load_catalog_object(self, tmp_path):
        """Test loading a catalog file with a packages key."""
        path = tmp_path / "catalog.json"
        path.write_text(json.dumps({"packages": CATALOG_ENTRIES[2:3]}))

        catalog = load_catalog(path)

        assert [p.id for p in catalog] == ["nginx"]


class TestBuiltinCatalog:
    """Tests for the built-in entries."""

    def test_ids(self):
        """Test every built-in package is present."""
        ids = {p.id for p in builtin_catalog()}

        assert ids == {
            "mysql", "mariadb", "redis", "php", "nodejs",
            "nginx", "phpmyadmin", "adminer", "composer",
        }

    def test_every_version_has_a_download(self):
        """Test no built-in version is left without URLs."""
        for package in builtin_catalog():
            assert package.versions, package.id
            for version in package.versions:
                assert version.downloads, f"{package.id} {version.version}"

    def test_single_file_tools_use_all_key(self):
        """Test platform-independent tools download from the 'all' key."""
        catalog = builtin_catalog()

        assert resolve(catalog, "adminer", "4.8.1", WINDOWS).endswith(".php")
        assert resolve(catalog, "composer", "2.6.6", LINUX).endswith(".phar")


class TestResolver:
    """Tests for download URL resolution."""

    def test_exact_platform_key(self, catalog):
        """Test the os/arch key is used when present."""
        url = resolve(catalog, "mysql", "8.0.35", WINDOWS)

        assert url.endswith("mysql-8.0.35-winx64.zip")

    def test_all_fallback(self, catalog):
        """Test the 'all' key serves any platform."""
        darwin = PlatformInfo(os="darwin", arch="arm64")

        assert resolve(catalog, "nginx", "1.25.3", darwin).endswith("nginx-1.25.3.tar.gz")

    def test_exact_key_preferred_over_all(self):
        """Test the platform-specific URL wins over the generic one."""
        package = PackageDescriptor(
            id="x",
            name="X",
            category="tools",
            install_subpath="addons/x",
            versions=(
                VersionDescriptor(
                    version="1.0",
                    downloads={"all": "http://a/x.zip", "linux/amd64": "http://a/x-linux.zip"},
                ),
            ),
        )

        url = resolve_version_url(package, package.versions[0], LINUX)

        assert url == "http://a/x-linux.zip"

    def test_no_download_for_platform(self, catalog):
        """Test redis with only a Linux URL cannot be resolved for Windows."""
        with pytest.raises(NoDownloadForPlatform) as exc:
            resolve(catalog, "redis", "7.2.3", WINDOWS)

        assert exc.value.details["platform"] == "windows/amd64"
        assert exc.value.details["available"] == ["linux/amd64"]

    def test_unknown_package(self, catalog):
        """Test an unknown id raises PackageNotFound."""
        with pytest.raises(PackageNotFound):
            resolve(catalog, "postgres", "16", LINUX)

    def test_unknown_version(self, catalog):
        """Test an unknown version raises VersionNotFound."""
        with pytest.raises(VersionNotFound):
            resolve(catalog, "mysql", "5.0.0", LINUX)

    def test_deterministic(self, catalog):
        """Test repeated resolution returns the same URL and leaves the catalog untouched."""
        before = catalog.to_list()

        first = resolve(catalog, "mysql", "8.0.35", LINUX)
        second = resolve(catalog, "mysql", "8.0.35", LINUX)

        assert first == second
        assert catalog.to_list() == before
