"""Tests for settings and platform detection."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

from portable_stack.platform import PlatformInfo, detect_platform, normalize_arch, normalize_os
from portable_stack.settings import Settings, default_base_dir


class TestPlatform:
    """Tests for platform normalization."""

    @pytest.mark.parametrize(
        "raw, expected",
        [("win32", "windows"), ("cygwin", "windows"), ("linux", "linux"), ("darwin", "darwin")],
    )
    def test_normalize_os(self, raw, expected):
        assert normalize_os(raw) == expected

    @pytest.mark.parametrize(
        "raw, expected",
        [("x86_64", "amd64"), ("AMD64", "amd64"), ("aarch64", "arm64"), ("arm64", "arm64")],
    )
    def test_normalize_arch(self, raw, expected):
        assert normalize_arch(raw) == expected

    def test_key_and_suffix(self):
        """Test the download key and executable suffix."""
        windows = PlatformInfo(os="windows", arch="amd64")

        assert windows.key == "windows/amd64"
        assert windows.exe_suffix == ".exe"
        assert PlatformInfo(os="linux", arch="arm64").exe_suffix == ""

    def test_detect_platform(self):
        """Test detection yields normalized names."""
        info = detect_platform()

        assert info.os == normalize_os(sys.platform)
        assert "/" in info.key


class TestSettings:
    """Tests for Settings.from_env."""

    def test_defaults(self, monkeypatch):
        """Test values when nothing is configured."""
        for name in ("BASE_DIR", "CATALOG", "API_PORT", "LOG_LEVEL", "STOP_TIMEOUT"):
            monkeypatch.delenv(f"PORTABLE_STACK_{name}", raising=False)

        settings = Settings.from_env(load_env_file=False)

        assert settings.base_dir == default_base_dir()
        assert settings.catalog_file is None
        assert settings.api_port == 8989
        assert settings.log_level == "INFO"
        assert settings.stop_timeout == 30.0

    def test_overrides(self, monkeypatch, tmp_path):
        """Test environment overrides and derived paths."""
        monkeypatch.setenv("PORTABLE_STACK_BASE_DIR", str(tmp_path))
        monkeypatch.setenv("PORTABLE_STACK_API_PORT", "9000")
        monkeypatch.setenv("PORTABLE_STACK_CORS_ORIGINS", "http://a, http://b")
        monkeypatch.setenv("PORTABLE_STACK_LOG_LEVEL", "debug")
        monkeypatch.setenv("PORTABLE_STACK_INIT_TIMEOUT", "0")

        settings = Settings.from_env(load_env_file=False)

        assert settings.base_dir == Path(tmp_path)
        assert settings.api_port == 9000
        assert settings.cors_origins == ["http://a", "http://b"]
        assert settings.log_level == "DEBUG"
        assert settings.init_timeout is None
        assert settings.scratch_dir == tmp_path / ".temp"
        assert settings.metadata_file == tmp_path / ".data" / "installed.json"

    def test_invalid_number(self, monkeypatch):
        """Test a malformed timeout is reported."""
        monkeypatch.setenv("PORTABLE_STACK_DOWNLOAD_TIMEOUT", "soon")

        with pytest.raises(ValueError):
            Settings.from_env(load_env_file=False)


class TestDefaultBaseDir:
    """Tests for the install root used without an override."""

    def test_next_to_program(self, monkeypatch, tmp_path):
        program = tmp_path / "bin" / "portable-stack"
        program.parent.mkdir()
        program.write_text("#!/bin/sh\n")
        monkeypatch.setattr(sys, "argv", [str(program), "system"])

        assert default_base_dir() == program.resolve().parent / "server"

    @pytest.mark.parametrize("argv0", ["-c", "", "/nonexistent/portable-stack"])
    def test_without_program_file(self, monkeypatch, tmp_path, argv0):
        """Test the working directory is used when there is no program file."""
        monkeypatch.setattr(sys, "argv", [argv0])
        monkeypatch.chdir(tmp_path)

        assert default_base_dir() == Path.cwd() / "server"

    def test_module_invocation(self, monkeypatch, tmp_path):
        """Test ``python -m`` does not place bundles inside the installed package."""
        main_file = tmp_path / "site-packages" / "portable_stack" / "__main__.py"
        main_file.parent.mkdir(parents=True)
        main_file.write_text("")
        monkeypatch.setattr(sys, "argv", [str(main_file)])
        monkeypatch.chdir(tmp_path)

        assert default_base_dir() == Path.cwd() / "server"
