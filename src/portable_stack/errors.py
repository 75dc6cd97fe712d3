"""Error taxonomy for portable package operations.

Every public operation either returns its payload or raises one
``PortableError`` subclass. Each subclass carries a machine-readable
``code`` which the handler layer copies into the error envelope.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class PortableError(Exception):
    """Base exception for portable package errors."""

    code = "portable_error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        error: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details is not None:
            error["details"] = self.details
        return error


# Lookup errors


class PackageNotFound(PortableError):
    """Raised when a package id is not in the catalog."""

    code = "package_not_found"


class VersionNotFound(PortableError):
    """Raised when a version string is not listed for a package."""

    code = "version_not_found"


class NoDownloadForPlatform(PortableError):
    """Raised when a version has no download for this platform and no 'all' entry."""

    code = "no_download_for_platform"


# I/O errors


class DownloadFailed(PortableError):
    """Raised when a bundle cannot be fetched."""

    code = "download_failed"

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message, {"status": status} if status is not None else None)
        self.status = status


class ExtractionFailed(PortableError):
    """Raised when an archive cannot be unpacked."""

    code = "extraction_failed"


class UnsupportedFormat(ExtractionFailed):
    """Raised when the archive suffix is not recognised."""

    code = "unsupported_format"


class ConfigWriteFailed(PortableError):
    """Raised when a configuration file cannot be written."""

    code = "config_write_failed"


class NoConfigFile(PortableError):
    """Raised when a package has no configuration file."""

    code = "no_config_file"


class DeleteFailed(PortableError):
    """Raised when an install directory cannot be removed."""

    code = "delete_failed"


# Installation state


class NotInstalled(PortableError):
    """Raised when the install directory (or its executable) is missing."""

    code = "not_installed"


class AlreadyInstalled(PortableError):
    """Raised when a completed install exists and overwrite was not requested."""

    code = "already_installed"


class InstallFailed(PortableError):
    """Raised when the install pipeline stops in the ``error`` state.

    ``progress`` is the terminal snapshot, so callers can tell which stage
    was reached. The triggering error is chained as ``__cause__``.
    """

    def __init__(self, progress: Any, error: PortableError):
        super().__init__(error.message, error.details)
        self.code = error.code
        self.progress = progress
        self.error = error

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["details"] = {**(self.details or {}), "progress": self.progress.to_dict()}
        return data


# Process errors


class ProcessError(PortableError):
    """Raised when a managed process cannot be controlled."""

    code = "process_error"


class StartFailed(ProcessError):
    """Raised when a daemon cannot be spawned."""

    code = "start_failed"


class StopFailed(ProcessError):
    """Raised when graceful and forceful shutdown both fail."""

    code = "stop_failed"


class InternalError(PortableError):
    """Wraps an unexpected exception raised inside an operation."""

    code = "internal_error"
