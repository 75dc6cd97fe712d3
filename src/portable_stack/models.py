"""Transient and derived state reported by the core operations."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class InstallStatus(str, Enum):
    """Stage of an install call."""
    DOWNLOADING = "downloading"
    EXTRACTING = "extracting"
    CONFIGURING = "configuring"
    COMPLETE = "complete"
    ERROR = "error"


@dataclass
class InstallProgress:
    """Progress of one install call, mutated in place as the pipeline advances."""

    package_id: str
    version: str
    status: InstallStatus = InstallStatus.DOWNLOADING
    progress: float = 0.0  # 0-100
    message: str = ""
    install_path: str = ""
    error: Optional[str] = None
    error_code: Optional[str] = None
    warnings: List[str] = field(default_factory=list)

    def snapshot(self) -> "InstallProgress":
        """Independent copy for callbacks and error reports."""
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "package_id": self.package_id,
            "version": self.version,
            "status": self.status.value,
            "progress": round(self.progress, 1),
            "message": self.message,
            "warnings": list(self.warnings),
        }
        if self.install_path:
            data["install_path"] = self.install_path
        if self.error:
            data["error"] = self.error
            data["error_code"] = self.error_code
        return data


@dataclass
class ServiceStatus:
    """Live status of an installed instance, recomputed on every request."""

    package_id: str
    name: str
    version: str
    install_path: str
    running: bool = False
    pid: Optional[int] = None
    port: Optional[int] = None
    config_path: Optional[str] = None
    log_path: Optional[str] = None
    is_daemon: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "package_id": self.package_id,
            "name": self.name,
            "version": self.version,
            "running": self.running,
            "pid": self.pid,
            "port": self.port,
            "install_path": self.install_path,
            "config_path": self.config_path,
            "log_path": self.log_path,
            "is_daemon": self.is_daemon,
        }


@dataclass
class ActionResult:
    """Outcome of a successful uninstall/start/stop/restart.

    ``warnings`` lists degraded-but-successful steps (a failed metadata
    update, a graceful shutdown that needed a forceful kill, ...).
    """

    action: str
    package_id: str
    version: str
    message: str = ""
    pid: Optional[int] = None
    warnings: List[str] = field(default_factory=list)

    def warn(self, message: str) -> None:
        self.warnings.append(message)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "action": self.action,
            "package_id": self.package_id,
            "version": self.version,
            "message": self.message,
            "warnings": list(self.warnings),
        }
        if self.pid is not None:
            data["pid"] = self.pid
        return data
