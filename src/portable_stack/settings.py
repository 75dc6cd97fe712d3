"""Runtime settings loaded from the environment (and an optional .env file)."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv


ENV_PREFIX = "PORTABLE_STACK_"

DEFAULT_API_HOST = "127.0.0.1"
DEFAULT_API_PORT = 8989
DEFAULT_CORS_ORIGINS = "http://localhost,http://127.0.0.1"


def default_base_dir() -> Path:
    """Install root used when no override is configured.

    ``server/`` next to the program being run (the console script or a frozen
    executable), so moving the program moves the managed bundles with it.
    Without a program file (``python -c``, ``python -m``) the working
    directory is used instead.
    """
    if getattr(sys, "frozen", False):
        return Path(sys.executable).resolve().parent / "server"
    program = Path(sys.argv[0]) if sys.argv and sys.argv[0] else None
    if program is not None and program.name != "__main__.py" and program.is_file():
        return program.resolve().parent / "server"
    return Path.cwd() / "server"


def _parse_origins(value: str) -> List[str]:
    return [origin.strip() for origin in value.split(",") if origin.strip()]


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(ENV_PREFIX + name)
    if value is None or value.strip() == "":
        return default
    return value.strip()


def _env_float(name: str, default: float) -> float:
    value = _env(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"{ENV_PREFIX}{name} must be a number, got {value!r}")


@dataclass
class Settings:
    """Process-wide configuration for the portable package manager."""

    base_dir: Path = field(default_factory=default_base_dir)
    catalog_file: Optional[Path] = None

    api_host: str = DEFAULT_API_HOST
    api_port: int = DEFAULT_API_PORT
    cors_origins: List[str] = field(default_factory=lambda: _parse_origins(DEFAULT_CORS_ORIGINS))

    log_level: str = "INFO"

    # Seconds; None disables the limit
    download_timeout: Optional[float] = 60.0
    init_timeout: Optional[float] = 300.0
    stop_timeout: Optional[float] = 30.0

    @property
    def scratch_dir(self) -> Path:
        """Holding area for in-flight downloads."""
        return self.base_dir / ".temp"

    @property
    def data_dir(self) -> Path:
        """Directory for the installation metadata store."""
        return self.base_dir / ".data"

    @property
    def metadata_file(self) -> Path:
        return self.data_dir / "installed.json"

    @classmethod
    def from_env(cls, load_env_file: bool = True) -> "Settings":
        """Build settings from ``PORTABLE_STACK_*`` environment variables."""
        if load_env_file:
            load_dotenv()

        base_dir = _env("BASE_DIR")
        catalog_file = _env("CATALOG")

        def _timeout(name: str, default: float) -> Optional[float]:
            value = _env_float(name, default)
            return value if value > 0 else None

        return cls(
            base_dir=Path(base_dir).expanduser() if base_dir else default_base_dir(),
            catalog_file=Path(catalog_file).expanduser() if catalog_file else None,
            api_host=_env("API_HOST", DEFAULT_API_HOST),
            api_port=int(_env("API_PORT", str(DEFAULT_API_PORT))),
            cors_origins=_parse_origins(_env("CORS_ORIGINS", DEFAULT_CORS_ORIGINS)),
            log_level=_env("LOG_LEVEL", "INFO").upper(),
            download_timeout=_timeout("DOWNLOAD_TIMEOUT", 60.0),
            init_timeout=_timeout("INIT_TIMEOUT", 300.0),
            stop_timeout=_timeout("STOP_TIMEOUT", 30.0),
        )
