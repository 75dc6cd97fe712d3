"""HTTP API over the message handlers, for the control panel."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from portable_stack import __version__
from portable_stack.handlers import dispatch_message
from portable_stack.service import PortableService, get_portable_service
from portable_stack.settings import Settings

NOT_FOUND_CODES = {"package_not_found", "version_not_found", "not_installed", "no_config_file"}
BAD_REQUEST_CODES = {
    "invalid_params",
    "invalid_message",
    "unknown_message_type",
    "no_download_for_platform",
}
CONFLICT_CODES = {"already_installed"}


def http_status_for(code: str) -> int:
    if code in NOT_FOUND_CODES:
        return 404
    if code in BAD_REQUEST_CODES:
        return 400
    if code in CONFLICT_CODES:
        return 409
    return 500


class PackageVersionRequest(BaseModel):
    package_id: str = Field(min_length=1, max_length=100)
    version: str = Field(min_length=1, max_length=50)


class InstallRequest(PackageVersionRequest):
    force: bool = False


class ConfigRequest(BaseModel):
    version: str = Field(min_length=1, max_length=50)
    content: str


def create_app(
    service: Optional[PortableService] = None,
    cors_origins: Optional[List[str]] = None,
) -> FastAPI:
    """
    Build the API application.

    Without an explicit service the process-wide one is created on first use.
    """
    app = FastAPI(title="Portable Stack API", version=__version__)

    if cors_origins is None:
        cors_origins = (
            service.settings.cors_origins if service is not None else Settings().cors_origins
        )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins if cors_origins else ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def _service() -> PortableService:
        return service if service is not None else get_portable_service()

    async def call(message_type: str, **params: Any) -> Dict[str, Any]:
        response = await dispatch_message({"type": message_type, **params}, _service())
        if response.get("type") == "error":
            error = response["error"]
            raise HTTPException(status_code=http_status_for(error["code"]), detail=error)
        response.pop("request_id", None)
        return response

    @app.get("/health")
    async def health() -> Dict[str, Any]:
        return {"ok": True, "version": __version__}

    @app.get("/portable/packages")
    async def list_packages(category: str = "all") -> Dict[str, Any]:
        return await call("list_packages", category=category)

    @app.get("/portable/installed")
    async def list_installed() -> Dict[str, Any]:
        return await call("list_installed")

    @app.get("/portable/system")
    async def system_info() -> Dict[str, Any]:
        return await call("system_info")

    @app.post("/portable/preview")
    async def preview_install(payload: PackageVersionRequest) -> Dict[str, Any]:
        return await call("preview_install", package_id=payload.package_id, version=payload.version)

    @app.post("/portable/install")
    async def install(payload: InstallRequest) -> Dict[str, Any]:
        return await call(
            "install",
            package_id=payload.package_id,
            version=payload.version,
            force=payload.force,
        )

    @app.delete("/portable/{package_id}")
    async def uninstall(package_id: str, version: str = Query(min_length=1)) -> Dict[str, Any]:
        return await call("uninstall", package_id=package_id, version=version)

    @app.get("/portable/{package_id}/status")
    async def status(package_id: str, version: str = Query(min_length=1)) -> Dict[str, Any]:
        return await call("status", package_id=package_id, version=version)

    @app.post("/portable/{package_id}/start")
    async def start(package_id: str, version: str = Query(min_length=1)) -> Dict[str, Any]:
        return await call("start", package_id=package_id, version=version)

    @app.post("/portable/{package_id}/stop")
    async def stop(package_id: str, version: str = Query(min_length=1)) -> Dict[str, Any]:
        return await call("stop", package_id=package_id, version=version)

    @app.post("/portable/{package_id}/restart")
    async def restart(package_id: str, version: str = Query(min_length=1)) -> Dict[str, Any]:
        return await call("restart", package_id=package_id, version=version)

    @app.get("/portable/{package_id}/config")
    async def get_config(package_id: str, version: str = Query(min_length=1)) -> Dict[str, Any]:
        return await call("get_config", package_id=package_id, version=version)

    @app.put("/portable/{package_id}/config")
    async def save_config(package_id: str, payload: ConfigRequest) -> Dict[str, Any]:
        return await call(
            "save_config",
            package_id=package_id,
            version=payload.version,
            content=payload.content,
        )

    @app.get("/portable/{package_id}/log")
    async def get_log(
        package_id: str,
        version: str = Query(min_length=1),
        lines: Optional[int] = Query(default=None, ge=0),
    ) -> Dict[str, Any]:
        return await call("get_log", package_id=package_id, version=version, lines=lines)

    return app
