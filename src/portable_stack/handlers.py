"""Message handlers for the portable package manager.

Each handler processes a specific message type and returns a response
envelope. The HTTP API and the CLI both go through ``dispatch_message``.
"""

import logging
from collections.abc import Callable, Coroutine
from typing import Any

from portable_stack import __version__
from portable_stack.errors import PortableError
from portable_stack.service import PortableService

logger = logging.getLogger(__name__)

# Type alias for message handlers
MessageHandler = Callable[[dict[str, Any], PortableService], Coroutine[Any, Any, dict[str, Any]]]


def make_error_response(
    request_id: str,
    code: str,
    message: str,
    details: Any | None = None,
) -> dict[str, Any]:
    """Create a standardized error response."""
    error: dict[str, Any] = {"code": code, "message": message}
    if details is not None:
        error["details"] = details
    return {
        "type": "error",
        "request_id": request_id,
        "error": error,
    }


def make_result_response(
    request_type: str,
    request_id: str,
    **kwargs: Any,
) -> dict[str, Any]:
    """Create a standardized result response."""
    return {
        "type": f"{request_type}_result",
        "request_id": request_id,
        **kwargs,
    }


def error_from_exception(request_id: str, error: PortableError) -> dict[str, Any]:
    """Error response carrying a PortableError's code and details."""
    body = error.to_dict()
    return make_error_response(request_id, body["code"], body["message"], body.get("details"))


def _missing_params(message: dict[str, Any], *names: str) -> dict[str, Any] | None:
    """Error response for the first missing or non-string parameter, else None."""
    for name in names:
        value = message.get(name)
        if not value or not isinstance(value, str):
            return make_error_response(
                message.get("request_id", ""),
                "invalid_params",
                f"Missing or invalid '{name}' parameter",
            )
    return None


def _internal_error(request_id: str, action: str, e: Exception) -> dict[str, Any]:
    logger.exception(f"Failed to {action}")
    return make_error_response(request_id, "internal_error", f"Failed to {action}: {e}")


async def handle_hello(message: dict[str, Any], service: PortableService) -> dict[str, Any]:
    """Handle hello message - returns pong with the service version."""
    return {
        "type": "pong",
        "request_id": message.get("request_id", ""),
        "version": __version__,
    }


async def handle_list_packages(message: dict[str, Any], service: PortableService) -> dict[str, Any]:
    """Handle list_packages message - catalog entries with install/running flags."""
    request_id = message.get("request_id", "")
    category = message.get("category") or "all"

    try:
        packages = await service.list_packages(category)
        return make_result_response(
            "list_packages",
            request_id,
            category=category,
            packages=packages,
        )
    except PortableError as e:
        return error_from_exception(request_id, e)
    except Exception as e:
        return _internal_error(request_id, "list packages", e)


async def handle_list_installed(message: dict[str, Any], service: PortableService) -> dict[str, Any]:
    """Handle list_installed message - instances found on disk."""
    request_id = message.get("request_id", "")

    try:
        installed = await service.list_installed()
        return make_result_response("list_installed", request_id, installed=installed)
    except Exception as e:
        return _internal_error(request_id, "list installed packages", e)


async def handle_preview_install(message: dict[str, Any], service: PortableService) -> dict[str, Any]:
    """Handle preview_install message - resolved URL and target path, no side effects."""
    request_id = message.get("request_id", "")
    if error := _missing_params(message, "package_id", "version"):
        return error

    try:
        preview = service.preview_install(message["package_id"], message["version"])
        return make_result_response("preview_install", request_id, preview=preview)
    except PortableError as e:
        return error_from_exception(request_id, e)
    except Exception as e:
        return _internal_error(request_id, "preview install", e)


async def handle_install(message: dict[str, Any], service: PortableService) -> dict[str, Any]:
    """Handle install message - runs the whole install pipeline."""
    request_id = message.get("request_id", "")
    if error := _missing_params(message, "package_id", "version"):
        return error

    package_id = message["package_id"]
    version = message["version"]
    force = bool(message.get("force", False))

    try:
        progress = await service.install(package_id, version, force=force)
        return make_result_response("install", request_id, progress=progress.to_dict())
    except PortableError as e:
        return error_from_exception(request_id, e)
    except Exception as e:
        return _internal_error(request_id, f"install {package_id}", e)


async def handle_uninstall(message: dict[str, Any], service: PortableService) -> dict[str, Any]:
    """Handle uninstall message - deletes an installed instance."""
    request_id = message.get("request_id", "")
    if error := _missing_params(message, "package_id", "version"):
        return error

    try:
        result = await service.uninstall(message["package_id"], message["version"])
        return make_result_response("uninstall", request_id, **result.to_dict())
    except PortableError as e:
        return error_from_exception(request_id, e)
    except Exception as e:
        return _internal_error(request_id, f"uninstall {message['package_id']}", e)


async def handle_status(message: dict[str, Any], service: PortableService) -> dict[str, Any]:
    """Handle status message - live process state of an instance."""
    request_id = message.get("request_id", "")
    if error := _missing_params(message, "package_id", "version"):
        return error

    try:
        status = await service.status(message["package_id"], message["version"])
        return make_result_response("status", request_id, status=status.to_dict())
    except PortableError as e:
        return error_from_exception(request_id, e)
    except Exception as e:
        return _internal_error(request_id, "get status", e)


async def _service_action(
    action: str,
    message: dict[str, Any],
    service: PortableService,
) -> dict[str, Any]:
    request_id = message.get("request_id", "")
    if error := _missing_params(message, "package_id", "version"):
        return error

    operation = getattr(service, action)
    try:
        result = await operation(message["package_id"], message["version"])
        return make_result_response(action, request_id, **result.to_dict())
    except PortableError as e:
        return error_from_exception(request_id, e)
    except Exception as e:
        return _internal_error(request_id, f"{action} {message['package_id']}", e)


async def handle_start(message: dict[str, Any], service: PortableService) -> dict[str, Any]:
    """Handle start message."""
    return await _service_action("start", message, service)


async def handle_stop(message: dict[str, Any], service: PortableService) -> dict[str, Any]:
    """Handle stop message."""
    return await _service_action("stop", message, service)


async def handle_restart(message: dict[str, Any], service: PortableService) -> dict[str, Any]:
    """Handle restart message."""
    return await _service_action("restart", message, service)


async def handle_get_config(message: dict[str, Any], service: PortableService) -> dict[str, Any]:
    """Handle get_config message - file content or the default template."""
    request_id = message.get("request_id", "")
    if error := _missing_params(message, "package_id", "version"):
        return error

    try:
        path, content = await service.read_config(message["package_id"], message["version"])
        return make_result_response(
            "get_config",
            request_id,
            path=str(path),
            content=content,
        )
    except PortableError as e:
        return error_from_exception(request_id, e)
    except Exception as e:
        return _internal_error(request_id, "read config", e)


async def handle_save_config(message: dict[str, Any], service: PortableService) -> dict[str, Any]:
    """Handle save_config message - overwrites the configuration file."""
    request_id = message.get("request_id", "")
    if error := _missing_params(message, "package_id", "version"):
        return error

    content = message.get("content")
    if not isinstance(content, str):
        return make_error_response(
            request_id,
            "invalid_params",
            "Missing or invalid 'content' parameter",
        )

    try:
        path = await service.write_config(message["package_id"], message["version"], content)
        return make_result_response("save_config", request_id, path=str(path), saved=True)
    except PortableError as e:
        return error_from_exception(request_id, e)
    except Exception as e:
        return _internal_error(request_id, "save config", e)


async def handle_get_log(message: dict[str, Any], service: PortableService) -> dict[str, Any]:
    """Handle get_log message."""
    request_id = message.get("request_id", "")
    if error := _missing_params(message, "package_id", "version"):
        return error

    lines = message.get("lines")
    if lines is not None and (not isinstance(lines, int) or isinstance(lines, bool) or lines < 0):
        return make_error_response(
            request_id,
            "invalid_params",
            "'lines' must be a non-negative integer",
        )

    try:
        path, content = await service.read_log(message["package_id"], message["version"], lines)
        return make_result_response(
            "get_log",
            request_id,
            path=str(path) if path is not None else None,
            content=content,
        )
    except PortableError as e:
        return error_from_exception(request_id, e)
    except Exception as e:
        return _internal_error(request_id, "read log", e)


async def handle_system_info(message: dict[str, Any], service: PortableService) -> dict[str, Any]:
    """Handle system_info message."""
    return make_result_response("system_info", message.get("request_id", ""), **service.system_info())


# Handler registry
HANDLERS: dict[str, MessageHandler] = {
    "hello": handle_hello,
    # Catalog
    "list_packages": handle_list_packages,
    "list_installed": handle_list_installed,
    "preview_install": handle_preview_install,
    "system_info": handle_system_info,
    # Install
    "install": handle_install,
    "uninstall": handle_uninstall,
    # Services
    "status": handle_status,
    "start": handle_start,
    "stop": handle_stop,
    "restart": handle_restart,
    "get_log": handle_get_log,
    # Configuration
    "get_config": handle_get_config,
    "save_config": handle_save_config,
}


async def dispatch_message(message: dict[str, Any], service: PortableService) -> dict[str, Any]:
    """Dispatch a message to the appropriate handler."""
    message_type = message.get("type")
    request_id = message.get("request_id", "")

    if not message_type:
        return make_error_response(
            request_id,
            "invalid_message",
            "Missing 'type' field in message",
        )

    handler = HANDLERS.get(message_type)
    if not handler:
        return make_error_response(
            request_id,
            "unknown_message_type",
            f"Unknown message type: {message_type}",
            details={"received_type": message_type},
        )

    return await handler(message, service)
