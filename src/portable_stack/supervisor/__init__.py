"""
Process supervision for installed packages.

``Supervisor`` drives start/stop/restart/status; family-specific behaviour
lives in ``lifecycles`` and OS process access in ``process``.
"""

from .lifecycles import DEFAULT_LIFECYCLES, InstanceContext, Lifecycle, get_lifecycle
from .process import CommandResult, ProcessController
from .supervisor import LOG_MISSING, LOG_UNDEFINED, Supervisor

__all__ = [
    "DEFAULT_LIFECYCLES",
    "InstanceContext",
    "Lifecycle",
    "get_lifecycle",
    "CommandResult",
    "ProcessController",
    "LOG_MISSING",
    "LOG_UNDEFINED",
    "Supervisor",
]
