"""
OS process control: enumeration, detached spawning, short-lived commands.

Daemons are spawned detached (own session / process group). Whether
something is running is always re-derived by enumerating processes; the
Popen handles are kept only so exited children get reaped.
"""

import asyncio
import logging
import os
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

import psutil

from ..errors import ProcessError, StartFailed

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """Outcome of a command that was run to completion."""
    args: list[str]
    returncode: int
    output: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def summary(self, limit: int = 200) -> str:
        text = self.output.strip()
        return text[-limit:] if text else f"exit code {self.returncode}"


def _process_name(name: str) -> str:
    name = name.lower()
    return name[:-4] if name.endswith(".exe") else name


def _matches(info: dict, names: Sequence[str]) -> bool:
    candidates = []
    if info.get("name"):
        candidates.append(_process_name(info["name"]))
    if info.get("exe"):
        candidates.append(_process_name(os.path.basename(info["exe"])))
    return any(c.startswith(n.lower()) for c in candidates for n in names)


def _is_under(path: Optional[str], root: Optional[Path]) -> bool:
    if not path or root is None:
        return False
    try:
        return os.path.commonpath([os.path.abspath(path), str(root.resolve())]) == str(root.resolve())
    except ValueError:
        return False


class ProcessController:
    """Process operations used by the supervisor."""

    def __init__(self) -> None:
        self._children: list[subprocess.Popen] = []

    def _reap(self) -> None:
        # poll() collects the exit status of children that have finished
        self._children = [p for p in self._children if p.poll() is None]

    def list_matching(self, names: Sequence[str]) -> list[psutil.Process]:
        """Live processes whose name starts with one of ``names``."""
        self._reap()
        own_pid = os.getpid()
        found = []
        attrs = ["pid", "name", "exe", "create_time", "status"]
        for proc in psutil.process_iter(attrs, ad_value=None):
            if proc.info["pid"] == own_pid:
                continue
            if proc.info.get("status") == psutil.STATUS_ZOMBIE:
                continue
            if _matches(proc.info, names):
                found.append(proc)
        return found

    def find_pid(self, names: Sequence[str], prefer_under: Optional[Path] = None) -> Optional[int]:
        """
        Pid of the first matching process, or None.

        Processes whose executable lives under ``prefer_under`` win, then the
        oldest one (the parent of a worker pool).
        """
        matches = self.list_matching(names)
        if not matches:
            return None
        matches.sort(
            key=lambda p: (
                not _is_under(p.info.get("exe"), prefer_under),
                p.info.get("create_time") or 0.0,
            )
        )
        return matches[0].info["pid"]

    def kill(self, names: Sequence[str], timeout: float = 5.0) -> int:
        """
        Forcefully terminate every process matching ``names``.

        Returns:
            Number of processes killed (0 when none was running)

        Raises:
            ProcessError: A matching process could not be killed
        """
        procs = self.list_matching(names)
        denied = []
        killed = []
        for proc in procs:
            try:
                proc.kill()
                killed.append(proc)
            except psutil.NoSuchProcess:
                continue
            except psutil.AccessDenied:
                denied.append(proc.info["pid"])

        if killed:
            psutil.wait_procs(killed, timeout=timeout)
            logger.info(f"Killed {len(killed)} process(es) matching {list(names)}")
        if denied:
            raise ProcessError(
                f"permission denied killing {', '.join(names)} (pids {denied})",
                {"pids": denied},
            )
        return len(killed)

    async def run(
        self,
        args: Sequence[str],
        cwd: Optional[Path] = None,
        timeout: Optional[float] = None,
    ) -> CommandResult:
        """
        Run a command to completion and capture its combined output.

        Raises:
            ProcessError: Command could not be launched or timed out
        """
        cmd = [str(a) for a in args]
        logger.info(f"Running: {' '.join(cmd)}")
        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                cwd=str(cwd) if cwd else None,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except OSError as e:
            raise ProcessError(f"cannot run {cmd[0]}: {e}") from e

        try:
            stdout, _ = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise ProcessError(f"{os.path.basename(cmd[0])} timed out after {timeout}s")

        result = CommandResult(
            args=cmd,
            returncode=process.returncode,
            output=stdout.decode("utf-8", errors="replace") if stdout else "",
        )
        logger.debug(f"{cmd[0]} exited with {result.returncode}")
        return result

    def spawn_detached(
        self,
        args: Sequence[str],
        cwd: Optional[Path] = None,
        log_file: Optional[Path] = None,
    ) -> int:
        """
        Start a long-running process that outlives this one.

        Output goes to ``log_file`` (appended) or the null device.

        Returns:
            Pid of the spawned process

        Raises:
            StartFailed: The process could not be created
        """
        cmd = [str(a) for a in args]
        kwargs: dict = {}
        if sys.platform == "win32":
            kwargs["creationflags"] = (
                subprocess.CREATE_NEW_PROCESS_GROUP | subprocess.CREATE_NO_WINDOW
            )
        else:
            kwargs["start_new_session"] = True

        logger.info(f"Spawning: {' '.join(cmd)}")
        out = None
        try:
            if log_file is not None:
                log_file.parent.mkdir(parents=True, exist_ok=True)
                out = open(log_file, "ab")
            proc = subprocess.Popen(
                cmd,
                cwd=str(cwd) if cwd else None,
                stdin=subprocess.DEVNULL,
                stdout=out if out is not None else subprocess.DEVNULL,
                stderr=subprocess.STDOUT if out is not None else subprocess.DEVNULL,
                close_fds=True,
                **kwargs,
            )
        except OSError as e:
            raise StartFailed(f"failed to start {os.path.basename(cmd[0])}: {e}") from e
        finally:
            if out is not None:
                out.close()

        self._children.append(proc)
        logger.info(f"Started {os.path.basename(cmd[0])} with PID {proc.pid}")
        return proc.pid
