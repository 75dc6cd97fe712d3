"""
Archive extraction with root-stripping normalization.

Supported inputs, chosen by file name suffix:
- ``.zip``
- ``.tar.gz`` / ``.tgz``
- ``.tar.xz`` / ``.txz``
- bare single files (``.php``, ``.phar``, ...) copied verbatim

When every entry of a zip or tar archive sits under the same single
top-level directory, that directory is stripped so the bundle layout lands
directly in the destination. Otherwise entries keep their original paths.

Extraction is not atomic. A failure part-way leaves whatever was already
written in place.
"""

from __future__ import annotations

import logging
import lzma
import os
import shutil
import stat
import tarfile
import zipfile
from pathlib import Path, PurePosixPath
from typing import Iterable, List, Optional, Sequence, Tuple

from ..errors import ExtractionFailed, UnsupportedFormat

logger = logging.getLogger(__name__)

FORMAT_ZIP = "zip"
FORMAT_TAR_GZ = "tar.gz"
FORMAT_TAR_XZ = "tar.xz"
FORMAT_FILE = "file"

_SUFFIX_FORMATS: Tuple[Tuple[str, str], ...] = (
    (".zip", FORMAT_ZIP),
    (".tar.gz", FORMAT_TAR_GZ),
    (".tgz", FORMAT_TAR_GZ),
    (".tar.xz", FORMAT_TAR_XZ),
    (".txz", FORMAT_TAR_XZ),
)

# Scripts and executables shipped without an archive wrapper
SINGLE_FILE_SUFFIXES = (".php", ".phar", ".exe", ".jar", ".sh")

_TAR_MODES = {FORMAT_TAR_GZ: "r:gz", FORMAT_TAR_XZ: "r:xz"}


def detect_format(archive_path: Path) -> str:
    """Pick the archive format from the file name suffix."""
    name = archive_path.name.lower()
    for suffix, fmt in _SUFFIX_FORMATS:
        if name.endswith(suffix):
            return fmt
    if name.endswith(SINGLE_FILE_SUFFIXES):
        return FORMAT_FILE
    raise UnsupportedFormat(
        f"unsupported archive format: {archive_path.name}",
        {"path": str(archive_path)},
    )


def split_entry(name: str) -> List[str]:
    """Split an archive member name into path components.

    Leading ``./`` and empty components are dropped. Absolute paths and
    ``..`` components are rejected.
    """
    normalized = name.replace("\\", "/")
    if normalized.startswith("/") or PurePosixPath(normalized).is_absolute():
        raise ExtractionFailed(f"absolute path in archive: {name}")
    parts = [p for p in normalized.split("/") if p not in ("", ".")]
    if ".." in parts:
        raise ExtractionFailed(f"path escapes destination: {name}")
    return parts


def common_root(entries: Iterable[Tuple[Sequence[str], bool]]) -> Optional[str]:
    """
    Find the single wrapping directory shared by all entries.

    Args:
        entries: (path components, is_directory) per archive member

    Returns:
        The top-level directory name to strip, or None when entries live
        under several top-level names or a file sits at the top level.
    """
    root: Optional[str] = None
    for parts, is_dir in entries:
        if not parts:
            continue
        if len(parts) == 1 and not is_dir:
            return None
        if root is None:
            root = parts[0]
        elif parts[0] != root:
            return None
    return root


def _target_for(dest_dir: Path, parts: Sequence[str], root: Optional[str]) -> Optional[Path]:
    if root is not None:
        parts = parts[1:]
    if not parts:
        return None
    target = dest_dir.joinpath(*parts)
    # Symlinks extracted earlier can still redirect the final path
    try:
        root_dir = str(dest_dir.resolve())
        inside = os.path.commonpath([root_dir, str(target.resolve())]) == root_dir
    except (OSError, RuntimeError, ValueError) as e:
        raise ExtractionFailed(f"cannot resolve {'/'.join(parts)}: {e}") from e
    if not inside:
        raise ExtractionFailed(f"path escapes destination: {'/'.join(parts)}")
    return target


def _prepare_file_target(target: Path) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    if target.is_symlink():
        target.unlink()


def _apply_mode(path: Path, mode: int, is_dir: bool = False) -> None:
    mode = stat.S_IMODE(mode)
    if not mode:
        return
    if is_dir:
        # Keep directories traversable/writable so later entries can be written
        mode |= stat.S_IRWXU
    try:
        os.chmod(path, mode)
    except OSError as e:
        logger.debug(f"chmod {oct(mode)} on {path} failed: {e}")


def extract_zip(archive_path: Path, dest_dir: Path) -> int:
    """Extract a zip archive, stripping a single wrapping directory."""
    count = 0
    with zipfile.ZipFile(archive_path) as zf:
        infos = zf.infolist()
        entries = [(split_entry(info.filename), info.is_dir()) for info in infos]
        root = common_root(entries)
        if root:
            logger.debug(f"Stripping root directory {root!r} from {archive_path.name}")

        for info, (parts, is_dir) in zip(infos, entries):
            target = _target_for(dest_dir, parts, root)
            if target is None:
                continue

            mode = info.external_attr >> 16
            if is_dir:
                target.mkdir(parents=True, exist_ok=True)
                _apply_mode(target, mode, is_dir=True)
                continue

            _prepare_file_target(target)
            with zf.open(info) as src, open(target, "wb") as out:
                shutil.copyfileobj(src, out)
            _apply_mode(target, mode)
            count += 1

    return count


def extract_tar(archive_path: Path, dest_dir: Path, fmt: str) -> int:
    """Extract a compressed tar archive, stripping a single wrapping directory."""
    count = 0
    with tarfile.open(archive_path, _TAR_MODES[fmt]) as tf:
        members = tf.getmembers()
        entries = [(split_entry(m.name), m.isdir()) for m in members]
        root = common_root(entries)
        if root:
            logger.debug(f"Stripping root directory {root!r} from {archive_path.name}")

        for member, (parts, is_dir) in zip(members, entries):
            target = _target_for(dest_dir, parts, root)
            if target is None:
                continue

            if is_dir:
                target.mkdir(parents=True, exist_ok=True)
                _apply_mode(target, member.mode, is_dir=True)

            elif member.isreg():
                _prepare_file_target(target)
                src = tf.extractfile(member)
                if src is None:
                    raise ExtractionFailed(f"cannot read {member.name} from {archive_path.name}")
                with src, open(target, "wb") as out:
                    shutil.copyfileobj(src, out)
                _apply_mode(target, member.mode)
                count += 1

            elif member.issym():
                _prepare_file_target(target)
                if target.exists():
                    target.unlink()
                os.symlink(member.linkname, target)
                count += 1

            elif member.islnk():
                link_source = _target_for(dest_dir, split_entry(member.linkname), root)
                if link_source is None or not link_source.exists():
                    raise ExtractionFailed(f"hard link target missing for {member.name}")
                _prepare_file_target(target)
                shutil.copy2(link_source, target)
                count += 1

            else:
                logger.debug(f"Skipping special tar member {member.name}")

    return count


def copy_single_file(file_path: Path, dest_dir: Path) -> int:
    """Copy a bare script or executable into ``dest_dir`` under its own name."""
    dest_dir.mkdir(parents=True, exist_ok=True)
    target = dest_dir / file_path.name
    _prepare_file_target(target)
    shutil.copy2(file_path, target)
    return 1


def extract(archive_path: Path, dest_dir: Path) -> int:
    """
    Unpack ``archive_path`` into ``dest_dir``.

    Returns:
        Number of files written

    Raises:
        UnsupportedFormat: Unknown file name suffix
        ExtractionFailed: Corrupt archive, unsafe entry or write error
    """
    archive_path = Path(archive_path)
    dest_dir = Path(dest_dir)
    fmt = detect_format(archive_path)
    logger.info(f"Extracting {archive_path.name} ({fmt}) into {dest_dir}")

    try:
        dest_dir.mkdir(parents=True, exist_ok=True)
        if fmt == FORMAT_ZIP:
            count = extract_zip(archive_path, dest_dir)
        elif fmt == FORMAT_FILE:
            count = copy_single_file(archive_path, dest_dir)
        else:
            count = extract_tar(archive_path, dest_dir, fmt)
    except ExtractionFailed:
        raise
    except (zipfile.BadZipFile, tarfile.TarError, lzma.LZMAError, EOFError) as e:
        raise ExtractionFailed(f"corrupt archive {archive_path.name}: {e}") from e
    except OSError as e:
        raise ExtractionFailed(f"cannot extract {archive_path.name}: {e}") from e
    except RuntimeError as e:
        # zipfile: encrypted members and unknown compression methods
        raise ExtractionFailed(f"unsupported content in {archive_path.name}: {e}") from e

    logger.info(f"Extracted {count} files from {archive_path.name}")
    return count
