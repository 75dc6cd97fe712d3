"""
Streaming HTTP download with progress reporting.

The destination file is always created fresh; there is no resume. A
failed transfer removes the partial file so the caller can retry from
scratch.
"""

import asyncio
import logging
import os
from pathlib import Path
from typing import Callable, Optional
from urllib.parse import unquote, urlparse

import aiohttp

from ..errors import DownloadFailed

logger = logging.getLogger(__name__)

CHUNK_SIZE = 32 * 1024

# (bytes_so_far, total_bytes or None when the server sends no length)
ProgressFn = Callable[[int, Optional[int]], None]


def filename_from_url(url: str) -> str:
    """Archive file name taken from the last URL path segment."""
    name = os.path.basename(unquote(urlparse(url).path))
    if not name:
        raise DownloadFailed(f"cannot derive a file name from {url}")
    return name


async def download_file(
    url: str,
    dest_path: Path,
    on_progress: Optional[ProgressFn] = None,
    read_timeout: Optional[float] = 60.0,
    session: Optional[aiohttp.ClientSession] = None,
) -> int:
    """
    Stream ``url`` into ``dest_path`` in fixed-size chunks.

    Args:
        url: Source URL
        dest_path: File to create (overwritten if present)
        on_progress: Called after every chunk with (downloaded, total)
        read_timeout: Seconds allowed between socket reads, None for no limit
        session: Existing client session to reuse

    Returns:
        Number of bytes written

    Raises:
        DownloadFailed: Non-2xx status, network error or local write error
    """
    timeout = aiohttp.ClientTimeout(total=None, sock_read=read_timeout)
    owns_session = session is None
    if owns_session:
        session = aiohttp.ClientSession(timeout=timeout)

    downloaded = 0
    try:
        logger.info(f"Downloading {url} -> {dest_path}")
        async with session.get(url, timeout=timeout) as response:
            if not 200 <= response.status < 300:
                raise DownloadFailed(
                    f"download failed: HTTP {response.status} {response.reason or ''}".strip(),
                    status=response.status,
                )

            total = response.content_length
            out = await asyncio.to_thread(open, dest_path, "wb")
            try:
                async for chunk in response.content.iter_chunked(CHUNK_SIZE):
                    await asyncio.to_thread(out.write, chunk)
                    downloaded += len(chunk)
                    if on_progress:
                        on_progress(downloaded, total)
            finally:
                await asyncio.to_thread(out.close)

        logger.info(f"Downloaded {downloaded} bytes from {url}")
        return downloaded

    except DownloadFailed:
        _discard(dest_path)
        raise
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        _discard(dest_path)
        raise DownloadFailed(f"download failed: {e or type(e).__name__}") from e
    except OSError as e:
        _discard(dest_path)
        raise DownloadFailed(f"cannot write {dest_path}: {e}") from e
    except asyncio.CancelledError:
        _discard(dest_path)
        raise
    finally:
        if owns_session:
            await session.close()


def _discard(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Could not remove partial download {path}: {e}")
