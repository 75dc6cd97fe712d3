"""Download URL resolution for the running platform."""

from typing import Optional

from ..errors import NoDownloadForPlatform
from ..platform import PlatformInfo, detect_platform
from .base import ALL_PLATFORMS, Catalog, PackageDescriptor, VersionDescriptor


def resolve_version_url(
    package: PackageDescriptor,
    version: VersionDescriptor,
    platform: PlatformInfo,
) -> str:
    """Pick the download for ``platform``: exact ``os/arch`` key, then ``all``."""
    url = version.downloads.get(platform.key)
    if url:
        return url

    url = version.downloads.get(ALL_PLATFORMS)
    if url:
        return url

    raise NoDownloadForPlatform(
        f"no download available for {platform.key}",
        {
            "package_id": package.id,
            "version": version.version,
            "platform": platform.key,
            "available": sorted(version.downloads),
        },
    )


def resolve(
    catalog: Catalog,
    package_id: str,
    version: str,
    platform: Optional[PlatformInfo] = None,
) -> str:
    """
    Resolve the download URL of ``package_id`` at ``version``.

    Pure lookup with no side effects.

    Raises:
        PackageNotFound, VersionNotFound, NoDownloadForPlatform
    """
    package = catalog.get(package_id)
    descriptor = package.get_version(version)
    return resolve_version_url(package, descriptor, platform or detect_platform())
