"""
Catalog of portable packages and download resolution.

The catalog is immutable after construction; build it once with
``builtin_catalog()`` or ``load_catalog(path)`` and pass it along.
"""

from .base import (
    ALL_PLATFORMS,
    Catalog,
    PackageDescriptor,
    VersionDescriptor,
    load_catalog,
)
from .builtin import BUILTIN_PACKAGES, builtin_catalog
from .resolver import resolve, resolve_version_url

__all__ = [
    "ALL_PLATFORMS",
    "Catalog",
    "PackageDescriptor",
    "VersionDescriptor",
    "load_catalog",
    "BUILTIN_PACKAGES",
    "builtin_catalog",
    "resolve",
    "resolve_version_url",
]
