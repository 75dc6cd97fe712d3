"""
Package installation: download, extract, configure, record.
"""

from .downloader import download_file, filename_from_url
from .extractor import detect_format, extract
from .orchestrator import Installer
from .store import InstalledRecord, JsonMetadataStore, MetadataStore

__all__ = [
    "download_file",
    "filename_from_url",
    "detect_format",
    "extract",
    "Installer",
    "InstalledRecord",
    "JsonMetadataStore",
    "MetadataStore",
]
