"""Portable Stack - self-contained service bundles without a system package manager.

Downloads database engines, web servers, language runtimes and tools into
an isolated directory tree, writes sane default configuration and then
supervises the bundled processes.
"""

__version__ = "0.3.0"

__all__ = ["__version__"]
