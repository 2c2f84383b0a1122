"""Exceptions raised by the resolver and its backends."""

from __future__ import annotations

from pathlib import Path


class YumError(Exception):
    """Base class for all resolver errors."""


class FetchError(YumError):
    """Raised when downloading or writing a catalog fails."""

    def __init__(self, url: str, reason: object):
        super().__init__(f"failed to fetch {url}: {reason}")
        self.url = url


class CatalogFormatError(YumError, ValueError):
    """Raised when catalog data cannot be decoded.

    Covers broken compressed streams, malformed XML, unexpected database
    schema and rows carrying values outside the RPM model.
    """

    def __init__(self, message: str, path: Path | str | None = None):
        if path is not None:
            message = f"{path}: {message}"
        super().__init__(message)
        self.path = path


class BackendResourceError(YumError):
    """Raised when a backend cannot open or release its catalog handle."""


class PackageNotFoundError(YumError, LookupError):
    """Raised when no package satisfies a name or capability lookup."""

    def __init__(
        self,
        name: str,
        version: str = "",
        release: str = "",
        capability: bool = False,
    ):
        if capability:
            message = (
                f"no package providing name={name!r} version={version!r} release={release!r}"
            )
        elif version or release:
            message = f"no such package {name!r} (version={version!r} release={release!r})"
        else:
            message = f"no such package {name!r}"
        super().__init__(message)
        self.name = name
        self.version = version
        self.release = release
        self.capability = capability
