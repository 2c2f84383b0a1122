"""
Base backend interface for yumsolve.

This module defines the abstract base class for catalog backends and the
process-wide registry mapping backend kinds to their implementation. Each
backend owns its cache files, knows how to download and decompress its
catalog, and answers package queries from it.
"""

from __future__ import annotations

import logging
import weakref
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, ClassVar, Iterable

from yumsolve.core.downloader import Downloader
from yumsolve.errors import PackageNotFoundError
from yumsolve.yum import rpm

if TYPE_CHECKING:
    from yumsolve.yum.repository import Repository

logger = logging.getLogger(__name__)


class Backend(ABC):
    """Abstract base class for repository catalog backends.

    Backends are not thread-safe: a single instance must not be used from
    several threads at once.
    """

    #: Registry name of the backend
    kind: ClassVar[str]

    def __init__(
        self,
        cache_dir: Path,
        downloader: Downloader | None = None,
        repository: "Repository | None" = None,
    ):
        """Initialize backend.

        Args:
            cache_dir: Directory holding the backend's catalog files
            downloader: Downloader used by get_latest_db
            repository: Repository the loaded packages belong to
        """
        self.cache_dir = Path(cache_dir)
        self._owns_downloader = downloader is None
        self.downloader = downloader or Downloader()
        self._repository_ref = weakref.ref(repository) if repository is not None else None

    @property
    def repository(self) -> "Repository | None":
        if self._repository_ref is None:
            return None
        return self._repository_ref()

    @abstractmethod
    def yum_data_type(self) -> str:
        """Return the repomd.xml data type of the catalog this backend consumes."""
        raise NotImplementedError

    @abstractmethod
    def has_db(self) -> bool:
        """Check whether the compressed catalog is present in the cache directory."""
        raise NotImplementedError

    @abstractmethod
    def get_latest_db(self, url: str) -> None:
        """Download the compressed catalog from ``url`` into the cache directory.

        Raises:
            FetchError: If the download or a file write fails
            CatalogFormatError: If eager decompression fails
        """
        raise NotImplementedError

    @abstractmethod
    def load_db(self) -> None:
        """Make the backend ready to answer queries.

        Raises:
            CatalogFormatError: On malformed catalog data
        """
        raise NotImplementedError

    @abstractmethod
    def find_latest_matching_name(
        self, name: str, version: str = "", release: str = ""
    ) -> rpm.Package:
        """Locate a package by name, returning the latest matching version.

        Raises:
            PackageNotFoundError: If no package matches
        """
        raise NotImplementedError

    @abstractmethod
    def find_latest_matching_require(self, requirement: rpm.Requires) -> rpm.Package:
        """Locate the latest package providing ``requirement``.

        Raises:
            PackageNotFoundError: If no package provides the capability
        """
        raise NotImplementedError

    @abstractmethod
    def get_packages(self) -> list[rpm.Package]:
        """Return every package of the loaded catalog."""
        raise NotImplementedError

    @abstractmethod
    def close(self) -> None:
        """Release resources held by the backend."""
        raise NotImplementedError

    def _release_downloader(self) -> None:
        """Close the downloader if this backend created it."""
        if self._owns_downloader:
            self.downloader.close()

    def __enter__(self) -> "Backend":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _latest_matching_name(
        self, name: str, version: str, release: str, candidates: Iterable[rpm.Package]
    ) -> rpm.Package:
        """Helper: pick the latest of ``candidates`` matching name/version/release.

        The lookup carries no epoch, so candidates of any epoch qualify.
        """
        requirement = rpm.Requires(name, version, release, flags="EQ")
        found = rpm.matching(requirement, candidates, ignore_epoch=True)
        if not found:
            logger.debug(f"could not find package {name!r} version={version!r} release={release!r}")
            raise PackageNotFoundError(name, version, release)

        pkg = rpm.latest(found)
        logger.debug(f"found {len(found)} version(s) matching - returning latest: {pkg.nevra}")
        return pkg


_BACKENDS: dict[str, type[Backend]] = {}


def register_backend(kind: str, backend_cls: type[Backend]) -> None:
    """Register a backend implementation under ``kind``."""
    existing = _BACKENDS.get(kind)
    if existing is not None and existing is not backend_cls:
        raise ValueError(f"Backend {kind!r} already registered to {existing.__name__}")
    _BACKENDS[kind] = backend_cls


def backend_factory(kind: str) -> type[Backend]:
    """Look up the backend implementation registered under ``kind``.

    Raises:
        ValueError: If no backend of that kind is registered
    """
    try:
        return _BACKENDS[kind]
    except KeyError:
        raise ValueError(
            f"Unknown backend: {kind}. Must be one of {available_backends()}"
        ) from None


def available_backends() -> list[str]:
    """Return the registered backend kinds."""
    return sorted(_BACKENDS)


def register_default_backends() -> None:
    """Register the built-in SQLite and XML backends.

    Called once at start-up; safe to call again.
    """
    from yumsolve.yum.sqlite_backend import SQLiteBackend
    from yumsolve.yum.xml_backend import XMLBackend

    for backend_cls, alias in (
        (SQLiteBackend, "RepositorySQLiteBackend"),
        (XMLBackend, "RepositoryXMLBackend"),
    ):
        register_backend(backend_cls.kind, backend_cls)
        register_backend(alias, backend_cls)
