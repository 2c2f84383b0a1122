from __future__ import annotations

"""
Repository: a base URL, a cache directory and one active catalog backend.
"""

import logging
from pathlib import Path

from yumsolve.core.config import GlobalConfig, RepositoryConfig
from yumsolve.core.downloader import Downloader
from yumsolve.errors import PackageNotFoundError
from yumsolve.yum import rpm
from yumsolve.yum.backend import Backend, backend_factory
from yumsolve.yum.repomd import RepoMetadataIndex

logger = logging.getLogger(__name__)


class Repository:
    """A YUM repository and its locally cached catalog.

    The backend kind must have been registered (see
    yumsolve.yum.backend.register_default_backends) before a repository
    is created.
    """

    def __init__(
        self,
        name: str,
        base_url: str,
        cache_dir: Path,
        backend: str = "sqlite",
        downloader: Downloader | None = None,
    ):
        """Initialize repository.

        Args:
            name: Repository name (used in logs)
            base_url: URL of the directory holding repodata/
            cache_dir: Directory for the backend's catalog files
            backend: Registered backend kind ("sqlite" or "xml")
            downloader: Downloader to fetch metadata with

        Raises:
            ValueError: If the backend kind is unknown
        """
        self.name = name
        self.base_url = base_url
        self.cache_dir = Path(cache_dir)
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self._owns_downloader = downloader is None
        self.downloader = downloader or Downloader()
        self.backend: Backend = backend_factory(backend)(
            self.cache_dir, downloader=self.downloader, repository=self
        )

    @classmethod
    def from_config(
        cls,
        repo_config: RepositoryConfig,
        config: GlobalConfig,
        downloader: Downloader | None = None,
    ) -> "Repository":
        """Create a repository from its configuration entry.

        A downloader built here from the configuration is closed along with
        the repository.
        """
        owned = downloader is None
        if owned:
            downloader = Downloader(config.download, config.proxy, config.ssl)
        repository = cls(
            repo_config.id,
            repo_config.baseurl,
            config.get_cache_path(repo_config.id),
            backend=repo_config.backend,
            downloader=downloader,
        )
        repository._owns_downloader = owned
        return repository

    def refresh(self) -> None:
        """Download the latest catalog of the active backend and load it.

        Raises:
            FetchError: If repomd.xml or the catalog cannot be downloaded
            CatalogFormatError: If repomd.xml or the catalog is malformed
        """
        data_type = self.backend.yum_data_type()
        index = RepoMetadataIndex.fetch(self.downloader, self.base_url)
        url = index.url_for(data_type)
        logger.info(f"[{self.name}] fetching {data_type} catalog from {url}")
        self.backend.get_latest_db(url)
        self.backend.load_db()

    def setup(self, update: bool = False) -> None:
        """Make the repository queryable.

        The cached catalog is used when there is one, unless ``update`` asks
        for a fresh download.
        """
        if self.backend.has_db() and not update:
            logger.debug(f"[{self.name}] loading cached catalog from {self.cache_dir}")
            self.backend.load_db()
        else:
            self.refresh()

    def find_latest_matching_name(
        self, name: str, version: str = "", release: str = ""
    ) -> rpm.Package:
        return self.backend.find_latest_matching_name(name, version, release)

    def find_latest_matching_require(self, requirement: rpm.Requires) -> rpm.Package:
        return self.backend.find_latest_matching_require(requirement)

    def get_packages(self) -> list[rpm.Package]:
        return self.backend.get_packages()

    def close(self) -> None:
        try:
            self.backend.close()
        finally:
            if self._owns_downloader:
                self.downloader.close()

    def __enter__(self) -> "Repository":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"Repository({self.name!r}, {self.base_url!r}, backend={self.backend.kind!r})"


class RepositoryGroup:
    """Several repositories queried together.

    Lookups return the latest match across all repositories; on an exact
    version tie the repository listed last wins.
    """

    def __init__(
        self,
        repositories: list[Repository] | None = None,
        downloader: Downloader | None = None,
    ):
        """Initialize group.

        Args:
            repositories: Repositories, lowest priority on ties first
            downloader: Downloader shared by the repositories, closed with the group
        """
        self.repositories: list[Repository] = list(repositories or [])
        self.downloader = downloader

    def add(self, repository: Repository) -> None:
        self.repositories.append(repository)

    def setup(self, update: bool = False) -> None:
        for repository in self.repositories:
            repository.setup(update=update)

    def find_latest_matching_name(
        self, name: str, version: str = "", release: str = ""
    ) -> rpm.Package:
        found = []
        for repository in self.repositories:
            try:
                found.append(repository.find_latest_matching_name(name, version, release))
            except PackageNotFoundError:
                logger.debug(f"[{repository.name}] no package {name!r}")
        if not found:
            raise PackageNotFoundError(name, version, release)
        return rpm.latest(found)

    def find_latest_matching_require(self, requirement: rpm.Requires) -> rpm.Package:
        found = []
        for repository in self.repositories:
            try:
                found.append(repository.find_latest_matching_require(requirement))
            except PackageNotFoundError:
                logger.debug(f"[{repository.name}] no package providing {requirement}")
        if not found:
            raise PackageNotFoundError(
                requirement.name, requirement.version, requirement.release, capability=True
            )
        return rpm.latest(found)

    def get_packages(self) -> list[rpm.Package]:
        return [pkg for repository in self.repositories for pkg in repository.get_packages()]

    def close(self) -> None:
        errors = []
        for repository in self.repositories:
            try:
                repository.close()
            except Exception as e:
                logger.error(f"[{repository.name}] problem closing repository: {e}")
                errors.append(e)
        if self.downloader is not None:
            self.downloader.close()
        if errors:
            raise errors[0]

    def __enter__(self) -> "RepositoryGroup":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
