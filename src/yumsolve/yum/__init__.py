"""
YUM repository catalogs: package model, backends and repositories.
"""

from yumsolve.errors import (
    BackendResourceError,
    CatalogFormatError,
    FetchError,
    PackageNotFoundError,
    YumError,
)
from yumsolve.yum.backend import (
    Backend,
    available_backends,
    backend_factory,
    register_backend,
    register_default_backends,
)
from yumsolve.yum.repository import Repository, RepositoryGroup
from yumsolve.yum.rpm import (
    Package,
    Provides,
    Requires,
    RpmBase,
    compare_evr,
    latest,
    provide_matches,
    rpmvercmp,
)

__all__ = [
    "Backend",
    "BackendResourceError",
    "CatalogFormatError",
    "FetchError",
    "Package",
    "PackageNotFoundError",
    "Provides",
    "Repository",
    "RepositoryGroup",
    "Requires",
    "RpmBase",
    "YumError",
    "available_backends",
    "backend_factory",
    "compare_evr",
    "latest",
    "provide_matches",
    "register_backend",
    "register_default_backends",
    "rpmvercmp",
]
