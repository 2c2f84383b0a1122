from __future__ import annotations

"""
Backend querying the SQLite catalog of a YUM repository (primary_db).

The catalog is downloaded as primary.sqlite.bz2 and decompressed next to it
as primary.sqlite, which is removed again by close(). Queries go through a
single SQLAlchemy connection and a fixed set of parameterized statements.
"""

import logging
from pathlib import Path
from typing import Any, Mapping, Sequence

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import DatabaseError, OperationalError, SQLAlchemyError

from yumsolve.errors import BackendResourceError, CatalogFormatError, PackageNotFoundError
from yumsolve.yum import rpm
from yumsolve.yum.backend import Backend
from yumsolve.yum.compression import decompress_file, detect_compression

logger = logging.getLogger(__name__)

REQUIRED_TABLES = {"packages", "provides", "requires"}

# SQLite reports declared column names (pkgKey in createrepo output), so
# every column is aliased to the key the backend reads
_PACKAGE_COLUMNS = ", ".join(
    f"p.{column} as {column}"
    for column in ("pkgkey", "name", "version", "release", "epoch", "rpm_group", "arch", "location_href")
)
_DEPENDENCY_COLUMNS = ", ".join(
    f"{column} as {column}" for column in ("name", "version", "release", "epoch", "flags")
)

SELECT_PACKAGES = text(f"select {_PACKAGE_COLUMNS} from packages p")
SELECT_PACKAGES_BY_NAME = text(f"select {_PACKAGE_COLUMNS} from packages p where p.name = :name")
SELECT_PACKAGES_BY_NAME_VERSION = text(
    f"select {_PACKAGE_COLUMNS} from packages p where p.name = :name and p.version = :version"
)
SELECT_PROVIDES_OF = text(f"select {_DEPENDENCY_COLUMNS} from provides where pkgkey = :pkgkey")
SELECT_REQUIRES_OF = text(
    f"select {_DEPENDENCY_COLUMNS}, pre as pre from requires where pkgkey = :pkgkey"
)
SELECT_PROVIDES_BY_NAME = text(
    f"select pkgkey as pkgkey, {_DEPENDENCY_COLUMNS} from provides where name = :name"
)
# Unversioned provides store NULL, which the model turns into ""
SELECT_PACKAGES_PROVIDING = text(
    f"select distinct {_PACKAGE_COLUMNS} from packages p, provides r"
    " where p.pkgkey = r.pkgkey and r.name = :name and coalesce(r.version, '') = :version"
)
SELECT_PACKAGES_PROVIDING_RELEASE = text(
    f"select distinct {_PACKAGE_COLUMNS} from packages p, provides r"
    " where p.pkgkey = r.pkgkey and r.name = :name and coalesce(r.version, '') = :version"
    " and coalesce(r.release, '') = :release"
)


def _dependency(row: Mapping[str, Any]) -> dict[str, Any]:
    entry = {
        "name": row["name"],
        "version": row["version"],
        "release": row["release"],
        "epoch": row["epoch"],
        "flags": row["flags"] or "EQ",
    }
    if "pre" in row:
        entry["pre"] = row["pre"]
    return entry


class SQLiteBackend(Backend):
    """Backend answering queries from primary.sqlite."""

    kind = "sqlite"

    DB_NAME_COMPR = "primary.sqlite.bz2"
    DB_NAME = "primary.sqlite"

    def __init__(self, cache_dir: Path, downloader=None, repository=None):
        super().__init__(cache_dir, downloader, repository)
        self.primary_compr = self.cache_dir / self.DB_NAME_COMPR
        self.primary = self.cache_dir / self.DB_NAME
        self._engine: Engine | None = None
        self._conn: Connection | None = None

    def yum_data_type(self) -> str:
        return "primary_db"

    def has_db(self) -> bool:
        return self.primary_compr.exists()

    def get_latest_db(self, url: str) -> None:
        compression = detect_compression(url)
        if compression != "bzip2":
            raise CatalogFormatError("primary_db is not a bzip2-compressed file", url)

        logger.debug("downloading latest version of SQLite DB")
        self._disconnect()

        part = self.downloader.download_file(url, self.cache_dir / f"{self.DB_NAME_COMPR}.part")
        try:
            logger.debug("decompressing latest version of SQLite DB")
            decompress_file(part, self.primary, "bzip2")
        except BaseException:
            part.unlink(missing_ok=True)
            raise
        part.replace(self.primary_compr)

    def load_db(self) -> None:
        self._disconnect()

        if not self.primary.exists():
            if not self.has_db():
                raise BackendResourceError(
                    f"No catalog in {self.cache_dir}: {self.DB_NAME_COMPR} is missing"
                )
            decompress_file(self.primary_compr, self.primary, "bzip2")

        engine = create_engine(f"sqlite:///{self.primary}")
        try:
            conn = engine.connect()
        except OperationalError as e:
            engine.dispose()
            raise BackendResourceError(f"Cannot open {self.primary}: {e}") from e
        except DatabaseError as e:
            engine.dispose()
            raise CatalogFormatError(f"not a SQLite catalog: {e}", self.primary) from e

        try:
            tables = set(inspect(conn).get_table_names())
        except OperationalError as e:
            conn.close()
            engine.dispose()
            raise BackendResourceError(f"Cannot read {self.primary}: {e}") from e
        except DatabaseError as e:
            conn.close()
            engine.dispose()
            raise CatalogFormatError(f"not a SQLite catalog: {e}", self.primary) from e

        missing = REQUIRED_TABLES - tables
        if missing:
            conn.close()
            engine.dispose()
            raise CatalogFormatError(f"missing tables: {', '.join(sorted(missing))}", self.primary)

        self._engine = engine
        self._conn = conn
        logger.info(f"Loaded SQLite catalog {self.primary}")

    def find_latest_matching_name(
        self, name: str, version: str = "", release: str = ""
    ) -> rpm.Package:
        if version:
            rows = self._query(SELECT_PACKAGES_BY_NAME_VERSION, name=name, version=version)
        else:
            rows = self._query(SELECT_PACKAGES_BY_NAME, name=name)
        pkgs = [self._package_from_row(row) for row in rows]
        return self._latest_matching_name(name, version, release, pkgs)

    def find_latest_matching_require(self, requirement: rpm.Requires) -> rpm.Package:
        logger.debug(f"looking for match for {requirement}")

        # Stage 1: raw capability rows, not yet joined to their packages
        provides = [
            self._provides_from_row(row)
            for row in self._query(SELECT_PROVIDES_BY_NAME, name=requirement.name)
        ]
        found = rpm.matching(requirement, provides)
        if not found:
            raise PackageNotFoundError(
                requirement.name, requirement.version, requirement.release, capability=True
            )

        # Stage 2: packages exposing the winning capability
        prov = rpm.latest(found)
        if prov.release:
            rows = self._query(
                SELECT_PACKAGES_PROVIDING_RELEASE,
                name=prov.name,
                version=prov.version,
                release=prov.release,
            )
        else:
            rows = self._query(SELECT_PACKAGES_PROVIDING, name=prov.name, version=prov.version)
        pkgs = [self._package_from_row(row) for row in rows]
        if not pkgs:
            raise PackageNotFoundError(
                requirement.name, requirement.version, requirement.release, capability=True
            )

        pkg = rpm.latest(pkgs)
        logger.debug(f"found {len(pkgs)} package(s) providing {prov} - returning latest: {pkg.nevra}")
        return pkg

    def get_packages(self) -> list[rpm.Package]:
        return [self._package_from_row(row) for row in self._query(SELECT_PACKAGES)]

    def close(self) -> None:
        logger.debug("disconnecting db...")
        try:
            self._disconnect()
        finally:
            self._release_downloader()
            if self.primary.exists():
                logger.debug(f"removing [{self.primary}]...")
                try:
                    self.primary.unlink()
                except OSError as e:
                    raise BackendResourceError(f"Problem removing {self.primary}: {e}") from e

    def _disconnect(self) -> None:
        conn, engine = self._conn, self._engine
        self._conn = None
        self._engine = None
        try:
            if conn is not None:
                conn.close()
            if engine is not None:
                engine.dispose()
        except SQLAlchemyError as e:
            raise BackendResourceError(f"Problem disconnecting {self.primary}: {e}") from e

    def _query(self, statement: Any, **params: Any) -> Sequence[Mapping[str, Any]]:
        if self._conn is None:
            raise BackendResourceError(f"SQLite catalog {self.primary} is not loaded")
        try:
            return self._conn.execute(statement, params).mappings().all()
        except SQLAlchemyError as e:
            raise CatalogFormatError(f"query failed: {e}", self.primary) from e

    def _provides_from_row(self, row: Mapping[str, Any]) -> rpm.Provides:
        try:
            return rpm.Provides(**_dependency(row))
        except CatalogFormatError as e:
            raise CatalogFormatError(str(e), self.primary) from e

    def _package_from_row(self, row: Mapping[str, Any]) -> rpm.Package:
        pkgkey = row["pkgkey"]
        requires = [_dependency(r) for r in self._query(SELECT_REQUIRES_OF, pkgkey=pkgkey)]
        provides = [_dependency(r) for r in self._query(SELECT_PROVIDES_OF, pkgkey=pkgkey)]
        try:
            return rpm.Package.build(
                row["name"],
                row["version"],
                row["release"],
                row["epoch"],
                arch=row["arch"],
                group=row["rpm_group"],
                location=row["location_href"],
                provides=provides,
                requires=requires,
                repository=self.repository,
            )
        except CatalogFormatError as e:
            raise CatalogFormatError(str(e), self.primary) from e
