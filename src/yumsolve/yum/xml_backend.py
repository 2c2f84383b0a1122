from __future__ import annotations

"""
Backend querying the XML catalog of a YUM repository (primary).

primary.xml.gz is parsed once by load_db() into in-memory indexes keyed by
package name and by provided capability name.
"""

import logging
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Any

from yumsolve.errors import BackendResourceError, CatalogFormatError, PackageNotFoundError
from yumsolve.yum import rpm
from yumsolve.yum.backend import Backend
from yumsolve.yum.compression import read_gzip_or_plain

logger = logging.getLogger(__name__)

DEPENDENCY_ATTRS = {"name": "name", "flags": "flags", "epoch": "epoch", "ver": "version", "rel": "release"}


def _local(tag: str) -> str:
    """Strip the "{namespace}" prefix ElementTree puts in front of tags."""
    return tag.rsplit("}", 1)[-1]


def _child(elem: ET.Element, name: str) -> ET.Element | None:
    for child in elem:
        if _local(child.tag) == name:
            return child
    return None


def _child_text(elem: ET.Element, name: str) -> str:
    child = _child(elem, name)
    if child is None or child.text is None:
        return ""
    return child.text.strip()


def _entries(format_elem: ET.Element | None, name: str, with_pre: bool = False) -> list[dict[str, Any]]:
    if format_elem is None:
        return []
    container = _child(format_elem, name)
    if container is None:
        return []

    entries = []
    for entry in container:
        if _local(entry.tag) != "entry":
            continue
        values = {key: entry.get(attr, "") for attr, key in DEPENDENCY_ATTRS.items()}
        if with_pre:
            values["pre"] = entry.get("pre", "")
        entries.append(values)
    return entries


class XMLBackend(Backend):
    """Backend answering queries from an in-memory index of primary.xml."""

    kind = "xml"

    DB_NAME = "primary.xml.gz"

    def __init__(self, cache_dir: Path, downloader=None, repository=None):
        super().__init__(cache_dir, downloader, repository)
        self.primary = self.cache_dir / self.DB_NAME
        self.packages: dict[str, list[rpm.Package]] = {}
        self.provides: dict[str, list[rpm.Provides]] = {}
        self._loaded = False

    def yum_data_type(self) -> str:
        return "primary"

    def has_db(self) -> bool:
        return self.primary.exists()

    def get_latest_db(self, url: str) -> None:
        self.downloader.download_file(url, self.primary)

    def load_db(self) -> None:
        logger.debug(f"start parsing metadata XML file... ({self.primary})")
        if not self.has_db():
            raise BackendResourceError(f"No catalog in {self.cache_dir}: {self.DB_NAME} is missing")

        content = read_gzip_or_plain(self.primary)
        try:
            root = ET.fromstring(content)
        except ET.ParseError as e:
            raise CatalogFormatError(f"malformed XML: {e}", self.primary) from e

        if _local(root.tag) != "metadata":
            raise CatalogFormatError(
                f"unexpected root element <{_local(root.tag)}>, expected <metadata>", self.primary
            )

        # Build into fresh indexes, swapped in only once the whole document parsed
        packages: dict[str, list[rpm.Package]] = {}
        provides: dict[str, list[rpm.Provides]] = {}
        for index, pkg_elem in enumerate(root):
            if _local(pkg_elem.tag) != "package":
                continue
            pkg = self._package_from_element(pkg_elem, index)
            packages.setdefault(pkg.name, []).append(pkg)
            for prov in pkg.provides:
                if prov.name not in rpm.IGNORED_PACKAGES:
                    provides.setdefault(prov.name, []).append(prov)
            logger.debug(f"(repo={self.primary}) added package: {pkg.nevra}")

        self.packages = packages
        self.provides = provides
        self._loaded = True
        logger.info(
            f"Loaded XML catalog {self.primary}: "
            f"{sum(len(pkgs) for pkgs in packages.values())} packages"
        )

    def find_latest_matching_name(
        self, name: str, version: str = "", release: str = ""
    ) -> rpm.Package:
        self._check_loaded()
        pkgs = self.packages.get(name)
        if not pkgs:
            logger.debug(f"could not find package {name!r}")
            raise PackageNotFoundError(name, version, release)
        return self._latest_matching_name(name, version, release, pkgs)

    def find_latest_matching_require(self, requirement: rpm.Requires) -> rpm.Package:
        self._check_loaded()
        logger.debug(f"looking for match for {requirement}")

        candidates = self.provides.get(requirement.name, [])
        found = rpm.matching(requirement, candidates)
        if not found:
            logger.debug(f"could not find package providing {requirement}")
            raise PackageNotFoundError(
                requirement.name, requirement.version, requirement.release, capability=True
            )

        # Packages exposing the winning capability, same lookup as the SQLite backend
        prov = rpm.latest(found)
        pkgs = []
        for entry in candidates:
            if entry.version != prov.version:
                continue
            if prov.release and entry.release != prov.release:
                continue
            pkg = entry.package
            if pkg is not None and pkg not in pkgs:
                pkgs.append(pkg)
        if not pkgs:
            raise PackageNotFoundError(
                requirement.name, requirement.version, requirement.release, capability=True
            )

        pkg = rpm.latest(pkgs)
        logger.debug(f"found {len(pkgs)} package(s) providing {prov} - returning latest: {pkg.nevra}")
        return pkg

    def get_packages(self) -> list[rpm.Package]:
        self._check_loaded()
        return [pkg for pkgs in self.packages.values() for pkg in pkgs]

    def close(self) -> None:
        self.packages = {}
        self.provides = {}
        self._loaded = False
        self._release_downloader()

    def _check_loaded(self) -> None:
        if not self._loaded:
            raise BackendResourceError(f"XML catalog {self.primary} is not loaded")

    def _package_from_element(self, elem: ET.Element, index: int) -> rpm.Package:
        name = _child_text(elem, "name")
        version_elem = _child(elem, "version")
        if not name or version_elem is None:
            raise CatalogFormatError(
                f"package #{index} lacks a name or version element", self.primary
            )

        location_elem = _child(elem, "location")
        format_elem = _child(elem, "format")
        try:
            return rpm.Package.build(
                name,
                version_elem.get("ver", ""),
                version_elem.get("rel", ""),
                version_elem.get("epoch", ""),
                arch=_child_text(elem, "arch"),
                group=_child_text(format_elem, "group") if format_elem is not None else "",
                location=location_elem.get("href", "") if location_elem is not None else "",
                provides=_entries(format_elem, "provides"),
                requires=_entries(format_elem, "requires", with_pre=True),
                repository=self.repository,
            )
        except CatalogFormatError as e:
            raise CatalogFormatError(str(e), self.primary) from e
