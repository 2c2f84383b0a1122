from __future__ import annotations

"""
Repository index (repodata/repomd.xml) handling.

repomd.xml lists the metadata files of a repository snapshot by data type
("primary", "primary_db", "filelists", ...). Backends name the data type
they consume; this module turns it into a download URL.
"""

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from urllib.parse import urljoin

from yumsolve.core.downloader import Downloader
from yumsolve.errors import CatalogFormatError

logger = logging.getLogger(__name__)

REPOMD_PATH = "repodata/repomd.xml"

NS = {"repo": "http://linux.duke.edu/metadata/repo"}


@dataclass
class RepoMetadataFile:
    """Information about a metadata file from repomd.xml."""

    file_type: str  # e.g., "primary", "primary_db", "filelists", "other"
    location: str  # Relative path (e.g., "repodata/abc123-primary.sqlite.bz2")
    checksum: str | None = None
    checksum_type: str | None = None
    timestamp: int | None = None
    size: int | None = None


def _find(elem: ET.Element, name: str) -> ET.Element | None:
    found = elem.find(f"repo:{name}", NS)
    if found is None:
        # Try without namespace
        found = elem.find(name)
    return found


def _int(elem: ET.Element | None) -> int | None:
    if elem is None or not elem.text:
        return None
    try:
        return int(float(elem.text.strip()))
    except ValueError:
        return None


def parse_repomd(content: bytes) -> list[RepoMetadataFile]:
    """Parse repomd.xml content.

    Args:
        content: repomd.xml document

    Returns:
        Metadata files in document order

    Raises:
        CatalogFormatError: If the document is not valid XML
    """
    try:
        root = ET.fromstring(content)
    except ET.ParseError as e:
        raise CatalogFormatError(f"malformed repomd.xml: {e}") from e

    data_elems = root.findall("repo:data", NS)
    if not data_elems:
        data_elems = root.findall("data")

    files = []
    for data_elem in data_elems:
        file_type = data_elem.get("type")
        location_elem = _find(data_elem, "location")
        if not file_type or location_elem is None or not location_elem.get("href"):
            logger.warning(f"Skipping repomd.xml entry without type or location: {file_type}")
            continue

        checksum_elem = _find(data_elem, "checksum")
        files.append(
            RepoMetadataFile(
                file_type=file_type,
                location=location_elem.get("href", ""),
                checksum=checksum_elem.text.strip()
                if checksum_elem is not None and checksum_elem.text
                else None,
                checksum_type=checksum_elem.get("type") if checksum_elem is not None else None,
                timestamp=_int(_find(data_elem, "timestamp")),
                size=_int(_find(data_elem, "size")),
            )
        )
    return files


class RepoMetadataIndex:
    """The parsed repomd.xml of one repository."""

    def __init__(self, base_url: str, files: list[RepoMetadataFile]):
        self.base_url = base_url
        self.files = {f.file_type: f for f in files}

    @classmethod
    def fetch(cls, downloader: Downloader, base_url: str) -> "RepoMetadataIndex":
        """Fetch and parse repomd.xml below ``base_url``.

        Raises:
            FetchError: On transport errors
            CatalogFormatError: On XML parse errors
        """
        repomd_url = urljoin(base_url.rstrip("/") + "/", REPOMD_PATH)
        logger.info(f"Fetching {repomd_url}")
        return cls(base_url, parse_repomd(downloader.fetch_bytes(repomd_url)))

    def get(self, data_type: str) -> RepoMetadataFile:
        """Get the metadata file of ``data_type``.

        Raises:
            CatalogFormatError: If the repository does not offer that data type
        """
        try:
            return self.files[data_type]
        except KeyError:
            raise CatalogFormatError(
                f"repomd.xml of {self.base_url} has no {data_type!r} entry "
                f"(available: {', '.join(sorted(self.files))})"
            ) from None

    def location_for(self, data_type: str) -> str:
        return self.get(data_type).location

    def url_for(self, data_type: str) -> str:
        """Absolute download URL of the metadata file of ``data_type``."""
        return urljoin(self.base_url.rstrip("/") + "/", self.location_for(data_type))
