"""Shared fixtures: a small YUM repository published as SQLite and XML."""

from __future__ import annotations

import bz2
import shutil
from pathlib import Path

import pytest

from catalog import repomd_xml, write_primary_sqlite, write_primary_xml
from yumsolve.yum.backend import register_default_backends
from yumsolve.yum.sqlite_backend import SQLiteBackend
from yumsolve.yum.xml_backend import XMLBackend


@pytest.fixture(autouse=True)
def default_backends():
    """Make the built-in backends available to every test."""
    register_default_backends()


@pytest.fixture
def primary_sqlite_bz2(tmp_path: Path) -> Path:
    """A bzip2-compressed primary.sqlite holding CATALOG."""
    build_dir = tmp_path / "build"
    build_dir.mkdir()
    db = write_primary_sqlite(build_dir / "primary.sqlite")
    compressed = build_dir / "primary.sqlite.bz2"
    compressed.write_bytes(bz2.compress(db.read_bytes()))
    return compressed


@pytest.fixture
def repo_dir(tmp_path: Path, primary_sqlite_bz2: Path) -> Path:
    """A YUM repository on disk offering both primary and primary_db."""
    repo = tmp_path / "repo"
    repodata = repo / "repodata"
    repodata.mkdir(parents=True)
    shutil.copy(primary_sqlite_bz2, repodata / "abc123-primary.sqlite.bz2")
    write_primary_xml(repodata / "def456-primary.xml.gz")
    (repodata / "repomd.xml").write_bytes(
        repomd_xml(
            {
                "primary": "repodata/def456-primary.xml.gz",
                "primary_db": "repodata/abc123-primary.sqlite.bz2",
            }
        )
    )
    return repo


@pytest.fixture
def sqlite_backend(tmp_path: Path, primary_sqlite_bz2: Path):
    """A SQLite backend with CATALOG loaded from its cache."""
    cache_dir = tmp_path / "cache-sqlite"
    cache_dir.mkdir()
    shutil.copy(primary_sqlite_bz2, cache_dir / SQLiteBackend.DB_NAME_COMPR)
    backend = SQLiteBackend(cache_dir)
    backend.load_db()
    yield backend
    backend.close()


@pytest.fixture
def xml_backend(tmp_path: Path):
    """An XML backend with CATALOG loaded from its cache."""
    cache_dir = tmp_path / "cache-xml"
    cache_dir.mkdir()
    write_primary_xml(cache_dir / XMLBackend.DB_NAME)
    backend = XMLBackend(cache_dir)
    backend.load_db()
    yield backend
    backend.close()


@pytest.fixture(params=["sqlite", "xml"])
def backend(request):
    """Each backend in turn, loaded with CATALOG."""
    return request.getfixturevalue(f"{request.param}_backend")
