"""Tests for the SQLite (primary_db) backend."""

from __future__ import annotations

import bz2
import sqlite3
from pathlib import Path
from unittest.mock import Mock

import pytest

from yumsolve.errors import BackendResourceError, CatalogFormatError
from yumsolve.yum.sqlite_backend import SQLiteBackend

from catalog import CATALOG, write_primary_sqlite


def make_cache(tmp_path: Path, data: bytes) -> SQLiteBackend:
    cache_dir = tmp_path / "cache"
    cache_dir.mkdir(exist_ok=True)
    (cache_dir / SQLiteBackend.DB_NAME_COMPR).write_bytes(data)
    return SQLiteBackend(cache_dir)


class TestLoad:
    """Test loading the catalog from the cache."""

    def test_load_decompresses(self, sqlite_backend) -> None:
        assert sqlite_backend.has_db()
        assert sqlite_backend.primary.exists()

    def test_reload_is_idempotent(self, sqlite_backend) -> None:
        sqlite_backend.load_db()
        sqlite_backend.load_db()
        assert len(sqlite_backend.get_packages()) == len(CATALOG)

    def test_missing_catalog(self, tmp_path) -> None:
        backend = SQLiteBackend(tmp_path)
        assert not backend.has_db()
        with pytest.raises(BackendResourceError, match="is missing"):
            backend.load_db()

    def test_query_before_load(self, tmp_path) -> None:
        backend = SQLiteBackend(tmp_path)
        with pytest.raises(BackendResourceError, match="not loaded"):
            backend.find_latest_matching_name("foo")

    def test_corrupt_bzip2(self, tmp_path) -> None:
        backend = make_cache(tmp_path, b"BZh91AY&SY this is not bzip2")
        with pytest.raises(CatalogFormatError, match="corrupt bzip2 stream"):
            backend.load_db()
        # No partial output is left behind
        assert not backend.primary.exists()

    def test_not_a_database(self, tmp_path) -> None:
        backend = make_cache(tmp_path, bz2.compress(b"definitely not sqlite " * 100))
        with pytest.raises(CatalogFormatError, match="not a SQLite catalog"):
            backend.load_db()

    def test_missing_tables(self, tmp_path) -> None:
        db = tmp_path / "other.sqlite"
        conn = sqlite3.connect(db)
        conn.execute("CREATE TABLE packages (pkgKey INTEGER PRIMARY KEY, name TEXT)")
        conn.commit()
        conn.close()

        backend = make_cache(tmp_path, bz2.compress(db.read_bytes()))
        with pytest.raises(CatalogFormatError, match="missing tables: provides, requires"):
            backend.load_db()

    def test_invalid_flags(self, tmp_path) -> None:
        broken = [dict(CATALOG[0], provides=[("foo", "XX", "0", "1.0", "1")])]
        db = write_primary_sqlite(tmp_path / "broken.sqlite", broken)
        backend = make_cache(tmp_path, bz2.compress(db.read_bytes()))
        backend.load_db()
        try:
            with pytest.raises(CatalogFormatError, match="invalid flags") as excinfo:
                backend.find_latest_matching_name("foo")
            assert excinfo.value.path == backend.primary
        finally:
            backend.close()

    def test_missing_flags_default_to_equal(self, sqlite_backend) -> None:
        pkg = sqlite_backend.find_latest_matching_name("foo", "1.0")
        assert {r.name: r.flags for r in pkg.requires}["/bin/sh"] == "EQ"
        assert {p.name: p.flags for p in pkg.provides}["libfoo.so.1"] == "EQ"


class TestClose:
    """Test releasing the catalog."""

    def test_close_removes_decompressed_db(self, sqlite_backend) -> None:
        sqlite_backend.close()
        assert not sqlite_backend.primary.exists()
        assert sqlite_backend.primary_compr.exists()

    def test_close_twice(self, sqlite_backend) -> None:
        sqlite_backend.close()
        sqlite_backend.close()

    def test_query_after_close(self, sqlite_backend) -> None:
        sqlite_backend.close()
        with pytest.raises(BackendResourceError):
            sqlite_backend.get_packages()

    def test_load_after_close(self, sqlite_backend) -> None:
        sqlite_backend.close()
        sqlite_backend.load_db()
        assert sqlite_backend.find_latest_matching_name("foo").version == "1.10"

    def test_unlink_failure(self, sqlite_backend, monkeypatch) -> None:
        def refuse(self, missing_ok=False):
            raise PermissionError("read-only cache")

        monkeypatch.setattr(Path, "unlink", refuse)
        with pytest.raises(BackendResourceError, match="Problem removing") as excinfo:
            sqlite_backend.close()
        assert isinstance(excinfo.value.__cause__, PermissionError)

    def test_closes_own_downloader(self, tmp_path) -> None:
        backend = SQLiteBackend(tmp_path)
        backend.downloader = Mock()
        backend.close()
        backend.downloader.close.assert_called_once_with()

    def test_keeps_shared_downloader(self, tmp_path) -> None:
        downloader = Mock()
        SQLiteBackend(tmp_path, downloader=downloader).close()
        downloader.close.assert_not_called()

    def test_context_manager(self, tmp_path, primary_sqlite_bz2) -> None:
        backend = make_cache(tmp_path, primary_sqlite_bz2.read_bytes())
        with backend:
            backend.load_db()
            assert backend.primary.exists()
        assert not backend.primary.exists()


class TestGetLatestDb:
    """Test downloading the catalog."""

    def test_download(self, tmp_path, repo_dir) -> None:
        backend = SQLiteBackend(tmp_path / "cache")
        backend.cache_dir.mkdir()
        backend.get_latest_db((repo_dir / "repodata" / "abc123-primary.sqlite.bz2").as_uri())

        assert backend.primary_compr.exists()
        assert backend.primary.exists()
        assert sorted(p.name for p in backend.cache_dir.iterdir()) == [
            "primary.sqlite",
            "primary.sqlite.bz2",
        ]

        backend.load_db()
        try:
            assert len(backend.get_packages()) == len(CATALOG)
        finally:
            backend.close()

    def test_download_replaces_loaded_catalog(self, sqlite_backend, tmp_path) -> None:
        smaller = write_primary_sqlite(tmp_path / "smaller.sqlite", CATALOG[:2])
        source = tmp_path / "smaller.sqlite.bz2"
        source.write_bytes(bz2.compress(smaller.read_bytes()))

        sqlite_backend.get_latest_db(source.as_uri())
        sqlite_backend.load_db()
        assert len(sqlite_backend.get_packages()) == 2

    def test_corrupt_download(self, tmp_path) -> None:
        source = tmp_path / "broken.sqlite.bz2"
        source.write_bytes(b"BZh91AY&SY garbage")
        backend = SQLiteBackend(tmp_path / "cache")
        backend.cache_dir.mkdir()

        with pytest.raises(CatalogFormatError):
            backend.get_latest_db(source.as_uri())
        assert list(backend.cache_dir.iterdir()) == []

    def test_not_bzip2(self, tmp_path) -> None:
        backend = SQLiteBackend(tmp_path)
        with pytest.raises(CatalogFormatError, match="not a bzip2-compressed file"):
            backend.get_latest_db("http://example.com/repodata/abc-primary.sqlite.xz")
