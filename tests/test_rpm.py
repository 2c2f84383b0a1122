"""Tests for the RPM package model, version comparator and matcher."""

from __future__ import annotations

import gc

import pytest

from yumsolve.errors import CatalogFormatError
from yumsolve.yum.rpm import (
    Package,
    Provides,
    Requires,
    RpmBase,
    compare_evr,
    latest,
    matching,
    provide_matches,
    rpmvercmp,
    sort_by_evr,
    split_evr,
)


class TestRpmvercmp:
    """Test rpm version string comparison."""

    @pytest.mark.parametrize(
        "a, b, expected",
        [
            ("1.0", "1.0", 0),
            ("1.0", "1.1", -1),
            ("1.1", "1.0", 1),
            ("1.10", "1.9", 1),
            ("010", "10", 0),
            ("1.0", "1_0", 0),
            ("1.0a", "1.0", 1),
            ("2.0", "2a", 1),
            ("5.5p1", "5.5p10", -1),
            ("abc", "abd", -1),
            ("1.0", "1.0.1", -1),
            ("", "1.0", -1),
        ],
    )
    def test_segments(self, a: str, b: str, expected: int) -> None:
        """Test numeric and alphabetic segment ordering."""
        assert rpmvercmp(a, b) == expected

    def test_tilde_sorts_before_release(self) -> None:
        """Test that ~ marks pre-releases."""
        assert rpmvercmp("1.0~rc1", "1.0") == -1
        assert rpmvercmp("1.0", "1.0~rc1") == 1
        assert rpmvercmp("1.0~rc1", "1.0~rc2") == -1
        assert rpmvercmp("1.0~~", "1.0~") == -1

    def test_caret_sorts_after_release(self) -> None:
        """Test that ^ marks snapshots newer than the release but older than the next one."""
        assert rpmvercmp("1.0^git1", "1.0") == 1
        assert rpmvercmp("1.0", "1.0^git1") == -1
        assert rpmvercmp("1.0^git1", "1.0.1") == -1
        assert rpmvercmp("1.0^git1", "1.0^git2") == -1

    def test_antisymmetric(self) -> None:
        """Test that swapping the arguments negates the result."""
        versions = ["1.0", "1.0~rc1", "1.0^git1", "1.0a", "1.01", "2", "1.0.1"]
        for a in versions:
            for b in versions:
                assert rpmvercmp(a, b) == -rpmvercmp(b, a)


class TestCompareEvr:
    """Test epoch/version/release comparison."""

    def test_empty_epoch_is_zero(self) -> None:
        assert compare_evr(RpmBase("foo", "1.0", "1", ""), RpmBase("foo", "1.0", "1", "0")) == 0

    def test_epoch_wins_over_version(self) -> None:
        assert compare_evr(RpmBase("foo", "0.9", "1", "2"), RpmBase("foo", "1.5", "3", "0")) == 1

    def test_release_breaks_version_tie(self) -> None:
        assert compare_evr(RpmBase("foo", "1.0", "2"), RpmBase("foo", "1.0", "10")) == -1


class TestSplitEvr:
    """Test EVR string splitting."""

    def test_split_full(self) -> None:
        assert split_evr("1:2.3.4-5") == ("1", "2.3.4", "5")

    def test_split_no_epoch(self) -> None:
        assert split_evr("2.3.4-5") == ("", "2.3.4", "5")

    def test_split_version_only(self) -> None:
        assert split_evr("2.3.4") == ("", "2.3.4", "")

    def test_split_empty(self) -> None:
        assert split_evr("") == ("", "", "")


class TestRpmBase:
    """Test versioned identity normalisation."""

    def test_values_normalised_to_str(self) -> None:
        """Test that catalog values of any type become strings."""
        base = RpmBase(b"foo", 1, None, 0, "GE")
        assert base.name == "foo"
        assert base.version == "1"
        assert base.release == ""
        assert base.epoch == "0"

    def test_invalid_flags(self) -> None:
        """Test that an unknown operator is a format error."""
        with pytest.raises(CatalogFormatError, match="invalid flags"):
            RpmBase("foo", "1.0", flags="GTE")

    def test_evr(self) -> None:
        assert RpmBase("foo", "1.0", "1", "2").evr == "2:1.0-1"
        assert RpmBase("foo", "1.0", "1", "0").evr == "1.0-1"
        assert RpmBase("foo", "1.0").evr == "1.0"

    def test_str(self) -> None:
        assert str(RpmBase("foo")) == "foo"
        assert str(RpmBase("foo", "1.0", flags="GE")) == "foo >= 1.0"
        assert str(RpmBase("foo", "1.0")) == "foo = 1.0"


class TestRequires:
    """Test requirement parsing and the pre marker."""

    @pytest.mark.parametrize("value, expected", [("1", True), ("TRUE", True), (1, True),
                                                 ("0", False), ("FALSE", False), (None, False)])
    def test_pre_flag(self, value, expected: bool) -> None:
        """Test that the pre marker accepts the encodings found in catalogs."""
        assert Requires("foo", pre=value).pre is expected

    def test_parse_name(self) -> None:
        req = Requires.parse("libfoo.so.1()(64bit)")
        assert req.name == "libfoo.so.1()(64bit)"
        assert req.version == ""
        assert req.flags == ""

    def test_parse_operator(self) -> None:
        req = Requires.parse("foo >= 1.2")
        assert (req.name, req.flags, req.version) == ("foo", "GE", "1.2")

    def test_parse_without_spaces(self) -> None:
        req = Requires.parse("foo<1.2")
        assert (req.name, req.flags, req.version) == ("foo", "LT", "1.2")

    def test_parse_full_evr(self) -> None:
        req = Requires.parse("foo = 1:1.2-3")
        assert (req.epoch, req.version, req.release, req.flags) == ("1", "1.2", "3", "EQ")

    @pytest.mark.parametrize("text", ["", "   ", "foo >=", "foo <", "foo = =", ">= 1.0", "foo bar"])
    def test_parse_invalid(self, text: str) -> None:
        with pytest.raises(ValueError, match="Invalid requirement"):
            Requires.parse(text)


class TestPackage:
    """Test package construction."""

    def build(self, **kwargs) -> Package:
        values = dict(
            arch="x86_64",
            location="Packages/foo-1.0-1.x86_64.rpm",
            provides=[{"name": "foo", "version": "1.0", "release": "1", "flags": "EQ"}],
            requires=[{"name": "bar", "version": "2", "flags": "GE", "pre": "1"}],
        )
        values.update(kwargs)
        return Package.build("foo", "1.0", "1", "0", **values)

    def test_build_attaches_dependencies(self) -> None:
        pkg = self.build()
        assert [p.name for p in pkg.provides] == ["foo"]
        assert pkg.provides[0].package is pkg
        assert pkg.requires[0].pre is True
        assert pkg.requires[0].flags == "GE"

    def test_nevra(self) -> None:
        assert self.build().nevra == "foo-1.0-1.x86_64"
        pkg = Package.build("foo", "1.0", "1", "3", arch="noarch")
        assert pkg.nevra == "foo-3:1.0-1.noarch"
        assert str(pkg) == "foo-3:1.0-1.noarch"

    def test_key(self) -> None:
        assert self.build().key == ("foo", "1.0", "1", "0", "x86_64")

    def test_url_without_repository(self) -> None:
        pkg = self.build()
        assert pkg.repository is None
        assert pkg.url is None

    def test_invalid_dependency_flags(self) -> None:
        with pytest.raises(CatalogFormatError):
            self.build(requires=[{"name": "bar", "version": "2", "flags": "XX"}])

    def test_provides_do_not_keep_package_alive(self) -> None:
        """Test that the provide -> package link is not an owning reference."""
        pkg = self.build()
        prov = pkg.provides[0]
        del pkg
        gc.collect()
        assert prov.package is None

    def test_equality_ignores_dependencies(self) -> None:
        assert self.build() == self.build(provides=[], requires=[])


class TestProvideMatches:
    """Test requirement / capability matching."""

    def test_name_must_match(self) -> None:
        assert not provide_matches(Requires("foo"), Provides("bar"))

    def test_unversioned_requirement_matches_any(self) -> None:
        assert provide_matches(Requires("foo"), Provides("foo", "1.0", "1"))

    def test_unversioned_provide_matches_any(self) -> None:
        assert provide_matches(Requires("foo", "9.0", flags="GE"), Provides("foo"))

    def test_release_ignored_when_not_required(self) -> None:
        assert provide_matches(Requires("foo", "1.0", flags="EQ"), Provides("foo", "1.0", "5"))

    def test_release_compared_when_required(self) -> None:
        assert not provide_matches(Requires("foo", "1.0", "2", flags="EQ"), Provides("foo", "1.0", "5"))
        assert provide_matches(Requires("foo", "1.0", "2", flags="LT"), Provides("foo", "1.0", "1"))

    def test_release_ignored_when_not_provided(self) -> None:
        assert provide_matches(Requires("foo", "1.0", "2", flags="EQ"), Provides("foo", "1.0"))

    def test_version_tie_without_release_is_equal(self) -> None:
        assert not provide_matches(Requires("foo", "1.0", flags="GT"), Provides("foo", "1.0", "9"))
        assert provide_matches(Requires("foo", "1.0", flags="GE"), Provides("foo", "1.0", "9"))

    def test_requirement_without_epoch(self) -> None:
        requirement = Requires("nginx", "1.20", "1", flags="EQ")
        candidate = RpmBase("nginx", "1.20", "1", "1")
        assert not provide_matches(requirement, candidate)
        assert provide_matches(requirement, candidate, ignore_epoch=True)
        assert matching(requirement, [candidate], ignore_epoch=True) == [candidate]

    def test_ignore_epoch_keeps_required_epoch(self) -> None:
        requirement = Requires("nginx", "1.20", epoch="2", flags="EQ")
        assert not provide_matches(
            requirement, RpmBase("nginx", "1.20", "1", "1"), ignore_epoch=True
        )

    def test_epoch_compared(self) -> None:
        assert provide_matches(
            Requires("bar", "1.0", flags="GE"), Provides("bar", "0.9", "1", epoch="2")
        )
        assert not provide_matches(
            Requires("bar", "1.0", epoch="3", flags="GE"), Provides("bar", "5.0", "1", epoch="2")
        )

    def test_empty_flags_means_equal(self) -> None:
        assert provide_matches(Requires("foo", "1.0"), Provides("foo", "1.0", "1"))
        assert not provide_matches(Requires("foo", "1.0"), Provides("foo", "1.1", "1"))

    @pytest.mark.parametrize(
        "flags, versions",
        [
            ("LT", ["0.9"]),
            ("LE", ["0.9", "1.0"]),
            ("GT", ["1.1"]),
            ("GE", ["1.0", "1.1"]),
            ("EQ", ["1.0"]),
        ],
    )
    def test_operators(self, flags: str, versions: list[str]) -> None:
        candidates = [Provides("foo", v, "1") for v in ("0.9", "1.0", "1.1")]
        found = matching(Requires("foo", "1.0", flags=flags), candidates)
        assert [p.version for p in found] == versions


class TestLatest:
    """Test selection of the newest candidate."""

    def test_latest(self) -> None:
        candidates = [Provides("foo", v, "1") for v in ("1.2", "1.10", "1.9", "1.0~rc1")]
        assert latest(candidates).version == "1.10"

    def test_tie_returns_last(self) -> None:
        first = Package.build("foo", "1.0", "1", arch="x86_64")
        second = Package.build("foo", "1.0", "1", arch="i686")
        assert latest([first, second]) is second
        assert latest([second, first]) is first

    def test_sort_is_stable(self) -> None:
        a = Provides("foo", "1.0", "1")
        b = Provides("foo", "1.0", "1", epoch="0")
        c = Provides("foo", "0.5", "1")
        assert sort_by_evr([a, b, c]) == [c, a, b]
        assert sort_by_evr([b, c, a])[1:] == [b, a]

    def test_empty(self) -> None:
        with pytest.raises(ValueError, match="No candidates"):
            latest([])
