from __future__ import annotations

"""
RPM package model and version matching.

This module holds the versioned identity shared by packages, provides and
requires, the rpmvercmp-style version comparator, and the helpers used by
every backend to pick the latest package satisfying a requirement.
"""

import re
import string
import weakref
from dataclasses import InitVar, dataclass, field
from functools import cmp_to_key
from typing import TYPE_CHECKING, Any, Iterable, Literal, Mapping, Sequence, TypeVar
from urllib.parse import urljoin

from yumsolve.errors import CatalogFormatError

if TYPE_CHECKING:
    from yumsolve.yum.repository import Repository

Flag = Literal["EQ", "LT", "LE", "GT", "GE"]

FLAGS: tuple[Flag, ...] = ("EQ", "LT", "LE", "GT", "GE")

# Capabilities every RPM carries; indexing them would make each lookup
# return the whole catalog
IGNORED_PACKAGES = frozenset(
    {
        "rpmlib(CompressedFileNames)",
        "/bin/sh",
        "rpmlib(PayloadFilesHavePrefix)",
        "rpmlib(PartialHardlinkSets)",
    }
)

OPERATORS: dict[str, Flag] = {
    "=": "EQ",
    "==": "EQ",
    "<": "LT",
    "<=": "LE",
    ">": "GT",
    ">=": "GE",
}

SYMBOLS: dict[str, str] = {"EQ": "=", "LT": "<", "LE": "<=", "GT": ">", "GE": ">="}

# "name", "name >= 1.2", "name = 1:1.2-3"
REQUIREMENT_REGEX = re.compile(r"^\s*([^\s<>=]+)\s*(?:(==|=|<=|>=|<|>)\s*([^\s<>=]\S*))?\s*$")

_DIGITS = frozenset(string.digits)
_ALPHA = frozenset(string.ascii_letters)
_ALNUM = _DIGITS | _ALPHA


def rpmvercmp(a: str, b: str) -> int:
    """Compare two version (or release) strings the way rpm does.

    The strings are split into maximal runs of digits and of letters, all
    other characters acting as separators. Numeric runs compare as numbers,
    alphabetic runs lexically, and a numeric run is newer than an alphabetic
    one. ``~`` sorts before anything, even the end of the string (1.0~rc1 <
    1.0); ``^`` sorts after the end of the string but before any further
    segment (1.0 < 1.0^git1 < 1.0.1).

    Returns:
        -1, 0 or 1
    """
    if a == b:
        return 0

    i = j = 0
    la, lb = len(a), len(b)
    while i < la or j < lb:
        while i < la and a[i] not in _ALNUM and a[i] not in "~^":
            i += 1
        while j < lb and b[j] not in _ALNUM and b[j] not in "~^":
            j += 1

        if (i < la and a[i] == "~") or (j < lb and b[j] == "~"):
            if i >= la or a[i] != "~":
                return 1
            if j >= lb or b[j] != "~":
                return -1
            i += 1
            j += 1
            continue

        if (i < la and a[i] == "^") or (j < lb and b[j] == "^"):
            if i >= la:
                return -1
            if j >= lb:
                return 1
            if a[i] != "^":
                return 1
            if b[j] != "^":
                return -1
            i += 1
            j += 1
            continue

        if i >= la or j >= lb:
            break

        numeric = a[i] in _DIGITS
        chars = _DIGITS if numeric else _ALPHA
        start_a, start_b = i, j
        while i < la and a[i] in chars:
            i += 1
        while j < lb and b[j] in chars:
            j += 1
        seg_a, seg_b = a[start_a:i], b[start_b:j]

        # Segments of different types: numbers win
        if not seg_b:
            return 1 if numeric else -1

        if numeric:
            seg_a = seg_a.lstrip("0")
            seg_b = seg_b.lstrip("0")
            if len(seg_a) != len(seg_b):
                return 1 if len(seg_a) > len(seg_b) else -1

        if seg_a != seg_b:
            return 1 if seg_a > seg_b else -1

    if i >= la and j >= lb:
        return 0
    return -1 if i >= la else 1


def compare_evr(a: RpmBase, b: RpmBase) -> int:
    """Compare two identities by epoch, then version, then release.

    An empty epoch counts as 0.
    """
    return (
        rpmvercmp(a.epoch or "0", b.epoch or "0")
        or rpmvercmp(a.version, b.version)
        or rpmvercmp(a.release, b.release)
    )


def split_evr(evr: str) -> tuple[str, str, str]:
    """Split "[epoch:]version[-release]" into its three parts.

    Examples:
        "1:2.3.4-5" -> ("1", "2.3.4", "5")
        "2.3.4-5" -> ("", "2.3.4", "5")
        "2.3.4" -> ("", "2.3.4", "")
    """
    if not evr:
        return "", "", ""

    epoch = ""
    if ":" in evr:
        epoch, evr = evr.split(":", 1)
    if "-" in evr:
        version, release = evr.rsplit("-", 1)
    else:
        version, release = evr, ""
    return epoch, version, release


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return str(value)


def _flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes")
    return bool(value)


@dataclass(frozen=True)
class RpmBase:
    """Versioned identity shared by packages, provides and requires.

    Catalog values arrive as str, bytes, int or None; they are normalised
    to str, None becoming "". An empty flags value means no operator was
    recorded and is treated as EQ when matching.
    """

    name: str
    version: str = ""
    release: str = ""
    epoch: str = ""
    flags: str = ""

    def __post_init__(self) -> None:
        for attr in ("name", "version", "release", "epoch", "flags"):
            object.__setattr__(self, attr, _text(getattr(self, attr)))
        if self.flags and self.flags not in FLAGS:
            raise CatalogFormatError(f"invalid flags {self.flags!r} for {self.name!r}")

    @property
    def evr(self) -> str:
        """Get "[epoch:]version[-release]" string."""
        evr = self.version
        if self.release:
            evr = f"{evr}-{self.release}"
        if self.epoch and self.epoch != "0":
            evr = f"{self.epoch}:{evr}"
        return evr

    def __str__(self) -> str:
        if not self.version:
            return self.name
        return f"{self.name} {SYMBOLS.get(self.flags or 'EQ')} {self.evr}"


@dataclass(frozen=True)
class Provides(RpmBase):
    """A capability exposed by a package.

    ``owner`` is kept as a weak reference: a provide never keeps its
    package alive. Raw capability rows that have not been joined to their
    package yet have no owner.
    """

    owner: InitVar["Package | None"] = None
    _owner_ref: weakref.ReferenceType | None = field(
        default=None, init=False, repr=False, compare=False
    )

    def __post_init__(self, owner: "Package | None") -> None:  # type: ignore[override]
        super().__post_init__()
        if owner is not None:
            object.__setattr__(self, "_owner_ref", weakref.ref(owner))

    @property
    def package(self) -> "Package | None":
        if self._owner_ref is None:
            return None
        return self._owner_ref()


@dataclass(frozen=True)
class Requires(RpmBase):
    """A capability a package depends on.

    ``pre`` marks requirements needed before the pre-install scriptlet runs.
    It only matters for install ordering and is ignored by matching.
    """

    pre: bool = False

    def __post_init__(self) -> None:
        super().__post_init__()
        object.__setattr__(self, "pre", _flag(self.pre))

    @classmethod
    def parse(cls, text: str) -> "Requires":
        """Parse a requirement such as "foo", "foo >= 1.2" or "foo = 1:1.2-3".

        Raises:
            ValueError: If the text is not a valid requirement
        """
        match = REQUIREMENT_REGEX.match(text)
        if not match:
            raise ValueError(f"Invalid requirement: {text!r}")

        name, operator, evr = match.groups()
        if operator is None:
            return cls(name)

        epoch, version, release = split_evr(evr)
        return cls(name, version, release, epoch, OPERATORS[operator])


@dataclass(frozen=True)
class Package(RpmBase):
    """A package of a repository catalog.

    Packages are created through :meth:`build`, which attaches the provides
    and requires before the object is handed out. Both tuples stay fixed
    afterwards.
    """

    arch: str = ""
    group: str = ""
    location: str = ""
    provides: tuple[Provides, ...] = field(default=(), repr=False, compare=False)
    requires: tuple[Requires, ...] = field(default=(), repr=False, compare=False)
    origin: InitVar["Repository | None"] = None
    _origin_ref: weakref.ReferenceType | None = field(
        default=None, init=False, repr=False, compare=False
    )

    def __post_init__(self, origin: "Repository | None") -> None:  # type: ignore[override]
        super().__post_init__()
        for attr in ("arch", "group", "location"):
            object.__setattr__(self, attr, _text(getattr(self, attr)))
        if origin is not None:
            object.__setattr__(self, "_origin_ref", weakref.ref(origin))

    @classmethod
    def build(
        cls,
        name: Any,
        version: Any = "",
        release: Any = "",
        epoch: Any = "",
        *,
        arch: Any = "",
        group: Any = "",
        location: Any = "",
        provides: Iterable[Mapping[str, Any]] = (),
        requires: Iterable[Mapping[str, Any]] = (),
        repository: "Repository | None" = None,
    ) -> "Package":
        """Create a package from decoded catalog values.

        Args:
            name: Package name
            version: Package version
            release: Package release
            epoch: Package epoch ("" or None means 0)
            arch: Architecture
            group: RPM group
            location: Path of the .rpm relative to the repository base URL
            provides: Mappings with name/version/release/epoch/flags keys
            requires: Mappings with name/version/release/epoch/flags/pre keys
            repository: Repository the package belongs to

        Returns:
            Package instance

        Raises:
            CatalogFormatError: If an entry carries an unknown flag
        """
        pkg = cls(
            name,
            version,
            release,
            epoch,
            arch=arch,
            group=group,
            location=location,
            origin=repository,
        )
        object.__setattr__(
            pkg, "provides", tuple(Provides(owner=pkg, **entry) for entry in provides)
        )
        object.__setattr__(pkg, "requires", tuple(Requires(**entry) for entry in requires))
        return pkg

    @property
    def repository(self) -> "Repository | None":
        if self._origin_ref is None:
            return None
        return self._origin_ref()

    @property
    def key(self) -> tuple[str, str, str, str, str]:
        """Identity of the package within its repository."""
        return (self.name, self.version, self.release, self.epoch, self.arch)

    @property
    def nevra(self) -> str:
        """Get NEVRA string (Name-Epoch:Version-Release.Arch)."""
        epoch_str = f"{self.epoch}:" if self.epoch and self.epoch != "0" else ""
        return f"{self.name}-{epoch_str}{self.version}-{self.release}.{self.arch}"

    @property
    def url(self) -> str | None:
        """Download URL of the package file, if its repository is known."""
        repository = self.repository
        if repository is None:
            return None
        return urljoin(repository.base_url.rstrip("/") + "/", self.location)

    def __str__(self) -> str:
        return self.nevra


def provide_matches(
    requirement: RpmBase, candidate: RpmBase, ignore_epoch: bool = False
) -> bool:
    """Check whether ``candidate`` satisfies ``requirement``.

    Names must be equal. A missing version on either side matches anything.
    A requirement without a release matches every release of the version.
    Otherwise the candidate is compared to the requirement and the result
    is checked against the requirement's operator (EQ when unset).

    Epochs compare with an empty epoch as 0, unless ``ignore_epoch`` is set
    and the requirement has no epoch of its own.
    """
    if requirement.name != candidate.name:
        return False
    if not requirement.version or not candidate.version:
        return True

    result = 0
    if requirement.epoch or not ignore_epoch:
        result = rpmvercmp(candidate.epoch or "0", requirement.epoch or "0")
    result = result or rpmvercmp(candidate.version, requirement.version)
    if result == 0 and requirement.release and candidate.release:
        result = rpmvercmp(candidate.release, requirement.release)

    flags = requirement.flags or "EQ"
    if flags == "EQ":
        return result == 0
    elif flags == "LT":
        return result < 0
    elif flags == "LE":
        return result <= 0
    elif flags == "GT":
        return result > 0
    elif flags == "GE":
        return result >= 0
    raise ValueError(f"Unknown flags: {flags}")


T = TypeVar("T", bound=RpmBase)


def sort_by_evr(candidates: Iterable[T]) -> list[T]:
    """Sort candidates by epoch/version/release, oldest first.

    The sort is stable: candidates with equal EVR keep their input order.
    """
    return sorted(candidates, key=cmp_to_key(compare_evr))


def latest(candidates: Sequence[T]) -> T:
    """Return the newest candidate.

    On an exact EVR tie the candidate appearing last in the input wins.

    Raises:
        ValueError: If there are no candidates
    """
    if not candidates:
        raise ValueError("No candidates to choose from")
    return sort_by_evr(candidates)[-1]


def matching(
    requirement: RpmBase, candidates: Iterable[T], ignore_epoch: bool = False
) -> list[T]:
    """Filter candidates down to those satisfying ``requirement``."""
    return [
        candidate
        for candidate in candidates
        if provide_matches(requirement, candidate, ignore_epoch=ignore_epoch)
    ]
