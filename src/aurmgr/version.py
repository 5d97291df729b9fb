import dataclasses
import re

_versioning_re = re.compile(
    r"^(?:(?P<epoch>\d+):)?(?P<pkgver>[^:\-\s/]+)(?:-(?P<pkgrel>\d+(?:\.\d+)*))?$"
)


class VersionParseError(ValueError):
    pass


def _vercmp_segments(v1: str, v2: str) -> int:
    """
    Compare two version fragments the same way pacman's rpmvercmp does.
    Returns:
        -1 if v1 < v2
         0 if v1 == v2
         1 if v1 > v2
    """
    if v1 == v2:
        return 0

    i = j = 0
    # Start of the separator run preceding the current segment
    sep1 = sep2 = 0
    while i < len(v1) and j < len(v2):
        while i < len(v1) and not v1[i].isalnum():
            i += 1
        while j < len(v2) and not v2[j].isalnum():
            j += 1

        if i >= len(v1) or j >= len(v2):
            break

        # Longer separator runs win, e.g. 1..0 > 1.0
        if (i - sep1) != (j - sep2):
            return -1 if (i - sep1) < (j - sep2) else 1

        end1, end2 = i, j
        is_num = v1[i].isdigit()
        if is_num:
            while end1 < len(v1) and v1[end1].isdigit():
                end1 += 1
            while end2 < len(v2) and v2[end2].isdigit():
                end2 += 1
        else:
            while end1 < len(v1) and v1[end1].isalpha():
                end1 += 1
            while end2 < len(v2) and v2[end2].isalpha():
                end2 += 1

        segment1 = v1[i:end1]
        segment2 = v2[j:end2]

        # Segments of different kinds: numeric is always newer than alphabetic
        if segment2 == "":
            return 1 if is_num else -1

        if is_num:
            segment1 = segment1.lstrip("0")
            segment2 = segment2.lstrip("0")
            if len(segment1) != len(segment2):
                return 1 if len(segment1) > len(segment2) else -1

        if segment1 != segment2:
            return 1 if segment1 > segment2 else -1

        i, j = end1, end2
        sep1, sep2 = i, j

    if i >= len(v1) and j >= len(v2):
        return 0

    # A remaining alphabetic tail never beats an empty string, e.g. 1.0a < 1.0
    if (i >= len(v1) and not v2[j].isalpha()) or (i < len(v1) and v1[i].isalpha()):
        return -1
    return 1


@dataclasses.dataclass(frozen=True)
class Versioning:
    """
    An Arch package version of the form [epoch:]pkgver[-pkgrel].

    Equality is exact: two versions are equal when all of their components are identical.
    Ordering follows vercmp, so "1.0" and "1.00" are neither less nor greater than each other
    while still being unequal. Snapshot diffs rely on the exact equality.
    """

    epoch: int
    pkgver: str
    pkgrel: str | None

    def compare(self, rhs: "Versioning") -> int:
        if self.epoch != rhs.epoch:
            return -1 if self.epoch < rhs.epoch else 1

        result = _vercmp_segments(self.pkgver, rhs.pkgver)
        if result != 0:
            return result

        # pkgrel only takes part when both sides carry one
        if self.pkgrel is not None and rhs.pkgrel is not None:
            return _vercmp_segments(self.pkgrel, rhs.pkgrel)
        return 0

    def __lt__(self, rhs: "Versioning") -> bool:
        return self.compare(rhs) < 0

    def __le__(self, rhs: "Versioning") -> bool:
        return self.compare(rhs) <= 0

    def __gt__(self, rhs: "Versioning") -> bool:
        return self.compare(rhs) > 0

    def __ge__(self, rhs: "Versioning") -> bool:
        return self.compare(rhs) >= 0

    def __str__(self) -> str:
        return pretty_version(self)


def parse_version(raw: str) -> Versioning:
    """
    Parse a version string, raising VersionParseError when it is not a valid Arch version.
    """
    match = _versioning_re.match(raw.strip())
    if match is None or not any(c.isalnum() for c in match.group("pkgver")):
        raise VersionParseError(f"{raw!r} is not a valid package version")

    epoch = match.group("epoch")
    return Versioning(
        epoch=int(epoch) if epoch is not None else 0,
        pkgver=match.group("pkgver"),
        pkgrel=match.group("pkgrel"),
    )


def try_parse_version(raw: str) -> Versioning | None:
    try:
        return parse_version(raw)
    except VersionParseError:
        return None


def pretty_version(version: Versioning) -> str:
    rendered = version.pkgver
    if version.epoch != 0:
        rendered = f"{version.epoch}:{rendered}"
    if version.pkgrel is not None:
        rendered = f"{rendered}-{version.pkgrel}"
    return rendered


def version_compare(v1: str, v2: str) -> int:
    """
    Compare two raw version strings.
    Unparsable versions sort before every valid one and compare equal to each other.
    Returns:
        -1 if v1 < v2
         0 if v1 == v2
         1 if v1 > v2
    """
    parsed1 = try_parse_version(v1)
    parsed2 = try_parse_version(v2)

    if parsed1 is None and parsed2 is None:
        return 0
    if parsed1 is None:
        return -1
    if parsed2 is None:
        return 1
    return parsed1.compare(parsed2)


def is_newer(candidate: Versioning | str, installed: Versioning | str) -> bool:
    """
    Whether the candidate version is an upgrade over the installed one.

    An installed version that cannot be parsed is always stale, so any valid candidate is an
    upgrade. A candidate that cannot be parsed is never an upgrade.
    """
    if isinstance(candidate, Versioning):
        candidate = pretty_version(candidate)
    if isinstance(installed, Versioning):
        installed = pretty_version(installed)

    # Unparsable versions sort first, so a broken candidate never wins and a broken install loses
    return version_compare(candidate, installed) > 0
