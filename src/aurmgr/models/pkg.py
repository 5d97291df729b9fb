import collections.abc
import dataclasses
import re
import typing

import aurmgr.constants
from aurmgr import version


@dataclasses.dataclass(frozen=True, order=True)
class PkgName:
    name: str

    def __str__(self) -> str:
        return self.name


def pkg_name(name: str) -> PkgName:
    """
    Normalize a raw package name into a PkgName.
    """
    normalized = name.strip().lower()
    if normalized == "":
        raise ValueError("Package name cannot be empty")
    return PkgName(normalized)


def pkg_name_list(names: collections.abc.Iterable[str]) -> list[PkgName]:
    return [pkg_name(name) for name in names]


@dataclasses.dataclass(frozen=True)
class SimplePkg:
    """
    An installed package: a name and the version it is installed at.
    """

    name: PkgName
    version: version.Versioning

    def __str__(self) -> str:
        return f"{self.name}-{self.version}"


def simple_pkg_from_line(line: str) -> SimplePkg | None:
    """
    Parse a "name version" line as printed by pacman -Q.
    Lines without a parsable version are skipped.
    """
    parts = line.split()
    if len(parts) != 2:
        return None
    parsed_version = version.try_parse_version(parts[1])
    if parsed_version is None:
        return None
    return SimplePkg(pkg_name(parts[0]), parsed_version)


VersionOp = typing.Literal["<", "<=", "=", ">=", ">"]

_dep_re = re.compile(r"^(?P<name>[^<>=\s]+)\s*(?:(?P<op><=|>=|<|>|=)\s*(?P<version>\S+))?$")


@dataclasses.dataclass(frozen=True)
class VersionConstraint:
    op: VersionOp
    version: str

    def __str__(self) -> str:
        return f"{self.op}{self.version}"


@dataclasses.dataclass(frozen=True)
class Dep:
    """
    A dependency on a package name, optionally constrained to a version range.

    Whether a constraint holds is left to pacman. Satisfaction matching only compares names.
    """

    name: PkgName
    constraint: VersionConstraint | None = None

    def __str__(self) -> str:
        return rendered_dep(self)


def parse_dep(raw: str) -> Dep | None:
    """
    Parse a dependency string such as "glibc", "python>=3.12" or "gcc-libs=14.1.1".
    """
    match = _dep_re.match(raw.strip())
    if match is None:
        return None
    constraint = None
    if match.group("op") is not None:
        constraint = VersionConstraint(
            op=typing.cast("VersionOp", match.group("op")), version=match.group("version")
        )
    return Dep(pkg_name(match.group("name")), constraint)


def rendered_dep(dep: Dep) -> str:
    """
    Render a dependency back into the form pacman understands.
    """
    if dep.constraint is None:
        return dep.name.name
    return f"{dep.name.name}{dep.constraint}"


@dataclasses.dataclass(frozen=True)
class Prebuilt:
    """
    A package that can be installed straight from an official sync repository.
    """

    name: PkgName
    version: version.Versioning
    repository: str
    depends: tuple[Dep, ...] = ()
    pkg_type: typing.Literal["prebuilt"] = "prebuilt"


@dataclasses.dataclass(frozen=True)
class Buildable:
    """
    A package that has to be built locally from its AUR recipe before it can be installed.
    """

    name: PkgName
    version: version.Versioning
    base: str
    depends: tuple[Dep, ...] = ()
    make_depends: tuple[Dep, ...] = ()
    is_explicit: bool = False
    pkg_type: typing.Literal["buildable"] = "buildable"


Package = Prebuilt | Buildable


def package_name(package: Package) -> PkgName:
    match package:
        case Prebuilt(name=name):
            return name
        case Buildable(name=name):
            return name
        case _:
            typing.assert_never(package)


def package_depends(package: Package) -> tuple[Dep, ...]:
    """
    Every dependency needed to install a package, including those only needed to build it.
    """
    match package:
        case Prebuilt(depends=depends):
            return depends
        case Buildable(depends=depends, make_depends=make_depends):
            return depends + make_depends
        case _:
            typing.assert_never(package)


def is_devel_pkg(name: PkgName) -> bool:
    """
    Packages built from the tip of a version control repository.
    """
    return name.name.endswith(aurmgr.constants.devel_pkg_suffixes)
