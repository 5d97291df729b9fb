import dataclasses
import datetime
import typing

from aurmgr import version
from aurmgr.models import pkg as pkg_models
from aurmgr.models import state as state_models

InstalledQuery = typing.Callable[[], dict[pkg_models.PkgName, version.Versioning]]


@dataclasses.dataclass(frozen=True)
class PkgState:
    """
    The packages installed on the system at one point in time.
    """

    time: datetime.datetime
    pinned: bool
    packages: typing.Mapping[pkg_models.PkgName, version.Versioning]

    def to_model(self) -> state_models.PkgStateModel:
        return state_models.PkgStateModel(
            time=self.time,
            pinned=self.pinned,
            packages={
                name.name: version.pretty_version(pkg_version)
                for name, pkg_version in sorted(self.packages.items())
            },
        )


def state_from_model(model: state_models.PkgStateModel) -> PkgState:
    """
    Raises ValueError when a package name is empty, or is listed twice once normalized.
    """
    packages: dict[pkg_models.PkgName, version.Versioning] = {}
    for name, raw_version in model.packages.items():
        pkg_name = pkg_models.pkg_name(name)
        if pkg_name in packages:
            raise ValueError(f"Package {pkg_name} is listed more than once")
        # The model has already dropped every version that does not parse
        packages[pkg_name] = version.parse_version(raw_version)

    return PkgState(time=model.time, pinned=model.pinned, packages=packages)


@dataclasses.dataclass(frozen=True)
class StateDiff:
    """
    What has to change to bring the current system back to a reference state.

    to_alter holds packages to (re)install at the version the reference recorded, to_remove holds
    packages the reference did not have at all.
    """

    to_alter: tuple[pkg_models.SimplePkg, ...]
    to_remove: tuple[pkg_models.PkgName, ...]

    def is_empty(self) -> bool:
        return len(self.to_alter) == 0 and len(self.to_remove) == 0


def capture(query: InstalledQuery) -> PkgState:
    """
    Sample the installed packages into a new, unpinned state.
    """
    return PkgState(
        time=datetime.datetime.now().astimezone(),
        pinned=False,
        packages=dict(query()),
    )


def diff(reference: PkgState, current: PkgState) -> StateDiff:
    to_alter: list[pkg_models.SimplePkg] = []
    to_remove: list[pkg_models.PkgName] = []

    for name, current_version in sorted(current.packages.items()):
        reference_version = reference.packages.get(name)
        if reference_version is None:
            to_remove.append(name)
        elif not in_state(pkg_models.SimplePkg(name, current_version), reference):
            to_alter.append(pkg_models.SimplePkg(name, reference_version))

    # Packages that were removed since the reference was taken
    for name, reference_version in sorted(reference.packages.items()):
        if name not in current.packages:
            to_alter.append(pkg_models.SimplePkg(name, reference_version))

    return StateDiff(to_alter=tuple(to_alter), to_remove=tuple(to_remove))


def in_state(pkg: pkg_models.SimplePkg, state: PkgState) -> bool:
    return state.packages.get(pkg.name) == pkg.version
