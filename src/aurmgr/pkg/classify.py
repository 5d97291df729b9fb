import collections.abc
import dataclasses
import typing

from aurmgr import nonempty
from aurmgr.models import pkg as pkg_models

# Returns the dependencies that nothing installed satisfies
UnsatisfiedQuery = typing.Callable[[collections.abc.Iterable[pkg_models.Dep]], set[pkg_models.Dep]]


def partition_by_build_method(
    waves: nonempty.NonEmptyList[nonempty.NonEmptySet[pkg_models.Package]],
) -> tuple[frozenset[pkg_models.Prebuilt], list[nonempty.NonEmptySet[pkg_models.Buildable]]]:
    """
    Split dependency waves into the prebuilt packages, which are installed together in one batch,
    and the buildable packages of each wave, which keep their wave order.

    A wave with no buildable package in it does not show up in the result.
    """
    prebuilt: set[pkg_models.Prebuilt] = set()
    buildable_waves: list[nonempty.NonEmptySet[pkg_models.Buildable]] = []

    for wave in waves:
        buildables: list[pkg_models.Buildable] = []
        for package in wave:
            match package:
                case pkg_models.Prebuilt():
                    prebuilt.add(package)
                case pkg_models.Buildable():
                    buildables.append(package)
                case _:
                    typing.assert_never(package)

        buildable_wave = nonempty.nonempty_set(buildables)
        if buildable_wave is not None:
            buildable_waves.append(buildable_wave)

    return frozenset(prebuilt), buildable_waves


@dataclasses.dataclass(frozen=True)
class Satisfaction:
    unsatisfied: nonempty.NonEmptySet[pkg_models.Dep] | None
    satisfied: nonempty.NonEmptySet[pkg_models.Dep] | None

    def __post_init__(self):
        assert self.unsatisfied is not None or self.satisfied is not None, (
            "A satisfaction check always has at least one dependency"
        )


def check_satisfaction(
    deps: nonempty.NonEmptySet[pkg_models.Dep], query: UnsatisfiedQuery
) -> Satisfaction:
    """
    Check all dependencies against the installed system with a single query.

    query answers with the dependencies that are not satisfied, which are matched back to deps by
    name, as the package database may render constraints differently.
    """
    unsatisfied_names = {dep.name for dep in query(deps)}

    unsatisfied = [dep for dep in deps if dep.name in unsatisfied_names]
    satisfied = [dep for dep in deps if dep.name not in unsatisfied_names]

    return Satisfaction(
        unsatisfied=nonempty.nonempty_set(unsatisfied),
        satisfied=nonempty.nonempty_set(satisfied),
    )
