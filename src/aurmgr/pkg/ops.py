import collections.abc
import concurrent.futures
import dataclasses
import pathlib
import typing

import requests

import aurmgr.logging
from aurmgr import cache, nonempty, version
from aurmgr.errors import BuildError, ResolutionError
from aurmgr.models import aur as aur_models
from aurmgr.models import config as config_models
from aurmgr.models import pkg as pkg_models
from aurmgr.pacman import Pacman
from aurmgr.pkg import classify
from aurmgr.pkg.build import MakepkgBuilder
from aurmgr.repository import core as repository_core
from aurmgr.repository import sources
from aurmgr.state import ops as state_ops


class Builder(typing.Protocol):
    def build(self, buildable: pkg_models.Buildable) -> list[pathlib.Path]: ...


def resolve(
    names: nonempty.NonEmptySet[pkg_models.PkgName], repository: repository_core.Repository
) -> frozenset[pkg_models.Package]:
    """
    Look up packages, failing if a source could not be queried at all.
    Names no source knows about are reported and left out.
    """
    result = repository.lookup(names)
    if result is None:
        raise ResolutionError(f"Failed to look up {', '.join(sorted(str(n) for n in names))}")

    if len(result.unresolved) > 0:
        aurmgr.logging.warning(
            "These packages were not found: %s",
            ", ".join(sorted(name.name for name in result.unresolved)),
        )
    return result.resolved


def build_wave(
    wave: nonempty.NonEmptySet[pkg_models.Buildable], builder: Builder, parallel: int
) -> dict[pkg_models.PkgName, pathlib.Path]:
    """
    Build every package of a wave, running up to `parallel` builds at once.
    Packages sharing a package base are built once.
    """
    by_base: dict[str, list[pkg_models.Buildable]] = {}
    for buildable in sorted(wave, key=lambda buildable: buildable.name):
        by_base.setdefault(buildable.base, []).append(buildable)

    built: dict[pkg_models.PkgName, pathlib.Path] = {}
    with concurrent.futures.ThreadPoolExecutor(max_workers=parallel) as executor:
        futures = {
            executor.submit(builder.build, buildables[0]): buildables
            for buildables in by_base.values()
        }
        for future in concurrent.futures.as_completed(futures):
            artifacts = {
                simple_pkg.name: path
                for path in future.result()
                if (simple_pkg := cache.parse_artifact_name(path.name)) is not None
            }
            for buildable in futures[future]:
                if buildable.name not in artifacts:
                    raise BuildError(
                        f"Building {buildable.base} did not produce a package for {buildable.name}"
                    )
                built[buildable.name] = artifacts[buildable.name]

    return built


def install_waves(
    waves: nonempty.NonEmptyList[nonempty.NonEmptySet[pkg_models.Package]],
    pacman: Pacman,
    builder: Builder,
    parallel: int = 1,
    explicit: collections.abc.Set[pkg_models.PkgName] = frozenset(),
):
    """
    Install dependency waves, each wave only depending on the waves before it.

    Prebuilt packages from every wave are installed first, in one batch. Buildable packages are then
    built and installed wave by wave: a wave is only started once the previous one is installed.
    Prebuilt packages not named in `explicit` are marked as dependencies.
    """
    prebuilt, buildable_waves = classify.partition_by_build_method(waves)

    if len(prebuilt) > 0:
        prebuilt_names = sorted(pkg.name for pkg in prebuilt)
        aurmgr.logging.info("Installing %s", ", ".join(name.name for name in prebuilt_names))
        pacman.install_repo_pkgs(prebuilt_names)
        as_deps = [name for name in prebuilt_names if name not in explicit]
        if len(as_deps) > 0:
            pacman.mark_as_deps(as_deps)

    for index, wave in enumerate(buildable_waves):
        aurmgr.logging.info("Building wave %d of %d", index + 1, len(buildable_waves))
        built = build_wave(wave, builder, parallel)

        explicit_files = sorted(built[pkg.name] for pkg in wave if pkg.is_explicit)
        dep_files = sorted(built[pkg.name] for pkg in wave if not pkg.is_explicit)
        if len(explicit_files) > 0:
            pacman.install_files(explicit_files)
        if len(dep_files) > 0:
            pacman.install_files(dep_files, as_deps=True)


def install(names: nonempty.NonEmptySet[pkg_models.PkgName], settings: config_models.Settings):
    """
    Install packages from the sync repositories or the AUR.

    All targets are installed as one wave, so their dependencies have to be installed already or be
    among the targets themselves.
    """
    pacman = Pacman(settings)
    resolved = resolve(names, sources.default_repository(settings))
    if len(resolved) == 0:
        raise RuntimeError("Nothing to install")

    targets: set[pkg_models.Package] = set()
    for package in resolved:
        match package:
            case pkg_models.Prebuilt():
                targets.add(package)
            case pkg_models.Buildable():
                targets.add(dataclasses.replace(package, is_explicit=True))
            case _:
                typing.assert_never(package)

    target_names = {pkg_models.package_name(package) for package in targets}
    deps = nonempty.nonempty_set(
        dep
        for package in targets
        for dep in pkg_models.package_depends(package)
        if dep.name not in target_names
    )
    if deps is not None:
        satisfaction = classify.check_satisfaction(deps, pacman.unsatisfied)
        if satisfaction.unsatisfied is not None:
            raise RuntimeError(
                "Install these dependencies first: "
                + ", ".join(sorted(str(dep) for dep in satisfaction.unsatisfied))
            )

    install_waves(
        nonempty.NonEmptyList([nonempty.NonEmptySet(targets)]),
        pacman,
        MakepkgBuilder(settings),
        settings.parallel,
        explicit=target_names,
    )


class Update(typing.NamedTuple):
    name: pkg_models.PkgName
    installed: str
    available: version.Versioning


def possible_updates(
    foreign: collections.abc.Mapping[pkg_models.PkgName, str],
    repository: repository_core.Repository,
) -> list[Update]:
    """
    The installed foreign packages that have a newer version available.
    An installed version that cannot be parsed always counts as outdated.
    """
    names = nonempty.nonempty_set(foreign.keys())
    if names is None:
        return []

    updates: list[Update] = []
    for package in resolve(names, repository):
        name = pkg_models.package_name(package)
        if version.is_newer(package.version, foreign[name]):
            updates.append(Update(name, foreign[name], package.version))
    return sorted(updates, key=lambda update: update.name)


def upgrade(
    extra: collections.abc.Iterable[pkg_models.PkgName],
    settings: config_models.Settings,
    *,
    dry_run: bool = False,
    devel: bool = False,
) -> list[Update]:
    """
    Upgrade the installed AUR packages, and install `extra` alongside them.

    Ignored packages are left alone. With `devel`, packages built from version control are rebuilt
    regardless of their version. The package state is saved before anything is changed.
    """
    pacman = Pacman(settings)

    foreign = {
        name: raw_version
        for name, raw_version in pacman.foreign_packages().items()
        if name not in settings.ignore
    }
    updates = possible_updates(foreign, sources.aur_repository(settings))
    devel_names: set[pkg_models.PkgName] = set()
    if devel:
        devel_names = {name for name in foreign if pkg_models.is_devel_pkg(name)}

    to_install = nonempty.nonempty_set(
        {update.name for update in updates} | devel_names | set(extra)
    )
    if to_install is None:
        aurmgr.logging.warning("No AUR package upgrades necessary")
        return updates

    for update in updates:
        aurmgr.logging.info("%s : %s => %s", update.name, update.installed, update.available)
    for name in sorted(devel_names):
        aurmgr.logging.info("%s : rebuilding from version control", name)

    if dry_run:
        return updates

    _ = state_ops.save_state(settings.state_dir, pacman.query_installed)
    install(to_install, settings)
    return updates


def info(
    names: nonempty.NonEmptySet[pkg_models.PkgName], settings: config_models.Settings
) -> list[aur_models.AurInfo]:
    """
    Fetch the AUR metadata of packages, sorted by name.
    Names the AUR does not know about are reported and left out.
    """
    try:
        infos = sources.aur_info(names, aur_url=settings.aur_url, timeout=settings.source_timeout)
    except (requests.RequestException, ValueError) as e:
        raise ResolutionError(f"Failed to query the AUR: {e}") from e

    found = {pkg_models.pkg_name(pkg_info.name) for pkg_info in infos}
    missing = sorted(name.name for name in names if name not in found)
    if len(missing) > 0:
        aurmgr.logging.warning("These packages were not found: %s", ", ".join(missing))
    return sorted(infos, key=lambda pkg_info: pkg_info.name)


def render_info(pkg_info: aur_models.AurInfo, aur_url: str) -> str:
    fields = [
        ("Repository", "aur"),
        ("Name", pkg_info.name),
        ("Version", pkg_info.version),
        ("Package Base", pkg_info.package_base),
        ("AUR Status", "Up to Date" if pkg_info.out_of_date is None else "Out of Date!"),
        ("Maintainer", pkg_info.maintainer if pkg_info.maintainer else "(orphaned)"),
        ("Project URL", pkg_info.url if pkg_info.url else ""),
        ("AUR URL", f"{aur_url}/packages/{pkg_info.name}"),
        ("License", " ".join(pkg_info.license)),
        ("Depends On", " ".join(pkg_info.depends)),
        ("Build Deps", " ".join(pkg_info.make_depends)),
        ("Votes", str(pkg_info.votes)),
        ("Popularity", f"{pkg_info.popularity:.2f}"),
        ("Description", pkg_info.description if pkg_info.description else ""),
    ]
    width = max(len(key) for key, _ in fields)
    return "\n".join(f"{key.ljust(width)} : {value}" for key, value in fields)


class SearchResult(typing.NamedTuple):
    info: aur_models.AurInfo
    installed: bool


def search(term: str, settings: config_models.Settings) -> list[SearchResult]:
    """
    Search the AUR, marking the results that are installed.
    """
    if term.strip() == "":
        raise RuntimeError("Nothing to search for")

    try:
        infos = sources.aur_search(term, aur_url=settings.aur_url, timeout=settings.source_timeout)
    except (requests.RequestException, ValueError) as e:
        raise ResolutionError(f"Failed to search the AUR: {e}") from e

    installed = Pacman(settings).foreign_packages()
    return [
        SearchResult(pkg_info, pkg_models.pkg_name(pkg_info.name) in installed)
        for pkg_info in sorted(infos, key=lambda pkg_info: pkg_info.name)
    ]


def render_search_result(result: SearchResult) -> str:
    pkg_info = result.info
    line = f"aur/{pkg_info.name} {pkg_info.version} ({pkg_info.votes} | {pkg_info.popularity:.2f})"
    if pkg_info.out_of_date is not None:
        line += " (Out of Date)"
    if result.installed:
        line += " [installed]"
    description = pkg_info.description if pkg_info.description else ""
    return f"{line}\n    {description}"
