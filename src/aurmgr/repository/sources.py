import typing
import urllib.parse

import requests

import aurmgr.logging
from aurmgr import nonempty, version
from aurmgr.errors import ResolutionError
from aurmgr.models import aur as aur_models
from aurmgr.models import config as config_models
from aurmgr.models import pkg as pkg_models
from aurmgr.pacman import Pacman
from aurmgr.repository import core

# The AUR rejects overly long query strings, so names are sent in chunks
_aur_chunk_size = 100


def _lookup_result(
    names: nonempty.NonEmptySet[pkg_models.PkgName],
    pkgs: typing.Iterable[pkg_models.Package],
) -> core.LookupResult:
    resolved = frozenset(pkg for pkg in pkgs if pkg_models.package_name(pkg) in names)
    resolved_names = {pkg_models.package_name(pkg) for pkg in resolved}
    return core.LookupResult(
        unresolved=frozenset(name for name in names if name not in resolved_names),
        resolved=resolved,
    )


def pacman_repository(settings: config_models.Settings) -> core.Repository:
    """
    The official sync repositories, which provide prebuilt packages.
    """
    pacman = Pacman(settings)

    def fetch(names: nonempty.NonEmptySet[pkg_models.PkgName]) -> core.LookupResult | None:
        try:
            pkgs = pacman.sync_info(sorted(names))
        except RuntimeError as e:
            aurmgr.logging.warning("Failed to query the sync repositories: %s", e)
            return None
        return _lookup_result(names, pkgs)

    return core.cached_repository("repo", fetch)


def _rpc_results(
    url: str, *, params: dict[str, typing.Any] | None, timeout: float
) -> list[aur_models.AurInfo]:
    res = requests.get(url, params=params, timeout=timeout)
    res.raise_for_status()
    body = res.json()
    if body.get("type") == "error":
        raise ResolutionError(f"AUR RPC error: {body.get('error')}")
    return [aur_models.AurInfo.model_validate(result) for result in body.get("results", [])]


def aur_info(
    names: nonempty.NonEmptySet[pkg_models.PkgName], *, aur_url: str, timeout: float
) -> list[aur_models.AurInfo]:
    """
    Query the AUR RPC interface for package metadata.
    Raises requests.RequestException, ValueError or ResolutionError when the AUR cannot answer.
    """
    sorted_names = [name.name for name in sorted(names)]
    infos: list[aur_models.AurInfo] = []
    for start in range(0, len(sorted_names), _aur_chunk_size):
        chunk = sorted_names[start : start + _aur_chunk_size]
        infos.extend(
            _rpc_results(f"{aur_url}/rpc/v5/info", params={"arg[]": chunk}, timeout=timeout)
        )
    return infos


def aur_search(term: str, *, aur_url: str, timeout: float) -> list[aur_models.AurInfo]:
    """
    Search AUR package names and descriptions.
    Raises the same errors as aur_info.
    """
    return _rpc_results(
        f"{aur_url}/rpc/v5/search/{urllib.parse.quote(term, safe='')}",
        params={"by": "name-desc"},
        timeout=timeout,
    )


def _aur_info_to_buildable(info: aur_models.AurInfo) -> pkg_models.Buildable | None:
    parsed_version = version.try_parse_version(info.version)
    if parsed_version is None:
        aurmgr.logging.warning("Ignoring %s with unparsable version %s", info.name, info.version)
        return None

    def parse_deps(raw_deps: list[str]) -> tuple[pkg_models.Dep, ...]:
        deps = (pkg_models.parse_dep(raw) for raw in raw_deps)
        return tuple(dep for dep in deps if dep is not None)

    return pkg_models.Buildable(
        name=pkg_models.pkg_name(info.name),
        version=parsed_version,
        base=info.package_base,
        depends=parse_deps(info.depends),
        make_depends=parse_deps(info.make_depends),
    )


def aur_repository(settings: config_models.Settings) -> core.Repository:
    """
    The AUR, which provides packages that have to be built locally.
    """

    def fetch(names: nonempty.NonEmptySet[pkg_models.PkgName]) -> core.LookupResult | None:
        try:
            infos = aur_info(names, aur_url=settings.aur_url, timeout=settings.source_timeout)
        except (requests.RequestException, ValueError, RuntimeError) as e:
            aurmgr.logging.warning("Failed to query the AUR: %s", e)
            return None

        buildables = (_aur_info_to_buildable(info) for info in infos)
        return _lookup_result(names, (pkg for pkg in buildables if pkg is not None))

    return core.cached_repository("aur", fetch)


def default_repository(settings: config_models.Settings) -> core.Repository:
    """
    The sync repositories first, then the AUR for anything they do not have.
    """
    return core.cascade(
        nonempty.NonEmptyList(
            [
                core.with_timeout(pacman_repository(settings), settings.source_timeout),
                core.with_timeout(aur_repository(settings), settings.source_timeout),
            ]
        )
    )
