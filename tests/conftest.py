import datetime
import pathlib
import subprocess
import typing

import pytest
import requests

from aurmgr import version
from aurmgr.models import config as config_models
from aurmgr.models import pkg as pkg_models
from aurmgr.repository import core as repository_core
from aurmgr.state import core as state_core

if typing.TYPE_CHECKING:
    import pyfakefs.fake_filesystem


@pytest.fixture(name="settings")
def settings_fixture(fs: "pyfakefs.fake_filesystem.FakeFilesystem") -> config_models.Settings:
    settings = config_models.Settings(
        state_dir=pathlib.Path("/var/cache/aurmgr/states"),
        cache_dir=pathlib.Path("/var/cache/pacman/pkg"),
        build_dir=pathlib.Path("/home/builder/.cache/aurmgr/build"),
        pacman_flags=["--noconfirm"],
        source_timeout=5,
    )
    _ = fs.create_dir(settings.cache_dir)
    return settings


class MockHttpResponse:
    def __init__(self, body: dict[str, typing.Any], status_code: int = 200):
        self.body = body
        self.status_code = status_code
        self.ok = status_code < 400

    def json(self) -> dict[str, typing.Any]:
        return self.body

    def raise_for_status(self):
        if not self.ok:
            raise requests.HTTPError(f"HTTP error: {self.status_code}")


class Helpers:
    @staticmethod
    def name(raw: str) -> pkg_models.PkgName:
        return pkg_models.pkg_name(raw)

    @staticmethod
    def version(raw: str) -> version.Versioning:
        return version.parse_version(raw)

    @staticmethod
    def simple_pkg(name: str, raw_version: str) -> pkg_models.SimplePkg:
        return pkg_models.SimplePkg(pkg_models.pkg_name(name), version.parse_version(raw_version))

    @staticmethod
    def state(
        packages: dict[str, str],
        *,
        pinned: bool = False,
        time: datetime.datetime | None = None,
    ) -> state_core.PkgState:
        if time is None:
            time = datetime.datetime(2024, 6, 1, 12, 0, 0)
        return state_core.PkgState(
            time=time,
            pinned=pinned,
            packages={
                pkg_models.pkg_name(name): version.parse_version(raw_version)
                for name, raw_version in packages.items()
            },
        )

    @staticmethod
    def prebuilt(
        name: str, raw_version: str = "1.0-1", depends: tuple[str, ...] = ()
    ) -> pkg_models.Prebuilt:
        return pkg_models.Prebuilt(
            name=pkg_models.pkg_name(name),
            version=version.parse_version(raw_version),
            repository="extra",
            depends=tuple(pkg_models.Dep(pkg_models.pkg_name(dep)) for dep in depends),
        )

    @staticmethod
    def buildable(
        name: str,
        raw_version: str = "1.0-1",
        *,
        base: str | None = None,
        depends: tuple[str, ...] = (),
        is_explicit: bool = False,
    ) -> pkg_models.Buildable:
        return pkg_models.Buildable(
            name=pkg_models.pkg_name(name),
            version=version.parse_version(raw_version),
            base=base if base is not None else name,
            depends=tuple(pkg_models.Dep(pkg_models.pkg_name(dep)) for dep in depends),
            is_explicit=is_explicit,
        )

    @staticmethod
    def static_repository(
        name: str,
        pkgs: list[pkg_models.Package],
        calls: list[set[pkg_models.PkgName]] | None = None,
        *,
        fail: bool = False,
    ) -> repository_core.Repository:
        """
        A repository backed by a fixed list of packages that records every batch it is asked for.
        """

        def lookup(
            names: typing.AbstractSet[pkg_models.PkgName],
        ) -> repository_core.LookupResult | None:
            if calls is not None:
                calls.append(set(names))
            if fail:
                return None
            resolved = frozenset(pkg for pkg in pkgs if pkg_models.package_name(pkg) in names)
            resolved_names = {pkg_models.package_name(pkg) for pkg in resolved}
            return repository_core.LookupResult(
                unresolved=frozenset(name for name in names if name not in resolved_names),
                resolved=resolved,
            )

        return repository_core.Repository(name=name, lookup_fn=lookup)

    @staticmethod
    def http_response(body: dict[str, typing.Any], status_code: int = 200) -> MockHttpResponse:
        return MockHttpResponse(body, status_code)

    @staticmethod
    def completed(
        stdout: str = "", returncode: int = 0, stderr: str = ""
    ) -> subprocess.CompletedProcess[str]:
        return subprocess.CompletedProcess(
            args=[], returncode=returncode, stdout=stdout, stderr=stderr
        )


@pytest.fixture(name="helpers")
def helpers_fixture() -> Helpers:
    return Helpers()
