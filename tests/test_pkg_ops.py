import logging
import pathlib
import threading
import typing

import pytest
import requests

from aurmgr import nonempty
from aurmgr.errors import BuildError, ResolutionError
from aurmgr.models import pkg as pkg_models
from aurmgr.pkg import ops as pkg_ops

if typing.TYPE_CHECKING:
    from pytest_mock import MockerFixture

    import tests.conftest
    from aurmgr.models import config as config_models


def artifact_of(buildable: pkg_models.Buildable, name: str | None = None) -> pathlib.Path:
    if name is None:
        name = buildable.name.name
    return pathlib.Path(f"/build/{buildable.base}/{name}-{buildable.version}-x86_64.pkg.tar.zst")


class RecordingBuilder:
    def __init__(
        self, events: list[tuple[str, typing.Any]], split: dict[str, list[str]] | None = None
    ):
        self.events = events
        self.split = split if split is not None else {}
        self.lock = threading.Lock()

    def build(self, buildable: pkg_models.Buildable) -> list[pathlib.Path]:
        with self.lock:
            self.events.append(("build", buildable.base))
        names = self.split.get(buildable.base, [buildable.name.name])
        return [artifact_of(buildable, name) for name in names]


def names_of(*raw: str) -> nonempty.NonEmptySet[pkg_models.PkgName]:
    return nonempty.NonEmptySet(pkg_models.pkg_name(name) for name in raw)


class TestResolve:
    def test_total_failure(self, helpers: "tests.conftest.Helpers"):
        repository = helpers.static_repository("broken", [], fail=True)

        with pytest.raises(ResolutionError):
            _ = pkg_ops.resolve(names_of("yay"), repository)

    def test_partial_resolution(
        self, helpers: "tests.conftest.Helpers", caplog: pytest.LogCaptureFixture
    ):
        # GIVEN: a repository that only knows yay
        repository = helpers.static_repository("aur", [helpers.buildable("yay")])

        # WHEN: resolving yay and an unknown name
        with caplog.at_level(logging.WARNING, logger="aurmgr"):
            resolved = pkg_ops.resolve(names_of("yay", "nonexistent"), repository)

        # THEN: yay is resolved, and the unknown name is reported
        assert resolved == {helpers.buildable("yay")}
        assert "nonexistent" in caplog.text


class TestInstallWaves:
    def test_wave_barrier(self, mocker: "MockerFixture", helpers: "tests.conftest.Helpers"):
        # GIVEN: a buildable x in the first wave, and prebuilt y with buildable z in the second
        x = helpers.buildable("x")
        y = helpers.prebuilt("y")
        z = helpers.buildable("z")
        waves = nonempty.NonEmptyList([nonempty.NonEmptySet([x]), nonempty.NonEmptySet([y, z])])

        events: list[tuple[str, typing.Any]] = []
        pacman = mocker.MagicMock()
        pacman.install_repo_pkgs.side_effect = lambda names: events.append(
            ("sync", [name.name for name in names])
        )
        pacman.install_files.side_effect = lambda paths, as_deps=False: events.append(
            ("install", [path.name for path in paths])
        )

        # WHEN: installing the waves
        pkg_ops.install_waves(waves, pacman, RecordingBuilder(events), parallel=4)

        # THEN: prebuilt packages go first, and z is only built once x is installed
        assert events == [
            ("sync", ["y"]),
            ("build", "x"),
            ("install", [artifact_of(x).name]),
            ("build", "z"),
            ("install", [artifact_of(z).name]),
        ]
        # y was not asked for explicitly
        pacman.mark_as_deps.assert_called_once_with([pkg_models.PkgName("y")])

    def test_explicit_packages(self, mocker: "MockerFixture", helpers: "tests.conftest.Helpers"):
        # GIVEN: a wave with an explicit target and a dependency
        target = helpers.buildable("yay", is_explicit=True)
        dep = helpers.buildable("yay-deps")
        prebuilt = helpers.prebuilt("go")
        pacman = mocker.MagicMock()

        # WHEN: installing it
        pkg_ops.install_waves(
            nonempty.NonEmptyList([nonempty.NonEmptySet([target, dep, prebuilt])]),
            pacman,
            RecordingBuilder([]),
            explicit={prebuilt.name},
        )

        # THEN: only the dependency is installed as one
        assert pacman.install_files.call_args_list == [
            mocker.call([artifact_of(target)]),
            mocker.call([artifact_of(dep)], as_deps=True),
        ]
        pacman.mark_as_deps.assert_not_called()

    def test_prebuilt_only(self, mocker: "MockerFixture", helpers: "tests.conftest.Helpers"):
        pacman = mocker.MagicMock()
        builder = mocker.MagicMock()

        pkg_ops.install_waves(
            nonempty.NonEmptyList([nonempty.NonEmptySet([helpers.prebuilt("go")])]),
            pacman,
            builder,
        )

        pacman.install_repo_pkgs.assert_called_once_with([pkg_models.PkgName("go")])
        builder.build.assert_not_called()
        pacman.install_files.assert_not_called()


class TestBuildWave:
    def test_split_packages_build_once(self, helpers: "tests.conftest.Helpers"):
        # GIVEN: two packages from the same package base, and one from another
        python_foo = helpers.buildable("python-foo", base="foo")
        python_foo_docs = helpers.buildable("python-foo-docs", base="foo")
        bar = helpers.buildable("bar")
        events: list[tuple[str, typing.Any]] = []
        builder = RecordingBuilder(events, split={"foo": ["python-foo", "python-foo-docs"]})

        # WHEN: building the wave in parallel
        built = pkg_ops.build_wave(
            nonempty.NonEmptySet([python_foo, python_foo_docs, bar]), builder, parallel=2
        )

        # THEN: each base is built once and every package has its file
        assert sorted(events) == [("build", "bar"), ("build", "foo")]
        assert built == {
            python_foo.name: artifact_of(python_foo),
            python_foo_docs.name: artifact_of(python_foo, "python-foo-docs"),
            bar.name: artifact_of(bar),
        }

    def test_missing_package_file(self, helpers: "tests.conftest.Helpers"):
        # GIVEN: a build that does not produce one of the packages it should
        builder = RecordingBuilder([], split={"foo": ["python-foo"]})
        wave = nonempty.NonEmptySet(
            [
                helpers.buildable("python-foo", base="foo"),
                helpers.buildable("python-foo-docs", base="foo"),
            ]
        )

        with pytest.raises(BuildError):
            _ = pkg_ops.build_wave(wave, builder, parallel=1)


class TestInstall:
    def test_targets_are_explicit(
        self,
        mocker: "MockerFixture",
        settings: "config_models.Settings",
        helpers: "tests.conftest.Helpers",
    ):
        # GIVEN: yay in the AUR, whose dependency is installed
        _ = mocker.patch(
            "aurmgr.pkg.ops.sources.default_repository",
            return_value=helpers.static_repository(
                "default", [helpers.buildable("yay", depends=("pacman",))]
            ),
        )
        pacman_mock = mocker.patch("aurmgr.pkg.ops.Pacman")
        pacman_mock.return_value.unsatisfied.return_value = set()
        install_waves_mock = mocker.patch("aurmgr.pkg.ops.install_waves")

        # WHEN: installing yay
        pkg_ops.install(names_of("yay"), settings)

        # THEN: yay is installed as an explicit package in a single wave
        (waves, _, _, _) = install_waves_mock.call_args.args
        assert list(waves) == [{helpers.buildable("yay", depends=("pacman",), is_explicit=True)}]
        assert install_waves_mock.call_args.kwargs["explicit"] == {pkg_models.PkgName("yay")}

    def test_unsatisfied_dependency(
        self,
        mocker: "MockerFixture",
        settings: "config_models.Settings",
        helpers: "tests.conftest.Helpers",
    ):
        # GIVEN: yay depends on something that is not installed
        _ = mocker.patch(
            "aurmgr.pkg.ops.sources.default_repository",
            return_value=helpers.static_repository(
                "default", [helpers.buildable("yay", depends=("go-bin",))]
            ),
        )
        pacman_mock = mocker.patch("aurmgr.pkg.ops.Pacman")
        pacman_mock.return_value.unsatisfied.side_effect = lambda deps: set(deps)
        install_waves_mock = mocker.patch("aurmgr.pkg.ops.install_waves")

        # THEN: nothing is installed
        with pytest.raises(RuntimeError, match="go-bin"):
            pkg_ops.install(names_of("yay"), settings)
        install_waves_mock.assert_not_called()

    def test_dependency_among_targets(
        self,
        mocker: "MockerFixture",
        settings: "config_models.Settings",
        helpers: "tests.conftest.Helpers",
    ):
        # GIVEN: both yay and its missing dependency are targets
        _ = mocker.patch(
            "aurmgr.pkg.ops.sources.default_repository",
            return_value=helpers.static_repository(
                "default", [helpers.buildable("yay", depends=("go",)), helpers.prebuilt("go")]
            ),
        )
        pacman_mock = mocker.patch("aurmgr.pkg.ops.Pacman")
        install_waves_mock = mocker.patch("aurmgr.pkg.ops.install_waves")

        pkg_ops.install(names_of("yay", "go"), settings)

        # THEN: the dependency is not checked against the system
        pacman_mock.return_value.unsatisfied.assert_not_called()
        install_waves_mock.assert_called_once()


class TestUpgrade:
    @pytest.fixture(name="aur")
    def aur_fixture(self, mocker: "MockerFixture", helpers: "tests.conftest.Helpers"):
        return mocker.patch(
            "aurmgr.pkg.ops.sources.aur_repository",
            return_value=helpers.static_repository(
                "aur",
                [
                    helpers.buildable("yay", "12.3.5-1"),
                    helpers.buildable("paru", "2.0.3-1"),
                    helpers.buildable("neovim-git", "0.10.0.r1-1"),
                ],
            ),
        )

    @pytest.fixture(name="pacman_mock")
    def pacman_mock_fixture(self, mocker: "MockerFixture", helpers: "tests.conftest.Helpers"):
        pacman_mock = mocker.patch("aurmgr.pkg.ops.Pacman")
        pacman_mock.return_value.foreign_packages.return_value = {
            helpers.name("yay"): "12.3.4-1",
            helpers.name("paru"): "2.0.3-1",
            helpers.name("neovim-git"): "0.10.0.r1-1",
        }
        return pacman_mock

    def test_possible_updates(self, helpers: "tests.conftest.Helpers"):
        repository = helpers.static_repository(
            "aur", [helpers.buildable("yay", "12.3.5-1"), helpers.buildable("paru", "2.0.3-1")]
        )
        foreign = {helpers.name("yay"): "12.3.4-1", helpers.name("paru"): "2.0.3-1"}

        updates = pkg_ops.possible_updates(foreign, repository)

        assert updates == [
            pkg_ops.Update(helpers.name("yay"), "12.3.4-1", helpers.version("12.3.5-1"))
        ]

    def test_unparsable_installed_version_is_outdated(self, helpers: "tests.conftest.Helpers"):
        repository = helpers.static_repository("aur", [helpers.buildable("yay", "12.3.5-1")])

        updates = pkg_ops.possible_updates({helpers.name("yay"): "???"}, repository)

        assert updates == [pkg_ops.Update(helpers.name("yay"), "???", helpers.version("12.3.5-1"))]

    def test_no_foreign_packages(self, helpers: "tests.conftest.Helpers"):
        calls: list[set[pkg_models.PkgName]] = []
        repository = helpers.static_repository("aur", [], calls)

        assert pkg_ops.possible_updates({}, repository) == []
        assert calls == []

    @pytest.mark.usefixtures("aur", "pacman_mock")
    def test_upgrade(self, mocker: "MockerFixture", settings: "config_models.Settings"):
        # GIVEN: an outdated yay
        save_state_mock = mocker.patch("aurmgr.pkg.ops.state_ops.save_state")
        install_mock = mocker.patch("aurmgr.pkg.ops.install")

        # WHEN: upgrading
        updates = pkg_ops.upgrade([], settings)

        # THEN: the state is saved before yay is upgraded
        assert [update.name.name for update in updates] == ["yay"]
        save_state_mock.assert_called_once()
        install_mock.assert_called_once_with(names_of("yay"), settings)

    @pytest.mark.usefixtures("aur", "pacman_mock")
    def test_dry_run(self, mocker: "MockerFixture", settings: "config_models.Settings"):
        save_state_mock = mocker.patch("aurmgr.pkg.ops.state_ops.save_state")
        install_mock = mocker.patch("aurmgr.pkg.ops.install")

        updates = pkg_ops.upgrade([], settings, dry_run=True)

        assert len(updates) == 1
        save_state_mock.assert_not_called()
        install_mock.assert_not_called()

    @pytest.mark.usefixtures("aur", "pacman_mock")
    def test_ignored(self, mocker: "MockerFixture", settings: "config_models.Settings"):
        # GIVEN: yay is ignored
        settings = settings.model_copy(update={"ignore": [pkg_models.PkgName("yay")]})
        save_state_mock = mocker.patch("aurmgr.pkg.ops.state_ops.save_state")
        install_mock = mocker.patch("aurmgr.pkg.ops.install")

        # THEN: there is nothing to upgrade
        assert pkg_ops.upgrade([], settings) == []
        save_state_mock.assert_not_called()
        install_mock.assert_not_called()

    @pytest.mark.usefixtures("aur", "pacman_mock")
    def test_devel_and_extra(self, mocker: "MockerFixture", settings: "config_models.Settings"):
        _ = mocker.patch("aurmgr.pkg.ops.state_ops.save_state")
        install_mock = mocker.patch("aurmgr.pkg.ops.install")

        _ = pkg_ops.upgrade([pkg_models.PkgName("paru-bin")], settings, devel=True)

        install_mock.assert_called_once_with(
            names_of("yay", "neovim-git", "paru-bin"), settings
        )


class TestInfo:
    def test_info(
        self,
        mocker: "MockerFixture",
        settings: "config_models.Settings",
        helpers: "tests.conftest.Helpers",
        caplog: pytest.LogCaptureFixture,
    ):
        # GIVEN: an AUR that only knows python-foo
        _ = mocker.patch(
            "aurmgr.repository.sources.requests.get",
            return_value=helpers.http_response(
                {
                    "type": "multiinfo",
                    "results": [
                        {
                            "Name": "python-foo",
                            "Version": "1.0-1",
                            "PackageBase": "foo",
                            "Depends": ["python", "python-requests"],
                            "MakeDepends": ["python-build"],
                        }
                    ],
                }
            ),
        )

        # WHEN: asking about python-foo and an unknown name
        with caplog.at_level(logging.WARNING, logger="aurmgr"):
            infos = pkg_ops.info(names_of("python-foo", "nonexistent"), settings)

        # THEN: python-foo is described, and the unknown name is reported
        assert [info.name for info in infos] == ["python-foo"]
        assert "nonexistent" in caplog.text

        rendered = pkg_ops.render_info(infos[0], settings.aur_url).splitlines()
        assert "Name         : python-foo" in rendered
        assert "Version      : 1.0-1" in rendered
        assert "Package Base : foo" in rendered
        assert "Depends On   : python python-requests" in rendered
        assert "Build Deps   : python-build" in rendered
        assert "Maintainer   : (orphaned)" in rendered
        assert f"AUR URL      : {settings.aur_url}/packages/python-foo" in rendered

    def test_unreachable_aur(
        self,
        mocker: "MockerFixture",
        settings: "config_models.Settings",
        helpers: "tests.conftest.Helpers",
    ):
        _ = mocker.patch(
            "aurmgr.repository.sources.requests.get",
            return_value=helpers.http_response({}, status_code=503),
        )

        with pytest.raises(ResolutionError, match="503"):
            _ = pkg_ops.info(names_of("yay"), settings)


class TestSearch:
    def test_installed_results_are_marked(
        self,
        mocker: "MockerFixture",
        settings: "config_models.Settings",
        helpers: "tests.conftest.Helpers",
    ):
        # GIVEN: two search results, one of them installed
        _ = mocker.patch(
            "aurmgr.repository.sources.requests.get",
            return_value=helpers.http_response(
                {
                    "type": "search",
                    "results": [
                        {
                            "Name": "yay-bin",
                            "Version": "12.3.5-1",
                            "Description": "Yet another yogurt",
                            "NumVotes": 120,
                            "Popularity": 1.5,
                        },
                        {
                            "Name": "yay",
                            "Version": "12.3.5-1",
                            "Description": "Yet another yogurt",
                            "NumVotes": 2400,
                            "Popularity": 21.456,
                            "OutOfDate": 1717243200,
                        },
                    ],
                }
            ),
        )
        pacman_mock = mocker.patch("aurmgr.pkg.ops.Pacman")
        pacman_mock.return_value.foreign_packages.return_value = {helpers.name("yay"): "12.3.4-1"}

        # WHEN: searching
        results = pkg_ops.search("yay", settings)

        # THEN: results are sorted by name, and only yay is marked as installed
        assert [(result.info.name, result.installed) for result in results] == [
            ("yay", True),
            ("yay-bin", False),
        ]
        assert pkg_ops.render_search_result(results[0]) == (
            "aur/yay 12.3.5-1 (2400 | 21.46) (Out of Date) [installed]\n    Yet another yogurt"
        )
        assert pkg_ops.render_search_result(results[1]) == (
            "aur/yay-bin 12.3.5-1 (120 | 1.50)\n    Yet another yogurt"
        )

    def test_empty_term(self, settings: "config_models.Settings"):
        with pytest.raises(RuntimeError, match="Nothing to search for"):
            _ = pkg_ops.search("  ", settings)

    def test_unreachable_aur(
        self,
        mocker: "MockerFixture",
        settings: "config_models.Settings",
    ):
        _ = mocker.patch(
            "aurmgr.repository.sources.requests.get",
            side_effect=requests.ConnectionError("unreachable"),
        )
        pacman_mock = mocker.patch("aurmgr.pkg.ops.Pacman")

        with pytest.raises(ResolutionError, match="unreachable"):
            _ = pkg_ops.search("yay", settings)
        pacman_mock.return_value.foreign_packages.assert_not_called()
