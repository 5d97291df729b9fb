import collections.abc
import pathlib
import subprocess

import aurmgr.logging
import aurmgr.process
from aurmgr import version
from aurmgr.errors import PacmanError
from aurmgr.models import config as config_models
from aurmgr.models import pkg as pkg_models

pacman_lock_file = pathlib.Path("/var/lib/pacman/db.lck")

# pacman -T exits with this code when some dependencies are unsatisfied
_unsatisfied_returncode = 127


def _parse_info_blocks(output: str) -> list[dict[str, str]]:
    """
    Parse the "Key : Value" blocks printed by pacman -Si / -Qi.
    Values that wrap onto indented continuation lines are joined back together.
    """
    blocks: list[dict[str, str]] = []
    current: dict[str, str] = {}
    last_key: str | None = None

    for line in output.splitlines():
        if line.strip() == "":
            if current:
                blocks.append(current)
            current = {}
            last_key = None
            continue

        if line[0].isspace() and last_key is not None:
            current[last_key] = f"{current[last_key]} {line.strip()}"
            continue

        key, sep, value = line.partition(":")
        if sep == "":
            continue
        last_key = key.strip()
        current[last_key] = value.strip()

    if current:
        blocks.append(current)
    return blocks


def _parse_dep_field(value: str) -> tuple[pkg_models.Dep, ...]:
    if value in ("", "None"):
        return ()
    deps = (pkg_models.parse_dep(raw) for raw in value.split())
    return tuple(dep for dep in deps if dep is not None)


class Pacman:
    """
    The system package database, driven through the pacman command line.
    """

    def __init__(self, settings: config_models.Settings):
        self.binary = settings.pacman
        self.flags = list(settings.pacman_flags)

    def run(
        self, args: list[str], *, capture_output: bool = True
    ) -> subprocess.CompletedProcess[str]:
        return aurmgr.process.run_command([self.binary, *args], capture_output=capture_output)

    def lines(self, args: list[str], *, allowed_returncodes: tuple[int, ...] = (0,)) -> list[str]:
        """
        Run a query and return its non-empty output lines.
        """
        process = self.run(args)
        if process.returncode not in allowed_returncodes:
            raise PacmanError([self.binary, *args], process.returncode, process.stderr)
        return [line for line in process.stdout.splitlines() if line.strip() != ""]

    def _modify(self, args: list[str]) -> None:
        self.check_db_lock()
        command = [*args, *self.flags]
        # Let pacman talk to the user directly
        process = self.run(command, capture_output=False)
        if process.returncode != 0:
            raise PacmanError([self.binary, *command], process.returncode)

    def check_db_lock(self) -> None:
        if pacman_lock_file.exists():
            raise RuntimeError(
                f"The package database is locked by {pacman_lock_file}. "
                "Wait for the other package manager to finish."
            )

    def query_installed(self) -> dict[pkg_models.PkgName, version.Versioning]:
        """
        Every installed package and its version. Unparsable versions are skipped.
        """
        installed: dict[pkg_models.PkgName, version.Versioning] = {}
        for line in self.lines(["-Q"]):
            simple_pkg = pkg_models.simple_pkg_from_line(line)
            if simple_pkg is None:
                aurmgr.logging.debug("Skipping unparsable package line %r", line)
                continue
            installed[simple_pkg.name] = simple_pkg.version
        return installed

    def foreign_packages(self) -> dict[pkg_models.PkgName, str]:
        """
        Installed packages that are not found in any sync repository, with their versions as
        pacman prints them. Versions are left unparsed so that broken ones can still be upgraded.
        """
        foreign: dict[pkg_models.PkgName, str] = {}
        # pacman exits with 1 when there is nothing to list
        for line in self.lines(["-Qm"], allowed_returncodes=(0, 1)):
            parts = line.split()
            if len(parts) != 2:
                aurmgr.logging.debug("Skipping unparsable package line %r", line)
                continue
            foreign[pkg_models.pkg_name(parts[0])] = parts[1]
        return foreign

    def orphans(self) -> set[pkg_models.PkgName]:
        """
        Packages installed as dependencies that nothing requires any more.
        """
        lines = self.lines(["-Qqdt"], allowed_returncodes=(0, 1))
        return set(pkg_models.pkg_name_list(lines))

    def is_installed(self, name: pkg_models.PkgName) -> bool:
        return self.run(["-Qq", name.name]).returncode == 0

    def unsatisfied(self, deps: collections.abc.Iterable[pkg_models.Dep]) -> set[pkg_models.Dep]:
        """
        Batch check dependencies with a single pacman -T call.
        Returns the dependencies pacman reports as not satisfied by anything installed.
        """
        rendered = [pkg_models.rendered_dep(dep) for dep in deps]
        lines = self.lines(["-T", *rendered], allowed_returncodes=(0, _unsatisfied_returncode))
        parsed = (pkg_models.parse_dep(line) for line in lines)
        return {dep for dep in parsed if dep is not None}

    def sync_info(
        self, names: collections.abc.Iterable[pkg_models.PkgName]
    ) -> list[pkg_models.Prebuilt]:
        """
        Look up packages in the sync repositories. Names that are not found are simply absent from
        the result.
        """
        args = ["-Si", *(name.name for name in names)]
        process = self.run(args)
        if process.returncode not in (0, 1):
            raise PacmanError([self.binary, *args], process.returncode, process.stderr)

        # Exit code 1 is fine as long as the only complaints are about unknown packages
        for line in process.stderr.splitlines():
            if line.startswith("error:") and "was not found" not in line:
                raise PacmanError([self.binary, *args], process.returncode, process.stderr)

        pkgs: list[pkg_models.Prebuilt] = []
        for block in _parse_info_blocks(process.stdout):
            if "Name" not in block or "Version" not in block:
                continue
            parsed_version = version.try_parse_version(block["Version"])
            if parsed_version is None:
                aurmgr.logging.warning(
                    "Ignoring %s with unparsable version %s", block["Name"], block["Version"]
                )
                continue
            pkgs.append(
                pkg_models.Prebuilt(
                    name=pkg_models.pkg_name(block["Name"]),
                    version=parsed_version,
                    repository=block.get("Repository", ""),
                    depends=_parse_dep_field(block.get("Depends On", "")),
                )
            )
        return pkgs

    def install_repo_pkgs(
        self, names: collections.abc.Iterable[pkg_models.PkgName], *, as_deps: bool = False
    ) -> None:
        args = ["-S", *(name.name for name in names)]
        if as_deps:
            args.append("--asdeps")
        self._modify(args)

    def install_files(
        self, paths: collections.abc.Iterable[pathlib.Path], *, as_deps: bool = False
    ) -> None:
        args = ["-U", *(path.as_posix() for path in paths)]
        if as_deps:
            args.append("--asdeps")
        self._modify(args)

    def mark_as_deps(self, names: collections.abc.Iterable[pkg_models.PkgName]) -> None:
        self._modify(["-D", "--asdeps", *(name.name for name in names)])

    def remove_pkgs(self, names: collections.abc.Iterable[pkg_models.PkgName]) -> None:
        self._modify(["-R", *(name.name for name in names)])
