import collections.abc
import dataclasses
import pathlib
import typing

import aurmgr.logging
from aurmgr.cache import ContentCache
from aurmgr.errors import ReconcileError
from aurmgr.models import pkg as pkg_models
from aurmgr.state import core as state_core


class Installer(typing.Protocol):
    def install_files(self, paths: collections.abc.Iterable[pathlib.Path]) -> None: ...

    def remove_pkgs(self, names: collections.abc.Iterable[pkg_models.PkgName]) -> None: ...


@dataclasses.dataclass
class ReconcileOutcome:
    reinstalled: list[pathlib.Path] = dataclasses.field(default_factory=list)
    removed: list[pkg_models.PkgName] = dataclasses.field(default_factory=list)
    missing: list[pkg_models.SimplePkg] = dataclasses.field(default_factory=list)
    failures: list[RuntimeError] = dataclasses.field(default_factory=list)

    @property
    def ok(self) -> bool:
        return len(self.failures) == 0

    def raise_for_failures(self):
        if not self.ok:
            raise ReconcileError(self.failures)


def reconcile(
    diff: state_core.StateDiff, cache: ContentCache, installer: Installer
) -> ReconcileOutcome:
    """
    Apply a state diff: reinstall the recorded versions from the package cache, then remove the
    packages that should not be there.

    Versions that are no longer cached are reported and skipped. The reinstall and the removal are
    each one batched call, and the removal is attempted even when the reinstall failed.
    """
    outcome = ReconcileOutcome()

    found: list[pathlib.Path] = []
    for simple_pkg in diff.to_alter:
        path = cache.lookup(simple_pkg)
        if path is None:
            outcome.missing.append(simple_pkg)
        else:
            found.append(path)

    if len(outcome.missing) > 0:
        aurmgr.logging.warning(
            "These versions are not in the package cache and will be skipped: %s",
            ", ".join(str(simple_pkg) for simple_pkg in outcome.missing),
        )

    if len(found) == 0 and len(diff.to_remove) == 0:
        aurmgr.logging.info("Nothing to do")
        return outcome

    if len(found) > 0:
        aurmgr.logging.info("Reinstalling %d packages", len(found))
        try:
            installer.install_files(found)
            outcome.reinstalled.extend(found)
        except RuntimeError as e:
            outcome.failures.append(e)

    if len(diff.to_remove) > 0:
        aurmgr.logging.info("Removing %d packages", len(diff.to_remove))
        try:
            installer.remove_pkgs(diff.to_remove)
            outcome.removed.extend(diff.to_remove)
        except RuntimeError as e:
            outcome.failures.append(e)

    return outcome
