import pathlib
import re

import aurmgr.logging
from aurmgr import version
from aurmgr.models import pkg as pkg_models

# e.g. linux-6.9.7.arch1-1-x86_64.pkg.tar.zst; epochs are kept in the file name as "1:2.0"
_artifact_re = re.compile(
    r"^(?P<name>.+)-(?P<pkgver>[^-]+)-(?P<pkgrel>[^-]+)-(?P<arch>[^-]+)\.pkg\.tar(?:\.\w+)?$"
)


def parse_artifact_name(file_name: str) -> pkg_models.SimplePkg | None:
    """
    The package and version a cached artifact holds, or None when the file is not an artifact.
    """
    if file_name.endswith(".sig"):
        return None

    match = _artifact_re.match(file_name)
    if match is None:
        return None

    parsed_version = version.try_parse_version(f"{match.group('pkgver')}-{match.group('pkgrel')}")
    if parsed_version is None:
        return None
    return pkg_models.SimplePkg(pkg_models.pkg_name(match.group("name")), parsed_version)


class ContentCache:
    """
    The package artifacts left behind by earlier installs, keyed by package and version.
    """

    def __init__(self, cache_dir: pathlib.Path):
        self.cache_dir = cache_dir
        self._contents: dict[pkg_models.SimplePkg, pathlib.Path] | None = None

    def contents(self) -> dict[pkg_models.SimplePkg, pathlib.Path]:
        if self._contents is None:
            self._contents = self._scan()
        return self._contents

    def lookup(self, simple_pkg: pkg_models.SimplePkg) -> pathlib.Path | None:
        return self.contents().get(simple_pkg)

    def _scan(self) -> dict[pkg_models.SimplePkg, pathlib.Path]:
        if not self.cache_dir.is_dir():
            aurmgr.logging.warning("Package cache %s does not exist", self.cache_dir)
            return {}

        contents: dict[pkg_models.SimplePkg, pathlib.Path] = {}
        for path in sorted(self.cache_dir.iterdir()):
            if not path.is_file():
                continue
            simple_pkg = parse_artifact_name(path.name)
            if simple_pkg is None:
                continue
            # Several compressions of the same build may be cached; the first one wins
            _ = contents.setdefault(simple_pkg, path)

        aurmgr.logging.debug("Found %d artifacts in %s", len(contents), self.cache_dir)
        return contents
