import datetime
import typing

import pydantic

import aurmgr.logging
from aurmgr import version


def _drop_unparsable_versions(packages: dict[str, str]) -> dict[str, str]:
    kept: dict[str, str] = {}
    for name, raw_version in packages.items():
        if version.try_parse_version(raw_version) is None:
            aurmgr.logging.debug("Dropping %s with unparsable version %s", name, raw_version)
            continue
        kept[name] = raw_version
    return kept


class PkgStateModel(pydantic.BaseModel):
    """
    On-disk form of a package state snapshot.
    """

    time: datetime.datetime
    pinned: bool = False
    packages: typing.Annotated[
        dict[str, str], pydantic.AfterValidator(_drop_unparsable_versions)
    ]
