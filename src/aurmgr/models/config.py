import pathlib
import typing

import pydantic

import aurmgr.constants
from aurmgr.models import pkg as pkg_models


class Settings(pydantic.BaseModel):
    """
    aurmgr configuration, read from /etc/aurmgr.toml
    """

    model_config = pydantic.ConfigDict(extra="forbid", frozen=True)

    state_dir: pathlib.Path = aurmgr.constants.aurmgr_state_dir
    cache_dir: pathlib.Path = aurmgr.constants.pacman_cache_dir
    build_dir: pathlib.Path = aurmgr.constants.aurmgr_build_dir

    pacman: str = "pacman"
    # Passed to every pacman call that changes the system, e.g. ["--noconfirm"]
    pacman_flags: list[str] = []

    aur_url: str = aurmgr.constants.aur_url
    # Seconds a package source may take before it counts as unreachable
    source_timeout: typing.Annotated[float, pydantic.Field(gt=0)] = 30.0
    parallel: typing.Annotated[int, pydantic.Field(ge=1)] = 1

    ignore: typing.Annotated[
        list[pkg_models.PkgName],
        pydantic.BeforeValidator(lambda names: pkg_models.pkg_name_list(names)),
    ] = []

    @pydantic.field_serializer("ignore")
    def serialize_ignore(self, ignore: list[pkg_models.PkgName]) -> list[str]:
        return [name.name for name in ignore]
