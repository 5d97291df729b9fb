import typing

import pydantic


def _null_as_empty(value: typing.Any) -> typing.Any:
    return [] if value is None else value


NullableList = typing.Annotated[list[str], pydantic.BeforeValidator(_null_as_empty)]


class AurInfo(pydantic.BaseModel):
    """
    One package as described by the AUR RPC interface. Field aliases are the RPC's own keys.
    """

    model_config = pydantic.ConfigDict(frozen=True, populate_by_name=True)

    name: str = pydantic.Field(alias="Name")
    version: str = pydantic.Field(alias="Version")
    base: str | None = pydantic.Field(default=None, alias="PackageBase")
    description: str | None = pydantic.Field(default=None, alias="Description")
    url: str | None = pydantic.Field(default=None, alias="URL")
    maintainer: str | None = pydantic.Field(default=None, alias="Maintainer")
    votes: int = pydantic.Field(default=0, alias="NumVotes")
    popularity: float = pydantic.Field(default=0.0, alias="Popularity")
    # Unix timestamp of when the package was flagged
    out_of_date: int | None = pydantic.Field(default=None, alias="OutOfDate")
    license: NullableList = pydantic.Field(default=[], alias="License")
    depends: NullableList = pydantic.Field(default=[], alias="Depends")
    make_depends: NullableList = pydantic.Field(default=[], alias="MakeDepends")

    @property
    def package_base(self) -> str:
        return self.base if self.base else self.name


aur_info_list = pydantic.TypeAdapter(list[AurInfo])
