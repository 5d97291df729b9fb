import typing

import typer

import aurmgr.config
from aurmgr import nonempty
from aurmgr.cmd.util import reported_errors
from aurmgr.models import aur as aur_models
from aurmgr.models import pkg as pkg_models
from aurmgr.pkg import ops as pkg_ops


def install(
    pkgs: typing.Annotated[list[str], typer.Argument(help="Packages to install")],
):
    with reported_errors():
        settings = aurmgr.config.load_settings()
        names = nonempty.nonempty_set(pkg_models.pkg_name_list(pkgs))
        if names is None:
            raise RuntimeError("No package to install")
        pkg_ops.install(names, settings)


def upgrade(
    pkgs: typing.Annotated[
        list[str] | None, typer.Argument(help="Extra packages to install alongside")
    ] = None,
    dry_run: typing.Annotated[
        bool, typer.Option("--dry-run", help="Only report what would be upgraded")
    ] = False,
    devel: typing.Annotated[
        bool, typer.Option("--devel", help="Rebuild packages built from version control")
    ] = False,
):
    if pkgs is None:
        pkgs = []

    with reported_errors():
        settings = aurmgr.config.load_settings()
        _ = pkg_ops.upgrade(
            pkg_models.pkg_name_list(pkgs), settings, dry_run=dry_run, devel=devel
        )


def info(
    pkgs: typing.Annotated[list[str], typer.Argument(help="Packages to look up in the AUR")],
    as_json: typing.Annotated[
        bool, typer.Option("--json", help="Print the AUR metadata as JSON")
    ] = False,
):
    with reported_errors():
        settings = aurmgr.config.load_settings()
        names = nonempty.nonempty_set(pkg_models.pkg_name_list(pkgs))
        if names is None:
            raise RuntimeError("No package to look up")
        infos = pkg_ops.info(names, settings)
        if as_json:
            print(aur_models.aur_info_list.dump_json(infos, by_alias=True, indent=2).decode())
        else:
            blocks = [pkg_ops.render_info(pkg_info, settings.aur_url) for pkg_info in infos]
            print("\n\n".join(blocks))


def search(
    term: typing.Annotated[str, typer.Argument(help="Text to look for in names and descriptions")],
):
    with reported_errors():
        settings = aurmgr.config.load_settings()
        for result in pkg_ops.search(term, settings):
            print(pkg_ops.render_search_result(result))
