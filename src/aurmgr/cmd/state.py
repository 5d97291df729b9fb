import typing

import typer

import aurmgr.config
import aurmgr.logging
from aurmgr.cmd.util import reported_errors
from aurmgr.errors import StateReadError
from aurmgr.pacman import Pacman
from aurmgr.state import ops as state_ops

state_app = typer.Typer()


@state_app.command()
def save():
    with reported_errors():
        settings = aurmgr.config.load_settings()
        _ = state_ops.save_state(settings.state_dir, Pacman(settings).query_installed)


@state_app.command(name="list")
def list_states():
    with reported_errors():
        settings = aurmgr.config.load_settings()
        for state_file in state_ops.get_state_files(settings.state_dir):
            try:
                state = state_ops.read_state(state_file)
            except StateReadError as e:
                aurmgr.logging.warning("%s", e)
                continue
            marker = " (pinned)" if state.pinned else ""
            print(f"{state_file.stem}{marker}")


@state_app.command()
def restore(
    state_name: typing.Annotated[
        str | None, typer.Option("--state", help="State to restore, the newest by default")
    ] = None,
):
    with reported_errors():
        settings = aurmgr.config.load_settings()
        state_file = state_ops.find_state_file(settings.state_dir, state_name)
        state_ops.restore_state(state_file, settings)


@state_app.command()
def clean(
    keep: typing.Annotated[int, typer.Option(min=0, help="Number of unpinned states to keep")],
):
    with reported_errors():
        settings = aurmgr.config.load_settings()
        _ = state_ops.clean_states(settings.state_dir, keep)


@state_app.command()
def pin(
    state_name: typing.Annotated[str, typer.Argument()],
    unpin: typing.Annotated[bool, typer.Option("--unpin")] = False,
):
    with reported_errors():
        settings = aurmgr.config.load_settings()
        state_file = state_ops.find_state_file(settings.state_dir, state_name)
        state_ops.pin_state(state_file, pinned=not unpin)
