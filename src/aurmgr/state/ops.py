import datetime
import pathlib

import pydantic

import aurmgr.logging
from aurmgr import util
from aurmgr.cache import ContentCache
from aurmgr.errors import StateReadError
from aurmgr.models import config as config_models
from aurmgr.models import state as state_models
from aurmgr.pacman import Pacman
from aurmgr.state import core as state_core
from aurmgr.state import reconcile as state_reconcile


def state_file_name(time: datetime.datetime) -> str:
    """
    e.g. 2020.03(Mar).14.09.26.53.json. Sorting the names sorts the states by time.
    """
    return time.strftime("%Y.%m(%b).%d.%H.%M.%S.json")


def write_state(state: state_core.PkgState, state_dir: pathlib.Path) -> pathlib.Path:
    util.ensure_path(state_dir)

    state_file = state_dir / state_file_name(state.time)
    if state_file.exists():
        raise RuntimeError(f"State {state_file.name} already exists!")

    with state_file.open("w") as f:
        f.write(state.to_model().model_dump_json())
    return state_file


def save_state(state_dir: pathlib.Path, query: state_core.InstalledQuery) -> pathlib.Path:
    """
    Record the currently installed packages as a new state file.
    """
    state = state_core.capture(query)
    state_file = write_state(state, state_dir)
    aurmgr.logging.info("Saved package state to %s", state_file)
    return state_file


def read_state(path: pathlib.Path) -> state_core.PkgState:
    try:
        # Bytes are validated as is, so bad encodings surface as validation errors
        model = state_models.PkgStateModel.model_validate_json(path.read_bytes())
        return state_core.state_from_model(model)
    except (OSError, pydantic.ValidationError, ValueError) as e:
        raise StateReadError(f"Failed to read package state {path}: {e}") from e


def get_state_files(state_dir: pathlib.Path) -> list[pathlib.Path]:
    """
    Every state file, oldest first.
    """
    util.ensure_path(state_dir)
    return sorted(
        (path for path in state_dir.iterdir() if path.is_file() and path.suffix == ".json"),
        key=lambda path: path.name,
    )


def find_state_file(state_dir: pathlib.Path, name: str | None = None) -> pathlib.Path:
    """
    The state file with the given name, or the newest one when no name is given.
    """
    state_files = get_state_files(state_dir)
    if len(state_files) == 0:
        raise RuntimeError(f"No saved package states in {state_dir}")

    if name is None:
        return state_files[-1]

    for state_file in state_files:
        if name in (state_file.name, state_file.stem):
            return state_file
    raise RuntimeError(f"Package state {name} is not found in {state_dir}")


def clean_states(state_dir: pathlib.Path, keep: int) -> list[pathlib.Path]:
    """
    Delete all but the newest `keep` unpinned states. Pinned states are never deleted, and neither
    are files that cannot be read as a state.
    Returns the deleted files.
    """
    if keep < 0:
        raise ValueError(f"Cannot keep {keep} states")

    unpinned: list[pathlib.Path] = []
    for state_file in get_state_files(state_dir):
        try:
            state = read_state(state_file)
        except StateReadError as e:
            aurmgr.logging.warning("Leaving %s alone: %s", state_file, e)
            continue
        if not state.pinned:
            unpinned.append(state_file)

    to_delete = unpinned[: len(unpinned) - keep] if keep > 0 else unpinned
    for state_file in to_delete:
        aurmgr.logging.debug("Deleting %s", state_file)
        state_file.unlink()

    aurmgr.logging.info("Deleted %d package states", len(to_delete))
    return to_delete


def pin_state(path: pathlib.Path, pinned: bool = True):
    """
    Mark a state file as pinned, protecting it from clean_states.
    """
    state = read_state(path)
    model = state.to_model().model_copy(update={"pinned": pinned})
    with path.open("w") as f:
        f.write(model.model_dump_json())


def restore_state(state_file: pathlib.Path | None, settings: config_models.Settings):
    """
    Bring the installed packages back to a saved state, using the package cache for the versions
    that changed since. Without a state file, the newest saved state is used.
    """
    if state_file is None:
        state_file = find_state_file(settings.state_dir)

    aurmgr.logging.info("Restoring package state %s", state_file.name)
    reference = read_state(state_file)

    pacman = Pacman(settings)
    current = state_core.capture(pacman.query_installed)
    diff = state_core.diff(reference, current)

    outcome = state_reconcile.reconcile(diff, ContentCache(settings.cache_dir), pacman)
    outcome.raise_for_failures()
