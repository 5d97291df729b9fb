import contextlib

import typer

import aurmgr.logging


@contextlib.contextmanager
def reported_errors():
    """
    Turn failures into a logged error and a non-zero exit code instead of a traceback.
    """
    try:
        yield
    except RuntimeError as e:
        aurmgr.logging.error("%s", e)
        raise typer.Exit(1) from e
