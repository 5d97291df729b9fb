import os
import pathlib
import shutil
import subprocess

import aurmgr.logging


def merge_env(base: dict[str, str], override: dict[str, str]) -> dict[str, str]:
    """
    Merge two environment variable dictionaries, with `override` taking precedence.
    """
    merged = base.copy()

    for key, value in override.items():
        if key == "PATH" and key in merged:
            merged["PATH"] = os.pathsep.join([value, base["PATH"]])
        else:
            merged[key] = value

    return merged


def baseline_env() -> dict[str, str]:
    # pacman and makepkg output is parsed, so it must not be localized
    return {"LC_ALL": "C", "LANG": "C"}


def run_command(
    args: list[str],
    *,
    cwd: pathlib.Path | None = None,
    env: dict[str, str] | None = None,
    capture_output: bool = True,
) -> subprocess.CompletedProcess[str]:
    """
    Run an external command with a predictable locale.
    """
    cmd = shutil.which(args[0])
    if cmd is None:
        raise RuntimeError(f"{args[0]} is not found in PATH")

    args = [cmd, *args[1:]]

    if env is None:
        env = {}
    env = merge_env(dict(os.environ), merge_env(baseline_env(), env))

    aurmgr.logging.debug("Executing %s in %s", " ".join(args), cwd)
    return subprocess.run(args, text=True, env=env, cwd=cwd, capture_output=capture_output)
