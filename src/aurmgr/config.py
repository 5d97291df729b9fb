import os
import pathlib
import tomllib

import pydantic

import aurmgr.constants
import aurmgr.logging
from aurmgr.errors import ConfigError
from aurmgr.models import config as config_models


def config_path() -> pathlib.Path:
    override = os.environ.get(aurmgr.constants.aurmgr_config_env_var, "")
    if override != "":
        return pathlib.Path(override)
    return aurmgr.constants.aurmgr_config_path


def load_settings(path: pathlib.Path | None = None) -> config_models.Settings:
    """
    Load settings from a TOML file. A missing file yields the defaults.
    """
    if path is None:
        path = config_path()

    if not path.is_file():
        aurmgr.logging.debug("No config file at %s, using defaults", path)
        return config_models.Settings()

    try:
        with path.open("rb") as f:
            config_dict = tomllib.load(f)
        return config_models.Settings.model_validate(config_dict)
    except (tomllib.TOMLDecodeError, pydantic.ValidationError) as e:
        raise ConfigError(f"Invalid config file {path}: {e}") from e
