import pathlib

import aurmgr.logging
import aurmgr.process
from aurmgr import util
from aurmgr.errors import BuildError
from aurmgr.models import config as config_models
from aurmgr.models import pkg as pkg_models


class MakepkgBuilder:
    """
    Builds AUR packages from their recipes with makepkg.
    """

    def __init__(self, settings: config_models.Settings):
        self.build_dir = settings.build_dir
        self.aur_url = settings.aur_url

    def recipe_dir(self, buildable: pkg_models.Buildable) -> pathlib.Path:
        return self.build_dir / buildable.base

    def fetch_recipe(self, buildable: pkg_models.Buildable) -> pathlib.Path:
        """
        Clone the package base, or update an earlier clone of it.
        """
        util.ensure_path(self.build_dir)
        recipe_dir = self.recipe_dir(buildable)

        if (recipe_dir / ".git").is_dir():
            aurmgr.logging.info("Updating recipe of %s", buildable.base)
            args = ["git", "-C", recipe_dir.as_posix(), "pull", "--ff-only"]
        else:
            aurmgr.logging.info("Cloning recipe of %s", buildable.base)
            args = ["git", "clone", f"{self.aur_url}/{buildable.base}.git", recipe_dir.as_posix()]

        process = aurmgr.process.run_command(args)
        if process.returncode != 0:
            raise BuildError(
                f"Failed to fetch the recipe of {buildable.base}, return code "
                f"{process.returncode}.\n{process.stderr.strip()}"
            )
        return recipe_dir

    def build(self, buildable: pkg_models.Buildable) -> list[pathlib.Path]:
        """
        Build the package base of buildable.
        Returns every package file the build produced, which includes split packages.
        """
        recipe_dir = self.fetch_recipe(buildable)

        aurmgr.logging.info("Building %s-%s", buildable.base, buildable.version)
        process = aurmgr.process.run_command(
            ["makepkg", "--force", "--noconfirm"], cwd=recipe_dir, capture_output=False
        )
        if process.returncode != 0:
            raise BuildError(f"Failed to build {buildable.base}, return code {process.returncode}.")

        process = aurmgr.process.run_command(["makepkg", "--packagelist"], cwd=recipe_dir)
        if process.returncode != 0:
            raise BuildError(
                f"Failed to list the packages built for {buildable.base}, return code "
                f"{process.returncode}."
            )

        artifacts = [
            pathlib.Path(line.strip())
            for line in process.stdout.splitlines()
            if line.strip() != "" and pathlib.Path(line.strip()).is_file()
        ]
        if len(artifacts) == 0:
            raise BuildError(f"Building {buildable.base} produced no package files")
        return artifacts
