import pathlib

aurmgr_config_path = pathlib.Path("/etc/aurmgr.toml")
aurmgr_config_env_var = "AURMGR_CONFIG"

aurmgr_cache_dir = pathlib.Path("/var/cache/aurmgr")
aurmgr_state_dir = aurmgr_cache_dir / "states"
aurmgr_build_dir = pathlib.Path.home() / ".cache" / "aurmgr" / "build"

pacman_cache_dir = pathlib.Path("/var/cache/pacman/pkg")

aur_url = "https://aur.archlinux.org"

devel_pkg_suffixes = ("-git", "-hg", "-svn", "-darcs", "-cvs", "-bzr")
