"""Utility module for resolving application paths in both script and frozen modes."""
import os
import sys
from pathlib import Path

# Flag to enable diagnostic output (set to True for debugging path issues)
_DEBUG_PATHS = False


def get_app_dir() -> Path:
    """Get the application's base directory.

    For frozen apps (PyInstaller), this is the directory containing the executable.
    For scripts, this is the script's directory.
    """
    if getattr(sys, 'frozen', False):
        app_dir = Path(sys.executable).parent
        if _DEBUG_PATHS:
            print(f"[app_paths] Frozen mode - app directory: {app_dir}")
        return app_dir

    app_dir = Path(__file__).parent
    if _DEBUG_PATHS:
        print(f"[app_paths] Script mode - app directory: {app_dir}")
    return app_dir


def get_config_path() -> Path:
    return get_app_dir() / "config.yaml"


def get_home_dir() -> Path:
    """User data directory; ESDE_HOME overrides the home folder."""
    override = os.environ.get("ESDE_HOME")
    if override:
        return Path(override)
    return Path.home() / ".emulationstation"


def get_media_dir() -> Path:
    return get_home_dir() / "downloaded_media"


def get_scrapers_resource_dir() -> Path:
    return get_home_dir() / "scrapers"


def resolve_dir(value: str, base: Path) -> Path:
    """Resolve a configured directory, relative entries against `base`."""
    p = Path(os.path.expanduser(str(value)))
    if not p.is_absolute():
        p = base / p
    return p


def print_path_diagnostics():
    """Print diagnostic information about resolved paths."""
    print("\n=== Path Diagnostics ===")
    print(f"Python executable: {sys.executable}")
    print(f"Frozen: {getattr(sys, 'frozen', False)}")
    print(f"App directory: {get_app_dir()}")
    print(f"Config file: {get_config_path()} ({'found' if get_config_path().exists() else 'missing'})")
    print(f"Media directory: {get_media_dir()}")
    print(f"Scraper resources: {get_scrapers_resource_dir()}")
    print("=" * 24 + "\n")
