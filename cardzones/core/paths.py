from __future__ import annotations

import sys
from pathlib import Path

# ─────────────────────────────────────────────
# BASE DIRECTORY
# ─────────────────────────────────────────────

def application_base_dir() -> Path:
    """
    Return the base directory of the cardzones package.
    Works for a plain checkout as well as a PyInstaller bundle.
    """
    if hasattr(sys, "_MEIPASS"):
        return Path(sys.argv[0]).resolve().parent

    return Path(__file__).resolve().parent.parent


# ─────────────────────────────────────────────
# ABSOLUTE PATH RESOLVER
# ─────────────────────────────────────────────

def ABSOLUTE_PATH(relative_path: str) -> str:
    """Absolute path of a resource relative to the package root."""
    base = application_base_dir()
    return str(base.joinpath(relative_path))


DEFAULT_SETTINGS_PATH = ABSOLUTE_PATH("config/canvas.json")
FONTS_DIR = ABSOLUTE_PATH("assets/fonts")
