"""Preset text files readable by the agent through the #get tool."""

import logging
import shutil

from .core import preset_dir, presets_dir

logger = logging.getLogger(__name__)

PRESET_SUFFIX = ".txt"

_indexed: list[str] = []


def release_presets(replace: bool = False) -> int:
    """Copy bundled presets into the data preset directory.

    Existing files are kept unless replace is set. Returns the number of
    files written.
    """
    source = presets_dir()
    if not source.is_dir():
        return 0
    written = 0
    for path in sorted(source.glob(f"*{PRESET_SUFFIX}")):
        target = preset_dir() / path.name
        if target.exists() and not replace:
            continue
        try:
            shutil.copyfile(path, target)
            written += 1
        except OSError as e:
            logger.warning("Could not release preset %s: %s", path.name, e)
    return written


def index_presets() -> list[str]:
    """Rescan the preset directory. Returns the sorted file names."""
    global _indexed
    directory = preset_dir()
    directory.mkdir(parents=True, exist_ok=True)
    _indexed = sorted(
        p.name for p in directory.iterdir()
        if p.is_file() and p.name.endswith(PRESET_SUFFIX)
    )
    logger.info("Indexed %d preset files", len(_indexed))
    return list(_indexed)


def list_presets() -> list[str]:
    """Names from the last index_presets() scan."""
    return list(_indexed)


def _is_safe_name(name: str) -> bool:
    return bool(name) and "/" not in name and "\\" not in name and ".." not in name


def read_preset(name: str) -> str | None:
    """Return the content of a preset file, or None if it does not exist."""
    name = name.strip()
    if not _is_safe_name(name):
        return None
    path = preset_dir() / name
    if not path.is_file():
        return None
    return path.read_text(encoding="utf-8")
