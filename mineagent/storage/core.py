"""Storage initialization and path helpers."""

from pathlib import Path

_data_dir: Path | None = None
_presets_dir: Path | None = None


def init_storage(data_dir: Path, presets_dir: Path | None = None) -> None:
    """Point storage at data_dir and release bundled presets into it."""
    global _data_dir, _presets_dir
    from . import presets as _presets_mod

    _data_dir = data_dir
    _data_dir.mkdir(parents=True, exist_ok=True)
    preset_dir().mkdir(exist_ok=True)
    if presets_dir is None:
        # Default: repo_root/presets
        presets_dir = Path(__file__).parent.parent.parent / "presets"
    _presets_dir = presets_dir
    _presets_mod.release_presets()
    _presets_mod.index_presets()


def data_dir() -> Path:
    assert _data_dir is not None, "Call init_storage() before using storage"
    return _data_dir


def presets_dir() -> Path:
    """Bundled read-only presets shipped with the package."""
    assert _presets_dir is not None, "Call init_storage() before using storage"
    return _presets_dir


def preset_dir() -> Path:
    """User-editable preset directory served to the #get tool."""
    return data_dir() / "preset"


def agreements_path() -> Path:
    return data_dir() / "agreed_players.txt"
