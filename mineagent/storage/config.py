"""Global agent configuration (Cloudflare credentials, session limits, search)."""

import json
import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel

from .core import data_dir

DEFAULT_MODEL = "@cf/openai/gpt-oss-120b"
DEFAULT_WIKI_URL = "https://zh.minecraft.wiki/api.php"

_CONFIG_DEFAULTS: dict[str, Any] = {
    "cloudflare": {
        "cf_key": "",
        "model": DEFAULT_MODEL,
        "reasoning_effort": "medium",
        "max_tokens": 1024,
    },
    "settings": {
        "timeout_minutes": 10,
        "token_warning_threshold": 500,
        "token_ceiling": 4000,
        "run_feedback_delay": 1.0,
    },
    "search": {
        "wiki_url": DEFAULT_WIKI_URL,
    },
    "system_prompt": "",
}

_SECTIONS = ("cloudflare", "settings", "search")


class AgentConfig(BaseModel):
    """Flattened, validated view of the config used by the engine."""

    cf_key: str = ""
    model: str = DEFAULT_MODEL
    reasoning_effort: str = "medium"
    max_tokens: int = 1024
    timeout_minutes: float = 10
    token_warning_threshold: int = 500
    token_ceiling: int = 4000
    run_feedback_delay: float = 1.0
    wiki_url: str = DEFAULT_WIKI_URL
    system_prompt: str = ""


def _config_path() -> Path:
    return data_dir() / "config.json"


def get_config() -> dict[str, Any]:
    """Read config, returning defaults merged with stored values."""
    config: dict[str, Any] = json.loads(json.dumps(_CONFIG_DEFAULTS))
    path = _config_path()
    if path.is_file():
        stored = json.loads(path.read_text())
        for section in _SECTIONS:
            vals = stored.get(section)
            if isinstance(vals, dict):
                config[section].update(vals)
        if "system_prompt" in stored:
            config["system_prompt"] = stored["system_prompt"]
    return config


def update_config(fields: dict[str, Any]) -> dict[str, Any]:
    """Merge fields into config and persist. Returns full config."""
    config = get_config()
    for section in _SECTIONS:
        vals = fields.get(section)
        if isinstance(vals, dict):
            config[section].update(vals)
    if "system_prompt" in fields:
        config["system_prompt"] = fields["system_prompt"]
    _config_path().write_text(json.dumps(config, indent=2))
    return config


def load_agent_config() -> AgentConfig:
    """Build an AgentConfig from config.json, with CF_KEY / CF_MODEL env overrides."""
    config = get_config()
    flat: dict[str, Any] = {"system_prompt": config["system_prompt"]}
    for section in _SECTIONS:
        flat.update(config[section])
    if os.getenv("CF_KEY"):
        flat["cf_key"] = os.environ["CF_KEY"]
    if os.getenv("CF_MODEL"):
        flat["model"] = os.environ["CF_MODEL"]
    return AgentConfig.model_validate(flat)
