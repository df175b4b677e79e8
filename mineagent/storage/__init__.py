"""File-based storage for the agent.

Data layout:
  data/
    config.json           Cloudflare credentials, session limits, search settings
    agreed_players.txt    Append-only list of users who accepted the terms
    preset/               Preset .txt files readable through the #get tool
  presets/                Bundled presets, released into data/preset/ on init
                          without overwriting user edits

Config: get_config() returns defaults merged with stored values.
update_config() merges section dicts key-by-key and overwrites scalars.
load_agent_config() flattens and validates into AgentConfig, applying the
CF_KEY / CF_MODEL environment overrides.
"""

# Re-export all public symbols so `from mineagent import storage` keeps working.

from .core import (  # noqa: F401
    agreements_path,
    data_dir,
    init_storage,
    preset_dir,
    presets_dir,
)

from .presets import (  # noqa: F401
    index_presets,
    list_presets,
    read_preset,
    release_presets,
)

from .agreements import (  # noqa: F401
    append_agreement,
    is_valid_user_id,
    load_agreements,
)

from .config import (  # noqa: F401
    AgentConfig,
    get_config,
    load_agent_config,
    update_config,
)
