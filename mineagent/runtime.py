"""Wiring of host, chat client, engine and transport for one process."""

import logging

from mineagent import __version__, storage
from mineagent.engine import SessionEngine
from mineagent.host import MemoryHost
from mineagent.llm import ChatBackend, ChatClient
from mineagent.storage.config import AgentConfig
from mineagent.transport import ChatTransportAdapter

logger = logging.getLogger(__name__)

RELOAD_TARGETS = ("config", "workspace")


class Runtime:
    def __init__(self, host: MemoryHost, chat: ChatBackend, engine: SessionEngine) -> None:
        self.host = host
        self.chat = chat
        self.engine = engine
        self.transport = ChatTransportAdapter(engine, host.broadcast)

    @classmethod
    def build(cls, config: AgentConfig | None = None, chat: ChatBackend | None = None) -> "Runtime":
        """Create a runtime from stored config. Call init_storage() first."""
        config = config or storage.load_agent_config()
        host = MemoryHost()
        chat = chat or ChatClient.from_config(config)
        engine = SessionEngine(host, chat, config)
        return cls(host, chat, engine)

    def reload(self, target: str | None = None) -> list[str]:
        """Re-read config and/or re-index presets. Returns what was reloaded."""
        if target is not None and target not in RELOAD_TARGETS:
            raise ValueError(f"Unknown reload target: {target}")
        done: list[str] = []
        if target in (None, "config"):
            self.engine.reconfigure(storage.load_agent_config())
            done.append("config")
        if target in (None, "workspace"):
            storage.index_presets()
            done.append("workspace")
        logger.info("reloaded %s", ", ".join(done))
        return done

    def status(self) -> dict:
        return {
            "indexed_commands": len(self.host.command_names()),
            "indexed_presets": len(storage.list_presets()),
            "active_sessions": self.engine.active_count(),
            "version": __version__,
        }
