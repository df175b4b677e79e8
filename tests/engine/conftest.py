import asyncio

import pytest

from mineagent.engine import SessionEngine
from mineagent.host import MemoryHost
from mineagent.storage.config import AgentConfig


class ScriptedChat:
    """Chat backend that plays back canned replies.

    Each script item is a reply string, an exception to raise, or an
    asyncio.Event followed by a reply: the call blocks until the event is set.
    """

    def __init__(self, *script) -> None:
        self.script = list(script)
        self.calls: list[list[str]] = []
        self.prompts: list[str] = []
        self.http = None
        self.closed = False

    async def chat(self, session, system_prompt: str) -> str:
        self.calls.append([m.content for m in session.history()])
        self.prompts.append(system_prompt)
        item = self.script.pop(0)
        if isinstance(item, asyncio.Event):
            gate, item = item, self.script.pop(0)
            await gate.wait()
        if isinstance(item, Exception):
            raise item
        return item

    async def shutdown(self) -> None:
        self.closed = True


@pytest.fixture
def host() -> MemoryHost:
    host = MemoryHost()
    host.join("Steve")
    return host


@pytest.fixture
def config() -> AgentConfig:
    return AgentConfig(cf_key="k", run_feedback_delay=0)


@pytest.fixture
def make_engine(host, config):
    """Build an engine for a script of replies, with Steve already agreed."""

    def _make(*script, agreed=None, **kwargs) -> SessionEngine:
        chat = ScriptedChat(*script)
        engine = SessionEngine(
            host, chat, config,
            agreed={"Steve"} if agreed is None else agreed,
            **kwargs,
        )
        engine.chat = chat
        return engine

    return _make
