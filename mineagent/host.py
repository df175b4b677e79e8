"""Boundary to the host game runtime.

The engine talks to the host only through the Host protocol: text output,
clickable choices, and command execution as the user. Command output is
captured through an OutputSink passed to execute_as_user(); CapturingSink
mirrors each line to the real user while recording it for the agent.

MemoryHost is a complete in-process host. It backs the HTTP surface
(mineagent.app) and the tests.
"""

from __future__ import annotations

import logging
import re
import shlex
from collections.abc import Callable
from typing import Any, Protocol

logger = logging.getLogger(__name__)

_COLOR_RE = re.compile(r"§[0-9a-fk-orA-FK-OR]")


def strip_colors(text: str) -> str:
    return _COLOR_RE.sub("", text)


class OutputSink(Protocol):
    def write(self, text: str) -> None: ...


class Host(Protocol):
    version: str

    def send_text(self, user_id: str, text: str) -> None: ...

    def send_choice(self, user_id: str, options: list[str], on_select: Callable[[str], Any]) -> None: ...

    def clear_choice(self, user_id: str) -> None: ...

    def execute_as_user(self, user_id: str, command: str, sink: OutputSink | None) -> bool: ...

    def command_names(self) -> list[str]: ...

    def online_users(self) -> list[str]: ...


class CaptureUnsupported(Exception):
    """Raised by execute_as_user when a command cannot write through a sink."""


class CapturingSink:
    """Mirrors output to the user and accumulates it, colour codes stripped."""

    def __init__(self, host: Host, user_id: str) -> None:
        self._host = host
        self._user_id = user_id
        self._lines: list[str] = []

    def write(self, text: str) -> None:
        self._host.send_text(self._user_id, text)
        self._lines.append(strip_colors(text))

    @property
    def output(self) -> str:
        return "\n".join(self._lines)


# ---------------------------------------------------------------------------
# MemoryHost
# ---------------------------------------------------------------------------

CommandHandler = Callable[[OutputSink, list[str]], bool]


class _UserSink:
    """Plain sink that writes straight to the user (no capture)."""

    def __init__(self, host: MemoryHost, user_id: str) -> None:
        self._host = host
        self._user_id = user_id

    def write(self, text: str) -> None:
        self._host.send_text(self._user_id, text)


class MemoryHost:
    """In-process host: per-user outboxes and a registry of command handlers."""

    version = "MemoryHost 1.0"

    def __init__(self) -> None:
        self._outbox: dict[str, list[str]] = {}
        self._choices: dict[str, tuple[list[str], Callable[[str], Any]]] = {}
        self._commands: dict[str, tuple[CommandHandler, bool]] = {}
        self._online: set[str] = set()
        self.register_command("say", _cmd_say)
        self.register_command("list", self._cmd_list)

    # ── users ──

    def join(self, user_id: str) -> None:
        self._online.add(user_id)

    def leave(self, user_id: str) -> None:
        self._online.discard(user_id)
        self.clear_choice(user_id)

    def online_users(self) -> list[str]:
        return sorted(self._online)

    # ── output ──

    def send_text(self, user_id: str, text: str) -> None:
        self._outbox.setdefault(user_id, []).append(text)

    def broadcast(self, sender: str, text: str) -> None:
        """Normal chat delivery to everyone online."""
        for user_id in self.online_users():
            self.send_text(user_id, f"<{sender}> {text}")

    def send_choice(self, user_id: str, options: list[str], on_select: Callable[[str], Any]) -> None:
        self._choices[user_id] = (list(options), on_select)
        self.send_text(user_id, "⨀ [ " + " | ".join(options) + " ]")

    def clear_choice(self, user_id: str) -> None:
        """Withdraw offered options so a late click does nothing."""
        self._choices.pop(user_id, None)

    def pending_choice(self, user_id: str) -> list[str]:
        entry = self._choices.get(user_id)
        return list(entry[0]) if entry else []

    def select(self, user_id: str, option: str) -> Any:
        """Report a clicked option through the callback given to send_choice."""
        entry = self._choices.pop(user_id, None)
        if entry is None:
            raise LookupError(f"No choice pending for {user_id}")
        return entry[1](option)

    def drain(self, user_id: str) -> list[str]:
        """Return and clear everything sent to the user so far."""
        return self._outbox.pop(user_id, [])

    # ── commands ──

    def register_command(self, name: str, handler: CommandHandler, captures: bool = True) -> None:
        """Add a command. Handlers with captures=False cannot write through a sink."""
        self._commands[name.lower()] = (handler, captures)

    def command_names(self) -> list[str]:
        return sorted(self._commands)

    def execute_as_user(self, user_id: str, command: str, sink: OutputSink | None) -> bool:
        try:
            parts = shlex.split(command)
        except ValueError:
            parts = command.split()
        if not parts:
            return False
        name, args = parts[0].lower(), parts[1:]
        out: OutputSink = sink if sink is not None else _UserSink(self, user_id)

        entry = self._commands.get(name)
        if entry is None:
            out.write('§cUnknown command. Type "help" for help.')
            return False
        handler, captures = entry
        if sink is not None and not captures:
            raise CaptureUnsupported(name)
        logger.info("user %s executes %r", user_id, command)
        return handler(out, args)

    def _cmd_list(self, sink: OutputSink, args: list[str]) -> bool:
        users = self.online_users()
        sink.write(f"There are {len(users)} players online: {', '.join(users)}")
        return True


def _cmd_say(sink: OutputSink, args: list[str]) -> bool:
    if not args:
        sink.write("§cUsage: say <message>")
        return False
    sink.write(" ".join(args))
    return True
