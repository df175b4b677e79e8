"""Tool dispatch: turns a parsed directive into a side effect.

Every directive ends in one of three ways: the session goes idle (#over), the
session ends (#exit), or a feedback turn is queued for the agent. #run and
#choose first stage a pending action and wait for the user; the feedback turn
follows once they answer.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any, Protocol

from mineagent import search, storage
from mineagent.directives import Directive
from mineagent.host import CaptureUnsupported, CapturingSink, Host
from mineagent.models import ChoiceAction, ConfirmAction, PendingAction
from mineagent.storage.config import AgentConfig

from . import render

logger = logging.getLogger(__name__)

COMMAND_PREFIX = "/"


class SessionControl(Protocol):
    """The parts of the session engine a tool is allowed to drive."""

    def feedback(self, user_id: str, text: str) -> None: ...

    def finish(self, user_id: str) -> None: ...

    def end_session(self, user_id: str) -> None: ...

    def stage(self, user_id: str, action: PendingAction) -> None: ...

    def run_tool(self, user_id: str, work: Coroutine[Any, Any, str]) -> None: ...

    def on_user_message(self, user_id: str, text: str) -> bool: ...

    def on_confirm_request(self, user_id: str) -> bool: ...

    def on_cancel_request(self, user_id: str) -> bool: ...


def describe_run_outcome(
    command: str, output: str, success: bool, online_users: list[str]
) -> str:
    """Text the agent receives after a #run command executes."""
    lowered = command.lower()
    if lowered.startswith("list") and len(output) <= 30:
        listing = "Online players: " + ", ".join(online_users)
        output = f"{output}\n{listing}" if output else listing

    if output:
        return output
    if success:
        if lowered.startswith("tp"):
            return "Command succeeded (teleport commands usually print nothing)"
        if lowered.startswith(("op", "deop")):
            return "Command succeeded (permission changes are usually only shown in the console)"
        return (
            "Command executed, no output captured (it may run silently or "
            "write straight to the player's screen)"
        )
    return (
        "Command failed. Possible causes:\n"
        "1. Syntax error\n"
        "2. Missing permission\n"
        "3. The command does not support output capture\n"
        "Check the syntax or try another approach."
    )


class ToolDispatcher:
    """Executes #over, #exit, #run, #get, #choose and #search directives."""

    def __init__(self, host: Host, control: SessionControl, config: AgentConfig, http: Any) -> None:
        self._host = host
        self._control = control
        self._config = config
        self._http = http
        self._handlers: dict[str, Callable[[str, str], None]] = {
            "over": self._over,
            "exit": self._exit,
            "run": self._run,
            "get": self._get,
            "choose": self._choose,
            "search": self._search,
        }

    def configure(self, config: AgentConfig) -> None:
        self._config = config

    def dispatch(self, user_id: str, directive: Directive) -> None:
        name = directive.name
        logger.info("tool for %s: #%s (args: %s)", user_id, name, directive.args)
        if name not in ("run", "search"):
            self._host.send_text(user_id, f"{render.MUTED}〇 #{name}")

        handler = self._handlers.get(name)
        if handler is None:
            self._host.send_text(user_id, f"{render.ERROR}Unknown tool: #{name}")
            self._control.feedback(user_id, f"error: unknown tool #{name}")
            return
        handler(user_id, directive.args)

    # ── handlers ──

    def _over(self, user_id: str, args: str) -> None:
        self._control.finish(user_id)

    def _exit(self, user_id: str, args: str) -> None:
        self._control.end_session(user_id)

    def _run(self, user_id: str, args: str) -> None:
        command = args.strip()
        if command.startswith(COMMAND_PREFIX):
            command = command[len(COMMAND_PREFIX):]
        if not command:
            self._host.send_text(user_id, f"{render.ERROR}Error: #run needs a command argument")
            self._control.feedback(
                user_id, "error: #run needs a command argument, for example #run: say hello"
            )
            return

        self._control.stage(user_id, ConfirmAction(command=command))
        self._host.send_text(user_id, f"{render.MUTED}⇒ {command}")
        self._host.send_choice(user_id, ["Y", "N"], lambda option: self._answer(user_id, option))

    def _answer(self, user_id: str, option: str) -> None:
        if option == "Y":
            self._control.on_confirm_request(user_id)
        else:
            self._control.on_cancel_request(user_id)

    def _get(self, user_id: str, args: str) -> None:
        self._control.run_tool(user_id, self.read_preset(args))

    def _choose(self, user_id: str, args: str) -> None:
        options = [opt.strip() for opt in args.split(",") if opt.strip()]
        if not options:
            self._control.feedback(
                user_id, "error: #choose needs comma-separated options, for example #choose: A,B"
            )
            return
        self._control.stage(user_id, ChoiceAction(options=tuple(options)))
        self._host.send_choice(
            user_id, options, lambda option: self._control.on_user_message(user_id, option)
        )

    def _search(self, user_id: str, args: str) -> None:
        query = args.strip()
        if not query:
            self._control.feedback(user_id, "error: #search needs a query, for example #search: beacon")
            return
        self._host.send_text(user_id, f"{render.MUTED}〇 #search: {query}")
        self._control.run_tool(user_id, self.search(user_id, query))

    # ── async work, resumed on the event loop ──

    async def read_preset(self, name: str) -> str:
        try:
            content = await asyncio.to_thread(storage.read_preset, name)
        except OSError as e:
            logger.warning("Could not read preset %r: %s", name, e)
            return f"get_result: read failed - {e}"
        if content is None:
            return "get_result: file not found"
        return f"get_result: {content}"

    async def search(self, user_id: str, query: str) -> str:
        result = await search.search(
            self._http,
            query,
            self._config.wiki_url,
            on_fallback=lambda: self._host.send_text(user_id, render.WIKI_FALLBACK),
        )
        return f"search_result: {result}"

    async def run_command(self, user_id: str, command: str) -> str:
        """Execute a confirmed command as the user and describe the outcome.

        Output goes through a CapturingSink. Hosts that cannot capture a
        command raise CaptureUnsupported; the command then runs directly
        under the user's identity and the outcome is inferred.
        """
        sink = CapturingSink(self._host, user_id)
        try:
            success = self._host.execute_as_user(user_id, command, sink)
        except CaptureUnsupported:
            logger.info("output capture unsupported for %r, running directly", command)
            success = self._host.execute_as_user(user_id, command, None)
        except Exception as e:
            logger.warning("command %r failed for %s: %s", command, user_id, e)
            sink.write(f"{render.ERROR}{e}")
            success = False

        self._host.send_text(user_id, render.WAITING_FEEDBACK)
        delay = self._config.run_feedback_delay
        if delay > 0:
            # late output from the host still lands in the sink
            await asyncio.sleep(delay)

        outcome = describe_run_outcome(command, sink.output, success, self._host.online_users())
        self._host.send_text(user_id, render.FEEDBACK_SENT)
        return f"run_result: {outcome}"
