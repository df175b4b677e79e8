"""Per-user session state machine.

All public methods run on the event loop and never block. Remote chat calls
and tool work run as asyncio tasks; when one completes, its result is applied
only if it still belongs to the user's current generation. "stop", exit and
timeouts move the user out of GENERATING, so anything that arrives later is
dropped without touching history or mode.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import time
from collections.abc import Callable, Coroutine
from typing import Any

from mineagent import storage
from mineagent.directives import parse_reply
from mineagent.host import Host
from mineagent.llm import ChatBackend, ChatError, ConfigurationError, NetworkError, ProtocolError
from mineagent.models import ChoiceAction, ConfirmAction, PendingAction, SessionMode
from mineagent.prompts import build_context, system_prompt
from mineagent.session import ConversationSession, TokenEstimator, estimate_tokens
from mineagent.storage.config import AgentConfig

from . import render
from .tools import ToolDispatcher

logger = logging.getLogger(__name__)

AGREE_TOKEN = "agree"
EXIT_WORD = "exit"
STOP_WORD = "stop"
CONFIRM_WORDS = ("y", "yes")
CANCEL_WORDS = ("n", "no")

SWEEP_INTERVAL = 60.0


class _UserState:
    """Everything the engine owns for one user."""

    def __init__(self, mode: SessionMode, session: ConversationSession | None = None) -> None:
        self.mode = mode
        self.session = session
        self.pending: PendingAction | None = None
        self.generation = 0


class SessionEngine:
    """Owns every user's mode, conversation and pending action.

    Args:
        host:          Host runtime used for output and command execution.
        chat:          Remote chat backend (ChatClient in production).
        config:        Validated agent settings.
        agreed:        Users who already accepted the terms. Loaded from
                       storage when omitted.
        estimator:     Token estimator handed to each new session.
        clock:         Monotonic clock, seconds.
        sweep_interval: Seconds between idle-timeout sweeps.
    """

    def __init__(
        self,
        host: Host,
        chat: ChatBackend,
        config: AgentConfig,
        agreed: set[str] | None = None,
        estimator: TokenEstimator = estimate_tokens,
        clock: Callable[[], float] = time.monotonic,
        sweep_interval: float = SWEEP_INTERVAL,
    ) -> None:
        self._host = host
        self._chat = chat
        self._config = config
        self._agreed = agreed if agreed is not None else storage.load_agreements()
        self._estimator = estimator
        self._clock = clock
        self._sweep_interval = sweep_interval
        self._users: dict[str, _UserState] = {}
        self._tasks: set[asyncio.Task] = set()
        self._sweeper: asyncio.Task | None = None
        self._generations = itertools.count(1)
        self._tools = ToolDispatcher(host, self, config, getattr(chat, "http", None))

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def mode(self, user_id: str) -> SessionMode:
        state = self._users.get(user_id)
        return state.mode if state else SessionMode.NONE

    def session(self, user_id: str) -> ConversationSession | None:
        state = self._users.get(user_id)
        return state.session if state else None

    def pending(self, user_id: str) -> PendingAction | None:
        state = self._users.get(user_id)
        return state.pending if state else None

    def has_agreed(self, user_id: str) -> bool:
        return user_id in self._agreed

    def active_count(self) -> int:
        return sum(1 for s in self._users.values() if s.session is not None)

    def reconfigure(self, config: AgentConfig) -> None:
        self._config = config
        self._tools.configure(config)
        configure = getattr(self._chat, "configure", None)
        if configure is not None:
            configure(config)

    # ------------------------------------------------------------------
    # Inbound: transport and command surface
    # ------------------------------------------------------------------

    def on_toggle_request(self, user_id: str) -> None:
        """Enter a session, or leave the current one."""
        if self.mode(user_id) is SessionMode.NONE:
            self.enter(user_id)
        else:
            self.exit(user_id)

    def on_user_message(self, user_id: str, text: str) -> bool:
        """Route a chat line. Returns False when the user is not in a session."""
        state = self._users.get(user_id)
        if state is None:
            return False
        text = text.strip()
        lowered = text.lower()
        logger.info("intercepted message from %s in %s", user_id, state.mode.value)

        if state.mode is SessionMode.PENDING_AGREEMENT:
            if lowered == AGREE_TOKEN:
                self._accept_agreement(user_id)
            else:
                self._host.send_text(user_id, render.AGREEMENT_REPROMPT)
            return True

        if lowered == EXIT_WORD:
            self.exit(user_id)
            return True
        if lowered == STOP_WORD:
            self._interrupt(user_id, state)
            return True

        if state.mode is SessionMode.AWAITING_CHOICE:
            self._clear_pending(user_id, state)
            self.feedback(user_id, f"choose_result: {text}")
        elif state.mode is SessionMode.AWAITING_CONFIRM:
            if lowered in CONFIRM_WORDS:
                self.on_confirm_request(user_id)
            elif lowered in CANCEL_WORDS:
                self.on_cancel_request(user_id)
            else:
                self._host.send_text(user_id, render.CONFIRM_REPROMPT)
        elif state.mode is SessionMode.GENERATING:
            self._host.send_text(user_id, render.BUSY)
        elif text:
            self._submit(user_id, state, text)
        return True

    def on_confirm_request(self, user_id: str) -> bool:
        """Run the staged #run command. Returns False if nothing is staged."""
        state = self._users.get(user_id)
        if state is None or not isinstance(state.pending, ConfirmAction):
            return False
        command = state.pending.command
        self._clear_pending(user_id, state)
        self.run_tool(user_id, self._tools.run_command(user_id, command))
        return True

    def on_cancel_request(self, user_id: str) -> bool:
        """Discard the staged action. Returns False if nothing is staged."""
        state = self._users.get(user_id)
        if state is None or state.pending is None:
            return False
        self._clear_pending(user_id, state)
        state.mode = SessionMode.ACTIVE_IDLE
        self._host.send_text(user_id, render.COMMAND_CANCELLED)
        return True

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    def enter(self, user_id: str) -> None:
        logger.info("%s is entering CLI mode", user_id)
        if user_id not in self._agreed:
            logger.info("%s needs to accept the terms", user_id)
            self._users[user_id] = _UserState(SessionMode.PENDING_AGREEMENT)
            for line in render.AGREEMENT_LINES:
                self._host.send_text(user_id, line)
            return
        session = ConversationSession(estimator=self._estimator, clock=self._clock)
        self._users[user_id] = _UserState(SessionMode.ACTIVE_IDLE, session)
        for line in render.ENTER_LINES:
            self._host.send_text(user_id, line)

    def exit(self, user_id: str) -> None:
        """Destroy the user's session, whatever it was doing."""
        if self._users.pop(user_id, None) is None:
            return
        self._host.clear_choice(user_id)
        logger.info("%s is exiting CLI mode", user_id)
        for line in render.EXIT_LINES:
            self._host.send_text(user_id, line)

    def _accept_agreement(self, user_id: str) -> None:
        self._agreed.add(user_id)
        try:
            storage.append_agreement(user_id)
        except (OSError, ValueError) as e:
            logger.warning("Could not save agreement for %s: %s", user_id, e)
        self.enter(user_id)

    def sweep_idle(self, now: float | None = None) -> list[str]:
        """Exit every session idle longer than the configured timeout."""
        now = self._clock() if now is None else now
        limit = self._config.timeout_minutes * 60
        expired = [
            user_id for user_id, state in self._users.items()
            if state.session is not None and now - state.session.last_activity_time() > limit
        ]
        for user_id in expired:
            logger.info("%s timed out", user_id)
            self._host.send_text(user_id, render.IDLE_TIMEOUT)
            self.exit(user_id)
        return expired

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self._sweep_interval)
            self.sweep_idle()

    async def start(self) -> None:
        if self._sweeper is None:
            self._sweeper = asyncio.create_task(self._sweep_loop())

    async def shutdown(self) -> None:
        """Stop the sweep, cancel in-flight work, drop sessions, close the client."""
        pending = list(self._tasks)
        if self._sweeper is not None:
            pending.append(self._sweeper)
            self._sweeper = None
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        self._users.clear()
        await self._chat.shutdown()

    async def settle(self) -> None:
        """Wait until no generation or tool task is running (for callers and tests)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ------------------------------------------------------------------
    # SessionControl: used by the tool dispatcher
    # ------------------------------------------------------------------

    def feedback(self, user_id: str, text: str) -> None:
        """Queue a synthetic user turn carrying a tool result and call the agent."""
        state = self._users.get(user_id)
        if state is None or state.session is None:
            return
        state.session.add_message("user", text)
        logger.info("feedback for %s: %s", user_id, text)
        self._start_generation(user_id, state)

    def finish(self, user_id: str) -> None:
        state = self._users.get(user_id)
        if state is not None:
            state.mode = SessionMode.ACTIVE_IDLE

    def end_session(self, user_id: str) -> None:
        self.exit(user_id)

    def stage(self, user_id: str, action: PendingAction) -> None:
        state = self._users.get(user_id)
        if state is None:
            return
        state.pending = action
        if isinstance(action, ChoiceAction):
            state.mode = SessionMode.AWAITING_CHOICE
        else:
            state.mode = SessionMode.AWAITING_CONFIRM

    def run_tool(self, user_id: str, work: Coroutine[Any, Any, str]) -> None:
        """Run tool work in the background; its result becomes a feedback turn."""
        state = self._users.get(user_id)
        if state is None:
            work.close()
            return
        token = self._begin(state)
        self._spawn(self._tool_job(user_id, token, work))

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    def _begin(self, state: _UserState) -> int:
        state.mode = SessionMode.GENERATING
        state.generation = next(self._generations)
        return state.generation

    def _is_current(self, user_id: str, token: int) -> bool:
        state = self._users.get(user_id)
        return (
            state is not None
            and state.session is not None
            and state.mode is SessionMode.GENERATING
            and state.generation == token
        )

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _submit(self, user_id: str, state: _UserState, text: str) -> None:
        session = state.session
        assert session is not None
        session.add_message("user", text)
        self._host.send_text(user_id, f"{render.MUTED}◇ {text}")
        logger.info(
            "session %s - history size: %d, est. tokens: %d",
            user_id, len(session), session.estimated_tokens(),
        )
        self._start_generation(user_id, state)

    def _start_generation(self, user_id: str, state: _UserState) -> None:
        token = self._begin(state)
        self._spawn(self._generate(user_id, token))

    def _system_prompt(self, user_id: str) -> str:
        context = build_context(
            user_name=user_id,
            version=self._host.version,
            commands=self._host.command_names(),
            presets=storage.list_presets(),
        )
        return system_prompt(context, self._config.system_prompt)

    async def _generate(self, user_id: str, token: int) -> None:
        state = self._users.get(user_id)
        if state is None or state.session is None:
            return
        try:
            reply = await self._chat.chat(state.session, self._system_prompt(user_id))
        except ChatError as e:
            self._on_failure(user_id, token, e)
            return
        except Exception as e:
            logger.exception("Unexpected failure in chat call for %s", user_id)
            self._on_failure(user_id, token, e)
            return
        try:
            self._on_reply(user_id, token, reply)
        except Exception:
            logger.exception("Failed to handle agent reply for %s", user_id)
            self._recover(user_id)

    async def _tool_job(self, user_id: str, token: int, work: Coroutine[Any, Any, str]) -> None:
        try:
            result = await work
        except Exception as e:
            logger.exception("Tool failed for %s", user_id)
            result = f"error: tool failed - {e}"
        if not self._is_current(user_id, token):
            logger.info("discarding tool result for %s (superseded)", user_id)
            return
        try:
            self.feedback(user_id, result)
        except Exception:
            logger.exception("Failed to feed back tool result for %s", user_id)
            self._recover(user_id)

    def _on_reply(self, user_id: str, token: int, reply: str) -> None:
        if not self._is_current(user_id, token):
            logger.info("discarding agent reply for %s (interrupted)", user_id)
            return
        state = self._users[user_id]
        session = state.session
        assert session is not None
        logger.info("agent reply for %s (length: %d)", user_id, len(reply))

        # Store the raw reply first so tool feedback lands after it
        session.add_message("assistant", reply)
        display, directive = parse_reply(reply)
        if display:
            self._host.send_text(user_id, render.render_agent_text(display))

        if directive is not None:
            self._tools.dispatch(user_id, directive)
            return
        state.mode = SessionMode.ACTIVE_IDLE
        self._check_token_budget(user_id, session)

    def _on_failure(self, user_id: str, token: int, error: Exception) -> None:
        if not self._is_current(user_id, token):
            logger.info("discarding failed call for %s (interrupted)", user_id)
            return
        state = self._users[user_id]
        assert state.session is not None
        state.session.remove_last_message()
        state.mode = SessionMode.ACTIVE_IDLE

        if isinstance(error, ConfigurationError):
            message = f"{render.ERROR}Configuration error: {error}"
        elif isinstance(error, NetworkError):
            message = f"{render.ERROR}Network error: {error}. Please send your message again."
        elif isinstance(error, ProtocolError):
            logger.warning(
                "protocol error for %s: status=%s body=%s", user_id, error.status_code, error.body
            )
            message = f"{render.ERROR}Agent call failed: {error}. Please send your message again."
        else:
            message = f"{render.ERROR}Agent call failed unexpectedly. Please try again."
        self._host.send_text(user_id, message)

    def _check_token_budget(self, user_id: str, session: ConversationSession) -> None:
        remaining = self._config.token_ceiling - session.estimated_tokens()
        if remaining < self._config.token_warning_threshold:
            self._host.send_text(user_id, render.token_warning(remaining))

    def _clear_pending(self, user_id: str, state: _UserState) -> None:
        state.pending = None
        self._host.clear_choice(user_id)

    def _recover(self, user_id: str) -> None:
        """Back to ACTIVE_IDLE after a failure while handling a result."""
        state = self._users.get(user_id)
        if state is None:
            return
        self._clear_pending(user_id, state)
        state.mode = SessionMode.ACTIVE_IDLE
        self._host.send_text(user_id, render.REPLY_FAILED)

    def _interrupt(self, user_id: str, state: _UserState) -> None:
        interrupted = False
        if state.mode is SessionMode.GENERATING:
            state.mode = SessionMode.ACTIVE_IDLE
            self._host.send_text(user_id, render.INTERRUPTED)
            interrupted = True
        if state.pending is not None:
            self._clear_pending(user_id, state)
            state.mode = SessionMode.ACTIVE_IDLE
            self._host.send_text(user_id, render.PENDING_CANCELLED)
            interrupted = True
        if not interrupted:
            self._host.send_text(user_id, render.NOTHING_TO_STOP)
