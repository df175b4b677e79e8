"""Per-user conversation state: bounded history and activity time."""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence

from mineagent.models import Message, Role

MAX_HISTORY = 20

TokenEstimator = Callable[[Sequence[Message]], int]


def estimate_tokens(history: Sequence[Message]) -> int:
    """Rough token count: four characters per token."""
    return sum(len(m.content) for m in history) // 4


class ConversationSession:
    """Ordered user/assistant history capped at MAX_HISTORY entries.

    When an append pushes the history past the cap, the two oldest entries
    are evicted together so user/assistant pairs stay aligned.
    """

    def __init__(
        self,
        estimator: TokenEstimator = estimate_tokens,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._history: list[Message] = []
        self._estimator = estimator
        self._clock = clock
        self._last_activity = clock()

    def add_message(self, role: Role, content: str) -> None:
        self._history.append(Message(role=role, content=content))
        self._last_activity = self._clock()
        if len(self._history) > MAX_HISTORY:
            del self._history[:2]

    def remove_last_message(self) -> Message | None:
        """Drop the newest entry (a turn that never got a reply)."""
        if not self._history:
            return None
        return self._history.pop()

    def history(self) -> list[Message]:
        return list(self._history)

    def estimated_tokens(self) -> int:
        return self._estimator(self._history)

    def last_activity_time(self) -> float:
        return self._last_activity

    def __len__(self) -> int:
        return len(self._history)
