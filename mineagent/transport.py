"""Chat interception: lines from users inside a session never reach public chat."""

import logging
from collections.abc import Callable

from mineagent.engine import SessionEngine

logger = logging.getLogger(__name__)


class ChatTransportAdapter:
    """Sits between the host's chat event and its normal delivery.

    Args:
        engine:  Session engine that gets first look at every line.
        deliver: Normal delivery (e.g. broadcast to everyone online), used
                 only when the engine does not consume the line.
    """

    def __init__(self, engine: SessionEngine, deliver: Callable[[str, str], None]) -> None:
        self._engine = engine
        self._deliver = deliver

    def on_chat(self, user_id: str, text: str) -> bool:
        """Returns True when the line was consumed and delivery suppressed."""
        if self._engine.on_user_message(user_id, text):
            logger.debug("suppressed chat delivery for %s", user_id)
            return True
        self._deliver(user_id, text)
        return False
