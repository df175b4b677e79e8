"""Core domain models.

Conversation history entries, the per-user session mode, and the pending
action staged while the agent waits for a confirmation or a choice.
"""

from __future__ import annotations

from enum import Enum
from typing import Literal, Union

from pydantic import BaseModel, ConfigDict

Role = Literal["user", "assistant"]


class Message(BaseModel):
    """One turn in a conversation history. System text is never stored here."""

    model_config = ConfigDict(frozen=True)

    role: Role
    content: str


class SessionMode(str, Enum):
    NONE = "none"
    PENDING_AGREEMENT = "pending_agreement"
    ACTIVE_IDLE = "active_idle"
    GENERATING = "generating"
    AWAITING_CONFIRM = "awaiting_confirm"
    AWAITING_CHOICE = "awaiting_choice"


class ConfirmAction(BaseModel):
    """A command staged by #run, waiting for y/n."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["confirm"] = "confirm"
    command: str


class ChoiceAction(BaseModel):
    """Options presented by #choose, waiting for a free-text selection."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["choice"] = "choice"
    options: tuple[str, ...] = ()


PendingAction = Union[ConfirmAction, ChoiceAction]
