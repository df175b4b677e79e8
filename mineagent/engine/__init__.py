"""Agent session engine and tool dispatch.

Turn loop for one user message:
  1. The message is appended to the user's history and the mode becomes
     GENERATING; the remote chat call runs as a background task.
  2. The reply is stored, thought markup is stripped, and the trailing
     directive (if any) is split from the display text.
  3. Display text is shown to the user. With no directive the mode returns
     to ACTIVE_IDLE and the token budget is checked.
  4. A directive is dispatched:
       #over    → ACTIVE_IDLE
       #exit    → session ends
       #run     → AWAITING_CONFIRM; on "y" the command runs as the user and
                  "run_result: ..." is fed back
       #choose  → AWAITING_CHOICE; the next line is fed back as
                  "choose_result: ..."
       #get     → "get_result: ..." from the preset directory
       #search  → "search_result: ..." from the wiki or the web
       unknown  → "error: unknown tool #name"
  5. Every feedback turn is a user-role message and starts another call,
     until the agent stops emitting directives.

Modes: NONE, PENDING_AGREEMENT, ACTIVE_IDLE, GENERATING, AWAITING_CONFIRM,
AWAITING_CHOICE. "stop" leaves GENERATING (and drops any pending action);
replies that arrive afterwards are discarded.
"""

from .core import SessionEngine  # noqa: F401
from .tools import SessionControl, ToolDispatcher, describe_run_outcome  # noqa: F401
