"""Tool directive extraction from agent replies.

A reply ends with at most one directive of the form ``#name: args``. Prose may
contain ``#`` on its own (item counts, channel names), so only the last ``#``
is examined, and it counts as a directive only when a known tool name
follows it immediately.

    "The weather is now clear. #run: weather clear"
      display   → "The weather is now clear."
      directive → name="run", args="weather clear"
"""

import re

from pydantic import BaseModel, ConfigDict

SENTINEL = "#"
KNOWN_TOOLS = ("over", "exit", "run", "get", "choose", "search")

_THOUGHT_TAGS_RE = re.compile(
    r"<(thought|think|thinking|reasoning)>.*?</\1>", re.DOTALL | re.IGNORECASE
)
_THOUGHT_LINE_RE = re.compile(r"^(?:Thought|思考过程)\s*[:：].*?(?:\n|$)", re.IGNORECASE)


class Directive(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str  # lowercase, without the sentinel
    args: str = ""
    raw: str


def strip_thoughts(text: str) -> str:
    """Remove reasoning markup: tagged blocks and a leading Thought: line."""
    cleaned = _THOUGHT_TAGS_RE.sub("", text)
    cleaned = _THOUGHT_LINE_RE.sub("", cleaned.lstrip(), count=1)
    return cleaned.strip()


def split_directive(raw: str) -> tuple[str, str]:
    """Split ``#name: args`` into (name, args) at the first colon or space."""
    body = raw.strip()
    if body.startswith(SENTINEL):
        body = body[len(SENTINEL):]
    cut = [i for i in (body.find(":"), body.find(" ")) if i != -1]
    if not cut:
        return body.strip().lower(), ""
    split_at = min(cut)
    return body[:split_at].strip().lower(), body[split_at + 1:].strip()


def find_directive_start(text: str) -> int:
    """Index of the last ``#`` if a known tool name follows it, else -1.

    Earlier ``#`` characters are never considered: a reply whose final ``#``
    is prose carries no directive.
    """
    lowered = text.lower()
    pos = lowered.rfind(SENTINEL)
    if pos == -1 or not lowered[pos + len(SENTINEL):].startswith(KNOWN_TOOLS):
        return -1
    return pos


def parse_reply(reply: str) -> tuple[str, Directive | None]:
    """Separate user-visible text from the trailing tool directive.

    Returns (display_text, directive). When no known directive is present
    the whole cleaned reply is display text.
    """
    cleaned = strip_thoughts(reply)
    start = find_directive_start(cleaned)
    if start == -1:
        return cleaned, None
    raw = cleaned[start:].strip()
    name, args = split_directive(raw)
    return cleaned[:start].strip(), Directive(name=name, args=args, raw=raw)
