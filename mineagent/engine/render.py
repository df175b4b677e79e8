"""User-facing text: agent reply formatting and fixed notices.

Colour codes use the § prefix understood by the game client.
"""

HIGHLIGHT = "§b"
BODY = "§f"
MUTED = "§7"
WARN = "§e"
ERROR = "§c"
OK = "§a"

AGENT_PREFIX = "◆ "


def render_agent_text(content: str) -> str:
    """Colour agent prose: fenced code and **bold** spans are highlighted."""
    parts: list[str] = [BODY + AGENT_PREFIX]
    for i, block in enumerate(content.split("```")):
        if i % 2 == 1:
            parts.append(HIGHLIGHT + block)
            continue
        for j, span in enumerate(block.split("**")):
            parts.append((HIGHLIGHT if j % 2 == 1 else BODY) + span)
    return "".join(parts)


AGREEMENT_LINES = [
    MUTED + "===============",
    BODY + "MineAgent terms of use",
    MUTED + "1. This service is powered by AI and may produce wrong information.",
    MUTED + "2. Your conversation is sent to Cloudflare for processing.",
    MUTED + "3. Do not enter sensitive information.",
    BODY + "Send " + OK + "agree" + BODY + " to accept and continue.",
    MUTED + "===============",
]

ENTER_LINES = [
    MUTED + "==================",
    BODY + "CLI Powering",
    MUTED + "==================",
]

EXIT_LINES = [
    MUTED + "==================",
    BODY + "Exited CLI Mode",
    MUTED + "==================",
]

AGREEMENT_REPROMPT = ERROR + "Send agree to accept the terms, or toggle the agent off to leave."
BUSY = ERROR + "⨀ Please don't send messages while the agent is working. Type stop to interrupt."
CONFIRM_REPROMPT = ERROR + "Please confirm the command [Y/N]"
INTERRUPTED = WARN + "⇒ Agent generation interrupted"
PENDING_CANCELLED = MUTED + "⇒ Pending action cancelled"
COMMAND_CANCELLED = MUTED + "⇒ Command cancelled"
NOTHING_TO_STOP = MUTED + "Nothing is running. Type exit to leave CLI mode."
IDLE_TIMEOUT = WARN + "Exited CLI Mode after a period of inactivity."
WAITING_FEEDBACK = MUTED + "⇒ Command sent, waiting for feedback..."
FEEDBACK_SENT = MUTED + "⇒ Feedback sent to the agent"
WIKI_FALLBACK = MUTED + "〇 No wiki results, trying a web search..."
REPLY_FAILED = ERROR + "Something went wrong while handling the agent's reply. Please try again."


def token_warning(remaining: int) -> str:
    return (
        WARN + f"⨀ Token budget is running low ({remaining} left); "
        "the agent may forget earlier parts of the conversation."
    )
