"""Handlebars rendering of the agent's system prompt."""

import logging
from collections.abc import Callable
from typing import Any

import pybars

logger = logging.getLogger(__name__)

_compiler = pybars.Compiler()
_cache: dict[str, Callable] = {}


class PromptError(Exception):
    """Raised when a Handlebars template fails to compile or render."""


DEFAULT_SYSTEM_PROMPT = """\
You are MineAgent, an assistant inside a Minecraft server. Your goal is to \
help the player through short conversation and by generating and running \
server commands.
Server version: {{{version}}}
You are talking to: {{{user_name}}}
Available commands (index): {{{commands}}}
{{#if presets}}
Available preset files: {{{presets}}}
{{else}}
No preset files are installed.
{{/if}}

Rules:
1. Never use Markdown formatting (headings, lists, links).
2. To highlight a keyword (a command, a player name, an item), wrap it in \
** **. For example: you can type **weather rain** to change the weather.
3. You may use the tools below. A tool call must be on its own line at the \
very end of your reply. Format: #tool: arguments
   #search: <query> - search the Minecraft Wiki. Use #search: widely <query> \
for a general web search.
   #choose: <A>,<B>,<C> - show the player options to pick from.
   #get: <file> - read a file from the preset directory.
   #run: <command> - run a command as the player. Do not put a leading slash \
on the command. Example: #run: give @p apple
   #over - the task is done, stop and wait for the player.
   #exit - the player wants to leave the agent session.
   Only one tool call per reply. No space between the tool name and the colon.
4. Before #run with third-party plugin syntax (LuckPerms, EssentialsX, \
CoreProtect...), read the matching preset file with #get first. Only use \
#search when the preset has nothing relevant.
5. If command feedback says no output was captured, the command most likely \
ran silently or wrote straight to the player's screen. Do not repeat the \
same command blindly; assume it ran and suggest the player check their chat.
6. Tool errors are reported back to you as "error: ..." messages. Correct the \
call instead of inventing new tools.
"""


def render_prompt(template_str: str, context: dict[str, Any]) -> str:
    """Compile and render a Handlebars template with the given context.

    Templates are cached by source string to avoid recompilation.
    """
    try:
        compiled = _cache.get(template_str)
        if compiled is None:
            compiled = _compiler.compile(template_str)
            _cache[template_str] = compiled
        return str(compiled(context))
    except Exception as e:
        raise PromptError(f"Template error: {e}") from e


def build_context(
    user_name: str,
    version: str,
    commands: list[str],
    presets: list[str],
) -> dict[str, Any]:
    """Template variables describing the user and the workspace."""
    return {
        "user_name": user_name,
        "version": version,
        "commands": ", ".join(commands),
        "presets": ", ".join(presets),
    }


def system_prompt(context: dict[str, Any], template: str = "") -> str:
    """Render the configured template, falling back to the default on errors."""
    if template:
        try:
            return render_prompt(template, context)
        except PromptError as e:
            logger.warning("Custom system prompt failed, using default: %s", e)
    return render_prompt(DEFAULT_SYSTEM_PROMPT, context)
