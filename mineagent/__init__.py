"""MineAgent: an in-game conversational agent driven by tool directives."""

__version__ = "0.3.0"
