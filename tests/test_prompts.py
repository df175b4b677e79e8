"""Tests for Handlebars system prompt rendering and the default fallback."""

import pytest

from mineagent.prompts import (
    DEFAULT_SYSTEM_PROMPT,
    PromptError,
    build_context,
    render_prompt,
    system_prompt,
)


# ── render_prompt ────────────────────────────────────────────


def test_render_simple_variable():
    assert render_prompt("Hello {{name}}!", {"name": "Steve"}) == "Hello Steve!"


def test_render_triple_stash_keeps_markup():
    assert render_prompt("{{{cmd}}}", {"cmd": "give @p <apple>"}) == "give @p <apple>"


def test_render_invalid_template():
    with pytest.raises(PromptError):
        render_prompt("{{> missing_partial}}", {})


# ── build_context ────────────────────────────────────────────


def test_build_context():
    ctx = build_context("Steve", "Paper 1.21", ["list", "say"], ["luckperms.txt"])
    assert ctx == {
        "user_name": "Steve",
        "version": "Paper 1.21",
        "commands": "list, say",
        "presets": "luckperms.txt",
    }


# ── system_prompt ────────────────────────────────────────────


def test_default_prompt_describes_workspace():
    ctx = build_context("Steve", "Paper 1.21", ["list", "say"], ["luckperms.txt", "vanilla.txt"])
    text = system_prompt(ctx)
    assert "Server version: Paper 1.21" in text
    assert "You are talking to: Steve" in text
    assert "Available commands (index): list, say" in text
    assert "Available preset files: luckperms.txt, vanilla.txt" in text
    assert "#run: <command>" in text


def test_default_prompt_without_presets():
    text = system_prompt(build_context("Steve", "v", [], []))
    assert "No preset files are installed." in text
    assert "Available preset files" not in text


def test_custom_template():
    text = system_prompt(build_context("Alex", "v", [], []), "Helper for {{user_name}}.")
    assert text == "Helper for Alex."


def test_broken_custom_template_falls_back():
    ctx = build_context("Alex", "v", [], [])
    assert system_prompt(ctx, "{{> nope}}") == render_prompt(DEFAULT_SYSTEM_PROMPT, ctx)
