"""Tests for mineagent.directives: thought stripping and directive parsing."""

from mineagent.directives import (
    Directive,
    find_directive_start,
    parse_reply,
    split_directive,
    strip_thoughts,
)


# ---------------------------------------------------------------------------
# strip_thoughts
# ---------------------------------------------------------------------------

def test_strip_thought_tags():
    reply = "<think>the user wants rain</think>Sure, changing the weather."
    assert strip_thoughts(reply) == "Sure, changing the weather."


def test_strip_multiline_reasoning_tag():
    reply = "<reasoning>\nstep one\nstep two\n</reasoning>\nDone."
    assert strip_thoughts(reply) == "Done."


def test_strip_leading_thought_line():
    reply = "Thought: they want a home\nUse **sethome** to save it."
    assert strip_thoughts(reply) == "Use **sethome** to save it."


def test_thought_word_later_is_kept():
    reply = "I thought about it.\nThought: keep this"
    assert strip_thoughts(reply) == reply


# ---------------------------------------------------------------------------
# split_directive
# ---------------------------------------------------------------------------

def test_split_colon():
    assert split_directive("#run: weather clear") == ("run", "weather clear")


def test_split_space():
    assert split_directive("#run say hello") == ("run", "say hello")


def test_split_no_args():
    assert split_directive("#over") == ("over", "")


def test_split_lowercases_name_only():
    assert split_directive("#CHOOSE: Yes,No") == ("choose", "Yes,No")


# ---------------------------------------------------------------------------
# parse_reply
# ---------------------------------------------------------------------------

def test_parse_run():
    display, directive = parse_reply("The weather is now clear. #run: weather clear")
    assert display == "The weather is now clear."
    assert directive == Directive(name="run", args="weather clear", raw="#run: weather clear")


def test_parse_no_directive():
    display, directive = parse_reply("Hello! How can I help?")
    assert display == "Hello! How can I help?"
    assert directive is None


def test_hash_in_prose_is_not_a_directive():
    display, directive = parse_reply("Join channel #general or grab item #3.")
    assert directive is None
    assert display == "Join channel #general or grab item #3."


def test_prose_hash_before_directive():
    display, directive = parse_reply("Slot #2 is empty.\n#get: luckperms.txt")
    assert display == "Slot #2 is empty."
    assert directive.name == "get"
    assert directive.args == "luckperms.txt"


def test_last_directive_wins():
    display, directive = parse_reply("Try #over maybe.\n#exit")
    assert directive.name == "exit"
    assert display == "Try #over maybe."


def test_case_insensitive_name():
    _, directive = parse_reply("Ok. #Over")
    assert directive.name == "over"


def test_directive_only_reply():
    display, directive = parse_reply("#search: widely beacon pyramid")
    assert display == ""
    assert directive.name == "search"
    assert directive.args == "widely beacon pyramid"


def test_thoughts_stripped_before_parsing():
    reply = "<think>#run: op everyone</think>Let me ask first. #choose: Day,Night"
    display, directive = parse_reply(reply)
    assert display == "Let me ask first."
    assert directive.name == "choose"
    assert directive.args == "Day,Night"


def test_prefix_match_keeps_full_name():
    _, directive = parse_reply("Running now. #runner: say hi")
    assert directive.name == "runner"


def test_find_directive_start():
    assert find_directive_start("no tools here") == -1
    assert find_directive_start("abc #run: x") == 4


def test_trailing_prose_hash_hides_earlier_directive():
    reply = "Done, see #run: give @p diamond. You now have #3 stacks."
    display, directive = parse_reply(reply)
    assert directive is None
    assert display == reply


def test_find_directive_start_only_checks_last_hash():
    assert find_directive_start("#run: say hi #general") == -1
