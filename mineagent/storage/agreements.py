"""Append-only record of users who accepted the usage terms.

One identifier per line in agreed_players.txt. Lines that do not look like an
identifier are skipped on load.
"""

import logging
import re

from .core import agreements_path

logger = logging.getLogger(__name__)

_ID_RE = re.compile(r"^[A-Za-z0-9_.:-]{1,64}$")


def is_valid_user_id(user_id: str) -> bool:
    return bool(_ID_RE.match(user_id))


def load_agreements() -> set[str]:
    """Read every accepted identifier. Returns an empty set if none exist."""
    path = agreements_path()
    if not path.is_file():
        return set()
    agreed: set[str] = set()
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError as e:
        logger.warning("Could not load agreement record: %s", e)
        return agreed
    for line in lines:
        user_id = line.strip()
        if is_valid_user_id(user_id):
            agreed.add(user_id)
    return agreed


def append_agreement(user_id: str) -> None:
    """Persist one accepted identifier at the end of the record."""
    if not is_valid_user_id(user_id):
        raise ValueError(f"Invalid user id: {user_id!r}")
    with agreements_path().open("a", encoding="utf-8") as f:
        f.write(user_id + "\n")
