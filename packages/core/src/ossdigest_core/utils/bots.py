"""Heuristics for spotting automation accounts by login name."""

from __future__ import annotations

from typing import Iterable

KNOWN_BOT_ACCOUNTS = (
    "dependabot",
    "renovate",
    "github-actions",
    "codecov-io",
    "coveralls",
)

DEFAULT_PROJECT_KEYWORDS = ("gluten",)


def is_bot(identity: str | None, project_keywords: Iterable[str] = DEFAULT_PROJECT_KEYWORDS) -> bool:
    """Return True if the login looks like an automation account.

    Matches are case-insensitive. "bot" must be the exact suffix, so "abbott"
    and "robotics-engineer" are treated as humans.
    """
    if not identity:
        return False

    login = identity.lower()
    if login.endswith("bot") or "perfbot" in login or login == "testbot":
        return True
    if "bot" in login and any(k.lower() in login for k in project_keywords if k):
        return True
    return any(account in login for account in KNOWN_BOT_ACCOUNTS)
