"""Deterministic keyword categorization used when the model output is unusable."""

from __future__ import annotations

from typing import Iterable

from ossdigest_core.models import Commit, CommitCategorization

# First match wins, checked in this order. A message mentioning both "fix" and
# "feat" is a bug fix.
BUG_FIX_KEYWORDS = ("fix", "bug", "hotfix")
FEATURE_KEYWORDS = ("feat", "feature", "add", "optimize")
IMPROVEMENT_KEYWORDS = ("refactor", "perf")

BUG_FIXES = "bug_fixes"
FEATURES = "features"
IMPROVEMENTS = "improvements"
OTHERS = "others"


def bucket_for(message: str | None) -> str:
    """Return the bucket name a single commit message falls into."""
    if not message:
        return OTHERS
    lower = message.lower()
    if any(k in lower for k in BUG_FIX_KEYWORDS):
        return BUG_FIXES
    if any(k in lower for k in FEATURE_KEYWORDS):
        return FEATURES
    if any(k in lower for k in IMPROVEMENT_KEYWORDS):
        return IMPROVEMENTS
    return OTHERS


def classify(commits: Iterable[Commit] | None) -> CommitCategorization:
    buckets: dict[str, list[Commit]] = {BUG_FIXES: [], FEATURES: [], IMPROVEMENTS: [], OTHERS: []}
    for commit in commits or ():
        buckets[bucket_for(commit.message)].append(commit)
    return CommitCategorization(**buckets)
