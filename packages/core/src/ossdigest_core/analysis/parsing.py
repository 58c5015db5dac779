"""Parsing of free-text model responses.

The response formats are only described by the prompt text we send, so the
model is free to ignore them. Both parsers here are total: they never raise on
malformed input and either return a usable value or None, leaving the caller to
fall back.
"""

from __future__ import annotations

import logging
import re
from typing import Sequence

from ossdigest_core.analysis.fallback import BUG_FIXES, FEATURES, IMPROVEMENTS, OTHERS, bucket_for
from ossdigest_core.models import Commit, CommitCategorization

logger = logging.getLogger(__name__)

# Bucket name → label regex. Labels may appear in any order and with or
# without the space ("Bug Fixes" / "BugFixes"). Priority order matters when
# the model puts the same commit in two buckets: the earlier bucket keeps it.
_CATEGORY_LABELS = (
    (BUG_FIXES, r"bug\s*fix(?:es)?"),
    (FEATURES, r"(?:new\s*)?features?"),
    (IMPROVEMENTS, r"improvements?"),
    (OTHERS, r"others?"),
)

_SUMMARY_PREFIXES = ("Summary:", "summary:", "Commit summary:", "commit summary:", "Output:", "output:")
_SENTENCE_END = (".", "!", "?")
_FILLER_SENTENCE = "Improves code quality."

SUMMARY_MAX_CHARS = 200
_TRUNCATE_AT = 197
_MIN_SENTENCE_BREAK = 150
_MIN_SINGLE_SENTENCE = 15


def _extract_indices(response: str, label_pattern: str) -> list[int]:
    match = re.search(rf"\b{label_pattern}\s*:\s*\[([^\]]*)\]", response, re.IGNORECASE)
    if not match:
        return []
    indices = []
    for token in match.group(1).split(","):
        token = token.strip()
        if not token:
            continue
        try:
            indices.append(int(token))
        except ValueError:
            logger.debug("Ignoring malformed categorization index %r", token)
    return indices


def parse_categorization(response: str | None, commits: Sequence[Commit]) -> CommitCategorization | None:
    """Map a ``Bug Fixes: [1,3], Features: [2], ...`` response onto commits.

    Indices are 1-based positions in ``commits``; anything out of range or not
    an integer is dropped. Returns None when no label yielded a single usable
    index, which tells the caller to use the keyword fallback.

    The returned categorization always places every commit exactly once:
    duplicates keep their highest-priority bucket and commits the model left
    out are placed by the keyword rules.
    """
    if not response or not commits:
        return None

    buckets: dict[str, list[Commit]] = {name: [] for name, _ in _CATEGORY_LABELS}
    placed: set[int] = set()
    recovered = 0

    for name, label_pattern in _CATEGORY_LABELS:
        for index in _extract_indices(response, label_pattern):
            if index < 1 or index > len(commits):
                continue
            recovered += 1
            position = index - 1
            if position in placed:
                continue
            placed.add(position)
            buckets[name].append(commits[position])

    if recovered == 0:
        return None

    missing = [c for i, c in enumerate(commits) if i not in placed]
    if missing:
        logger.debug("Model left %d commit(s) uncategorized; placing them by keyword", len(missing))
        for commit in missing:
            buckets[bucket_for(commit.message)].append(commit)

    return CommitCategorization(
        bug_fixes=buckets[BUG_FIXES],
        features=buckets[FEATURES],
        improvements=buckets[IMPROVEMENTS],
        others=buckets[OTHERS],
    )


def ensure_sentence_punctuation(text: str | None) -> str:
    if text is None:
        return ""
    text = text.strip()
    if not text or text.endswith(_SENTENCE_END):
        return text
    return text + "."


def _ensure_two_sentences(line: str) -> str:
    sentences: list[str] = []
    current = ""
    for ch in " ".join(line.split()):
        current += ch
        if ch in _SENTENCE_END:
            if current.strip():
                sentences.append(current.strip())
            current = ""
            if len(sentences) == 2:
                break

    if len(sentences) < 2 and current.strip():
        sentences.append(current.strip())

    if not sentences:
        return "Update applied. " + _FILLER_SENTENCE
    if len(sentences) == 1:
        sentences.append(_FILLER_SENTENCE)

    return f"{ensure_sentence_punctuation(sentences[0])} {ensure_sentence_punctuation(sentences[1])}"


def truncate_summary(text: str) -> str:
    """Cap a summary at SUMMARY_MAX_CHARS, preferring a sentence boundary."""
    if len(text) <= SUMMARY_MAX_CHARS:
        return text
    last_period = text.rfind(".", 0, _TRUNCATE_AT + 1)
    if last_period > _MIN_SENTENCE_BREAK:
        return text[: last_period + 1]
    return text[:_TRUNCATE_AT] + "..."


def clean_summary(raw: str | None) -> str | None:
    """Normalize a per-commit summary response into one line of two sentences.

    Returns None when there is nothing usable; the commit is then left without
    a summary rather than treated as an error.
    """
    if raw is None:
        return None

    cleaned = raw.strip()
    for prefix in _SUMMARY_PREFIXES:
        if cleaned.startswith(prefix):
            cleaned = cleaned[len(prefix) :].strip()
            break

    if not cleaned:
        return None

    lines = [" ".join(line.split()) for line in cleaned.replace("\r", "").split("\n")]
    lines = [line for line in lines if line]
    if not lines:
        return None

    if len(lines) == 1:
        single = ensure_sentence_punctuation(lines[0])
        if len(single) >= _MIN_SINGLE_SENTENCE and single.endswith(_SENTENCE_END):
            return truncate_summary(single)
        return truncate_summary(_ensure_two_sentences(single))

    # Only the first two lines survive.
    first = ensure_sentence_punctuation(lines[0])
    second = ensure_sentence_punctuation(lines[1])
    return truncate_summary(f"{first} {second}")
