"""Repository activity data models.

Commits are immutable. The AI summary produced for a commit is never stored on
the commit itself; it lives in a separate ``sha -> summary`` mapping returned by
the summarization engine, so worker threads never mutate shared domain objects.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator


@dataclass(frozen=True)
class Commit:
    sha: str
    message: str | None
    author_name: str | None = None
    author_email: str | None = None
    author_login: str | None = None
    date: str | None = None
    pr_number: int | None = None
    pr_description: str | None = None

    @property
    def short_sha(self) -> str:
        if not self.sha:
            return "unknown"
        return self.sha[:8]

    @property
    def title(self) -> str:
        """First line of the commit message."""
        if not self.message:
            return ""
        return self.message.split("\n", 1)[0].strip()

    @property
    def body(self) -> str:
        """Everything after the first line of the commit message."""
        if not self.message:
            return ""
        parts = self.message.split("\n", 1)
        return parts[1].strip() if len(parts) > 1 else ""


@dataclass(frozen=True)
class PullRequest:
    number: int
    title: str
    state: str  # "open" | "closed" | "merged"
    author_login: str | None = None
    id: int | None = None
    created_at: str | None = None
    updated_at: str | None = None
    closed_at: str | None = None
    merged_at: str | None = None
    body: str = ""
    labels: tuple[str, ...] = ()
    assignees: tuple[str, ...] = ()


@dataclass(frozen=True)
class Issue:
    number: int
    title: str
    state: str  # "open" | "closed"
    author_login: str | None = None
    id: int | None = None
    created_at: str | None = None
    updated_at: str | None = None
    closed_at: str | None = None
    body: str = ""
    labels: tuple[str, ...] = ()
    assignees: tuple[str, ...] = ()
    comments: int = 0


@dataclass(frozen=True)
class CommitCategorization:
    """Four disjoint buckets of commits.

    Every commit handed to categorization lands in exactly one bucket, whether
    the buckets came from the model response or the keyword fallback.
    """

    bug_fixes: tuple[Commit, ...] = ()
    features: tuple[Commit, ...] = ()
    improvements: tuple[Commit, ...] = ()
    others: tuple[Commit, ...] = ()

    def __post_init__(self):
        # Accept lists from callers but store tuples so the grouping stays immutable.
        for name in ("bug_fixes", "features", "improvements", "others"):
            object.__setattr__(self, name, tuple(getattr(self, name) or ()))

    @property
    def total_count(self) -> int:
        return len(self.bug_fixes) + len(self.features) + len(self.improvements) + len(self.others)

    def all_commits(self) -> Iterator[Commit]:
        yield from self.bug_fixes
        yield from self.features
        yield from self.improvements
        yield from self.others

    def counts(self) -> dict[str, int]:
        return {
            "bug_fixes": len(self.bug_fixes),
            "features": len(self.features),
            "improvements": len(self.improvements),
            "others": len(self.others),
        }

    def __str__(self) -> str:
        c = self.counts()
        return (
            f"CommitCategorization(bug_fixes={c['bug_fixes']}, features={c['features']}, "
            f"improvements={c['improvements']}, others={c['others']})"
        )


@dataclass
class RepositoryActivity:
    """Everything fetched for one repository in one run.

    Built once per repository by the fetch layer, already bot-filtered.
    The team_* lists are the subsets authored by members of the team allowlist.
    """

    repo_name: str
    commits: list[Commit] = field(default_factory=list)
    pull_requests: list[PullRequest] = field(default_factory=list)
    issues: list[Issue] = field(default_factory=list)
    team_commits: list[Commit] = field(default_factory=list)
    team_pull_requests: list[PullRequest] = field(default_factory=list)
    team_issues: list[Issue] = field(default_factory=list)
