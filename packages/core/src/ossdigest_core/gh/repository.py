"""Thin PyGithub wrappers that turn repository listings into domain models.

Everything returned from here is already bot-filtered: no caller ever sees an
automation account's commit, pull request or issue.
"""

from __future__ import annotations

import dataclasses
import logging
import re
import threading
from datetime import date, datetime, time, timezone
from typing import Iterable

from github import GithubException

from ossdigest_core.errors import FetchError
from ossdigest_core.models import Commit, Issue, PullRequest, RepositoryActivity
from ossdigest_core.utils.bots import DEFAULT_PROJECT_KEYWORDS, is_bot

logger = logging.getLogger(__name__)

_REPO_URL_RE = re.compile(r"^(?:https?://)?(?:www\.)?github\.com/([^/\s]+)/([^/\s]+?)(?:\.git)?/?$")

# Checked in order; the first pattern that matches names the pull request.
_PR_NUMBER_PATTERNS = (
    re.compile(r"\(#(\d+)\)\s*$", re.MULTILINE),
    re.compile(r"Merge pull request #(\d+)"),
    re.compile(r"\(#(\d+)\)"),
    re.compile(r"(?<!\w)#(\d+)(?!\w)"),
)


def normalize_repo_slug(repo_name: str) -> str:
    """Accept ``owner/repo`` or a github.com URL and return ``owner/repo``."""
    name = repo_name.strip()
    match = _REPO_URL_RE.match(name)
    if match:
        return f"{match.group(1)}/{match.group(2)}"
    return name.strip("/")


def _to_date(value) -> date | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00")).date()


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def is_within_window(value, start: date, end: date) -> bool:
    """Inclusive calendar-date check. A missing timestamp is never in the window."""
    day = _to_date(value)
    return day is not None and start <= day <= end


def _login(user) -> str | None:
    return getattr(user, "login", None) if user is not None else None


# --------------------------------------------------------------------------- #
# Listings                                                                     #
# --------------------------------------------------------------------------- #


def fetch_commits(repo, start: date, end: date, project_keywords: Iterable[str] = DEFAULT_PROJECT_KEYWORDS) -> list[Commit]:
    since = datetime.combine(start, time.min, tzinfo=timezone.utc)
    until = datetime.combine(end, time.max, tzinfo=timezone.utc)

    commits: list[Commit] = []
    skipped = 0
    for gh_commit in repo.get_commits(since=since, until=until):
        git_commit = gh_commit.commit
        git_author = git_commit.author
        login = _login(gh_commit.author)
        # Unlinked commits have no GitHub account; fall back to the git author name.
        if is_bot(login or getattr(git_author, "name", None), project_keywords):
            skipped += 1
            continue
        commits.append(
            Commit(
                sha=gh_commit.sha,
                message=git_commit.message,
                author_name=getattr(git_author, "name", None),
                author_email=getattr(git_author, "email", None),
                author_login=login,
                date=_iso(getattr(git_author, "date", None)),
            )
        )

    logger.debug("Fetched %d commit(s), skipped %d bot commit(s)", len(commits), skipped)
    return commits


def fetch_pull_requests(
    repo, start: date, end: date, project_keywords: Iterable[str] = DEFAULT_PROJECT_KEYWORDS
) -> list[PullRequest]:
    pulls: list[PullRequest] = []
    for pr in repo.get_pulls(state="all", sort="updated", direction="desc"):
        # Sorted by last update: nothing further down can be in the window.
        updated = _to_date(pr.updated_at)
        if updated is not None and updated < start:
            break
        if not (is_within_window(pr.created_at, start, end) or is_within_window(pr.updated_at, start, end)):
            continue
        login = _login(pr.user)
        if is_bot(login, project_keywords):
            continue
        pulls.append(
            PullRequest(
                number=pr.number,
                id=pr.id,
                title=pr.title or "",
                state="merged" if pr.merged_at else pr.state,
                author_login=login,
                created_at=_iso(pr.created_at),
                updated_at=_iso(pr.updated_at),
                closed_at=_iso(pr.closed_at),
                merged_at=_iso(pr.merged_at),
                body=pr.body or "",
                labels=tuple(label.name for label in pr.labels),
                assignees=tuple(a.login for a in pr.assignees),
            )
        )
    return pulls


def fetch_issues(repo, start: date, end: date, project_keywords: Iterable[str] = DEFAULT_PROJECT_KEYWORDS) -> list[Issue]:
    since = datetime.combine(start, time.min, tzinfo=timezone.utc)
    issues: list[Issue] = []
    # ``since`` filters on last update, which is never earlier than creation.
    for gh_issue in repo.get_issues(state="all", since=since):
        # The issues endpoint also lists pull requests.
        if gh_issue.pull_request is not None:
            continue
        if not is_within_window(gh_issue.created_at, start, end):
            continue
        login = _login(gh_issue.user)
        if is_bot(login, project_keywords):
            continue
        issues.append(
            Issue(
                number=gh_issue.number,
                id=gh_issue.id,
                title=gh_issue.title or "",
                state=gh_issue.state,
                author_login=login,
                created_at=_iso(gh_issue.created_at),
                updated_at=_iso(gh_issue.updated_at),
                closed_at=_iso(gh_issue.closed_at),
                body=gh_issue.body or "",
                labels=tuple(label.name for label in gh_issue.labels),
                assignees=tuple(a.login for a in gh_issue.assignees),
                comments=gh_issue.comments or 0,
            )
        )
    return issues


# --------------------------------------------------------------------------- #
# Linked pull requests and issues                                              #
# --------------------------------------------------------------------------- #


def extract_pr_number(message: str | None) -> int | None:
    """Return the pull request number a commit message refers to, if any."""
    if not message:
        return None
    for pattern in _PR_NUMBER_PATTERNS:
        match = pattern.search(message)
        if match:
            return int(match.group(1))
    return None


def enrich_commits_with_pr_info(repo, commits: list[Commit]) -> list[Commit]:
    """Attach the linked pull request number and description to each commit.

    Commits are immutable, so enriched copies are returned. A commit whose pull
    request cannot be fetched is kept unchanged.
    """
    bodies: dict[int, str | None] = {}
    enriched: list[Commit] = []
    for commit in commits:
        pr_number = commit.pr_number or extract_pr_number(commit.message)
        if pr_number is None or commit.pr_description is not None:
            enriched.append(commit)
            continue

        if pr_number not in bodies:
            try:
                bodies[pr_number] = repo.get_pull(pr_number).body or ""
            except (GithubException, OSError) as e:
                logger.debug("Could not fetch PR #%d for commit %s: %s", pr_number, commit.short_sha, e)
                bodies[pr_number] = None

        if bodies[pr_number] is None:
            enriched.append(commit)
        else:
            enriched.append(dataclasses.replace(commit, pr_number=pr_number, pr_description=bodies[pr_number]))
    return enriched


class GitHubIssueResolver:
    """Look up issue descriptions for summary prompts, caching per repository.

    Called concurrently from summary workers, so the cache is lock-guarded.
    Unknown or inaccessible issues resolve to None.
    """

    def __init__(self, repo):
        self.repo = repo
        self._cache: dict[int, str | None] = {}
        self._lock = threading.Lock()

    def __call__(self, number: str | int) -> str | None:
        key = int(number)
        with self._lock:
            if key in self._cache:
                return self._cache[key]

        try:
            issue = self.repo.get_issue(key)
            description = issue.body or issue.title or None
        except (GithubException, OSError) as e:
            logger.debug("Could not resolve issue #%d: %s", key, e)
            description = None

        with self._lock:
            self._cache[key] = description
        return description


# --------------------------------------------------------------------------- #
# Aggregate                                                                    #
# --------------------------------------------------------------------------- #


def fetch_activity(
    repo,
    start: date,
    end: date,
    team_members: Iterable[str] = (),
    project_keywords: Iterable[str] = DEFAULT_PROJECT_KEYWORDS,
) -> RepositoryActivity:
    """Fetch commits, pull requests and issues for ``repo`` within [start, end].

    Raises GithubException when GitHub rejects a listing and FetchError when
    it cannot be reached. Enrichment failures are not fatal.
    """
    keywords = tuple(project_keywords)
    team = {login.lower() for login in team_members if login}

    try:
        commits = enrich_commits_with_pr_info(repo, fetch_commits(repo, start, end, keywords))
        pull_requests = fetch_pull_requests(repo, start, end, keywords)
        issues = fetch_issues(repo, start, end, keywords)
    except OSError as e:
        # requests transport errors (connection reset, DNS, read timeout) are OSErrors.
        raise FetchError(f"Could not reach GitHub for {repo.full_name}: {e}") from e

    def in_team(login: str | None) -> bool:
        return bool(login) and login.lower() in team

    activity = RepositoryActivity(
        repo_name=repo.full_name,
        commits=commits,
        pull_requests=pull_requests,
        issues=issues,
        team_commits=[c for c in commits if in_team(c.author_login)],
        team_pull_requests=[p for p in pull_requests if in_team(p.author_login)],
        team_issues=[i for i in issues if in_team(i.author_login)],
    )
    logger.info(
        "Fetched %s: %d commit(s), %d PR(s), %d issue(s)",
        activity.repo_name,
        len(commits),
        len(pull_requests),
        len(issues),
    )
    return activity
