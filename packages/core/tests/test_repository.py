"""Tests for the GitHub fetch layer."""

import types
from datetime import date, datetime, timezone
from unittest.mock import MagicMock

import pytest
from github import GithubException

from ossdigest_core.gh.repository import (
    GitHubIssueResolver,
    enrich_commits_with_pr_info,
    extract_pr_number,
    fetch_activity,
    fetch_commits,
    fetch_issues,
    fetch_pull_requests,
    is_within_window,
    normalize_repo_slug,
)
from ossdigest_core.models import Commit

START = date(2025, 1, 1)
END = date(2025, 1, 8)


def _dt(day, hour=12):
    return datetime(2025, 1, day, hour, tzinfo=timezone.utc)


def make_gh_commit(sha, message, login, name=None, day=3):
    return types.SimpleNamespace(
        sha=sha,
        commit=types.SimpleNamespace(
            message=message,
            author=types.SimpleNamespace(name=name or login, email=f"{login}@example.com", date=_dt(day)),
        ),
        author=types.SimpleNamespace(login=login) if login else None,
    )


def make_gh_pull(number, login, created, updated, state="open", merged_at=None, title=None):
    return types.SimpleNamespace(
        number=number,
        id=number * 100,
        title=title or f"PR {number}",
        state=state,
        user=types.SimpleNamespace(login=login),
        created_at=created,
        updated_at=updated,
        closed_at=None,
        merged_at=merged_at,
        body=f"Body of {number}",
        labels=[types.SimpleNamespace(name="bug")],
        assignees=[],
    )


def make_gh_issue(number, login, created, is_pr=False, state="open"):
    return types.SimpleNamespace(
        number=number,
        id=number * 10,
        title=f"Issue {number}",
        state=state,
        user=types.SimpleNamespace(login=login),
        created_at=created,
        updated_at=created,
        closed_at=None,
        body="details",
        labels=[],
        assignees=[types.SimpleNamespace(login="carol")],
        comments=2,
        pull_request=object() if is_pr else None,
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class TestNormalizeRepoSlug:
    @pytest.mark.parametrize(
        "raw",
        [
            "apache/gluten",
            "https://github.com/apache/gluten",
            "https://github.com/apache/gluten.git",
            "https://github.com/apache/gluten/",
            "github.com/apache/gluten",
            "  apache/gluten  ",
        ],
    )
    def test_variants(self, raw):
        assert normalize_repo_slug(raw) == "apache/gluten"


class TestIsWithinWindow:
    def test_bounds_inclusive(self):
        assert is_within_window(datetime(2025, 1, 1, 0, 0, tzinfo=timezone.utc), START, END)
        assert is_within_window(datetime(2025, 1, 8, 23, 59, tzinfo=timezone.utc), START, END)

    def test_outside(self):
        assert not is_within_window(datetime(2024, 12, 31, 23, 59, tzinfo=timezone.utc), START, END)
        assert not is_within_window(datetime(2025, 1, 9, tzinfo=timezone.utc), START, END)

    def test_iso_strings_and_none(self):
        assert is_within_window("2025-01-05T10:00:00Z", START, END)
        assert not is_within_window(None, START, END)


class TestExtractPrNumber:
    @pytest.mark.parametrize(
        "message,expected",
        [
            ("Fix scan crash (#123)", 123),
            ("Merge pull request #45 from alice/feature", 45),
            ("[GLUTEN-1] Fix (#12) in the middle\n\nbody", 12),
            ("Fix #77 for real", 77),
            ("Refs issue (#10) and more (#20)", 20),
            ("No reference here", None),
            ("color#5 is not a reference", None),
            (None, None),
        ],
    )
    def test_patterns(self, message, expected):
        assert extract_pr_number(message) == expected


# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------


class TestFetchCommits:
    def test_filters_bots_and_maps_fields(self):
        repo = MagicMock()
        repo.get_commits.return_value = [
            make_gh_commit("a" * 40, "Fix crash", "alice"),
            make_gh_commit("b" * 40, "Bump deps", "dependabot[bot]"),
            make_gh_commit("c" * 40, "Nightly", "gluten-perfbot"),
        ]

        commits = fetch_commits(repo, START, END)

        assert [c.sha for c in commits] == ["a" * 40]
        assert commits[0].author_login == "alice"
        assert commits[0].author_email == "alice@example.com"
        assert commits[0].date.startswith("2025-01-03")

    def test_requests_full_day_window(self):
        repo = MagicMock()
        repo.get_commits.return_value = []
        fetch_commits(repo, START, END)
        kwargs = repo.get_commits.call_args.kwargs
        assert kwargs["since"] == datetime(2025, 1, 1, tzinfo=timezone.utc)
        assert kwargs["until"].date() == END
        assert kwargs["until"].hour == 23

    def test_unlinked_author_uses_git_name(self):
        repo = MagicMock()
        repo.get_commits.return_value = [
            make_gh_commit("a" * 40, "Fix", None, name="Jane Doe"),
            make_gh_commit("b" * 40, "Bump", None, name="renovate"),
        ]
        commits = fetch_commits(repo, START, END)
        assert [c.author_name for c in commits] == ["Jane Doe"]
        assert commits[0].author_login is None


class TestFetchPullRequests:
    def test_window_and_bot_filtering(self):
        repo = MagicMock()
        repo.get_pulls.return_value = [
            make_gh_pull(1, "alice", created=_dt(2), updated=_dt(7)),
            make_gh_pull(2, "renovate[bot]", created=_dt(3), updated=_dt(6)),
            make_gh_pull(3, "bob", created=datetime(2024, 11, 1, tzinfo=timezone.utc), updated=_dt(5)),
            make_gh_pull(4, "carol", created=datetime(2024, 11, 1, tzinfo=timezone.utc), updated=_dt(10)),
            make_gh_pull(5, "dave", created=datetime(2024, 11, 1, tzinfo=timezone.utc), updated=_dt(1)),
            make_gh_pull(6, "erin", created=datetime(2024, 11, 1, tzinfo=timezone.utc), updated=datetime(2024, 12, 1, tzinfo=timezone.utc)),
            make_gh_pull(7, "frank", created=_dt(2), updated=_dt(2)),
        ]

        pulls = fetch_pull_requests(repo, START, END)

        # #7 comes after an entry updated before the window, so the scan stops first.
        assert [p.number for p in pulls] == [1, 3, 5]
        assert pulls[0].labels == ("bug",)
        repo.get_pulls.assert_called_once_with(state="all", sort="updated", direction="desc")

    def test_merged_state(self):
        repo = MagicMock()
        repo.get_pulls.return_value = [make_gh_pull(1, "alice", _dt(2), _dt(3), state="closed", merged_at=_dt(3))]
        assert fetch_pull_requests(repo, START, END)[0].state == "merged"


class TestFetchIssues:
    def test_excludes_pull_requests_old_issues_and_bots(self):
        repo = MagicMock()
        repo.get_issues.return_value = [
            make_gh_issue(1, "alice", _dt(2)),
            make_gh_issue(2, "alice", _dt(3), is_pr=True),
            make_gh_issue(3, "github-actions[bot]", _dt(4)),
            make_gh_issue(4, "bob", datetime(2024, 12, 20, tzinfo=timezone.utc)),
        ]

        issues = fetch_issues(repo, START, END)

        assert [i.number for i in issues] == [1]
        assert issues[0].assignees == ("carol",)
        assert issues[0].comments == 2


# ---------------------------------------------------------------------------
# Enrichment and issue lookup
# ---------------------------------------------------------------------------


class TestEnrichCommits:
    def test_attaches_pr_description(self):
        repo = MagicMock()
        repo.get_pull.return_value = types.SimpleNamespace(body="Adds the scanner")
        commit = Commit(sha="a" * 40, message="Add scanner (#12)")

        [enriched] = enrich_commits_with_pr_info(repo, [commit])

        assert enriched.pr_number == 12
        assert enriched.pr_description == "Adds the scanner"
        assert commit.pr_description is None
        repo.get_pull.assert_called_once_with(12)

    def test_failure_keeps_commit_unchanged(self):
        repo = MagicMock()
        repo.get_pull.side_effect = GithubException(404, {"message": "Not Found"}, None)
        commit = Commit(sha="a" * 40, message="Fix (#99)")
        assert enrich_commits_with_pr_info(repo, [commit]) == [commit]

    def test_transport_failure_keeps_commit_unchanged(self):
        repo = MagicMock()
        repo.get_pull.side_effect = ConnectionError("connection reset")
        commit = Commit(sha="a" * 40, message="Fix (#99)")
        assert enrich_commits_with_pr_info(repo, [commit]) == [commit]

    def test_pull_fetched_once_per_number(self):
        repo = MagicMock()
        repo.get_pull.return_value = types.SimpleNamespace(body="shared")
        commits = [Commit(sha="a" * 40, message="Part 1 (#5)"), Commit(sha="b" * 40, message="Part 2 (#5)")]
        enrich_commits_with_pr_info(repo, commits)
        assert repo.get_pull.call_count == 1

    def test_commit_without_reference_untouched(self):
        repo = MagicMock()
        commit = Commit(sha="a" * 40, message="chore: tidy")
        assert enrich_commits_with_pr_info(repo, [commit]) == [commit]
        repo.get_pull.assert_not_called()


class TestGitHubIssueResolver:
    def test_returns_body_and_caches(self):
        repo = MagicMock()
        repo.get_issue.return_value = types.SimpleNamespace(body="Crash on empty input", title="Crash")
        resolver = GitHubIssueResolver(repo)

        assert resolver("42") == "Crash on empty input"
        assert resolver(42) == "Crash on empty input"
        repo.get_issue.assert_called_once_with(42)

    def test_missing_issue_resolves_to_none(self):
        repo = MagicMock()
        repo.get_issue.side_effect = GithubException(404, {"message": "Not Found"}, None)
        resolver = GitHubIssueResolver(repo)
        assert resolver("1") is None
        assert resolver("1") is None
        assert repo.get_issue.call_count == 1

    def test_transport_failure_resolves_to_none(self):
        repo = MagicMock()
        repo.get_issue.side_effect = TimeoutError("read timed out")
        assert GitHubIssueResolver(repo)("7") is None


# ---------------------------------------------------------------------------
# Aggregate
# ---------------------------------------------------------------------------


class TestFetchActivity:
    def test_builds_team_subsets_without_bots(self):
        repo = MagicMock()
        repo.full_name = "apache/gluten"
        repo.get_commits.return_value = [
            make_gh_commit("a" * 40, "Fix crash", "Alice"),
            make_gh_commit("b" * 40, "Add feature", "bob"),
            make_gh_commit("c" * 40, "Bump", "dependabot[bot]"),
        ]
        repo.get_pulls.return_value = [make_gh_pull(1, "alice", _dt(2), _dt(3))]
        repo.get_issues.return_value = [make_gh_issue(9, "bob", _dt(4))]

        activity = fetch_activity(repo, START, END, team_members=["alice"])

        assert activity.repo_name == "apache/gluten"
        assert [c.author_login for c in activity.commits] == ["Alice", "bob"]
        assert [c.sha for c in activity.team_commits] == ["a" * 40]
        assert [p.number for p in activity.team_pull_requests] == [1]
        assert activity.team_issues == []

    def test_listing_failure_propagates(self):
        repo = MagicMock()
        repo.get_commits.side_effect = GithubException(500, {"message": "boom"}, None)
        with pytest.raises(GithubException):
            fetch_activity(repo, START, END)

    def test_transport_failure_becomes_fetch_error(self):
        from ossdigest_core.errors import FetchError

        repo = MagicMock()
        repo.full_name = "apache/gluten"
        repo.get_commits.side_effect = ConnectionError("connection reset")
        with pytest.raises(FetchError, match="apache/gluten"):
            fetch_activity(repo, START, END)

    def test_enrichment_transport_failure_is_not_fatal(self):
        repo = MagicMock()
        repo.full_name = "apache/gluten"
        repo.get_commits.return_value = [make_gh_commit("a" * 40, "Fix crash (#12)", "alice")]
        repo.get_pull.side_effect = ConnectionError("connection reset")
        repo.get_pulls.return_value = []
        repo.get_issues.return_value = []

        activity = fetch_activity(repo, START, END)

        assert [c.sha for c in activity.commits] == ["a" * 40]
        assert activity.commits[0].pr_description is None


# ---------------------------------------------------------------------------
# Bot accounts end to end
# ---------------------------------------------------------------------------


class TestBotActivityNeverReported:
    def test_bot_commit_absent_from_rendered_report(self):
        from ossdigest_core.analysis.service import AnalysisService
        from ossdigest_core.errors import LLMError
        from ossdigest_report.html import render_report

        repo = MagicMock()
        repo.full_name = "apache/gluten"
        repo.get_commits.return_value = [
            make_gh_commit("a" * 40, "Fix crash in scan", "alice"),
            make_gh_commit("b" * 40, "Bump jackson from 2.15 to 2.17", "dependabot[bot]"),
        ]
        repo.get_pulls.return_value = [make_gh_pull(3, "dependabot[bot]", _dt(2), _dt(3), title="Bump jackson")]
        repo.get_issues.return_value = [make_gh_issue(4, "dependabot[bot]", _dt(4))]
        client = MagicMock()
        client.invoke.side_effect = LLMError("offline")

        activity = fetch_activity(repo, START, END, team_members=["alice", "dependabot[bot]"])
        categorization = AnalysisService(client).categorize_commits(activity.commits)
        html = render_report(activity, categorization, "Quiet week.", START, END, team_name="Core")

        assert categorization.total_count == 1
        assert "dependabot" not in html
        assert "Bump jackson" not in html
        assert "<li><b>Total commits:</b> 1</li>" in html
        assert "<li><b>Total commits by Core:</b> 1</li>" in html
        assert "<li><b>Number of PRs created/updated:</b> 0</li>" in html
        assert "<li><b>Number of issues reported:</b> 0</li>" in html
        assert "Fix crash in scan" in html
