"""Static HTML rendering for one repository digest.

render_report is a pure function of its inputs. Every piece of text that
originates from GitHub or the model is escaped before it reaches the page.
"""

from __future__ import annotations

from datetime import date
from html import escape as _escape
from typing import Iterable, Mapping

from ossdigest_core.models import Commit, CommitCategorization, Issue, PullRequest, RepositoryActivity

_STYLE = """\
body { font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; line-height: 1.6; color: #333; max-width: 1200px; margin: 0 auto; padding: 20px; background-color: #f9f9f9; }
h1 { color: #0366d6; border-bottom: 3px solid #0366d6; padding-bottom: 10px; margin-bottom: 30px; }
h2 { color: #24292e; border-bottom: 1px solid #e1e4e8; padding-bottom: 8px; margin-top: 30px; margin-bottom: 15px; }
h3 { color: #586069; margin-top: 20px; margin-bottom: 8px; }
.commit-list { margin: 0 0 12px 1.5em; padding: 0; }
.commit-list.empty { margin-left: 0; }
.commit-list.empty > li { list-style: none; padding: 2px 0; color: #6a737d; font-style: italic; }
a { color: #0366d6; text-decoration: none; }
a:hover { text-decoration: underline; }
em { color: #6a737d; font-style: italic; }
"""

# (heading, CommitCategorization attribute), in display order.
_CATEGORY_SECTIONS = (
    ("Important Bug Fixes", "bug_fixes"),
    ("Features", "features"),
    ("Improvements", "improvements"),
    ("Others", "others"),
)

_COMMIT_TITLE_LIMIT = 100
_TEAM_COMMIT_LIMIT = 80
_COMMIT_BODY_LIMIT = 150


def escape(text: str | None) -> str:
    """HTML-escape text, quotes included. None renders as an empty string."""
    if text is None:
        return ""
    return _escape(str(text), quote=True)


def _truncate(text: str | None, limit: int) -> str:
    if not text:
        return ""
    return text if len(text) <= limit else text[:limit] + "..."


def _github_url(repo_name: str, kind: str, ref) -> str:
    return escape(f"https://github.com/{repo_name}/{kind}/{ref}")


def render_report(
    activity: RepositoryActivity,
    categorization: CommitCategorization,
    overview: str,
    start: date | str,
    end: date | str,
    summaries: Mapping[str, str] | None = None,
    team_name: str = "Team",
) -> str:
    """Render the complete HTML document for one repository."""
    summaries = summaries or {}
    repo = activity.repo_name

    lines = [
        "<!DOCTYPE html>",
        '<html lang="en">',
        "<head>",
        '<meta charset="UTF-8">',
        '<meta name="viewport" content="width=device-width, initial-scale=1.0">',
        f"<title>OSS Summary Report - {escape(repo)}</title>",
        "<style>",
        _STYLE,
        "</style>",
        "</head>",
        "<body>",
        f"<h1>{escape(repo)} OSS Updates ({escape(str(start))} to {escape(str(end))})</h1>",
    ]
    lines += _summary_section(activity, categorization, overview, team_name)
    lines += _team_section(activity, team_name)
    lines += _categories_section(repo, categorization, summaries)
    lines += _open_pull_requests_section(repo, activity.pull_requests)
    lines += _open_issues_section(repo, activity.issues)
    lines += ["</body>", "</html>"]
    return "\n".join(lines) + "\n"


def _summary_section(
    activity: RepositoryActivity,
    categorization: CommitCategorization,
    overview: str,
    team_name: str,
) -> list[str]:
    counts = categorization.counts()
    return [
        "<h2>Overall Summary</h2>",
        f"<p>{escape(overview)}</p>",
        "<ul>",
        f"<li><b>Total commits:</b> {categorization.total_count}</li>",
        f"<li><b>Number of PRs created/updated:</b> {len(activity.pull_requests)}</li>",
        f"<li><b>Number of issues reported:</b> {len(activity.issues)}</li>",
        "<li><b>Count per commit type:</b> "
        f"Bug Fixes: {counts['bug_fixes']}, New Features: {counts['features']}, "
        f"Improvements: {counts['improvements']}, Others: {counts['others']}</li>",
        f"<li><b>Total commits by {escape(team_name)}:</b> {len(activity.team_commits)}</li>",
        "</ul>",
        "<hr>",
    ]


def _team_section(activity: RepositoryActivity, team_name: str) -> list[str]:
    repo = activity.repo_name
    team = escape(team_name)
    lines = [f"<h2>{team} Activity</h2>", "<h3>Pull Requests</h3>", "<ul>"]
    for pr in activity.team_pull_requests:
        lines.append(
            f'<li><a href="{_github_url(repo, "pull", pr.number)}">[#{pr.number}] {escape(pr.title)}</a>'
            f" - by {escape(pr.author_login)}</li>"
        )
    if not activity.team_pull_requests:
        lines.append(f"<li><em>No {team} activity found for pull requests in this period.</em></li>")
    lines += ["</ul>", "<h3>Commits</h3>", "<ul>"]
    for commit in activity.team_commits:
        lines.append(
            f'<li><a href="{_github_url(repo, "commit", commit.sha)}">'
            f"{escape(_truncate(commit.title, _TEAM_COMMIT_LIMIT))}</a>"
            f" - by {escape(commit.author_login)}</li>"
        )
    if not activity.team_commits:
        lines.append(f"<li><em>No {team} activity found for commits in this period.</em></li>")
    lines += ["</ul>", "<hr>"]
    return lines


def _categories_section(repo: str, categorization: CommitCategorization, summaries: Mapping[str, str]) -> list[str]:
    lines = ["<h2>Commits by Category</h2>"]
    for heading, attr in _CATEGORY_SECTIONS:
        lines += _commit_list(repo, heading, getattr(categorization, attr), summaries)
    return lines


def _commit_list(repo: str, heading: str, commits: Iterable[Commit], summaries: Mapping[str, str]) -> list[str]:
    commits = list(commits)
    lines = [f"<h3>{heading}</h3>", f"<ol class='commit-list{'' if commits else ' empty'}'>"]
    if not commits:
        lines += ["<li><em>No commits in this category.</em></li>", "</ol>"]
        return lines

    for commit in commits:
        item = (
            f'<li><a href="{_github_url(repo, "commit", commit.sha)}">'
            f"{escape(_truncate(commit.title, _COMMIT_TITLE_LIMIT))}</a>"
            f" - by {escape(commit.author_login or commit.author_name)}"
        )
        summary = summaries.get(commit.sha)
        if summary and summary.strip():
            item += f"<br>{escape(' '.join(summary.split()))}"
        if commit.body:
            item += f"<br><em>{escape(_truncate(commit.body, _COMMIT_BODY_LIMIT))}</em>"
        lines.append(item + "</li>")
    lines.append("</ol>")
    return lines


def _open_pull_requests_section(repo: str, pull_requests: list[PullRequest]) -> list[str]:
    lines = ["<h2>Open Pull Requests</h2>", "<p>(That were created or updated in this reporting period)</p>"]
    open_prs = [pr for pr in pull_requests if (pr.state or "").lower() == "open"]
    if not pull_requests:
        lines.append("<p><em>No pull requests found.</em></p>")
    elif not open_prs:
        lines.append("<p><em>No open pull requests found.</em></p>")
    else:
        lines.append("<ol>")
        for pr in open_prs:
            lines.append(
                f'<li><a href="{_github_url(repo, "pull", pr.number)}">#{pr.number}: {escape(pr.title)}</a>'
                f" - by {escape(pr.author_login)}</li>"
            )
        lines.append("</ol>")
    lines.append("<hr>")
    return lines


def _open_issues_section(repo: str, issues: list[Issue]) -> list[str]:
    open_issues = [i for i in issues if (i.state or "").lower() == "open"]
    # ISO timestamps sort chronologically as strings.
    open_issues.sort(key=lambda i: i.created_at or "", reverse=True)

    lines = ["<h2>New Issues Reported that are open</h2>", "<ol>"]
    for issue in open_issues:
        created = (issue.created_at or "")[:10]
        lines.append(
            f'<li><a href="{_github_url(repo, "issues", issue.number)}">#{issue.number}: {escape(issue.title)}</a>'
            f" - created {escape(created)} by {escape(issue.author_login or 'unknown')}</li>"
        )
    if not open_issues:
        lines.append("<li><em>No open issues that were reported in this period.</em></li>")
    lines += ["</ol>", "<hr>"]
    return lines
