"""Digest pipeline: fetch → categorize → summarize → overview → render → write.

Repositories are processed one after another. A repository whose activity
cannot be fetched, or whose report cannot be written, is reported and skipped;
the run carries on with the next one. The commit summarizer is shared by every
repository in the run and is shut down exactly once when the run ends.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from pathlib import Path

from github import Github, GithubException
from rich.console import Console

from ossdigest_core.analysis.service import AnalysisService
from ossdigest_core.analysis.summarizer import CommitSummarizer
from ossdigest_core.config import load_prompt_template
from ossdigest_core.errors import ConfigError, FetchError
from ossdigest_core.gh.repository import GitHubIssueResolver, fetch_activity, normalize_repo_slug
from ossdigest_core.providers.anthropic import AnthropicClient
from ossdigest_core.providers.base import PromptContext
from ossdigest_core.providers.openai import AzureOpenAIClient, OpenAIClient
from ossdigest_report.html import render_report
from ossdigest_report.writer import ReportWriter

console = Console()
logger = logging.getLogger(__name__)

_FALLBACK_PERIOD = 7


@dataclass
class DigestResult:
    """Outcome of one repository's digest, returned to the CLI for reporting."""

    repo: str
    start: date
    end: date
    path: Path
    commit_count: int = 0
    summary_count: int = 0
    pull_request_count: int = 0
    issue_count: int = 0
    category_counts: dict[str, int] = field(default_factory=dict)
    timings: dict[str, float] = field(default_factory=dict)  # phase -> seconds


def build_client(config: dict):
    model = config["model"]
    retries = config.get("llm_retries")
    if model == "anthropic":
        return AnthropicClient(api_key=config["anthropic_api_key"], max_retries=retries)
    if model == "openai":
        return OpenAIClient(api_key=config["openai_api_key"], max_retries=retries)
    if model == "azure":
        if not config.get("azure_endpoint") or not config.get("azure_deployment"):
            raise ConfigError("The azure provider needs azure_endpoint and azure_deployment in the config file.")
        return AzureOpenAIClient(
            api_key=config["azure_openai_api_key"],
            endpoint=config["azure_endpoint"],
            deployment=config["azure_deployment"],
            api_version=config.get("azure_api_version", "2024-02-01"),
            max_retries=retries,
        )
    raise ConfigError(f"Unknown model provider: {model!r}. Choose 'anthropic', 'openai' or 'azure'.")


def _parse_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError as e:
        raise ConfigError(f"Invalid date {value!r}; expected YYYY-MM-DD.") from e


def _positive_int(value) -> int | None:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


def resolve_window(end_date=None, period=None, config: dict | None = None) -> tuple[date, date]:
    """Return the inclusive ``(start, end)`` date window for a run.

    Explicit arguments win over the config. A missing or non-positive period
    falls back to the config value and then to 7 days; a missing end date
    falls back to the config value and then to today.
    """
    config = config or {}
    days = _positive_int(period) or _positive_int(config.get("period")) or _FALLBACK_PERIOD

    raw_end = end_date or config.get("end_date")
    end = _parse_date(raw_end) if raw_end else date.today()
    return end - timedelta(days=days), end


def generate_repository_digest(
    repo_name: str,
    config: dict,
    start: date,
    end: date,
    *,
    gh,
    analysis: AnalysisService,
    summarizer: CommitSummarizer,
    writer: ReportWriter,
) -> DigestResult | None:
    """Run the pipeline for a single repository.

    Returns None when the repository's activity could not be fetched or its
    report could not be written.
    """
    timings: dict[str, float] = {}
    slug = normalize_repo_slug(repo_name)

    phase_start = time.monotonic()
    try:
        repo = gh.get_repo(slug)
        activity = fetch_activity(
            repo,
            start,
            end,
            team_members=config.get("team_members", []),
            project_keywords=config.get("bot_keywords", []),
        )
    except (GithubException, FetchError) as e:
        logger.error("Failed to fetch activity for %s: %s", slug, e)
        console.print(f"  [red]Could not fetch {slug}: {e}. Skipping.[/red]")
        return None
    timings["fetch"] = time.monotonic() - phase_start
    console.print(
        f"  Fetched {len(activity.commits)} commit(s), {len(activity.pull_requests)} PR(s), "
        f"{len(activity.issues)} issue(s)."
    )

    phase_start = time.monotonic()
    categorization = analysis.categorize_commits(activity.commits)
    timings["categorize"] = time.monotonic() - phase_start

    phase_start = time.monotonic()
    summaries = summarizer.summarize_categorization(categorization, issue_resolver=GitHubIssueResolver(repo))
    timings["summarize"] = time.monotonic() - phase_start
    console.print(f"  Summarized {len(summaries)}/{categorization.total_count} commit(s).")

    phase_start = time.monotonic()
    context = PromptContext(
        repo=slug,
        start_date=start.isoformat(),
        end_date=end.isoformat(),
        period=(end - start).days,
        team_members=list(config.get("team_members", [])),
        template=load_prompt_template(slug, config),
    )
    overview = analysis.generate_overview(activity, categorization, context)
    timings["overview"] = time.monotonic() - phase_start

    phase_start = time.monotonic()
    html = render_report(
        activity,
        categorization,
        overview,
        start,
        end,
        summaries=summaries,
        team_name=config.get("team_name", "Team"),
    )
    try:
        path = writer.write(activity.repo_name or slug, html)
    except OSError as e:
        logger.error("Failed to write report for %s: %s", slug, e)
        console.print(f"  [red]Could not write report for {slug}: {e}. Skipping.[/red]")
        return None
    timings["report"] = time.monotonic() - phase_start

    for phase, seconds in timings.items():
        logger.info("%s: %s took %.2fs", slug, phase, seconds)

    return DigestResult(
        repo=slug,
        start=start,
        end=end,
        path=path,
        commit_count=len(activity.commits),
        summary_count=len(summaries),
        pull_request_count=len(activity.pull_requests),
        issue_count=len(activity.issues),
        category_counts=categorization.counts(),
        timings=timings,
    )


def run_digest(
    repositories: list[str],
    config: dict,
    end_date=None,
    period=None,
    *,
    gh=None,
    client=None,
    writer: ReportWriter | None = None,
) -> list[DigestResult]:
    """Generate one HTML report per repository and return the successful results."""
    start, end = resolve_window(end_date, period, config)

    writer = writer if writer is not None else ReportWriter(config.get("output_dir", "output"))
    writer.prepare()
    gh = gh if gh is not None else Github(config.get("github_token"))
    client = client if client is not None else build_client(config)

    analysis = AnalysisService(client, categorize_limit=config.get("categorize_limit", 50))
    summarizer = CommitSummarizer(
        client,
        workers=config.get("summary_workers", 4),
        timeout=config.get("summary_timeout", 30),
        max_tokens=config.get("summary_max_tokens", 500),
        preserve_order=config.get("preserve_order", True),
        shutdown_grace=config.get("shutdown_grace", 30),
    )

    console.print(f"[bold]Generating digests for {start} to {end}[/bold]")
    results: list[DigestResult] = []
    run_start = time.monotonic()
    try:
        total = len(repositories)
        for i, repo_name in enumerate(repositories, 1):
            console.print(f"\n[[{i}/{total}]] {repo_name}")
            result = generate_repository_digest(
                repo_name,
                config,
                start,
                end,
                gh=gh,
                analysis=analysis,
                summarizer=summarizer,
                writer=writer,
            )
            if result is not None:
                results.append(result)
                console.print(f"  [green]Report written to {result.path}[/green]")
    finally:
        summarizer.shutdown()

    logger.info("Digest run finished in %.2fs", time.monotonic() - run_start)
    console.print(f"\n[bold]{len(results)}/{len(repositories)} report(s) generated.[/bold]")
    return results
