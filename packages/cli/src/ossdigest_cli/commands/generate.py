"""generate command: write activity digests for one or more repositories."""

from __future__ import annotations

import click
from rich.console import Console

from ossdigest_core.digest import run_digest
from ossdigest_core.errors import ConfigError
from ossdigest_report.writer import ReportWriter

console = Console()


class PeriodType(click.ParamType):
    """Number of days in the reporting window.

    Anything that is not a positive integer becomes 0, meaning "use the
    configured period", instead of aborting the run.
    """

    name = "days"

    def convert(self, value, param, ctx):
        if isinstance(value, int):
            return value if value > 0 else 0
        try:
            days = int(str(value).strip())
        except ValueError:
            return 0
        return days if days > 0 else 0


def _split_repositories(value: str | None) -> list[str] | None:
    if value is None:
        return None
    return [r.strip() for r in value.split(",") if r.strip()]


@click.command("generate")
@click.option(
    "--repos",
    "--repositories",
    "repos",
    default=None,
    help="Comma-separated repositories (owner/name). Overrides config file.",
)
@click.option(
    "--date",
    "--end-date",
    "--endDate",
    "end_date",
    default=None,
    help="Last day of the window, YYYY-MM-DD. Defaults to today.",
)
@click.option(
    "--period",
    type=PeriodType(),
    default=None,
    help="Window length in days. Invalid values fall back to the configured period.",
)
@click.option(
    "--model",
    type=click.Choice(["anthropic", "openai", "azure"]),
    default=None,
    help="AI model provider. Overrides config file.",
)
@click.option("--output-dir", "output_dir", default=None, help="Directory for the HTML reports.")
@click.option(
    "--parallel/--sequential",
    "parallel",
    default=None,
    help="Summarize commits concurrently or one at a time in commit order.",
)
@click.pass_context
def generate_cmd(
    ctx,
    repos: str | None,
    end_date: str | None,
    period: int | None,
    model: str | None,
    output_dir: str | None,
    parallel: bool | None,
):
    """Generate an HTML activity digest for each repository.

    \b
    Required environment variables:
      GITHUB_TOKEN          GitHub personal access token (or use gh CLI)
      OPENAI_API_KEY        Required when using --model openai
      ANTHROPIC_API_KEY     Required when using --model anthropic
      AZURE_OPENAI_API_KEY  Required when using --model azure
    """
    from ossdigest_cli.auth import resolve_github_token

    config = dict(ctx.obj["config"])
    overrides = {
        "repositories": _split_repositories(repos),
        "end_date": end_date,
        "model": model,
        "output_dir": output_dir,
        "preserve_order": None if parallel is None else not parallel,
    }
    config.update({k: v for k, v in overrides.items() if v is not None})

    repositories = config.get("repositories") or []
    if isinstance(repositories, str):
        repositories = _split_repositories(repositories)
    if not repositories:
        raise click.UsageError("No repositories given. Pass --repos owner/name or set repositories in the config file.")

    token = config.get("github_token") or resolve_github_token()
    if not token:
        raise click.UsageError(
            "No GitHub token found. Set GITHUB_TOKEN or run `gh auth login` first.\n"
            "Create a token at https://github.com/settings/tokens"
        )
    config["github_token"] = token

    if config["model"] == "anthropic" and not config.get("anthropic_api_key"):
        raise click.UsageError("ANTHROPIC_API_KEY environment variable is not set.")
    if config["model"] == "openai" and not config.get("openai_api_key"):
        raise click.UsageError("OPENAI_API_KEY environment variable is not set.")
    if config["model"] == "azure" and not config.get("azure_openai_api_key"):
        raise click.UsageError("AZURE_OPENAI_API_KEY environment variable is not set.")

    writer = ReportWriter(config.get("output_dir") or "output")
    try:
        writer.prepare()
    except OSError as e:
        raise click.ClickException(f"Cannot create output directory {writer.output_dir}: {e}") from e

    try:
        results = run_digest(
            repositories,
            config,
            end_date=config.get("end_date"),
            period=period or None,
            writer=writer,
        )
    except (ConfigError, ImportError) as e:
        raise click.ClickException(str(e)) from e

    if len(results) < len(repositories):
        console.print(f"[yellow]{len(repositories) - len(results)} repository(ies) skipped; see the log above.[/yellow]")
