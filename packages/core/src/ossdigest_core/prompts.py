"""Prompt text sent to the language model.

The response formats requested here are the only contract the parsers in
ossdigest_core.analysis.parsing rely on. Change them together.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from ossdigest_core.models import Commit
    from ossdigest_core.providers.base import PromptContext

DEFAULT_REPOSITORY_TEMPLATE = (
    "Generate a 2-3 sentence summary of the activity in {repo} " "for the period {start_date} to {end_date} ({period} days)."
)

CATEGORIZATION_INSTRUCTIONS = (
    "Categorize each commit by number into: Bug Fixes, Features, Improvements, Others.\n"
    "Use keywords: Bug Fixes (fix,bug,hotfix), Features (feat,feature,add,optimize), "
    "Improvements (refactor,perf), Others (build,ci,chore,test,docs).\n"
    "Priority order: Bug Fixes > Features > Improvements > Others\n"
)

CATEGORIZATION_FORMAT = (
    "Respond with ONLY this format: " "Bug Fixes: [1,3,5], Features: [2,4], Improvements: [6], Others: [7,8]"
)

SUMMARY_INSTRUCTIONS = (
    "Generate exactly 2 short sentences (each <= 80 chars) summarizing this git commit. "
    "Return them in a SINGLE LINE separated by a space (no line breaks)."
)

SUMMARY_FORMAT = "Output format (single line): <Sentence 1.> <Sentence 2.>"

_CATEGORIZATION_MESSAGE_LIMIT = 80


def _clip(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


def render_repository_prompt(context: PromptContext) -> str:
    """Fill the repository template from a PromptContext.

    Uses str.replace rather than str.format so user templates may contain
    literal braces.
    """
    prompt = (
        context.template.replace("{repo}", context.repo)
        .replace("{start_date}", context.start_date)
        .replace("{end_date}", context.end_date)
        .replace("{period}", str(context.period))
    )
    if context.team_members:
        prompt += "\nTeam members: " + ", ".join(context.team_members)
    return prompt


def categorization_prompt(commits: Sequence[Commit], limit: int = 50) -> str:
    """Numbered commit list plus the bracketed response format.

    Only the first ``limit`` commits are listed; the rest are placed by the
    keyword rules after parsing.
    """
    lines = [CATEGORIZATION_INSTRUCTIONS]
    for i, commit in enumerate(commits[:limit], 1):
        if commit.message is None:
            continue
        lines.append(f"{i}. {_clip(commit.title or commit.message, _CATEGORIZATION_MESSAGE_LIMIT)}")
    lines.append("")
    lines.append(CATEGORIZATION_FORMAT)
    return "\n".join(lines)


def overview_prompt(header: str, stats: dict[str, int]) -> str:
    lines = [header, "", "Statistics:"]
    lines.append(f"- Total commits: {stats.get('total', 0)}")
    lines.append(f"- Bug fixes: {stats.get('bug_fixes', 0)}")
    lines.append(f"- New features: {stats.get('features', 0)}")
    lines.append(f"- Improvements: {stats.get('improvements', 0)}")
    lines.append(f"- Other changes: {stats.get('others', 0)}")
    lines.append(f"- Pull requests: {stats.get('pull_requests', 0)}")
    lines.append(f"- New issues: {stats.get('issues', 0)}")
    lines.append("")
    lines.append("Focus on the most significant activity and trends. Be concise and informative.")
    return "\n".join(lines)
