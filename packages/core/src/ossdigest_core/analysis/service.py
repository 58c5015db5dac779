from __future__ import annotations

import logging
from typing import Sequence

from ossdigest_core.analysis import fallback
from ossdigest_core.analysis.parsing import parse_categorization
from ossdigest_core.models import Commit, CommitCategorization, RepositoryActivity
from ossdigest_core.prompts import categorization_prompt, overview_prompt, render_repository_prompt
from ossdigest_core.providers.base import PromptContext

logger = logging.getLogger(__name__)

CATEGORIZATION_MAX_TOKENS = 2000
OVERVIEW_MAX_TOKENS = 500
DEFAULT_OVERVIEW = "No significant activity recorded for this period."


class AnalysisService:
    """Categorization and overview requests for one run.

    Both requests degrade instead of failing: categorization falls back to the
    keyword rules and the overview falls back to DEFAULT_OVERVIEW.
    """

    def __init__(self, client, categorize_limit: int = 50):
        self.client = client
        self.categorize_limit = categorize_limit

    def categorize_commits(self, commits: Sequence[Commit] | None) -> CommitCategorization:
        if not commits:
            return CommitCategorization()

        prompt = categorization_prompt(commits, limit=self.categorize_limit)
        try:
            response = self.client.invoke(prompt=prompt, max_tokens=CATEGORIZATION_MAX_TOKENS)
        except Exception as e:
            logger.warning("Categorization request failed, using keyword rules: %s", e)
            return fallback.classify(commits)

        categorization = parse_categorization(response, commits)
        if categorization is None:
            logger.warning("Invalid response format from categorization request, using keyword rules")
            logger.debug("Unparseable categorization response: %r", response)
            return fallback.classify(commits)

        logger.info("Categorized %d commit(s): %s", categorization.total_count, categorization)
        return categorization

    def generate_overview(
        self,
        activity: RepositoryActivity,
        categorization: CommitCategorization,
        context: PromptContext,
    ) -> str:
        stats = {
            "total": len(activity.commits),
            **categorization.counts(),
            "pull_requests": len(activity.pull_requests),
            "issues": len(activity.issues),
        }
        prompt = overview_prompt(render_repository_prompt(context), stats)
        try:
            overview = self.client.invoke(prompt=prompt, max_tokens=OVERVIEW_MAX_TOKENS)
        except Exception as e:
            logger.warning("Overview request for %s failed: %s", activity.repo_name, e)
            return DEFAULT_OVERVIEW

        overview = (overview or "").strip()
        return overview or DEFAULT_OVERVIEW
