"""Per-commit summarization fanned out over a bounded thread pool.

Each commit gets its own LLM request. Tasks share no mutable state: a task
builds its prompt from one immutable Commit, calls the client, cleans the
response and hands back ``(sha, summary | None)``. Only the calling thread
assembles the result mapping, so a slow, failing or timed-out request only
costs that one commit its summary.
"""

from __future__ import annotations

import logging
import re
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from concurrent.futures import wait
from typing import Callable, Sequence

from ossdigest_core.analysis.parsing import clean_summary
from ossdigest_core.models import Commit, CommitCategorization
from ossdigest_core.prompts import SUMMARY_FORMAT, SUMMARY_INSTRUCTIONS

logger = logging.getLogger(__name__)

# Input caps keep each prompt small no matter how verbose the commit or PR is.
_MESSAGE_CHAR_LIMIT = 200
_PR_DESCRIPTION_CHAR_LIMIT = 300
_ISSUE_CHAR_LIMIT = 300
_MAX_ISSUE_REFS = 3

_ISSUE_URL_RE = re.compile(r"https://github\.com/[^/\s]+/[^/\s]+/issues/(\d+)")
_ISSUE_HASH_RE = re.compile(r"(?<![A-Za-z0-9_])#(\d+)")

IssueResolver = Callable[[str], "str | None"]


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


def extract_issue_refs(text: str | None) -> list[str]:
    """Return distinct issue references (``#123``) in order of appearance.

    Full GitHub issue URLs are listed before bare ``#123`` mentions.
    """
    if not text:
        return []
    refs: list[str] = []
    for pattern in (_ISSUE_URL_RE, _ISSUE_HASH_RE):
        for match in pattern.finditer(text):
            ref = f"#{match.group(1)}"
            if ref not in refs:
                refs.append(ref)
    return refs


def build_summary_prompt(commit: Commit, issue_resolver: IssueResolver | None = None) -> str:
    message = commit.message or ""
    pr_description = (commit.pr_description or "").strip()

    refs = extract_issue_refs(message)
    for ref in extract_issue_refs(pr_description):
        if ref not in refs:
            refs.append(ref)

    issues_segment = ""
    if issue_resolver is not None:
        for ref in refs[:_MAX_ISSUE_REFS]:
            try:
                description = issue_resolver(ref[1:])
            except Exception as e:
                logger.debug("Could not resolve issue %s for commit %s: %s", ref, commit.short_sha, e)
                continue
            if description and description.strip():
                issues_segment += f"Issue {ref}: {_truncate(description.strip(), _ISSUE_CHAR_LIMIT)}\n"

    pr_segment = ""
    if pr_description:
        pr_segment = f"PR Description: {_truncate(pr_description, _PR_DESCRIPTION_CHAR_LIMIT)}\n"

    return (
        f"{SUMMARY_INSTRUCTIONS}\n"
        f"{pr_segment}"
        f"{issues_segment}"
        f"Commit: {commit.short_sha}\n"
        f"Author: {commit.author_login or commit.author_name or 'unknown'}\n"
        f"Message: {_truncate(message, _MESSAGE_CHAR_LIMIT)}\n\n"
        f"{SUMMARY_FORMAT}"
    )


class CommitSummarizer:
    """Generate short AI summaries for commits.

    ``preserve_order`` runs the requests one at a time in input order, which
    keeps logs and tests deterministic. Otherwise requests run concurrently on
    ``workers`` threads and each result is awaited for at most ``timeout``
    seconds. Choosing the mode is left to the caller.

    The thread pool lives for the lifetime of the summarizer and must be
    released once with shutdown(), or by using the summarizer as a context
    manager.
    """

    def __init__(
        self,
        client,
        workers: int = 4,
        timeout: float = 30,
        max_tokens: int = 500,
        preserve_order: bool = False,
        issue_resolver: IssueResolver | None = None,
        shutdown_grace: float = 30,
    ):
        self.client = client
        self.workers = max(int(workers), 1)
        self.timeout = timeout
        self.max_tokens = max_tokens
        self.preserve_order = preserve_order
        self.issue_resolver = issue_resolver
        self.shutdown_grace = shutdown_grace

        self._executor: ThreadPoolExecutor | None = None
        self._in_flight: set[Future] = set()
        self._lock = threading.Lock()
        self._closed = False

        logger.info(
            "Commit summarizer ready: %d worker(s), %ss timeout, %d max tokens, preserve_order=%s",
            self.workers,
            self.timeout,
            self.max_tokens,
            self.preserve_order,
        )

    def __enter__(self) -> CommitSummarizer:
        return self

    def __exit__(self, *exc) -> None:
        self.shutdown()

    # ------------------------------------------------------------------ #
    # Public interface                                                     #
    # ------------------------------------------------------------------ #

    def summarize(
        self,
        commits: Sequence[Commit] | None,
        issue_resolver: IssueResolver | None = None,
    ) -> dict[str, str]:
        """Return ``{sha: summary}`` for every commit that got a usable summary.

        Commits whose request failed, timed out or produced nothing usable are
        simply absent from the mapping. ``issue_resolver`` overrides the one
        given at construction for this call only.
        """
        if self._closed:
            raise RuntimeError("CommitSummarizer has been shut down")
        if not commits:
            return {}

        resolver = issue_resolver if issue_resolver is not None else self.issue_resolver
        start = time.monotonic()
        if self.preserve_order:
            summaries = self._summarize_sequential(commits, resolver)
        else:
            summaries = self._summarize_concurrent(commits, resolver)

        elapsed_ms = (time.monotonic() - start) * 1000
        logger.info(
            "Generated %d/%d commit summaries in %dms (%s)",
            len(summaries),
            len(commits),
            elapsed_ms,
            "sequential" if self.preserve_order else "parallel",
        )
        return summaries

    def summarize_categorization(
        self, categorization: CommitCategorization, issue_resolver: IssueResolver | None = None
    ) -> dict[str, str]:
        return self.summarize(list(categorization.all_commits()), issue_resolver)

    def shutdown(self) -> None:
        """Release the worker pool, giving in-flight requests a grace period.

        Requests still running after ``shutdown_grace`` seconds are abandoned:
        queued ones are cancelled and the pool stops without waiting for the
        rest. Calling shutdown() again is a no-op.
        """
        if self._closed:
            logger.debug("Commit summarizer already shut down")
            return
        self._closed = True

        executor = self._executor
        self._executor = None
        if executor is None:
            return

        with self._lock:
            pending = set(self._in_flight)
        _, not_done = wait(pending, timeout=self.shutdown_grace) if pending else (set(), set())

        if not_done:
            logger.warning(
                "%d summary request(s) still running after %ss, forcing shutdown",
                len(not_done),
                self.shutdown_grace,
            )
            executor.shutdown(wait=False, cancel_futures=True)
        else:
            executor.shutdown(wait=True)
        logger.info("Commit summarizer shut down")

    # ------------------------------------------------------------------ #
    # Execution modes                                                      #
    # ------------------------------------------------------------------ #

    def _summarize_sequential(self, commits: Sequence[Commit], resolver: IssueResolver | None) -> dict[str, str]:
        summaries: dict[str, str] = {}
        for i, commit in enumerate(commits, 1):
            logger.debug("Summarizing commit %d/%d: %s", i, len(commits), commit.short_sha)
            sha, summary = self._summarize_one(commit, resolver)
            if summary:
                summaries[sha] = summary
            else:
                logger.debug("No summary generated for commit %s", commit.short_sha)
        return summaries

    def _summarize_concurrent(self, commits: Sequence[Commit], resolver: IssueResolver | None) -> dict[str, str]:
        executor = self._get_executor()
        futures = [(commit, self._submit(executor, commit, resolver)) for commit in commits]

        summaries: dict[str, str] = {}
        for commit, future in futures:
            try:
                sha, summary = future.result(timeout=self.timeout)
            except FutureTimeoutError:
                future.cancel()
                logger.warning("Timed out after %ss waiting for summary of commit %s", self.timeout, commit.short_sha)
                continue
            except Exception as e:
                logger.warning("Summary task for commit %s failed: %s", commit.short_sha, e)
                continue
            if summary:
                summaries[sha] = summary
        return summaries

    def _get_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="commit-summary")
        return self._executor

    def _submit(self, executor: ThreadPoolExecutor, commit: Commit, resolver: IssueResolver | None) -> Future:
        future = executor.submit(self._summarize_one, commit, resolver)
        with self._lock:
            self._in_flight.add(future)
        future.add_done_callback(self._forget)
        return future

    def _forget(self, future: Future) -> None:
        with self._lock:
            self._in_flight.discard(future)

    def _summarize_one(self, commit: Commit, resolver: IssueResolver | None = None) -> tuple[str, str | None]:
        """Summarize a single commit. Never raises."""
        try:
            prompt = build_summary_prompt(commit, resolver)
            raw = self.client.invoke(prompt=prompt, max_tokens=self.max_tokens)
        except Exception as e:
            logger.warning("Summary request for commit %s failed: %s", commit.short_sha, e)
            return commit.sha, None

        summary = clean_summary(raw)
        if summary is None:
            logger.debug("Model returned no usable summary for commit %s", commit.short_sha)
        return commit.sha, summary
