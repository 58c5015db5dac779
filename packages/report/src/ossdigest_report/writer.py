from __future__ import annotations

import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def report_file_name(repo_name: str) -> str:
    """``apache/incubator-gluten`` → ``apache-incubator-gluten.html``."""
    return repo_name.replace("/", "-").replace(" ", "_") + ".html"


class ReportWriter:
    """Writes rendered reports into a single output directory."""

    def __init__(self, output_dir: str | Path = "output"):
        self.output_dir = Path(output_dir)

    def prepare(self) -> Path:
        """Create the output directory. Raises OSError when that is not possible."""
        self.output_dir.mkdir(parents=True, exist_ok=True)
        return self.output_dir

    def write(self, repo_name: str, html: str) -> Path:
        self.prepare()
        path = self.output_dir / report_file_name(repo_name)
        path.write_text(html, encoding="utf-8")
        logger.info("Wrote report for %s to %s", repo_name, path)
        return path
