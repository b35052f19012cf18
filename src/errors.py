"""Exceptions and structured issue reporting for batch runs."""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from repochat.pipeline import MessageResult

logger = logging.getLogger(__name__)


class RepochatError(Exception):
    """Base class for errors raised to callers."""


class GraphSpecError(RepochatError, ValueError):
    """A structured diagram spec could not be decoded or validated."""


class ProcessingIssue(BaseModel):
    """A single problem captured while processing a message."""

    stage: str
    source: str = ""
    error_type: str = "unknown"
    message: str = ""
    timestamp: datetime = Field(default_factory=datetime.now)
    recoverable: bool = True


class ProcessingReport(BaseModel):
    """Summary of a batch run over several messages."""

    started_at: datetime = Field(default_factory=datetime.now)
    finished_at: datetime | None = None
    files_processed: list[str] = Field(default_factory=list)
    fences_repaired: int = 0
    diagrams_total: int = 0
    diagrams_invalid: int = 0
    fallbacks_used: int = 0
    issues: list[ProcessingIssue] = Field(default_factory=list)

    def add_issue(
        self,
        stage: str,
        message: str,
        *,
        source: str = "",
        error_type: str = "unknown",
        recoverable: bool = True,
    ) -> None:
        """Record a problem found during processing."""
        self.issues.append(
            ProcessingIssue(
                stage=stage,
                source=source,
                error_type=error_type,
                message=message,
                recoverable=recoverable,
            )
        )

    def record_message(self, source: str, result: MessageResult) -> None:
        """Fold one processed message into the totals."""
        if source not in self.files_processed:
            self.files_processed.append(source)
        if result.fences_repaired:
            self.fences_repaired += 1
        for diagram in result.diagrams:
            self.diagrams_total += 1
            if diagram.used_fallback:
                self.fallbacks_used += 1
            if not diagram.valid:
                self.diagrams_invalid += 1
                self.add_issue(
                    "diagram",
                    diagram.error or "Invalid diagram",
                    source=source,
                    error_type="invalid_diagram",
                )

    def finish(self) -> None:
        self.finished_at = datetime.now()

    @property
    def success(self) -> bool:
        """True if no unrecoverable issues occurred."""
        return not any(not issue.recoverable for issue in self.issues)

    @property
    def issue_count(self) -> int:
        return len(self.issues)

    def summary_text(self) -> str:
        """Human-readable summary of the run."""
        status = "completed" if self.success else "failed"
        lines = [f"Processing {status}: {len(self.files_processed)} file(s)"]

        if self.fences_repaired:
            lines.append(f"Fences repaired in {self.fences_repaired} file(s)")
        if self.diagrams_total:
            lines.append(
                f"Diagrams: {self.diagrams_total} "
                f"({self.diagrams_invalid} invalid, {self.fallbacks_used} fallback)"
            )

        if self.issues:
            lines.append(f"Issues: {len(self.issues)}")
            for issue in self.issues[:5]:
                prefix = "[recoverable]" if issue.recoverable else "[FATAL]"
                where = f" ({issue.source})" if issue.source else ""
                lines.append(f"  {prefix} {issue.stage}{where}: {issue.message}")
            if len(self.issues) > 5:
                lines.append(f"  ... and {len(self.issues) - 5} more")

        return "\n".join(lines)


def save_report(report: ProcessingReport, path: Path) -> Path:
    """Write the report as JSON."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(report.model_dump_json(indent=2), encoding="utf-8")
    return path


def load_report(path: Path) -> ProcessingReport | None:
    """Load a report written by ``save_report``; None if absent or corrupt."""
    if not path.exists():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return ProcessingReport.model_validate(data)
    except (json.JSONDecodeError, ValueError):
        logger.warning("Corrupt report at %s", path)
        return None
