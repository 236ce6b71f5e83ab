"""Rich console output plus Markdown and JSON export of review reports."""

import dataclasses
import json
import logging
import re
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel
from pydantic.alias_generators import to_camel
from rich.console import Console
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from peer_review.models import IterationRecord, ReviewReport
from peer_review.schemas import Recommendation, ReviewVerdict

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

_RECOMMENDATION_STYLES = {
    Recommendation.ACCEPT: "bold green",
    Recommendation.MINOR_REVISIONS: "green",
    Recommendation.MAJOR_REVISIONS: "yellow",
    Recommendation.REJECT: "bold red",
}


def _slug(text: str, max_len: int = 40) -> str:
    """Convert text to a filename-safe slug."""
    slug = re.sub(r"[^\w\s-]", "", text.lower())
    slug = re.sub(r"[\s_-]+", "-", slug).strip("-")
    return slug[:max_len] or "manuscript"


# ---------------------------------------------------------------------------
# JSON
# ---------------------------------------------------------------------------

def _to_plain(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Path):
        return str(value)
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {
            to_camel(f.name): _to_plain(getattr(value, f.name))
            for f in dataclasses.fields(value)
        }
    if isinstance(value, dict):
        return {str(k): _to_plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_plain(v) for v in value]
    return value


def report_to_dict(report: ReviewReport) -> dict[str, Any]:
    """Convert a report to JSON-ready types with camelCase keys."""
    return _to_plain(report)


def _output_path(report: ReviewReport, output_dir: Path, suffix: str, slug_override: str | None) -> Path:
    output_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    slug = slug_override if slug_override is not None else _slug(report.title)
    return output_dir / f"{timestamp}_{slug}{suffix}"


def save_json(report: ReviewReport, output_dir: Path, slug_override: str | None = None) -> Path:
    filepath = _output_path(report, output_dir, ".json", slug_override)
    filepath.write_text(json.dumps(report_to_dict(report), indent=2, ensure_ascii=False), encoding="utf-8")
    logger.info("JSON report saved to: %s", filepath)
    return filepath


# ---------------------------------------------------------------------------
# Markdown
# ---------------------------------------------------------------------------

def _bullets(title: str, items: list[str], marker: str = "-") -> list[str]:
    if not items:
        return []
    return [f"**{title}:**", "", *(f"{marker} {item}" for item in items), ""]


def _numbered(title: str, items: list[str]) -> list[str]:
    if not items:
        return []
    return [title, "", *(f"{idx}. {item}" for idx, item in enumerate(items, start=1)), ""]


def _review_markdown(review: ReviewVerdict, reviewer_number: int) -> list[str]:
    lines = [
        f"#### Reviewer {reviewer_number}: {review.reviewer_specialty}",
        "",
        f"**Recommendation:** {review.recommendation.value}"
        + (f" (confidence: {review.confidence})" if review.confidence else ""),
        "",
        f"**Summary:** {review.summary}",
        "",
    ]
    lines += _bullets("Strengths", review.strengths, "- ✓")
    lines += _bullets("Weaknesses", review.weaknesses, "- ⚠")
    if review.detailed_comments:
        lines += ["**Detailed Comments:**", ""]
        lines += [f"- **{section[:1].upper() + section[1:]}:** {comment}"
                  for section, comment in review.detailed_comments.items()]
        lines.append("")
    lines += _bullets("Methodological Concerns", review.methodological_concerns)
    lines += _numbered("**Questions for Authors:**", review.questions_for_authors)
    lines += _bullets("Suggestions", review.suggestions)
    if review.additional_notes:
        lines += ["**Additional Notes:**", "", review.additional_notes, ""]
    return lines


def _iteration_markdown(iteration: IterationRecord) -> list[str]:
    lines = [f"### Iteration {iteration.number}", ""]

    assessment = iteration.assessment
    if assessment is not None:
        lines += [
            "#### Editorial Assessment",
            "",
            f"**Decision:** {assessment.decision.value}",
            f"**Field:** {assessment.sub_specialty or assessment.primary_field}",
            f"**Rationale:** {assessment.rationale}",
            "",
        ]
        lines += _numbered(
            "**Selected Reviewers:**",
            [f"**{r.specialty}** - {r.rationale}" for r in assessment.reviewers or ()],
        )

    for idx, review in enumerate(iteration.reviews, start=1):
        lines += _review_markdown(review, idx)

    synthesis = iteration.synthesis
    if synthesis is not None:
        lines += ["#### Editor's Synthesis", ""]
        lines += _bullets("Consensus Points", synthesis.consensus)
        lines += _bullets("Disagreements", synthesis.disagreements)
        lines += _bullets("Critical Issues", synthesis.critical_issues)
        lines += _bullets("Simulated Revisions", synthesis.simulated_revisions)
        lines += [f"**Synthesis Decision:** {synthesis.decision.value}", ""]

    lines += ["---", ""]
    return lines


def format_markdown(report: ReviewReport) -> str:
    lines: list[str] = [
        f"# Peer Review Report: {report.title}",
        "",
        f"**Target Journal:** {report.venue}",
        f"**Review Date:** {report.review_date.strftime('%Y-%m-%d')}",
        f"**Total Iterations:** {report.total_rounds}",
        f"**Final Recommendation:** {report.final_recommendation.value}",
        f"**Workflow:** {report.variant}",
        "",
        "---",
        "",
        "## Executive Summary",
        "",
        "### Editorial Decision",
        report.final_rationale,
        "",
    ]

    lines += _numbered("### Priority Recommendations", report.priority_recommendations)

    if report.strengths_to_preserve or report.critical_issues_to_address:
        lines += ["### Key Findings", ""]
        lines += _bullets("Strengths to Preserve", report.strengths_to_preserve, "- ✓")
        lines += _bullets("Critical Issues to Address", report.critical_issues_to_address, "- ⚠")

    lines += _numbered("### Suggested Next Steps", report.suggested_next_steps)

    lines += ["---", "", "## Trajectory Analysis", "", report.trajectory_analysis.overall_convergence, ""]
    for key, transition in report.trajectory_analysis.transitions.items():
        before, after = key.split("->")
        lines += [f"### Changes: Iteration {before} → {after}", ""]
        lines += _bullets("Improvements", transition.improvements)
        lines += _bullets("Persistent Issues", transition.persistent_issues)

    if report.iterations:
        lines += ["---", "", "## Detailed Review Iterations", ""]
        for iteration in report.iterations:
            lines += _iteration_markdown(iteration)

    lines += [
        f"*Tokens used: {report.tokens_used} | Duration: {report.duration_sec:.1f}s*",
        "",
    ]
    return "\n".join(lines)


def save_markdown(report: ReviewReport, output_dir: Path, slug_override: str | None = None) -> Path:
    """Save the full report as a markdown file.

    Args:
        report: The completed ReviewReport.
        output_dir: Directory to save the file in.
        slug_override: If provided, use this as the filename stem instead of
            deriving one from the title. Useful for inbox mode.

    Returns:
        Path to the saved file.
    """
    filepath = _output_path(report, output_dir, ".md", slug_override)
    filepath.write_text(format_markdown(report), encoding="utf-8")
    logger.info("Markdown report saved to: %s", filepath)
    return filepath


# ---------------------------------------------------------------------------
# Console
# ---------------------------------------------------------------------------

def print_round_summary(iteration: IterationRecord) -> None:
    """Print a brief summary of one review round to the console."""
    console.print(Rule(f"[bold cyan]Round {iteration.number}[/bold cyan]"))
    for idx, review in enumerate(iteration.reviews, start=1):
        style = _RECOMMENDATION_STYLES[review.recommendation]
        console.print(
            Panel(
                review.summary or "(no summary)",
                title=f"[bold]Reviewer {idx}[/bold] ({review.reviewer_specialty})",
                subtitle=f"[{style}]{review.recommendation.value}[/{style}]",
                border_style="dim",
            )
        )
    if iteration.synthesis is not None:
        console.print(Text(f"Synthesis decision: {iteration.synthesis.decision.value}", style="dim"))


def print_report(report: ReviewReport) -> None:
    """Print the headline result and key lists to the console."""
    style = _RECOMMENDATION_STYLES[report.final_recommendation]
    console.print(Rule("[bold green]Peer Review Result[/bold green]"))
    console.print(
        Text(
            f"{report.title} | {report.venue} | Rounds: {report.total_rounds} | "
            f"Tokens: {report.tokens_used} | Duration: {report.duration_sec:.1f}s",
            style="dim",
        )
    )
    console.print(Panel(report.final_rationale, title=f"[{style}]{report.final_recommendation.value}[/{style}]"))

    for iteration in report.iterations:
        print_round_summary(iteration)

    table = Table(title="Priority Recommendations", show_header=False, expand=True)
    table.add_column("#", justify="right", style="cyan", no_wrap=True)
    table.add_column("Recommendation")
    for idx, item in enumerate(report.priority_recommendations, start=1):
        table.add_row(str(idx), item)
    console.print(table)
