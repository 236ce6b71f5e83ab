"""Report assembly: fold completed iterations into a final ReviewReport.

Pure functions over the iteration records; no model calls happen here.
"""

import logging
from collections.abc import Iterable
from datetime import datetime, timezone

from peer_review.models import (
    IterationRecord,
    ReviewReport,
    RoundTransition,
    TrajectoryAnalysis,
)
from peer_review.schemas import EditorialAssessment, Recommendation, ReviewVerdict

logger = logging.getLogger(__name__)

_MAX_PRIORITY = 8
_MAX_STRENGTHS = 6
_MAX_CRITICAL = 6
_MAX_NEXT_STEPS = 6
_WEAKNESSES_PER_REVIEW = 3
_SUGGESTIONS_PER_REVIEW = 2

_NEXT_STEPS: dict[Recommendation, list[str]] = {
    Recommendation.ACCEPT: [
        "Prepare final manuscript for submission",
        "Address any minor suggestions from reviewers",
        "Ensure all formatting requirements are met",
    ],
    Recommendation.MINOR_REVISIONS: [
        "Address all reviewer comments systematically",
        "Prepare point-by-point response letter",
        "Revise and resubmit within suggested timeframe",
    ],
    Recommendation.MAJOR_REVISIONS: [
        "Conduct additional analyses as suggested",
        "Substantially revise methodology/interpretation sections",
        "Consider additional experiments or data collection",
        "Prepare detailed response addressing all major concerns",
    ],
    Recommendation.REJECT: [
        "Carefully review all feedback",
        "Consider substantial restructuring of the work",
        "Identify alternative target journals",
        "Address fundamental methodological concerns before resubmission",
    ],
}

_CONVERGENCE_BY_POSITIVE = {
    2: "Both reviewers recommend acceptance or minor revisions.",
    1: "Mixed recommendations - some concerns remain.",
    0: "Significant revisions needed based on reviewer feedback.",
}

DESK_REJECT_CONVERGENCE = "Article was not sent for peer review."


def _unique(items: Iterable[str], limit: int) -> list[str]:
    """First-seen order, duplicates and blanks dropped, cut at limit."""
    seen: dict[str, None] = {}
    for item in items:
        if item and item not in seen:
            seen[item] = None
    return list(seen)[:limit]


def final_recommendation(reviews: tuple[ReviewVerdict, ReviewVerdict]) -> Recommendation:
    """Average the ordinal scores of the two verdicts and bucket the result."""
    average = sum(r.recommendation.score for r in reviews) / len(reviews)
    if average >= 3.5:
        return Recommendation.ACCEPT
    if average >= 2.5:
        return Recommendation.MINOR_REVISIONS
    if average >= 1.5:
        return Recommendation.MAJOR_REVISIONS
    return Recommendation.REJECT


def analyze_trajectory(iterations: list[IterationRecord]) -> TrajectoryAnalysis:
    """Describe how the manuscript moved between rounds.

    The transition into round k+1 is read from round k's synthesis, which is
    where the simulated revisions applied before the next review are recorded.
    """
    transitions: dict[str, RoundTransition] = {}
    for current, following in zip(iterations, iterations[1:]):
        synthesis = current.synthesis
        transitions[f"{current.number}->{following.number}"] = RoundTransition(
            improvements=list(synthesis.simulated_revisions) if synthesis else [],
            persistent_issues=list(synthesis.critical_issues) if synthesis else [],
        )

    last = iterations[-1]
    if last.synthesis is not None and last.synthesis.convergence.progress_summary:
        overall = last.synthesis.convergence.progress_summary
    else:
        positive = sum(1 for r in last.reviews if r.recommendation.is_positive)
        overall = _CONVERGENCE_BY_POSITIVE[positive]

    return TrajectoryAnalysis(overall_convergence=overall, transitions=transitions)


def priority_recommendations(iterations: list[IterationRecord]) -> list[str]:
    items: list[str] = []
    for it in iterations:
        if it.synthesis is not None:
            items.extend(it.synthesis.critical_issues)
    for review in iterations[-1].reviews:
        items.extend(review.suggestions[:_SUGGESTIONS_PER_REVIEW])
    return _unique(items, _MAX_PRIORITY)


def strengths_and_issues(iterations: list[IterationRecord]) -> tuple[list[str], list[str]]:
    strengths: list[str] = []
    issues: list[str] = []
    for it in iterations:
        for review in it.reviews:
            strengths.extend(review.strengths)
            issues.extend(review.weaknesses[:_WEAKNESSES_PER_REVIEW])
        if it.synthesis is not None:
            issues.extend(it.synthesis.critical_issues)
    return _unique(strengths, _MAX_STRENGTHS), _unique(issues, _MAX_CRITICAL)


def next_steps(recommendation: Recommendation, iterations: list[IterationRecord]) -> list[str]:
    steps = list(_NEXT_STEPS[recommendation])
    for review in iterations[-1].reviews:
        if review.suggestions:
            steps.append(review.suggestions[0])
    return steps[:_MAX_NEXT_STEPS]


def final_rationale(
    recommendation: Recommendation,
    iterations: list[IterationRecord],
    trajectory: TrajectoryAnalysis,
) -> str:
    reviewer_calls = " and ".join(r.recommendation.value for r in iterations[-1].reviews)
    return " ".join([
        f"After {len(iterations)} iteration(s) of peer review, "
        f"the final recommendation is: **{recommendation.value}**.",
        trajectory.overall_convergence,
        f"Final reviewers recommended: {reviewer_calls}.",
    ])


def assemble_report(
    title: str,
    venue: str,
    assessment: EditorialAssessment,
    iterations: list[IterationRecord],
    variant: str = "full_text",
) -> ReviewReport:
    """Build the report for a manuscript that went through 1-3 review rounds.

    Raises:
        ValueError: If iterations is empty (desk rejects use desk_reject_report).
    """
    if not iterations:
        raise ValueError("assemble_report needs at least one completed iteration")

    recommendation = final_recommendation(iterations[-1].reviews)
    trajectory = analyze_trajectory(iterations)
    strengths, issues = strengths_and_issues(iterations)

    logger.debug("Final recommendation after %d round(s): %s", len(iterations), recommendation.value)

    return ReviewReport(
        title=title,
        venue=venue,
        review_date=datetime.now(timezone.utc),
        total_rounds=len(iterations),
        final_recommendation=recommendation,
        final_rationale=final_rationale(recommendation, iterations, trajectory),
        iterations=iterations,
        trajectory_analysis=trajectory,
        reviewers=list(assessment.reviewers or ()),
        priority_recommendations=priority_recommendations(iterations),
        strengths_to_preserve=strengths,
        critical_issues_to_address=issues,
        suggested_next_steps=next_steps(recommendation, iterations),
        editorial_assessment=assessment,
        variant=variant,
    )


def desk_reject_report(
    title: str,
    venue: str,
    assessment: EditorialAssessment,
    variant: str = "full_text",
) -> ReviewReport:
    return ReviewReport(
        title=title,
        venue=venue,
        review_date=datetime.now(timezone.utc),
        total_rounds=0,
        final_recommendation=Recommendation.REJECT,
        final_rationale=f"This article was desk rejected by the Editor. {assessment.rationale}",
        iterations=[],
        trajectory_analysis=TrajectoryAnalysis(overall_convergence=DESK_REJECT_CONVERGENCE),
        reviewers=list(assessment.reviewers or ()),
        priority_recommendations=[
            "Article does not meet journal criteria - consider alternative journals",
            "Review editorial feedback and revise substantially before resubmission",
        ],
        strengths_to_preserve=[],
        critical_issues_to_address=["See editorial rationale for specific concerns"],
        suggested_next_steps=[
            "Review journal scope and ensure alignment",
            "Consider feedback from editorial assessment",
            "Identify more appropriate target journals",
        ],
        editorial_assessment=assessment,
        variant=variant,
    )
