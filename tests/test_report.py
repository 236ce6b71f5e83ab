"""Tests for peer_review/report.py."""

import json

import pytest

from peer_review.models import IterationRecord
from peer_review.report import (
    analyze_trajectory,
    assemble_report,
    desk_reject_report,
    final_recommendation,
    next_steps,
    priority_recommendations,
    strengths_and_issues,
)
from peer_review.schemas import EditorialAssessment, Recommendation, ReviewVerdict, SynthesisRecord
from tests.conftest import assessment_json, synthesis_json, verdict_json


def _verdict(recommendation: str, **overrides) -> ReviewVerdict:
    return ReviewVerdict.model_validate(json.loads(verdict_json(recommendation, **overrides)))


def _synthesis(iteration: int, decision: str = "Continue", **overrides) -> SynthesisRecord:
    return SynthesisRecord.model_validate(json.loads(synthesis_json(iteration, decision, **overrides)))


def _assessment(decision: str = "Accept for Review") -> EditorialAssessment:
    return EditorialAssessment.model_validate(json.loads(assessment_json(decision)))


def _iteration(number: int, r1: str, r2: str, synthesis: SynthesisRecord | None = None, **verdict_kw) -> IterationRecord:
    return IterationRecord(
        number=number,
        reviews=(_verdict(r1, **verdict_kw), _verdict(r2, **verdict_kw)),
        synthesis=synthesis,
    )


@pytest.mark.parametrize(
    "r1, r2, expected",
    [
        ("Accept", "Accept", Recommendation.ACCEPT),
        ("Accept", "Minor Revisions", Recommendation.ACCEPT),
        ("Accept", "Major Revisions", Recommendation.MINOR_REVISIONS),
        ("Minor Revisions", "Minor Revisions", Recommendation.MINOR_REVISIONS),
        ("Accept", "Reject", Recommendation.MINOR_REVISIONS),
        ("Minor Revisions", "Major Revisions", Recommendation.MINOR_REVISIONS),
        ("Major Revisions", "Major Revisions", Recommendation.MAJOR_REVISIONS),
        ("Major Revisions", "Reject", Recommendation.MAJOR_REVISIONS),
        ("Reject", "Reject", Recommendation.REJECT),
    ],
)
def test_final_recommendation_buckets(r1, r2, expected):
    assert final_recommendation((_verdict(r1), _verdict(r2))) is expected


def test_trajectory_uses_earlier_round_synthesis():
    iterations = [
        _iteration(1, "Major Revisions", "Major Revisions", _synthesis(1)),
        _iteration(2, "Major Revisions", "Minor Revisions", _synthesis(2)),
        _iteration(3, "Minor Revisions", "Minor Revisions"),
    ]
    trajectory = analyze_trajectory(iterations)
    assert list(trajectory.transitions) == ["1->2", "2->3"]
    assert trajectory.transitions["1->2"].improvements == ["Authors added analyses (round 1)"]
    assert trajectory.transitions["2->3"].persistent_issues == ["Validate in an external cohort (round 2)"]


def test_trajectory_convergence_from_final_synthesis():
    iterations = [_iteration(1, "Accept", "Accept", _synthesis(1, "Accept"))]
    trajectory = analyze_trajectory(iterations)
    assert trajectory.overall_convergence == "Progress after round 1."
    assert trajectory.transitions == {}


@pytest.mark.parametrize(
    "r1, r2, expected",
    [
        ("Accept", "Minor Revisions", "Both reviewers recommend acceptance or minor revisions."),
        ("Accept", "Reject", "Mixed recommendations - some concerns remain."),
        ("Major Revisions", "Reject", "Significant revisions needed based on reviewer feedback."),
    ],
)
def test_trajectory_convergence_templated_without_synthesis(r1, r2, expected):
    iterations = [
        _iteration(1, "Major Revisions", "Major Revisions", _synthesis(1)),
        _iteration(2, "Major Revisions", "Major Revisions", _synthesis(2)),
        _iteration(3, r1, r2),
    ]
    assert analyze_trajectory(iterations).overall_convergence == expected


def test_priority_recommendations_deduplicated_and_capped():
    iterations = [
        _iteration(1, "Major Revisions", "Major Revisions",
                   _synthesis(1, criticalIssues=[f"issue {i}" for i in range(5)])),
        _iteration(2, "Major Revisions", "Major Revisions",
                   _synthesis(2, criticalIssues=["issue 0", "issue 5", "issue 6"])),
        _iteration(3, "Minor Revisions", "Minor Revisions"),
    ]
    recs = priority_recommendations(iterations)
    assert len(recs) == 8
    assert recs[:7] == [f"issue {i}" for i in range(7)]
    assert recs[7] == "Add a validation cohort"


def test_strengths_and_issues_caps():
    iterations = [
        _iteration(1, "Major Revisions", "Major Revisions", _synthesis(1),
                   strengths=[f"s{i}" for i in range(5)]),
        _iteration(2, "Minor Revisions", "Minor Revisions",
                   strengths=[f"s{i}" for i in range(3, 9)]),
    ]
    strengths, issues = strengths_and_issues(iterations)
    assert strengths == ["s0", "s1", "s2", "s3", "s4", "s5"]
    assert issues[:3] == ["No validation cohort", "Missing confounders", "Short follow-up"]
    assert "Small subgroups" not in issues
    assert "Validate in an external cohort (round 1)" in issues
    assert len(issues) <= 6


def test_next_steps_checklist_plus_first_suggestions():
    iterations = [_iteration(1, "Major Revisions", "Major Revisions",
                             suggestions=["Add a validation cohort", "Adjust for stage"])]
    steps = next_steps(Recommendation.MAJOR_REVISIONS, iterations)
    assert steps == [
        "Conduct additional analyses as suggested",
        "Substantially revise methodology/interpretation sections",
        "Consider additional experiments or data collection",
        "Prepare detailed response addressing all major concerns",
        "Add a validation cohort",
        "Add a validation cohort",
    ]


def test_next_steps_accept():
    iterations = [_iteration(1, "Accept", "Accept", suggestions=[])]
    assert next_steps(Recommendation.ACCEPT, iterations) == [
        "Prepare final manuscript for submission",
        "Address any minor suggestions from reviewers",
        "Ensure all formatting requirements are met",
    ]


def test_assemble_report():
    assessment = _assessment()
    iterations = [_iteration(1, "Accept", "Minor Revisions", _synthesis(1, "Accept"))]
    report = assemble_report("A Title", "Nature", assessment, iterations)

    assert report.total_rounds == 1
    assert report.final_recommendation is Recommendation.ACCEPT
    assert report.final_rationale == (
        "After 1 iteration(s) of peer review, the final recommendation is: **Accept**. "
        "Progress after round 1. "
        "Final reviewers recommended: Accept and Minor Revisions."
    )
    assert [r.specialty for r in report.reviewers] == ["Oncology", "Machine Learning"]
    assert report.review_date.tzinfo is not None
    assert report.editorial_assessment is assessment


def test_assemble_report_requires_iterations():
    with pytest.raises(ValueError):
        assemble_report("T", "Nature", _assessment(), [])


def test_desk_reject_report():
    report = desk_reject_report("T", "Cell", _assessment("Desk Reject"))
    assert report.total_rounds == 0
    assert report.final_recommendation is Recommendation.REJECT
    assert report.critical_issues_to_address == ["See editorial rationale for specific concerns"]
    assert report.suggested_next_steps[-1] == "Identify more appropriate target journals"
    assert report.priority_recommendations[0].startswith("Article does not meet journal criteria")
