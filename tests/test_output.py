"""Tests for peer_review/output.py."""

import json
from pathlib import Path

import pytest

from peer_review.models import IterationRecord, ReviewReport
from peer_review.output import _slug, format_markdown, report_to_dict, save_json, save_markdown
from peer_review.report import assemble_report, desk_reject_report
from peer_review.schemas import EditorialAssessment, ReviewVerdict, SynthesisRecord
from tests.conftest import assessment_json, synthesis_json, verdict_json


def test_slug_basic():
    assert _slug("Should we use YAML or JSON?") == "should-we-use-yaml-or-json"


def test_slug_max_len():
    assert len(_slug("a" * 100)) <= 40


def test_slug_empty_falls_back():
    assert _slug("???") == "manuscript"


@pytest.fixture
def sample_report() -> ReviewReport:
    assessment = EditorialAssessment.model_validate(json.loads(assessment_json()))
    round_1 = IterationRecord(
        number=1,
        reviews=(
            ReviewVerdict.model_validate(json.loads(verdict_json("Major Revisions", reviewerSpecialty="Oncology"))),
            ReviewVerdict.model_validate(json.loads(verdict_json("Minor Revisions", reviewerSpecialty="Machine Learning"))),
        ),
        assessment=assessment,
        synthesis=SynthesisRecord.model_validate(json.loads(synthesis_json(1))),
    )
    round_2 = IterationRecord(
        number=2,
        reviews=(
            ReviewVerdict.model_validate(json.loads(verdict_json("Accept", reviewerSpecialty="Oncology"))),
            ReviewVerdict.model_validate(json.loads(verdict_json("Minor Revisions", reviewerSpecialty="Machine Learning"))),
        ),
        synthesis=SynthesisRecord.model_validate(json.loads(synthesis_json(2, "Accept"))),
    )
    report = assemble_report("Tumor Burden in Melanoma", "Nature", assessment, [round_1, round_2])
    report.tokens_used = 1234
    report.duration_sec = 12.5
    return report


def test_report_to_dict_uses_camel_case(sample_report):
    data = report_to_dict(sample_report)
    assert data["finalRecommendation"] == "Accept"
    assert data["totalRounds"] == 2
    assert data["tokensUsed"] == 1234
    assert data["trajectoryAnalysis"]["transitions"]["1->2"]["improvements"] == ["Authors added analyses (round 1)"]
    assert data["reviewers"][0]["specialty"] == "Oncology"
    assert data["editorialAssessment"]["decision"] == "Accept for Review"


def test_report_to_dict_nested_records(sample_report):
    data = report_to_dict(sample_report)
    first_review = data["iterations"][0]["reviews"][0]
    assert first_review["reviewerSpecialty"] == "Oncology"
    assert first_review["recommendation"] == "Major Revisions"
    assert "questionsForAuthors" in first_review
    assert data["iterations"][1]["assessment"] is None
    assert data["iterations"][1]["synthesis"]["decision"] == "Accept"


def test_report_to_dict_is_json_serializable(sample_report):
    data = report_to_dict(sample_report)
    text = json.dumps(data)
    assert isinstance(data["reviewDate"], str)
    assert json.loads(text)["title"] == "Tumor Burden in Melanoma"


def test_save_json(tmp_path: Path, sample_report):
    saved = save_json(sample_report, tmp_path / "out")
    assert saved.exists()
    assert saved.suffix == ".json"
    assert saved.name.endswith("_tumor-burden-in-melanoma.json")
    assert json.loads(saved.read_text(encoding="utf-8"))["venue"] == "Nature"


def test_save_markdown_slug_override(tmp_path: Path, sample_report):
    saved = save_markdown(sample_report, tmp_path / "nested" / "out", slug_override="paper-1")
    assert saved.exists()
    assert saved.name.endswith("_paper-1.md")


def test_markdown_sections(sample_report):
    content = format_markdown(sample_report)
    assert content.startswith("# Peer Review Report: Tumor Burden in Melanoma")
    assert "**Target Journal:** Nature" in content
    assert "**Final Recommendation:** Accept" in content
    assert "## Executive Summary" in content
    assert "### Priority Recommendations" in content
    assert "### Key Findings" in content
    assert "### Suggested Next Steps" in content
    assert "## Trajectory Analysis" in content
    assert "### Changes: Iteration 1 → 2" in content
    assert "## Detailed Review Iterations" in content
    assert "#### Editorial Assessment" in content
    assert "#### Reviewer 1: Oncology" in content
    assert "#### Editor's Synthesis" in content
    assert "*Tokens used: 1234 | Duration: 12.5s*" in content


def test_markdown_desk_reject():
    assessment = EditorialAssessment.model_validate(
        json.loads(assessment_json("Desk Reject", reviewers=None))
    )
    content = format_markdown(desk_reject_report("Off Topic", "Cell", assessment))
    assert "**Total Iterations:** 0" in content
    assert "**Final Recommendation:** Reject" in content
    assert "Article was not sent for peer review." in content
    assert "## Detailed Review Iterations" not in content
