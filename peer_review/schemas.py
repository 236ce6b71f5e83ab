"""Schemas for the records the model is asked to emit.

Each schema mirrors the JSON shape requested by the matching prompt template
(camelCase keys on the wire, snake_case attributes in Python). Enumerated
fields are closed sets; a value outside the set is a shape mismatch and the
parser turns it into MalformedResponse.
"""

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


def _canonical(text: str) -> str:
    return " ".join(str(text).replace("_", " ").replace("-", " ").split()).lower()


class _LooseEnum(str, Enum):
    """String enum that matches values ignoring case, spacing and trailing plurals."""

    @classmethod
    def _missing_(cls, value: object) -> "_LooseEnum | None":
        if not isinstance(value, str):
            return None
        wanted = _canonical(value)
        for member in cls:
            canonical = _canonical(member.value)
            if wanted in (canonical, canonical.rstrip("s")):
                return member
        return None


class Recommendation(_LooseEnum):
    REJECT = "Reject"
    MAJOR_REVISIONS = "Major Revisions"
    MINOR_REVISIONS = "Minor Revisions"
    ACCEPT = "Accept"

    @property
    def score(self) -> int:
        return _RECOMMENDATION_SCORES[self]

    @property
    def is_positive(self) -> bool:
        return self in (Recommendation.ACCEPT, Recommendation.MINOR_REVISIONS)


_RECOMMENDATION_SCORES = {
    Recommendation.REJECT: 1,
    Recommendation.MAJOR_REVISIONS: 2,
    Recommendation.MINOR_REVISIONS: 3,
    Recommendation.ACCEPT: 4,
}


class EditorialDecision(_LooseEnum):
    ACCEPT_FOR_REVIEW = "Accept for Review"
    DESK_REJECT = "Desk Reject"


class SynthesisDecision(_LooseEnum):
    CONTINUE = "Continue"
    ACCEPT = "Accept"
    REJECT = "Reject"


class _Record(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    @field_validator("*", mode="before")
    @classmethod
    def _null_lists_to_empty(cls, value: Any, info) -> Any:
        # Models occasionally emit null for an empty list.
        field = cls.model_fields.get(info.field_name)
        if value is None and field is not None and field.default_factory is list:
            return []
        return value


class RoleAssignment(_Record):
    specialty: str = Field(min_length=1)
    rationale: str = ""


class EditorialAssessment(_Record):
    decision: EditorialDecision
    rationale: str = Field(min_length=1)
    primary_field: str = ""
    sub_specialty: str = ""
    keywords: list[str] = Field(default_factory=list)
    reviewers: tuple[RoleAssignment, RoleAssignment] | None = None
    editorial_guidance: str = ""

    @model_validator(mode="before")
    @classmethod
    def _accept_numbered_reviewers(cls, data: Any) -> Any:
        # Older editor templates emit reviewer1/reviewer2 and guidanceForReviewers.
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if "reviewers" not in data and "reviewer1" in data and "reviewer2" in data:
            data["reviewers"] = [data.pop("reviewer1"), data.pop("reviewer2")]
        if "editorialGuidance" not in data and "guidanceForReviewers" in data:
            data["editorialGuidance"] = data.pop("guidanceForReviewers")
        return data

    @model_validator(mode="after")
    def _reviewers_required_for_review(self) -> "EditorialAssessment":
        if self.reviewers is None and not self.desk_rejected:
            raise ValueError("two reviewers are required unless the manuscript is desk rejected")
        return self

    @property
    def desk_rejected(self) -> bool:
        return self.decision is EditorialDecision.DESK_REJECT


_CONFIDENCE_LEVELS = ("High", "Medium", "Low")


class ReviewVerdict(_Record):
    reviewer_specialty: str = ""
    recommendation: Recommendation
    confidence: Literal["High", "Medium", "Low"] | None = None
    summary: str = ""
    strengths: list[str] = Field(default_factory=list)
    weaknesses: list[str] = Field(default_factory=list)
    detailed_comments: dict[str, str] = Field(default_factory=dict)
    methodological_concerns: list[str] = Field(default_factory=list)
    questions_for_authors: list[str] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)
    additional_notes: str | None = None
    confidential_comments: str | None = Field(default=None, alias="confidentialCommentsToEditor")

    @field_validator("confidence", mode="before")
    @classmethod
    def _normalize_confidence(cls, value: Any) -> Any:
        # Unrecognized levels become None.
        if isinstance(value, str):
            level = value.strip().title()
            return level if level in _CONFIDENCE_LEVELS else None
        return None

    @field_validator("detailed_comments", mode="before")
    @classmethod
    def _drop_empty_comments(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return {k: v for k, v in value.items() if isinstance(v, str) and v.strip()}
        return value


class Convergence(_Record):
    moving_toward_acceptance: bool
    should_continue: bool
    progress_summary: str = ""


class SynthesisRecord(_Record):
    iteration_number: int = Field(ge=1)
    consensus: list[str] = Field(default_factory=list)
    disagreements: list[str] = Field(default_factory=list)
    critical_issues: list[str] = Field(default_factory=list)
    minor_issues: list[str] = Field(default_factory=list)
    convergence: Convergence
    simulated_revisions: list[str] = Field(default_factory=list)
    next_iteration_focus: list[str] = Field(default_factory=list)
    decision: SynthesisDecision

    @property
    def is_terminal(self) -> bool:
        return self.decision is not SynthesisDecision.CONTINUE
