"""Dataclasses owned by the review pipeline. No logic beyond trivial accessors."""

from dataclasses import dataclass, field
from datetime import datetime

from peer_review.schemas import (
    EditorialAssessment,
    Recommendation,
    ReviewVerdict,
    RoleAssignment,
    SynthesisRecord,
)


@dataclass(frozen=True)
class ManuscriptContext:
    text: str
    title: str
    venue_name: str
    venue_criteria: str


@dataclass
class ModelResponse:
    provider: str          # "claude", "openai", ...
    model: str             # actual model string used
    content: str
    latency_sec: float
    input_tokens: int
    output_tokens: int

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


@dataclass
class IterationRecord:
    number: int
    reviews: tuple[ReviewVerdict, ReviewVerdict]
    assessment: EditorialAssessment | None = None   # round 1 only
    synthesis: SynthesisRecord | None = None         # absent on a terminal round 3

    @property
    def recommendations(self) -> tuple[Recommendation, Recommendation]:
        return self.reviews[0].recommendation, self.reviews[1].recommendation


@dataclass
class RoundTransition:
    improvements: list[str] = field(default_factory=list)
    persistent_issues: list[str] = field(default_factory=list)


@dataclass
class TrajectoryAnalysis:
    overall_convergence: str
    transitions: dict[str, RoundTransition] = field(default_factory=dict)  # "1->2", "2->3"


@dataclass
class ReviewReport:
    title: str
    venue: str
    review_date: datetime
    total_rounds: int
    final_recommendation: Recommendation
    final_rationale: str
    iterations: list[IterationRecord]
    trajectory_analysis: TrajectoryAnalysis
    reviewers: list[RoleAssignment] = field(default_factory=list)
    priority_recommendations: list[str] = field(default_factory=list)
    strengths_to_preserve: list[str] = field(default_factory=list)
    critical_issues_to_address: list[str] = field(default_factory=list)
    suggested_next_steps: list[str] = field(default_factory=list)
    editorial_assessment: EditorialAssessment | None = None
    variant: str = "full_text"
    tokens_used: int = 0
    duration_sec: float = 0.0

    @property
    def desk_rejected(self) -> bool:
        return self.total_rounds == 0
