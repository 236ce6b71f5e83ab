"""Shared pytest fixtures."""

import json
import re
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from config.config_loader import (
    AppConfig,
    DefaultsConfig,
    GatewayConfig,
    InboxConfig,
    ModelConfig,
    Persona,
    PromptsConfig,
    ReviewConfig,
    TaxonomyConfig,
)
from peer_review.models import ModelResponse
from peer_review.providers.base import AIProvider

SAMPLE_MANUSCRIPT = """\
Tumor Mutational Burden Predicts Response to Checkpoint Inhibitors in Melanoma

Abstract
We analysed 412 patients with advanced melanoma treated with anti-PD-1 therapy and
found that tumor mutational burden was associated with objective response.

Introduction
Immune checkpoint inhibitors have changed the treatment of melanoma.

Methods
Patients were enrolled at four centres between 2015 and 2020. Whole-exome sequencing
was performed on pre-treatment biopsies. Statistical analysis used logistic regression.

Results
Higher mutational burden was associated with response (OR 2.1, 95% CI 1.4-3.2).

Discussion
Mutational burden is a useful but imperfect biomarker.
"""


def verdict_json(recommendation: str = "Minor Revisions", **overrides) -> str:
    payload = {
        "recommendation": recommendation,
        "summary": f"Reviewer recommends {recommendation}.",
        "strengths": ["Large cohort", "Clear writing"],
        "weaknesses": ["No validation cohort", "Missing confounders", "Short follow-up", "Small subgroups"],
        "detailedComments": {"methodology": "Adequate.", "results": "Convincing."},
        "methodologicalConcerns": ["Selection bias"],
        "questionsForAuthors": ["How were samples selected?"],
        "suggestions": ["Add a validation cohort", "Adjust for stage", "Report follow-up"],
    }
    payload.update(overrides)
    return json.dumps(payload)


def assessment_json(
    decision: str = "Accept for Review",
    specialties: tuple[str, str] = ("Oncology", "Machine Learning"),
    **overrides,
) -> str:
    payload = {
        "decision": decision,
        "rationale": "Within scope and of broad interest.",
        "primaryField": "Medical Research",
        "subSpecialty": specialties[0],
        "keywords": ["melanoma", "immunotherapy"],
        "reviewers": [
            {"specialty": specialties[0], "rationale": "Clinical expertise"},
            {"specialty": specialties[1], "rationale": "Modelling expertise"},
        ],
        "editorialGuidance": "Focus on the biomarker validation.",
    }
    payload.update(overrides)
    return json.dumps(payload)


def synthesis_json(iteration: int = 1, decision: str = "Continue", **overrides) -> str:
    payload = {
        "iterationNumber": iteration,
        "consensus": ["Cohort is large"],
        "disagreements": [],
        "criticalIssues": [f"Validate in an external cohort (round {iteration})"],
        "minorIssues": ["Typos"],
        "convergence": {
            "movingTowardAcceptance": True,
            "shouldContinue": decision == "Continue",
            "progressSummary": f"Progress after round {iteration}.",
        },
        "simulatedRevisions": [f"Authors added analyses (round {iteration})"],
        "nextIterationFocus": ["Validation"],
        "decision": decision,
    }
    payload.update(overrides)
    return json.dumps(payload)


class MockProvider(AIProvider):
    """Test double AIProvider."""

    def __init__(
        self,
        provider_name: str = "mock",
        response_content: str = "Mock response",
        output_tokens: int = 100,
    ) -> None:
        self._name = provider_name
        self._response_content = response_content
        self._output_tokens = output_tokens
        # Shadow the class method with an AsyncMock at the instance level.
        # ABC check passes because generate is defined in the class body below.
        self.generate = AsyncMock(  # type: ignore[assignment]
            return_value=ModelResponse(
                provider=provider_name,
                model="mock-model",
                content=response_content,
                latency_sec=0.1,
                input_tokens=10,
                output_tokens=10,
            )
        )

    def name(self) -> str:
        return self._name

    def model_string(self) -> str:
        return "mock-model"

    def max_tokens(self) -> int:
        return self._output_tokens

    async def generate(self, prompt: str, temperature: float) -> ModelResponse:  # type: ignore[override]
        """Default implementation; replaced by AsyncMock in __init__."""
        return ModelResponse(
            provider=self._name,
            model="mock-model",
            content=self._response_content,
            latency_sec=0.1,
            input_tokens=10,
            output_tokens=10,
        )


_SPECIALTY_RE = re.compile(r"^specialty=(.+)$", re.MULTILINE)


class ScriptedProvider(MockProvider):
    """Answers each role from a script, picking the role from the prompt's first word.

    reviews maps a reviewer specialty to the recommendations it gives in
    successive rounds; syntheses are returned in call order.
    """

    def __init__(
        self,
        editor: str | None = None,
        reviews: dict[str, list[str]] | None = None,
        syntheses: list[str] | None = None,
        tokens_per_call: int = 100,
    ) -> None:
        super().__init__("scripted")
        self._editor = editor if editor is not None else assessment_json()
        self._reviews = {k: list(v) for k, v in (reviews or {}).items()}
        self._syntheses = list(syntheses or [])
        self._tokens_per_call = tokens_per_call
        self.generate = AsyncMock(side_effect=self._answer)  # type: ignore[assignment]

    def prompts_for(self, role: str) -> list[str]:
        return [
            call.args[0] for call in self.generate.call_args_list
            if call.args[0].split(maxsplit=1)[0] == role
        ]

    async def _answer(self, prompt: str, temperature: float) -> ModelResponse:
        role = prompt.split(maxsplit=1)[0]
        if role == "EDITOR":
            content = self._editor
        elif role == "REVIEWER":
            specialty = _SPECIALTY_RE.search(prompt).group(1)
            content = verdict_json(self._reviews[specialty].pop(0))
        elif role == "SYNTHESIS":
            content = self._syntheses.pop(0)
        else:
            raise AssertionError(f"Unexpected prompt: {prompt[:40]!r}")
        half = self._tokens_per_call // 2
        return ModelResponse(
            provider="scripted",
            model="mock-model",
            content=content,
            latency_sec=0.01,
            input_tokens=half,
            output_tokens=self._tokens_per_call - half,
        )


@pytest.fixture
def sample_model_config() -> ModelConfig:
    return ModelConfig(
        name="test_model",
        sdk="anthropic",
        model="test-model-1",
        api_key_env="TEST_API_KEY",
        timeout_sec=30,
        max_tokens=1024,
        base_url=None,
    )


@pytest.fixture
def sample_prompts_config() -> PromptsConfig:
    reviewer = "REVIEWER {field}\n{{persona}}\nspecialty={{specialty}}\nguidance={{guidance}}\nMANUSCRIPT:\n{{manuscript}}"
    return PromptsConfig(
        editor="EDITOR venue={venue_name}\ncriteria={venue_criteria}\nmenu={specialty_menu}\nMANUSCRIPT:\n{manuscript}",
        focused_editor="EDITOR focused venue={venue_name}\nmenu={specialty_menu}\nMANUSCRIPT:\n{manuscript}",
        reviewers={
            field: reviewer.format(field=field)
            for field in (
                "Medical Research",
                "Computer Science",
                "Social Sciences",
                "Natural Sciences",
                "Engineering",
                "General",
            )
        },
        focused_reviewer="REVIEWER focused\nspecialty={specialty}\nguidance={guidance}\nMANUSCRIPT:\n{manuscript}",
        synthesis=(
            "SYNTHESIS iteration={iteration}/{round_cap}\nREVIEW 1:\n{review_1}\n"
            "REVIEW 2:\n{review_2}\nMANUSCRIPT:\n{manuscript}"
        ),
        personas={
            "Oncology": Persona(
                name="Dr. Test Person",
                institution="Test Cancer Center",
                credentials="MD, PhD",
                expertise="tumour immunology",
            ),
        },
    )


@pytest.fixture
def sample_taxonomy() -> TaxonomyConfig:
    return TaxonomyConfig(
        fields={
            "Medical Research": ["Oncology", "Cardiology"],
            "Computer Science": ["Machine Learning", "Computer Vision"],
            "Social Sciences": ["Economics"],
            "Natural Sciences": ["Ecology"],
            "Engineering": ["Robotics"],
        },
        focused=["Oncology", "Cardiology", "Epidemiology"],
    )


@pytest.fixture
def sample_gateway_config() -> GatewayConfig:
    # Zero backoff keeps retry tests fast.
    return GatewayConfig(max_attempts=3, backoff_multiplier=0, backoff_min=0, backoff_max=0, chars_per_token=4)


@pytest.fixture
def sample_defaults_config(tmp_path: Path) -> DefaultsConfig:
    return DefaultsConfig(provider="claude", output_dir=tmp_path / "output", output_format="md")


@pytest.fixture
def sample_app_config(
    tmp_path: Path,
    sample_defaults_config: DefaultsConfig,
    sample_prompts_config: PromptsConfig,
    sample_taxonomy: TaxonomyConfig,
    sample_gateway_config: GatewayConfig,
) -> AppConfig:
    model_cfg = ModelConfig(
        name="claude",
        sdk="anthropic",
        model="claude-haiku-4-5-20251001",
        api_key_env="ANTHROPIC_API_KEY",
        timeout_sec=60,
        max_tokens=4096,
    )
    return AppConfig(
        defaults=sample_defaults_config,
        review=ReviewConfig(),
        gateway=sample_gateway_config,
        models={"claude": model_cfg},
        prompts=sample_prompts_config,
        taxonomy=sample_taxonomy,
        inbox=InboxConfig(dir=tmp_path / "inbox", archive_dir=tmp_path / "inbox" / "archive"),
        available_providers={"claude"},
    )


@pytest.fixture
def sample_manuscript() -> str:
    return SAMPLE_MANUSCRIPT


@pytest.fixture
def mock_provider() -> MockProvider:
    return MockProvider()
