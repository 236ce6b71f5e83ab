"""Role prompt construction: editor, specialist reviewer, and synthesis.

All builders are pure functions of their arguments. Templates, the specialty
taxonomy and reviewer personas live in config/settings.yaml.
"""

import re
from collections.abc import Callable
from enum import Enum

from config.config_loader import PromptsConfig, TaxonomyConfig
from peer_review.schemas import ReviewVerdict, RoleAssignment

TRUNCATION_MARKER = "\n\n[Manuscript truncated due to length...]"

_ABSTRACT_END = r"introduction|background|methods"
_METHODS_START = r"materials and methods|methodology|methods"
_METHODS_END = r"results|discussion|conclusions?|references"

# Headings on their own line are tried first; inline keywords are the fallback.
_ABSTRACT_RES = (
    re.compile(rf"^[ \t]*abstract\b(.*?)^[ \t]*(?:{_ABSTRACT_END})\b", re.IGNORECASE | re.DOTALL | re.MULTILINE),
    re.compile(rf"\babstract\b(.*?)\b(?:{_ABSTRACT_END})\b", re.IGNORECASE | re.DOTALL),
)
_METHODS_RES = (
    re.compile(rf"^[ \t]*(?:{_METHODS_START})\b(.*?)^[ \t]*(?:{_METHODS_END})\b", re.IGNORECASE | re.DOTALL | re.MULTILINE),
    re.compile(rf"\b(?:{_METHODS_START})\b(.*?)\b(?:{_METHODS_END})\b", re.IGNORECASE | re.DOTALL),
)
_METHODS_HINT_RE = re.compile(
    r"study design|participants|patients|samples|statistical analysis|data collection|procedures|protocol",
    re.IGNORECASE,
)
_ABSTRACT_FALLBACK_WORDS = 300
METHODS_NOT_FOUND = "Methods section not clearly identified. Please include complete methods."


class WorkflowVariant(str, Enum):
    FULL_TEXT = "full_text"
    ABSTRACT_METHODS = "abstract_methods"


class ResearchField(str, Enum):
    MEDICAL = "Medical Research"
    COMPUTER_SCIENCE = "Computer Science"
    SOCIAL_SCIENCES = "Social Sciences"
    NATURAL_SCIENCES = "Natural Sciences"
    ENGINEERING = "Engineering"
    GENERAL = "General"


# ---------------------------------------------------------------------------
# Manuscript excerpts
# ---------------------------------------------------------------------------

def truncate_manuscript(text: str, max_chars: int) -> str:
    """Cut text to max_chars, appending a marker so the model knows content is missing."""
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + TRUNCATION_MARKER


def _first_section(text: str, patterns: tuple[re.Pattern, ...]) -> str | None:
    for pattern in patterns:
        match = pattern.search(text)
        if match:
            body = match.group(1).strip(" :.\n\t")
            if body:
                return body
    return None


def extract_abstract(text: str) -> str:
    section = _first_section(text, _ABSTRACT_RES)
    if section:
        return section
    words = text.split()
    return " ".join(words[:_ABSTRACT_FALLBACK_WORDS]) + "..."


def extract_methods(text: str) -> str:
    section = _first_section(text, _METHODS_RES)
    if section:
        return section
    paragraphs = [p for p in re.split(r"\n\s*\n", text) if _METHODS_HINT_RE.search(p)]
    if paragraphs:
        return "\n\n".join(p.strip() for p in paragraphs)
    return METHODS_NOT_FOUND


def manuscript_excerpt(text: str, variant: WorkflowVariant, max_chars: int) -> str:
    """Return the bounded manuscript text every role in a run sees."""
    if variant is WorkflowVariant.ABSTRACT_METHODS:
        text = f"ABSTRACT:\n{extract_abstract(text)}\n\nMETHODS:\n{extract_methods(text)}"
    return truncate_manuscript(text, max_chars)


# ---------------------------------------------------------------------------
# Editor
# ---------------------------------------------------------------------------

def _specialty_menu(taxonomy: TaxonomyConfig, variant: WorkflowVariant) -> str:
    if variant is WorkflowVariant.ABSTRACT_METHODS:
        return "\n".join(f"- {s}" for s in taxonomy.focused)
    return "\n\n".join(
        f"For {field_name}, choose from:\n{' | '.join(specialties)}"
        for field_name, specialties in taxonomy.fields.items()
    )


def build_editor_prompt(
    excerpt: str,
    venue_name: str,
    venue_criteria: str,
    prompts: PromptsConfig,
    taxonomy: TaxonomyConfig,
    variant: WorkflowVariant = WorkflowVariant.FULL_TEXT,
) -> str:
    template = prompts.focused_editor if variant is WorkflowVariant.ABSTRACT_METHODS else prompts.editor
    return template.format(
        venue_name=venue_name,
        venue_criteria=venue_criteria,
        manuscript=excerpt,
        specialty_menu=_specialty_menu(taxonomy, variant),
    )


# ---------------------------------------------------------------------------
# Specialist reviewers
# ---------------------------------------------------------------------------

def classify_specialty(specialty: str, taxonomy: TaxonomyConfig) -> ResearchField:
    """Map a specialty label to its research field; unknown labels map to GENERAL."""
    wanted = specialty.strip().lower()
    for field_name, specialties in taxonomy.fields.items():
        if wanted in (s.lower() for s in specialties):
            try:
                return ResearchField(field_name)
            except ValueError:
                return ResearchField.GENERAL
    if wanted in (s.lower() for s in taxonomy.focused):
        return ResearchField.MEDICAL
    return ResearchField.GENERAL


def _persona_intro(specialty: str, prompts: PromptsConfig, adjective: str) -> str:
    persona = prompts.personas.get(specialty)
    if persona is None:
        return (
            f"You are a {adjective} {specialty} researcher with 15+ years of research experience, "
            f"150+ publications, and deep expertise in advanced research in {specialty}."
        )
    return (
        f"You are {persona.name}, a {adjective} {specialty} researcher at {persona.institution}.\n"
        f"Credentials: {persona.credentials}.\n"
        f"Expert in {persona.expertise}."
    )


def _fill(template: str, role: RoleAssignment, excerpt: str, guidance: str, persona: str = "") -> str:
    return template.format(
        specialty=role.specialty,
        persona=persona,
        guidance=guidance or "No specific guidance provided.",
        manuscript=excerpt,
    )


def _medical_prompt(role: RoleAssignment, excerpt: str, guidance: str, prompts: PromptsConfig) -> str:
    persona = _persona_intro(role.specialty, prompts, "leading")
    return _fill(prompts.reviewers[ResearchField.MEDICAL.value], role, excerpt, guidance, persona)


def _computer_science_prompt(role: RoleAssignment, excerpt: str, guidance: str, prompts: PromptsConfig) -> str:
    persona = _persona_intro(role.specialty, prompts, "distinguished")
    return _fill(prompts.reviewers[ResearchField.COMPUTER_SCIENCE.value], role, excerpt, guidance, persona)


def _social_sciences_prompt(role: RoleAssignment, excerpt: str, guidance: str, prompts: PromptsConfig) -> str:
    return _fill(prompts.reviewers[ResearchField.SOCIAL_SCIENCES.value], role, excerpt, guidance)


def _natural_sciences_prompt(role: RoleAssignment, excerpt: str, guidance: str, prompts: PromptsConfig) -> str:
    return _fill(prompts.reviewers[ResearchField.NATURAL_SCIENCES.value], role, excerpt, guidance)


def _engineering_prompt(role: RoleAssignment, excerpt: str, guidance: str, prompts: PromptsConfig) -> str:
    return _fill(prompts.reviewers[ResearchField.ENGINEERING.value], role, excerpt, guidance)


def _general_prompt(role: RoleAssignment, excerpt: str, guidance: str, prompts: PromptsConfig) -> str:
    return _fill(prompts.reviewers[ResearchField.GENERAL.value], role, excerpt, guidance)


_REVIEWER_BUILDERS: dict[ResearchField, Callable[[RoleAssignment, str, str, PromptsConfig], str]] = {
    ResearchField.MEDICAL: _medical_prompt,
    ResearchField.COMPUTER_SCIENCE: _computer_science_prompt,
    ResearchField.SOCIAL_SCIENCES: _social_sciences_prompt,
    ResearchField.NATURAL_SCIENCES: _natural_sciences_prompt,
    ResearchField.ENGINEERING: _engineering_prompt,
    ResearchField.GENERAL: _general_prompt,
}


def build_specialist_prompt(
    role: RoleAssignment,
    excerpt: str,
    guidance: str,
    prompts: PromptsConfig,
    taxonomy: TaxonomyConfig,
    variant: WorkflowVariant = WorkflowVariant.FULL_TEXT,
) -> str:
    if variant is WorkflowVariant.ABSTRACT_METHODS:
        return _fill(prompts.focused_reviewer, role, excerpt, guidance)
    research_field = classify_specialty(role.specialty, taxonomy)
    return _REVIEWER_BUILDERS[research_field](role, excerpt, guidance, prompts)


# ---------------------------------------------------------------------------
# Synthesis
# ---------------------------------------------------------------------------

def serialize_verdict(verdict: ReviewVerdict) -> str:
    return verdict.model_dump_json(by_alias=True, exclude_none=True, indent=2)


def build_synthesis_prompt(
    excerpt: str,
    review_1: ReviewVerdict,
    review_2: ReviewVerdict,
    iteration: int,
    round_cap: int,
    prompts: PromptsConfig,
) -> str:
    return prompts.synthesis.format(
        manuscript=excerpt,
        review_1=serialize_verdict(review_1),
        review_2=serialize_verdict(review_2),
        iteration=iteration,
        round_cap=round_cap,
    )
