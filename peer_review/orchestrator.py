"""Review orchestration: editorial triage, parallel specialist reviews, synthesis rounds."""

import asyncio
import logging
import time
from collections.abc import Callable

from config.config_loader import AppConfig
from peer_review.errors import InvalidInput
from peer_review.gateway import ModelGateway, TokenLedger
from peer_review.manuscript import extract_title
from peer_review.models import IterationRecord, ManuscriptContext, ReviewReport
from peer_review.parser import decode
from peer_review.prompts import (
    WorkflowVariant,
    build_editor_prompt,
    build_specialist_prompt,
    build_synthesis_prompt,
    manuscript_excerpt,
)
from peer_review.providers.base import AIProvider
from peer_review.report import assemble_report, desk_reject_report
from peer_review.schemas import (
    EditorialAssessment,
    ReviewVerdict,
    RoleAssignment,
    SynthesisRecord,
)

logger = logging.getLogger(__name__)

ROUND_CAP = 3

# stage, round, percent, message
ProgressSink = Callable[[str, int, int, str], None]


def _notify(sink: ProgressSink | None, stage: str, round_number: int, percent: int, message: str) -> None:
    """Report progress without letting a broken sink affect the run."""
    if sink is None:
        return
    try:
        sink(stage, round_number, percent, message)
    except Exception:
        logger.warning("Progress sink failed at stage %s", stage, exc_info=True)


async def _assess(
    gateway: ModelGateway,
    context: ManuscriptContext,
    excerpt: str,
    config: AppConfig,
    variant: WorkflowVariant,
) -> EditorialAssessment:
    prompt = build_editor_prompt(
        excerpt,
        context.venue_name,
        context.venue_criteria,
        config.prompts,
        config.taxonomy,
        variant,
    )
    raw = await gateway.invoke(prompt, config.review.editor_temperature, "editor")
    return decode(raw, EditorialAssessment)


async def _review(
    gateway: ModelGateway,
    role: RoleAssignment,
    prompt: str,
    temperature: float,
    label: str,
) -> ReviewVerdict:
    raw = await gateway.invoke(prompt, temperature, label)
    return decode(raw, ReviewVerdict, reviewerSpecialty=role.specialty)


async def _review_round(
    gateway: ModelGateway,
    assessment: EditorialAssessment,
    excerpt: str,
    round_number: int,
    config: AppConfig,
    variant: WorkflowVariant,
) -> tuple[ReviewVerdict, ReviewVerdict]:
    """Run both specialist reviews concurrently.

    Both prompts are built before either call goes out. If one review fails the
    other is cancelled and the failure propagates.
    """
    roles = assessment.reviewers
    prompts_for_round = [
        build_specialist_prompt(
            role,
            excerpt,
            assessment.editorial_guidance,
            config.prompts,
            config.taxonomy,
            variant,
        )
        for role in roles
    ]

    tasks = [
        asyncio.ensure_future(
            _review(
                gateway,
                role,
                prompt,
                config.review.reviewer_temperature,
                f"round {round_number} reviewer {idx} ({role.specialty})",
            )
        )
        for idx, (role, prompt) in enumerate(zip(roles, prompts_for_round), start=1)
    ]
    try:
        first, second = await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
    return first, second


async def _synthesize(
    gateway: ModelGateway,
    excerpt: str,
    reviews: tuple[ReviewVerdict, ReviewVerdict],
    round_number: int,
    config: AppConfig,
) -> SynthesisRecord:
    prompt = build_synthesis_prompt(
        excerpt,
        reviews[0],
        reviews[1],
        round_number,
        ROUND_CAP,
        config.prompts,
    )
    raw = await gateway.invoke(prompt, config.review.synthesis_temperature, f"round {round_number} synthesis")
    return decode(raw, SynthesisRecord, iterationNumber=round_number)


def _should_stop(record: IterationRecord) -> bool:
    if record.synthesis is not None and record.synthesis.is_terminal:
        logger.info("Stopping after round %d: synthesis decision %s", record.number, record.synthesis.decision.value)
        return True
    if all(r.is_positive for r in record.recommendations):
        logger.info("Stopping after round %d: both reviewers positive", record.number)
        return True
    return False


async def run_review(
    manuscript_text: str,
    venue_name: str,
    venue_criteria: str,
    provider: AIProvider,
    config: AppConfig,
    on_progress: ProgressSink | None = None,
    title: str | None = None,
    variant: str | None = None,
) -> ReviewReport:
    """Run the full review of one manuscript.

    Args:
        manuscript_text: Plain manuscript text.
        venue_name: Target venue, e.g. "Nature".
        venue_criteria: Scope and criteria text shown to the editor.
        provider: AIProvider used for every call in the run.
        config: Loaded application config.
        on_progress: Optional sink called as (stage, round, percent, message).
        title: Manuscript title; guessed from the text when omitted.
        variant: "full_text" or "abstract_methods"; defaults to config.

    Returns:
        ReviewReport with 0 rounds for a desk reject, otherwise 1-3.

    Raises:
        InvalidInput: Text too short or unknown variant. No model call is made.
        QuotaExceeded: The run's token ceiling would be crossed.
        TransientServiceError: The service kept failing after retries.
        ServiceUnavailable: The service refused the request.
        MalformedResponse: A reply could not be decoded.
    """
    start = time.monotonic()
    _notify(on_progress, "processing_text", 0, 5, "Processing article text...")

    text = manuscript_text.strip()
    if len(text) < config.review.min_manuscript_chars:
        raise InvalidInput(
            f"Manuscript text is too short (minimum {config.review.min_manuscript_chars} characters required)."
        )
    try:
        workflow = WorkflowVariant(variant or config.review.variant)
    except ValueError as exc:
        raise InvalidInput(f"Unknown workflow variant: {variant or config.review.variant}") from exc

    context = ManuscriptContext(
        text=text,
        title=title or extract_title(text),
        venue_name=venue_name,
        venue_criteria=venue_criteria,
    )
    excerpt = manuscript_excerpt(text, workflow, config.review.max_manuscript_chars)
    ledger = TokenLedger(config.review.token_ceiling)
    gateway = ModelGateway(provider, config.gateway, ledger)

    logger.info(
        "Reviewing '%s' for %s (%d chars, variant %s)",
        context.title, venue_name, len(text), workflow.value,
    )

    _notify(on_progress, "editorial_assessment", 1, 15, "The Editor is assessing the article...")
    assessment = await _assess(gateway, context, excerpt, config, workflow)
    logger.info("Editorial decision: %s (%s)", assessment.decision.value, assessment.sub_specialty or assessment.primary_field)

    if assessment.desk_rejected:
        report = desk_reject_report(context.title, venue_name, assessment, workflow.value)
        _notify(on_progress, "complete", 0, 100, "Desk rejected by the Editor.")
    else:
        iterations: list[IterationRecord] = []
        for round_number in range(1, ROUND_CAP + 1):
            specialties = " and ".join(r.specialty for r in assessment.reviewers)
            _notify(
                on_progress, "reviewing", round_number, 20 + (round_number - 1) * 25,
                f"Reviewers ({specialties}) are reviewing...",
            )
            reviews = await _review_round(gateway, assessment, excerpt, round_number, config, workflow)
            logger.info(
                "Round %d recommendations: %s / %s",
                round_number, reviews[0].recommendation.value, reviews[1].recommendation.value,
            )

            record = IterationRecord(
                number=round_number,
                reviews=reviews,
                assessment=assessment if round_number == 1 else None,
            )
            iterations.append(record)

            if round_number == ROUND_CAP:
                break

            _notify(
                on_progress, "synthesis", round_number, 30 + (round_number - 1) * 25,
                "The Editor is synthesizing feedback...",
            )
            record.synthesis = await _synthesize(gateway, excerpt, reviews, round_number, config)

            if _should_stop(record):
                break

        _notify(on_progress, "complete", len(iterations), 95, "Generating final report...")
        report = assemble_report(context.title, venue_name, assessment, iterations, workflow.value)
        _notify(on_progress, "complete", len(iterations), 100, "Review complete!")

    report.tokens_used = ledger.used
    report.duration_sec = time.monotonic() - start
    logger.info(
        "Review finished: %d round(s), %s, %d tokens, %.1fs",
        report.total_rounds, report.final_recommendation.value, report.tokens_used, report.duration_sec,
    )
    return report
