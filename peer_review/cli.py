"""Click CLI: loads config, builds the provider, runs the review, writes the report."""

import asyncio
import logging
import sys
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from config.config_loader import AppConfig, load_config
from peer_review.errors import (
    InvalidInput,
    MalformedResponse,
    QuotaExceeded,
    ReviewError,
    ServiceUnavailable,
    TransientServiceError,
)
from peer_review.manuscript import archive_file, ensure_dirs, load_manuscript, scan_inbox
from peer_review.models import ReviewReport
from peer_review.orchestrator import run_review
from peer_review.output import print_report, save_json, save_markdown
from peer_review.providers.anthropic import AnthropicProvider
from peer_review.providers.base import AIProvider
from peer_review.providers.openai_provider import OpenAIProvider
from peer_review.venues import VenueCriteria, lookup_venue, merge_criteria

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

PROVIDER_CLASSES: dict[str, type[AIProvider]] = {
    "anthropic": AnthropicProvider,
    "openai": OpenAIProvider,
}

EXIT_CODES: dict[type[ReviewError], int] = {
    InvalidInput: 2,
    QuotaExceeded: 3,
    ServiceUnavailable: 4,
    TransientServiceError: 4,
    MalformedResponse: 5,
}


def exit_code_for(exc: ReviewError) -> int:
    for cls in type(exc).__mro__:
        if cls in EXIT_CODES:
            return EXIT_CODES[cls]
    return 1


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def build_provider(config: AppConfig, name: str) -> AIProvider:
    """Instantiate the named provider.

    Raises:
        ServiceUnavailable: Unknown name, unsupported SDK or missing API key.
    """
    model_cfg = config.models.get(name)
    if model_cfg is None:
        raise ServiceUnavailable(name, f"Unknown provider. Configured: {', '.join(sorted(config.models))}")
    provider_cls = PROVIDER_CLASSES.get(model_cfg.sdk)
    if provider_cls is None:
        raise ServiceUnavailable(name, f"Unsupported sdk '{model_cfg.sdk}'")
    return provider_cls(model_cfg)


def resolve_venue(venue_name: str, criteria_file: Path | None) -> VenueCriteria:
    venue = lookup_venue(venue_name)
    if criteria_file is not None:
        venue = merge_criteria(venue, criteria=criteria_file.read_text(encoding="utf-8").strip())
    return venue


def _save(report: ReviewReport, output_format: str, output_dir: Path, slug_override: str | None = None) -> list[Path]:
    saved: list[Path] = []
    if output_format in ("md", "both"):
        saved.append(save_markdown(report, output_dir, slug_override=slug_override))
    if output_format in ("json", "both"):
        saved.append(save_json(report, output_dir, slug_override=slug_override))
    return saved


async def _run_single(
    text: str,
    venue: VenueCriteria,
    provider: AIProvider,
    config: AppConfig,
    title: str | None,
    variant: str | None,
) -> ReviewReport:
    console.print(f"\n[bold cyan]Peer Review[/bold cyan] for {venue.name} ({venue.source} criteria)")
    console.print(f"Provider: {provider.name()} ({provider.model_string()})\n")

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task("Starting review...", total=100)

        def on_progress(stage: str, round_number: int, percent: int, message: str) -> None:
            progress.update(task, completed=percent, description=message)

        report = await run_review(
            text,
            venue.name,
            venue.as_prompt_text(),
            provider,
            config,
            on_progress=on_progress,
            title=title,
            variant=variant,
        )

    print_report(report)
    return report


async def _run_inbox(
    config: AppConfig,
    provider: AIProvider,
    inbox_dir: Path,
    archive_dir: Path,
    venue_cli: str | None,
    criteria_file: Path | None,
    variant_cli: str | None,
    output_format: str,
    output_dir: Path,
) -> None:
    """Review every manuscript in the inbox folder.

    Precedence for per-file settings: CLI flag > frontmatter > config default.
    """
    ensure_dirs(inbox_dir, archive_dir)
    files = scan_inbox(inbox_dir)

    if not files:
        click.echo("No files in inbox.")
        return

    for file_path in files:
        try:
            text, meta = load_manuscript(file_path)
            venue_name = venue_cli or meta.get("venue")
            if not venue_name:
                raise InvalidInput("No venue: pass --venue or set 'venue' in frontmatter")
            report = await _run_single(
                text=text,
                venue=resolve_venue(str(venue_name), criteria_file),
                provider=provider,
                config=config,
                title=meta.get("title"),
                variant=variant_cli or meta.get("variant"),
            )
            saved = _save(report, output_format, output_dir, slug_override=file_path.stem)
            archived = archive_file(file_path, archive_dir)
            click.echo(f"Processed: {file_path.name} -> {', '.join(str(p) for p in saved)} (archived: {archived.name})")
        except ReviewError as e:
            logger.error("Failed: %s -- %s", file_path.name, e)
            archive_file(file_path, archive_dir, failed=True)


@click.command()
@click.argument("manuscript", required=False, type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--venue", default=None, help="Target journal, e.g. Nature, NEJM, PNAS")
@click.option("--criteria-file", type=click.Path(exists=True, dir_okay=False, path_type=Path), default=None,
              help="File with venue criteria that replace the stored ones")
@click.option("--title", default=None, help="Manuscript title (default: guessed from the text)")
@click.option("--variant", type=click.Choice(["full_text", "abstract_methods"]), default=None,
              help="Review the full text or only abstract and methods (default: from config)")
@click.option("--provider", "provider_name", default=None, help="Configured model to use (default: from config)")
@click.option("--format", "output_format", type=click.Choice(["md", "json", "both"]), default=None,
              help="Report format (default: from config)")
@click.option("--output", "output_path", default=None, help="Output directory (default: from config)")
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
@click.option("--inbox", "use_inbox", is_flag=True, default=False,
              help="Review all .md/.txt files in the inbox folder")
@click.option("--inbox-dir", "inbox_dir_override", default=None,
              help="Override inbox folder path (default: from config)")
def main(
    manuscript: Path | None,
    venue: str | None,
    criteria_file: Path | None,
    title: str | None,
    variant: str | None,
    provider_name: str | None,
    output_format: str | None,
    output_path: str | None,
    verbose: bool,
    use_inbox: bool,
    inbox_dir_override: str | None,
) -> None:
    """Peer Review -- simulated editor and specialist review of a manuscript.

    \b
    Examples:
      peer-review paper.md --venue Nature
      peer-review paper.txt --venue NEJM --variant abstract_methods --format both
      peer-review paper.md --venue "Journal of Hydrology" --criteria-file criteria.md
      peer-review --inbox --venue PNAS
    """
    if sys.platform == "win32":
        if hasattr(sys.stdout, "reconfigure"):
            sys.stdout.reconfigure(encoding="utf-8", errors="replace")
        if hasattr(sys.stderr, "reconfigure"):
            sys.stderr.reconfigure(encoding="utf-8", errors="replace")

    load_dotenv()
    _setup_logging(verbose)

    try:
        config = load_config()
    except (FileNotFoundError, ValueError) as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(1)

    effective_output = Path(output_path) if output_path else config.defaults.output_dir
    effective_format = output_format or config.defaults.output_format

    try:
        provider = build_provider(config, provider_name or config.defaults.provider)

        if use_inbox:
            inbox_dir = Path(inbox_dir_override) if inbox_dir_override else config.inbox.dir
            asyncio.run(
                _run_inbox(
                    config=config,
                    provider=provider,
                    inbox_dir=inbox_dir,
                    archive_dir=config.inbox.archive_dir,
                    venue_cli=venue,
                    criteria_file=criteria_file,
                    variant_cli=variant,
                    output_format=effective_format,
                    output_dir=effective_output,
                )
            )
            return

        if manuscript is None:
            raise InvalidInput("Provide a MANUSCRIPT file or --inbox.")

        text, meta = load_manuscript(manuscript)
        venue_name = venue or meta.get("venue")
        if not venue_name:
            raise InvalidInput("No venue: pass --venue or set 'venue' in frontmatter.")

        report = asyncio.run(
            _run_single(
                text=text,
                venue=resolve_venue(str(venue_name), criteria_file),
                provider=provider,
                config=config,
                title=title or meta.get("title"),
                variant=variant or meta.get("variant"),
            )
        )
    except ReviewError as exc:
        console.print(f"[bold red]Error ({exc.kind}):[/bold red] {exc}")
        sys.exit(exit_code_for(exc))

    for path in _save(report, effective_format, effective_output):
        console.print(f"[dim]Saved to: {path}[/dim]")


if __name__ == "__main__":
    main()
