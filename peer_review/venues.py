"""Venue criteria lookup. Never raises: unknown venues get generic academic criteria."""

import logging
from dataclasses import dataclass, replace
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

_VENUES_PATH = Path(__file__).parent.parent / "config" / "venues.yaml"

_DEFAULT_CRITERIA = """\
**General Publishing Criteria:**

1. **Originality & Novelty**
   - Presents new findings, methods, or perspectives
   - Makes a clear contribution to the field
   - Not previously published or under review elsewhere

2. **Scientific Rigor**
   - Sound methodology appropriate to the research question
   - Adequate sample sizes and statistical power
   - Proper controls and validation
   - Reproducible methods

3. **Significance & Impact**
   - Advances understanding in the field
   - Relevant to broad readership
   - Clear implications for future research

4. **Quality of Presentation**
   - Well-organized and clearly written
   - Appropriate use of figures and tables
   - Comprehensive literature review
   - Proper citation of prior work

5. **Ethical Standards**
   - Appropriate ethical approvals obtained
   - Informed consent documented
   - Conflicts of interest disclosed
   - Data availability statement included

6. **Reproducibility**
   - Methods described in sufficient detail
   - Data and code available when applicable
   - Materials and reagents properly identified"""


@dataclass(frozen=True)
class VenueCriteria:
    name: str
    scope: str
    criteria: str
    source: str  # "table", "default" or "manual"

    def as_prompt_text(self) -> str:
        return f"{self.scope}\n\n{self.criteria}"


def capitalize_venue(name: str) -> str:
    return " ".join(word[:1].upper() + word[1:].lower() for word in name.split())


def default_criteria(venue_name: str) -> VenueCriteria:
    name = capitalize_venue(venue_name) or "The Journal"
    return VenueCriteria(
        name=name,
        scope=(
            f"{name} publishes high-quality original research across its field of focus. "
            "The journal seeks work that advances knowledge, uses rigorous methodology, "
            "and has broad significance to the research community."
        ),
        criteria=_DEFAULT_CRITERIA,
        source="default",
    )


def _load_table(path: Path) -> dict[str, VenueCriteria]:
    with path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    table: dict[str, VenueCriteria] = {}
    for key, entry in (raw.get("venues") or {}).items():
        venue = VenueCriteria(
            name=str(entry["name"]),
            scope=str(entry["scope"]).strip(),
            criteria=str(entry["criteria"]).strip(),
            source="table",
        )
        for alias in [key, entry["name"], *(entry.get("aliases") or [])]:
            table[str(alias).strip().lower()] = venue
    return table


def lookup_venue(venue_name: str, venues_path: Path = _VENUES_PATH) -> VenueCriteria:
    """Return criteria for a venue, falling back to generic criteria on any problem."""
    try:
        table = _load_table(venues_path)
    except (OSError, yaml.YAMLError, KeyError, TypeError, AttributeError) as exc:
        logger.warning("Venue table unavailable (%s), using default criteria", exc)
        return default_criteria(venue_name)

    venue = table.get(venue_name.strip().lower())
    if venue is None:
        logger.info("No stored criteria for '%s', using default criteria", venue_name)
        return default_criteria(venue_name)
    return venue


def merge_criteria(base: VenueCriteria, scope: str | None = None, criteria: str | None = None) -> VenueCriteria:
    """Override scope and/or criteria text with user-supplied values."""
    if not scope and not criteria:
        return base
    return replace(
        base,
        scope=scope or base.scope,
        criteria=criteria or base.criteria,
        source="manual",
    )
