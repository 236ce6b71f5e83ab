"""Pull a JSON object out of raw model text and validate it against a schema.

Models are asked for bare JSON but regularly wrap it in prose or Markdown
fences. Three strategies are tried in order:

1. the whole text,
2. each fenced code block,
3. each ``{`` in turn with its balanced closing ``}``, until one loads as
   an object.
"""

import json
import logging
import re
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from peer_review.errors import MalformedResponse

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```[ \t]*(?:json|JSON)?[ \t]*\n?(.*?)```", re.DOTALL)
_PREVIEW_CHARS = 120

SchemaT = TypeVar("SchemaT", bound=BaseModel)


def _preview(raw: str) -> str:
    flat = " ".join(raw.split())
    return flat[:_PREVIEW_CHARS] + ("..." if len(flat) > _PREVIEW_CHARS else "")


def _load_object(candidate: str) -> dict[str, Any] | None:
    try:
        value = json.loads(candidate)
    except ValueError:
        return None
    return value if isinstance(value, dict) else None


def _balanced_object(text: str, start: int) -> str | None:
    """Return the substring from the '{' at start to its matching '}', string-literal aware."""
    depth = 0
    in_string = False
    escaped = False
    for idx in range(start, len(text)):
        ch = text[idx]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start:idx + 1]
    return None


def parse(raw: str) -> dict[str, Any]:
    """Extract a JSON object from raw model output.

    Raises:
        MalformedResponse: If none of the three strategies yields an object.
    """
    text = raw.strip()
    if not text:
        raise MalformedResponse("Empty model response")

    parsed = _load_object(text)
    if parsed is not None:
        return parsed

    for block in _FENCE_RE.findall(text):
        parsed = _load_object(block.strip())
        if parsed is not None:
            logger.debug("Parsed JSON from fenced block")
            return parsed

    # Prose may contain stray braces before the real object.
    start = text.find("{")
    while start != -1:
        candidate = _balanced_object(text, start)
        if candidate is not None:
            parsed = _load_object(candidate)
            if parsed is not None:
                logger.debug("Parsed JSON from embedded object at offset %d", start)
                return parsed
        start = text.find("{", start + 1)

    raise MalformedResponse(f"Could not extract a JSON object from response: {_preview(text)!r}")


def decode(raw: str, schema: type[SchemaT], **context: Any) -> SchemaT:
    """Parse raw model text and validate it as ``schema``.

    ``context`` supplies pipeline-owned fields (reviewer specialty, iteration
    number) that override whatever the model put under the same key.

    Raises:
        MalformedResponse: On unparseable text or any shape mismatch.
    """
    payload = parse(raw)
    payload.update(context)
    try:
        return schema.model_validate(payload)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
            for err in exc.errors()
        )
        raise MalformedResponse(f"{schema.__name__} shape mismatch: {problems}") from exc
