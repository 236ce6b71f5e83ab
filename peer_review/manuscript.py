"""Manuscript text acquisition: file loading, title heuristic, inbox folder handling."""

import re
import shutil
from datetime import datetime
from pathlib import Path

import frontmatter

from peer_review.errors import InvalidInput

SUPPORTED_SUFFIXES = (".md", ".txt")

_TITLE_WINDOW = 500
_TITLE_MIN_WORDS = 3
_TITLE_MAX_WORDS = 20


def ensure_dirs(inbox_dir: Path, archive_dir: Path) -> None:
    """Create inbox and archive directories if they don't exist."""
    inbox_dir.mkdir(parents=True, exist_ok=True)
    archive_dir.mkdir(parents=True, exist_ok=True)


def scan_inbox(inbox_dir: Path) -> list[Path]:
    """Return all manuscripts in inbox_dir, sorted by mtime ascending (oldest first)."""
    files = [p for p in inbox_dir.iterdir() if p.is_file() and p.suffix.lower() in SUPPORTED_SUFFIXES]
    return sorted(files, key=lambda p: p.stat().st_mtime)


def normalize_text(text: str) -> str:
    """Collapse runs of spaces and blank lines left over from copy-paste or conversion."""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = re.sub(r"[ \t]+", " ", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def load_manuscript(file_path: Path) -> tuple[str, dict]:
    """Read a manuscript with optional YAML frontmatter.

    Returns:
        (text, metadata) where metadata may carry title, venue and variant.
        If no frontmatter, metadata is {}.

    Raises:
        InvalidInput: For anything other than a .md or .txt file.
    """
    if file_path.suffix.lower() not in SUPPORTED_SUFFIXES:
        raise InvalidInput(
            f"Unsupported file type '{file_path.suffix}'. "
            f"Convert the manuscript to one of: {', '.join(SUPPORTED_SUFFIXES)}"
        )
    try:
        post = frontmatter.load(str(file_path))
    except UnicodeDecodeError as exc:
        raise InvalidInput(f"{file_path.name} is not UTF-8 text") from exc
    return normalize_text(post.content), dict(post.metadata)


def extract_title(text: str) -> str:
    """Guess a title: the first line of 3-20 words near the top, else the first line."""
    lines = [line.strip().lstrip("#").strip() for line in text[:_TITLE_WINDOW].splitlines()]
    lines = [line for line in lines if line]
    for line in lines:
        if _TITLE_MIN_WORDS <= len(line.split()) <= _TITLE_MAX_WORDS:
            return line
    return lines[0] if lines else "Untitled"


def archive_file(file_path: Path, archive_dir: Path, *, failed: bool = False) -> Path:
    """Move file to archive_dir with a timestamp prefix.

    Args:
        file_path: Source file to archive.
        archive_dir: Destination directory.
        failed: If True, prefix filename with "FAILED_".

    Returns:
        Path to the archived file.
    """
    timestamp = datetime.now().strftime("%Y-%m-%dT%H%M")
    prefix = "FAILED_" if failed else ""
    dest = archive_dir / f"{prefix}{timestamp}_{file_path.name}"
    shutil.move(str(file_path), str(dest))
    return dest
