"""Markdown chunker — splits an article into heading-aware, overlapping word windows.

Pure functions only: the same title, content and timestamps always produce the
same chunk boundaries, IDs and content hashes.
"""

import hashlib
import re
from dataclasses import dataclass, field
from datetime import datetime

from app.domain.entities import Chunk
from app.domain.exceptions import ServiceError

# ── Chunking constants ──────────────────────────────────────────────
DEFAULT_CHUNK_SIZE = 500  # words per window
DEFAULT_CHUNK_OVERLAP = 50  # words shared by consecutive windows
_HASH_LENGTH = 16

_HEADING_RE = re.compile(r"^(#{1,6})\s+(.+)$")
_FENCE_RE = re.compile(r"^\s*(```|~~~)")
_WHITESPACE_RE = re.compile(r"\s+")


@dataclass
class _Section:
    heading_path: list[str]
    lines: list[str] = field(default_factory=list)

    @property
    def text(self) -> str:
        return "\n".join(self.lines).strip()


def calculate_content_hash(text: str) -> str:
    """Short SHA-256 fingerprint used to detect unchanged chunks."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()[:_HASH_LENGTH]


def chunk_id_for(slug: str, chunk_index: int) -> str:
    return f"{slug}#{chunk_index}"


def chunk_markdown(
    slug: str,
    title: str,
    content: str,
    created: datetime | None = None,
    modified: datetime | None = None,
    *,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    chunk_overlap: int = DEFAULT_CHUNK_OVERLAP,
) -> list[Chunk]:
    """Split an article into chunks aligned to its heading structure.

    Text is first divided at Markdown headings (``#`` to ``######``; lines
    inside fenced code blocks never count as headings). Each section is then
    cut into windows of ``chunk_size`` words, consecutive windows sharing
    ``chunk_overlap`` words. A section that fits in one window keeps its
    original whitespace. Chunk indices run across the whole article.
    """
    if chunk_size < 1:
        raise ServiceError.validation(f"chunk_size must be positive, got {chunk_size}")
    if chunk_overlap < 0 or chunk_overlap >= chunk_size:
        raise ServiceError.validation(
            f"chunk_overlap must be in [0, chunk_size), got {chunk_overlap} for size {chunk_size}"
        )

    chunks: list[Chunk] = []
    for section in _split_by_headings(content):
        for text in _split_into_windows(section.text, chunk_size, chunk_overlap):
            index = len(chunks)
            chunks.append(
                Chunk(
                    id=chunk_id_for(slug, index),
                    slug=slug,
                    title=title,
                    chunk_index=index,
                    text=text,
                    content_hash=calculate_content_hash(text),
                    heading_path=list(section.heading_path),
                    created=created,
                    modified=modified,
                )
            )
    return chunks


def _split_by_headings(content: str) -> list[_Section]:
    sections: list[_Section] = []
    stack: list[tuple[int, str]] = []
    current = _Section(heading_path=[])
    in_fence = False

    for line in content.split("\n"):
        if _FENCE_RE.match(line):
            in_fence = not in_fence
            current.lines.append(line)
            continue

        match = None if in_fence else _HEADING_RE.match(line)
        if match is None:
            current.lines.append(line)
            continue

        if current.text:
            sections.append(current)

        level = len(match.group(1))
        while stack and stack[-1][0] >= level:
            stack.pop()
        stack.append((level, line.strip()))
        current = _Section(heading_path=[heading for _, heading in stack])

    if current.text:
        sections.append(current)
    # Heading-only content still yields one chunk.
    if not sections and content.strip():
        sections.append(_Section(heading_path=[], lines=[content.strip()]))
    return sections


def _split_into_windows(text: str, size: int, overlap: int) -> list[str]:
    if not text:
        return []

    words = _WHITESPACE_RE.split(text)
    if len(words) <= size:
        return [text]

    windows: list[str] = []
    start = 0
    while start < len(words):
        end = min(start + size, len(words))
        windows.append(" ".join(words[start:end]))
        if end >= len(words):
            break
        start = end - overlap
    return windows
