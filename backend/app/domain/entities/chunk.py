"""Domain entities for article chunks — text fragments with vector embeddings."""

from dataclasses import dataclass, field
from datetime import datetime, timezone


@dataclass
class Chunk:
    """A contiguous slice of one article, the unit that gets embedded.

    ``id`` is scoped to the article (``"{slug}#{index}"``) so it stays stable
    across re-chunking while the content is unchanged. ``heading_path`` lists
    the ancestor headings, outermost first.
    """

    id: str
    slug: str
    title: str
    chunk_index: int
    text: str
    content_hash: str
    heading_path: list[str] = field(default_factory=list)
    created: datetime | None = None
    modified: datetime | None = None


@dataclass
class Embedding:
    """A chunk of an article together with its vector."""

    article_id: int
    chunk_id: str
    chunk_index: int
    text: str
    content_hash: str
    vector: list[float]
    heading_path: list[str] = field(default_factory=list)
    id: int | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
