"""Domain entities — pure Python business objects, no framework dependencies."""

from dataclasses import dataclass, field
from datetime import datetime, timezone


@dataclass
class Article:
    """Core domain entity representing a markdown article."""

    slug: str
    title: str
    content: str
    folder: str = ""
    is_public: bool = False
    id: int | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def update(
        self,
        title: str | None = None,
        content: str | None = None,
        folder: str | None = None,
    ) -> None:
        """Update article fields and refresh the updated_at timestamp."""
        if title is not None:
            self.title = title
        if content is not None:
            self.content = content
        if folder is not None:
            self.folder = folder
        self.updated_at = datetime.now(timezone.utc)


@dataclass
class ArticleMetadata:
    """Lightweight article description attached to search results and listings."""

    slug: str
    title: str
    folder: str
    created_at: datetime
    updated_at: datetime
    is_public: bool = False
