"""Abstract repository interfaces (ports) — define the contract, not the implementation."""

from abc import ABC, abstractmethod

from app.domain.entities import Article, ArticleMetadata


class ArticleRepository(ABC):
    """Port for article persistence — implemented in the infrastructure layer."""

    @abstractmethod
    async def get_by_id(self, article_id: int) -> Article | None:
        """Retrieve a single article by its ID."""
        ...

    @abstractmethod
    async def get_by_slug(self, slug: str) -> Article | None:
        """Retrieve a single article by its slug."""
        ...

    @abstractmethod
    async def get_article_id(self, slug: str) -> int | None:
        """Resolve a slug to the article's numeric ID."""
        ...

    @abstractmethod
    async def list_articles(self) -> list[ArticleMetadata]:
        """List metadata of every article, most recently updated first."""
        ...

    @abstractmethod
    async def search_titles(
        self, query: str, folder: str | None = None, limit: int = 20
    ) -> list[str]:
        """Return slugs whose title contains ``query``, best match first.

        Exact title matches rank ahead of prefix matches, which rank ahead of
        substring matches.
        """
        ...

    @abstractmethod
    async def create(self, article: Article) -> Article:
        """Persist a new article and return it with the generated ID."""
        ...

    @abstractmethod
    async def update(self, article: Article) -> Article:
        """Update an existing article."""
        ...

    @abstractmethod
    async def delete(self, article_id: int) -> bool:
        """Delete an article. Returns True if deleted, False if not found."""
        ...
