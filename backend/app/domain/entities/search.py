"""Domain entities for semantic search results and index bookkeeping."""

from dataclasses import dataclass, field

from app.domain.entities.article import ArticleMetadata


@dataclass
class IndexedChunk:
    """A stored chunk joined with the metadata of the article that owns it."""

    chunk_id: str
    chunk_index: int
    heading_path: list[str]
    text: str
    article: ArticleMetadata


@dataclass
class ScoredChunk:
    """A stored chunk and its similarity to a query (higher is closer)."""

    chunk: IndexedChunk
    score: float


@dataclass
class SearchResult:
    """One article-level search hit, represented by its best chunk."""

    chunk: IndexedChunk
    score: float
    snippet: str

    @property
    def article_metadata(self) -> ArticleMetadata:
        return self.chunk.article


@dataclass
class IndexStats:
    """Coverage of the embedding index."""

    total_chunks: int
    total_articles: int
    indexed_articles: int

    @property
    def unindexed_articles(self) -> int:
        return max(self.total_articles - self.indexed_articles, 0)


@dataclass
class RebuildResult:
    """Outcome of a full index rebuild."""

    processed: int = 0
    failed: int = 0
    failed_slugs: list[str] = field(default_factory=list)


@dataclass
class IndexingResult:
    """Outcome of indexing the articles that had no embeddings yet."""

    indexed: int = 0
    failed: list[str] = field(default_factory=list)
