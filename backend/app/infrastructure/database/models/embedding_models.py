"""SQLAlchemy ORM model for article chunk embeddings.

Vectors are always stored as a JSON array in ``vector_data`` so the in-process
similarity fallback works on any database. When pgvector is available a
native ``vector`` column is added next to it at startup (see
``app.infrastructure.search.vector_support``); it is not mapped here because
its presence depends on the server.
"""

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)

from app.infrastructure.database.base import Base, JSONDocument


class EmbeddingModel(Base):
    """One chunk of an article with its embedding vector."""

    __tablename__ = "embeddings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    article_id = Column(
        Integer,
        ForeignKey("articles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    chunk_id = Column(String(255), nullable=False)
    chunk_index = Column(Integer, nullable=False)
    heading_path = Column(JSONDocument, nullable=False, default=list)
    text_content = Column(Text, nullable=False)
    content_hash = Column(String(64), nullable=False)
    vector_data = Column(JSONDocument, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("article_id", "chunk_index", name="uq_embedding_chunk"),
    )
