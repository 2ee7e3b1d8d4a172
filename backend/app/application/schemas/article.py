"""Pydantic DTOs (Data Transfer Objects) for the Article feature."""

from datetime import datetime

from pydantic import BaseModel, Field


class ArticleCreate(BaseModel):
    """Schema for creating a new article."""

    slug: str = Field(..., min_length=1, max_length=255, pattern=r"^[a-z0-9][a-z0-9\-/]*$", examples=["getting-started"])
    title: str = Field(..., min_length=1, max_length=255, examples=["Getting Started"])
    content: str = Field(..., min_length=1, examples=["# Getting Started\n\nWelcome."])
    folder: str = Field("", max_length=255, examples=["guides/setup"])
    is_public: bool = False


class ArticleUpdate(BaseModel):
    """Schema for updating an existing article — all fields optional."""

    title: str | None = Field(None, min_length=1, max_length=255)
    content: str | None = Field(None, min_length=1)
    folder: str | None = Field(None, max_length=255)


class ArticleResponse(BaseModel):
    """Schema returned to the client."""

    id: int
    slug: str
    title: str
    content: str
    folder: str
    is_public: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
