"""Pydantic models for the persisted local index.

Field aliases keep the camelCase keys of ``data/local-index.json`` so an
artifact written by an earlier build stays readable.
"""
from datetime import datetime
from typing import List

from pydantic import BaseModel, ConfigDict, Field


class RecordMetadata(BaseModel):
    """What a fragment returns to the generation service."""

    model_config = ConfigDict(frozen=True)

    text: str
    source: str
    chunk: int = Field(ge=0)


class IndexRecord(BaseModel):
    """One retrievable fragment."""

    model_config = ConfigDict(frozen=True)

    id: str
    embedding: List[float]
    metadata: RecordMetadata


class LocalIndex(BaseModel):
    """The full corpus plus build metadata, created by one ingestion run."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    embedding_model: str = Field(alias="embeddingModel")
    dimension: int = Field(ge=0)
    created_at: datetime = Field(alias="createdAt")
    items: List[IndexRecord]
