"""
Ingest Data Model

Pages, chunks and embedded content exchanged between data sources, the chunk
transform, the embedder and the stores.
"""

from dataclasses import dataclass, field, asdict, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class PageAction(Enum):
    """What happened to a page since the last ingest run"""
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"


@dataclass
class Page:
    """Raw page content fetched from a data source."""
    url: str
    title: Optional[str]
    body: str
    source_name: str
    format: str = "md"
    metadata: Dict[str, Any] = field(default_factory=dict)
    action: PageAction = PageAction.CREATED
    updated: datetime = field(default_factory=utc_now)

    @property
    def tags(self) -> List[str]:
        return list(self.metadata.get("tags") or [])

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["action"] = self.action.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Page":
        return cls(
            url=data["url"],
            title=data.get("title"),
            body=data.get("body", ""),
            source_name=data["source_name"],
            format=data.get("format", "md"),
            metadata=dict(data.get("metadata") or {}),
            action=PageAction(data.get("action", PageAction.CREATED.value)),
            updated=data.get("updated") or utc_now(),
        )


@dataclass
class Chunk:
    """A slice of a page's body, the unit that gets embedded."""
    url: str
    source_name: str
    text: str
    chunk_index: int = 0
    token_count: int = 0
    metadata: Dict[str, Any] = field(default_factory=dict)

    def with_text(self, text: str) -> "Chunk":
        return replace(self, text=text)


@dataclass
class EmbeddedContent:
    """A chunk together with its embedding vector."""
    url: str
    source_name: str
    text: str
    embedding: List[float]
    chunk_index: int = 0
    token_count: int = 0
    metadata: Dict[str, Any] = field(default_factory=dict)
    updated: datetime = field(default_factory=utc_now)

    @classmethod
    def from_chunk(cls, chunk: Chunk, embedding: List[float]) -> "EmbeddedContent":
        return cls(
            url=chunk.url,
            source_name=chunk.source_name,
            text=chunk.text,
            embedding=list(embedding),
            chunk_index=chunk.chunk_index,
            token_count=chunk.token_count,
            metadata=dict(chunk.metadata),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EmbeddedContent":
        return cls(
            url=data["url"],
            source_name=data["source_name"],
            text=data["text"],
            embedding=list(data["embedding"]),
            chunk_index=data.get("chunk_index", 0),
            token_count=data.get("token_count", 0),
            metadata=dict(data.get("metadata") or {}),
            updated=data.get("updated") or utc_now(),
        )
