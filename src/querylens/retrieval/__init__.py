"""
Documentation chunking and retrieval for grounding AI prompts.
"""

from querylens.ai.models import DatabaseType
from querylens.retrieval.chunker import (
    ChunkMetadata,
    ChunkStrategy,
    ChunkingOptions,
    DocumentChunk,
    DocumentChunker,
)
from querylens.retrieval.docs import DocumentationRetriever

__all__ = [
    "ChunkMetadata",
    "ChunkStrategy",
    "ChunkingOptions",
    "DatabaseType",
    "DocumentChunk",
    "DocumentChunker",
    "DocumentationRetriever",
]
