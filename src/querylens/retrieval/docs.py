"""
Keyword-based documentation retrieval.

Grounds AI prompts in reference documentation. Each database flavour
has its own corpus (mysql-docs.json, mariadb-docs.json) and a lookup
only ever searches the corpus for the requested flavour.

Scoring, for every (query keyword, document keyword) pair:

    exact match          10
    substring either way  5
    same plural stem      3

divided by sqrt(number of document keywords) so focused documents beat
keyword-stuffed ones. Zero-score documents are never returned.
"""

from __future__ import annotations

import json
import logging
import math
import re
from collections import Counter
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from querylens.ai.models import DatabaseType, RAGDocument
from querylens.exceptions import ConfigurationError
from querylens.retrieval.chunker import ChunkingOptions, DocumentChunker

logger = logging.getLogger(__name__)

DEFAULT_DOCS_DIR = Path(__file__).resolve().parent.parent / "data"

EXACT_SCORE = 10
PARTIAL_SCORE = 5
STEM_SCORE = 3

NOISE_WORDS = frozenset({
    "select", "from", "where", "and", "or", "not", "in", "is", "as",
    "on", "the", "a", "an", "to", "for", "of", "with", "by", "at",
    "be", "this", "that", "it", "are", "was", "were", "been", "have",
    "has", "had", "do", "does", "did", "will", "would", "should", "could",
    "table", "column", "row", "database", "query", "sql",
})

_WORD = re.compile(r"\b\w+\b")
_INDEX_KEYWORDS = 10


def extract_keywords(text: str) -> list[str]:
    """Lower-cased words longer than 2 chars, minus SQL noise, deduplicated."""
    seen: dict[str, None] = {}
    for word in _WORD.findall((text or "").lower()):
        if len(word) > 2 and word not in NOISE_WORDS:
            seen.setdefault(word, None)
    return list(seen)


def relevance(doc_keywords: Iterable[str], query_keywords: Iterable[str]) -> float:
    """Relevance of a document's keywords to the query keywords."""
    doc_kws = list(doc_keywords)
    if not doc_kws:
        return 0.0
    score = 0
    for query_kw in query_keywords:
        for doc_kw in doc_kws:
            if query_kw == doc_kw:
                score += EXACT_SCORE
            elif query_kw in doc_kw or doc_kw in query_kw:
                score += PARTIAL_SCORE
            elif _stem(query_kw) == _stem(doc_kw):
                score += STEM_SCORE
    return score / math.sqrt(len(doc_kws))


def _stem(word: str) -> str:
    return word[:-1] if word.endswith("s") else word


class DocumentationRetriever:
    """
    In-memory documentation corpus with keyword retrieval.

    Example:
        retriever = DocumentationRetriever.load()
        docs = retriever.retrieve("SELECT * FROM orders ORDER BY created_at", "mysql")
        prompt = retriever.build_prompt_with_context(sql, docs)
    """

    def __init__(self) -> None:
        self._corpora: dict[DatabaseType, list[RAGDocument]] = {
            DatabaseType.MYSQL: [],
            DatabaseType.MARIADB: [],
        }
        self._chunker = DocumentChunker()

    @classmethod
    def load(cls, docs_dir: str | Path | None = None) -> "DocumentationRetriever":
        """
        Load ``mysql-docs.json`` and ``mariadb-docs.json`` from a directory.

        Missing files are skipped. Files must look like
        ``{"documents": [{"id": ..., "title": ..., "keywords": [...], ...}]}``.

        Raises:
            ConfigurationError: If a file exists but is not valid.
        """
        directory = Path(docs_dir) if docs_dir is not None else DEFAULT_DOCS_DIR
        retriever = cls()
        for db_type in DatabaseType:
            path = directory / db_type.docs_filename
            if not path.exists():
                logger.info("No %s documentation at %s", db_type.value, path)
                continue
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError) as e:
                raise ConfigurationError(
                    f"Failed to read documentation file {path}: {e}",
                    config_key="docs_dir",
                ) from e
            retriever.add_documents(db_type, data.get("documents", []))
            logger.info(
                "Loaded %d %s documentation snippets",
                len(retriever._corpora[db_type]),
                db_type.value,
            )
        return retriever

    @classmethod
    def from_documents(
        cls,
        mysql_docs: Iterable[RAGDocument | dict[str, Any]] = (),
        mariadb_docs: Iterable[RAGDocument | dict[str, Any]] = (),
    ) -> "DocumentationRetriever":
        """Build a retriever from in-memory documents."""
        retriever = cls()
        retriever.add_documents(DatabaseType.MYSQL, mysql_docs)
        retriever.add_documents(DatabaseType.MARIADB, mariadb_docs)
        return retriever

    def add_documents(
        self,
        db_type: str | DatabaseType,
        documents: Iterable[RAGDocument | dict[str, Any]],
    ) -> None:
        corpus = self._corpora[DatabaseType.parse(db_type)]
        for raw in documents:
            try:
                doc = raw if isinstance(raw, RAGDocument) else RAGDocument.model_validate(raw)
            except ValidationError as e:
                raise ConfigurationError(f"Invalid documentation entry: {e}") from e
            corpus.append(doc)

    def documents(self, db_type: str | DatabaseType | None = None) -> list[RAGDocument]:
        """Documents for one flavour, or all of them."""
        if db_type is None:
            return [doc for corpus in self._corpora.values() for doc in corpus]
        return list(self._corpora[DatabaseType.parse(db_type)])

    def retrieve(
        self,
        query: str,
        db_type: str | DatabaseType = "mysql",
        max_docs: int = 3,
    ) -> list[RAGDocument]:
        """
        Most relevant documents for ``query`` from the ``db_type`` corpus.

        Raises:
            ConfigurationError: If db_type is not mysql or mariadb.
        """
        corpus = self._corpora[DatabaseType.parse(db_type)]
        keywords = extract_keywords(query)
        if not keywords or max_docs <= 0:
            return []

        scored = [(relevance(doc.keywords, keywords), doc) for doc in corpus]
        relevant = sorted(
            (item for item in scored if item[0] > 0),
            key=lambda item: item[0],
            reverse=True,
        )[:max_docs]

        logger.debug(
            "Retrieved %d relevant docs (top score: %.2f)",
            len(relevant),
            relevant[0][0] if relevant else 0.0,
        )
        return [doc for _, doc in relevant]

    def build_prompt_with_context(self, query: str, docs: list[RAGDocument]) -> str:
        """Prefix ``query`` with the reference documentation."""
        if not docs:
            return query

        parts = ["Reference Documentation:\n\n"]
        for doc in docs:
            parts.append(f"**{doc.title}** ({doc.source})\n{doc.content}\n\n")
        parts.append("---\n\n")
        parts.append(f"User Query: {query}\n\n")
        parts.append(
            "Based on the reference documentation above, provide optimization "
            "suggestions. Include citations to the documentation in your "
            "response when applicable.\n"
        )
        return "".join(parts)

    def stats(self) -> dict[str, float]:
        """Corpus sizes and average keywords per document."""
        all_docs = self.documents()
        total_keywords = sum(len(doc.keywords) for doc in all_docs)
        return {
            "total": len(all_docs),
            "mysql": len(self._corpora[DatabaseType.MYSQL]),
            "mariadb": len(self._corpora[DatabaseType.MARIADB]),
            "avgKeywordsPerDoc": round(total_keywords / len(all_docs), 1) if all_docs else 0,
        }

    def search_by_keyword(self, keyword: str) -> list[RAGDocument]:
        """Documents (any flavour) with a keyword overlapping ``keyword``."""
        normalized = keyword.lower()
        return [
            doc
            for doc in self.documents()
            if any(normalized in kw or kw in normalized for kw in doc.keywords)
        ]

    def index_text(
        self,
        title: str,
        text: str,
        db_type: str | DatabaseType = "mysql",
        source: str = "",
        version: str = "",
        options: ChunkingOptions | dict[str, Any] | None = None,
    ) -> list[RAGDocument]:
        """
        Chunk long documentation and add each chunk as a document.

        Keywords are the most frequent non-noise words of each chunk.
        Returns the documents added.
        """
        flavour = DatabaseType.parse(db_type)
        chunks = self._chunker.smart_chunk(text, title, options)
        slug = re.sub(r"[^a-z0-9]+", "-", title.lower()).strip("-") or "doc"

        added = []
        for chunk in chunks:
            words = [
                w for w in _WORD.findall(chunk.text.lower())
                if len(w) > 2 and w not in NOISE_WORDS
            ]
            keywords = [w for w, _ in Counter(words).most_common(_INDEX_KEYWORDS)]
            added.append(
                RAGDocument(
                    id=f"{flavour.value}-{slug}-{chunk.metadata.chunk_index}",
                    title=chunk.metadata.title,
                    keywords=tuple(keywords),
                    content=chunk.text,
                    source=source,
                    version=version,
                )
            )
        self._corpora[flavour].extend(added)
        logger.info("Indexed %d chunks of %r into %s corpus", len(added), title, flavour.value)
        return added
