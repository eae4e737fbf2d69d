"""
Document chunking strategies.

Splits documentation text into bounded chunks for keyword retrieval and
prompt grounding. Chunks are slices of the original text: ``start_char``
and ``end_char`` are real offsets, so ``text[start_char:end_char]`` is
the chunk (modulo surrounding whitespace trimmed by the fixed strategy).

Strategies:
- fixed: sliding window of max_chunk_size, step max_chunk_size - overlap
- sentence: whole sentences packed up to max_chunk_size
- paragraph: blank-line paragraphs packed up to max_chunk_size
  (oversized paragraphs fall back to their sentences)
- markdown: one section per header, header folded into the chunk title

Only the fixed strategy overlaps. No strategy emits a chunk shorter than
min_chunk_size, and only a single oversized sentence can exceed
max_chunk_size. A fragment that stays below min_chunk_size because the
next piece would not fit is dropped.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterator, Mapping
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from querylens.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_OVERLAP = 200

_SENTENCE_END = re.compile(r"[.!?]+(?=\s|$)")
_PARAGRAPH_BREAK = re.compile(r"\n[ \t]*\n\s*")
_MARKDOWN_HEADER = re.compile(r"^(#{1,6})[ \t]+(.+?)[ \t#]*$", re.MULTILINE)

Span = tuple[int, int]


class ChunkStrategy(str, Enum):
    """How a document is split."""

    FIXED = "fixed"
    SENTENCE = "sentence"
    PARAGRAPH = "paragraph"
    MARKDOWN = "markdown"


class ChunkingOptions(BaseModel):
    """
    Chunking configuration.

    Accepts snake_case names or the camelCase aliases used in serialized
    settings (``maxChunkSize``, ``minChunkSize``). When ``overlap`` is not
    given it defaults to 200, capped at a fifth of max_chunk_size so small
    fixed windows stay valid.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    strategy: ChunkStrategy = ChunkStrategy.PARAGRAPH
    max_chunk_size: int = Field(default=1000, alias="maxChunkSize")
    min_chunk_size: int = Field(default=100, alias="minChunkSize")
    overlap: int = Field(default=DEFAULT_OVERLAP)

    @model_validator(mode="before")
    @classmethod
    def _default_overlap(cls, data: Any) -> Any:
        if not isinstance(data, Mapping) or data.get("overlap") is not None:
            return data
        size = data.get("max_chunk_size", data.get("maxChunkSize"))
        if isinstance(size, int) and size > 0:
            return {**data, "overlap": min(DEFAULT_OVERLAP, size // 5)}
        return data

    @model_validator(mode="after")
    def _check_bounds(self) -> "ChunkingOptions":
        if self.max_chunk_size <= 0:
            raise ValueError("max_chunk_size must be positive")
        if self.min_chunk_size < 0:
            raise ValueError("min_chunk_size must not be negative")
        if self.min_chunk_size > self.max_chunk_size:
            raise ValueError("min_chunk_size must not exceed max_chunk_size")
        if self.overlap < 0:
            raise ValueError("overlap must not be negative")
        if self.strategy == ChunkStrategy.FIXED and self.overlap >= self.max_chunk_size:
            raise ValueError("overlap must be smaller than max_chunk_size")
        return self


class ChunkMetadata(BaseModel):
    """Position of a chunk within its source document."""

    model_config = ConfigDict(frozen=True)

    title: str
    chunk_index: int = Field(ge=0)
    total_chunks: int = Field(ge=1)
    start_char: int = Field(ge=0)
    end_char: int
    header: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "title": self.title,
            "chunkIndex": self.chunk_index,
            "totalChunks": self.total_chunks,
            "startChar": self.start_char,
            "endChar": self.end_char,
        }
        if self.header is not None:
            data["header"] = self.header
        return data


class DocumentChunk(BaseModel):
    """A bounded slice of a document."""

    model_config = ConfigDict(frozen=True)

    text: str
    metadata: ChunkMetadata

    def to_dict(self) -> dict[str, Any]:
        return {"text": self.text, "metadata": self.metadata.to_dict()}


def resolve_options(
    options: ChunkingOptions | Mapping[str, Any] | None = None,
    **overrides: Any,
) -> ChunkingOptions:
    """
    Build validated options from an instance, a mapping or keywords.

    Raises:
        ConfigurationError: If any option is invalid.
    """
    if isinstance(options, ChunkingOptions):
        data: dict[str, Any] = options.model_dump()
    else:
        data = dict(options or {})
    data.update({k: v for k, v in overrides.items() if v is not None})
    try:
        return ChunkingOptions.model_validate(data)
    except ValidationError as e:
        first = e.errors()[0]
        key = ".".join(str(part) for part in first.get("loc", ())) or None
        raise ConfigurationError(
            f"Invalid chunking options: {first.get('msg', e)}",
            config_key=key,
        ) from e


class DocumentChunker:
    """
    Splits documents into chunks.

    Example:
        chunker = DocumentChunker()
        chunks = chunker.chunk(text, "InnoDB Buffer Pool", {"strategy": "sentence"})
        chunks = chunker.smart_chunk(markdown_text, "Optimizer Hints")
    """

    def chunk(
        self,
        text: str,
        title: str,
        options: ChunkingOptions | Mapping[str, Any] | None = None,
    ) -> list[DocumentChunk]:
        """
        Chunk ``text`` with the configured strategy.

        Raises:
            ConfigurationError: If options are invalid.
        """
        opts = resolve_options(options)
        if not text or not text.strip():
            return []

        if opts.strategy == ChunkStrategy.FIXED:
            sections = [(title, None, list(_fixed_spans(text, opts)))]
        elif opts.strategy == ChunkStrategy.SENTENCE:
            spans = _pack(list(_sentence_spans(text, 0, len(text))), opts)
            sections = [(title, None, spans)]
        elif opts.strategy == ChunkStrategy.MARKDOWN:
            sections = list(_markdown_sections(text, title, opts))
        else:
            sections = [(title, None, _pack(_paragraph_pieces(text, 0, len(text), opts), opts))]

        return _build_chunks(text, sections)

    def smart_chunk(
        self,
        text: str,
        title: str,
        options: ChunkingOptions | Mapping[str, Any] | None = None,
    ) -> list[DocumentChunk]:
        """
        Chunk with the strategy that best fits the text.

        Markdown if header lines exist, paragraph if the text has at least
        two blank-line-separated blocks, sentence otherwise.
        """
        strategy = detect_strategy(text or "")
        logger.debug("smart_chunk selected %s strategy for %r", strategy.value, title)
        return self.chunk(text, title, resolve_options(options, strategy=strategy))


def detect_strategy(text: str) -> ChunkStrategy:
    """Pick a chunking strategy from the text's structure."""
    if _MARKDOWN_HEADER.search(text):
        return ChunkStrategy.MARKDOWN
    blocks = [block for block in _PARAGRAPH_BREAK.split(text) if block.strip()]
    if len(blocks) >= 2:
        return ChunkStrategy.PARAGRAPH
    return ChunkStrategy.SENTENCE


# ── Span helpers ─────────────────────────────────────────────────────────


def _strip_span(text: str, start: int, end: int) -> Span | None:
    """Shrink [start, end) past surrounding whitespace; None if blank."""
    while start < end and text[start].isspace():
        start += 1
    while end > start and text[end - 1].isspace():
        end -= 1
    return (start, end) if end > start else None


def _fixed_spans(text: str, opts: ChunkingOptions) -> Iterator[Span]:
    step = opts.max_chunk_size - opts.overlap
    length = len(text)
    start = 0
    while start < length:
        end = min(start + opts.max_chunk_size, length)
        span = _strip_span(text, start, end)
        if span is not None and span[1] - span[0] >= opts.min_chunk_size:
            yield span
        if end >= length:
            break
        start += step


def _sentence_spans(text: str, start: int, end: int) -> Iterator[Span]:
    cursor = start
    for match in _SENTENCE_END.finditer(text, start, end):
        span = _strip_span(text, cursor, match.end())
        if span is not None:
            yield span
        cursor = match.end()
    tail = _strip_span(text, cursor, end)
    if tail is not None:
        yield tail


def _paragraph_spans(text: str, start: int, end: int) -> Iterator[Span]:
    cursor = start
    for match in _PARAGRAPH_BREAK.finditer(text, start, end):
        span = _strip_span(text, cursor, match.start())
        if span is not None:
            yield span
        cursor = match.end()
    tail = _strip_span(text, cursor, end)
    if tail is not None:
        yield tail


def _paragraph_pieces(text: str, start: int, end: int, opts: ChunkingOptions) -> list[Span]:
    """Paragraph spans, with oversized paragraphs broken into sentences."""
    pieces: list[Span] = []
    for span in _paragraph_spans(text, start, end):
        if span[1] - span[0] > opts.max_chunk_size:
            pieces.extend(_sentence_spans(text, span[0], span[1]))
        else:
            pieces.append(span)
    return pieces


def _pack(pieces: list[Span], opts: ChunkingOptions) -> list[Span]:
    """
    Greedily merge consecutive pieces into chunks of at most max_chunk_size.

    A piece is never split. When the next piece does not fit, the current
    chunk is emitted if it reaches min_chunk_size and dropped otherwise.
    """
    chunks: list[Span] = []
    current: Span | None = None

    for piece in pieces:
        if current is None:
            current = piece
        elif piece[1] - current[0] <= opts.max_chunk_size:
            current = (current[0], piece[1])
        else:
            _emit(chunks, current, opts)
            current = piece

    if current is not None:
        _emit(chunks, current, opts)

    return chunks


def _emit(chunks: list[Span], span: Span, opts: ChunkingOptions) -> None:
    if span[1] - span[0] >= opts.min_chunk_size:
        chunks.append(span)
    else:
        logger.debug("Dropping undersized fragment at %d-%d", span[0], span[1])


def _markdown_sections(
    text: str,
    title: str,
    opts: ChunkingOptions,
) -> Iterator[tuple[str, str | None, list[Span]]]:
    headers = list(_MARKDOWN_HEADER.finditer(text))
    bounds: list[tuple[int, int, str | None]] = []
    if not headers or headers[0].start() > 0:
        bounds.append((0, headers[0].start() if headers else len(text), None))
    for i, match in enumerate(headers):
        end = headers[i + 1].start() if i + 1 < len(headers) else len(text)
        bounds.append((match.start(), end, match.group(2).strip()))

    for start, end, header in bounds:
        span = _strip_span(text, start, end)
        if span is None:
            continue
        section_title = f"{title} - {header}" if header else title
        size = span[1] - span[0]
        if size > opts.max_chunk_size:
            spans = _pack(_paragraph_pieces(text, span[0], span[1], opts), opts)
        elif size >= opts.min_chunk_size:
            spans = [span]
        else:
            logger.debug("Dropping undersized markdown section %r", section_title)
            continue
        yield section_title, header, spans


def _build_chunks(
    text: str,
    sections: list[tuple[str, str | None, list[Span]]],
) -> list[DocumentChunk]:
    flat = [(t, h, span) for t, h, spans in sections for span in spans]
    total = len(flat)
    return [
        DocumentChunk(
            text=text[start:end],
            metadata=ChunkMetadata(
                title=chunk_title,
                chunk_index=index,
                total_chunks=total,
                start_char=start,
                end_char=end,
                header=header,
            ),
        )
        for index, (chunk_title, header, (start, end)) in enumerate(flat)
    ]
