"""Documentation commands: chunk, docs."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.table import Table

from querylens.ai.models import DatabaseType
from querylens.cli.common import SQL_HELP, console, fail, read_sql, read_text
from querylens.exceptions import QueryLensError
from querylens.retrieval.chunker import ChunkStrategy, DocumentChunker
from querylens.retrieval.docs import DocumentationRetriever


def register(app: typer.Typer) -> None:
    """Register documentation commands on the given Typer app."""

    @app.command()
    def chunk(
        doc_file: Annotated[
            Path,
            typer.Argument(help="Text or markdown file to chunk ('-' for stdin)"),
        ],
        strategy: Annotated[
            ChunkStrategy,
            typer.Option("--strategy", "-s", help="Chunking strategy"),
        ] = ChunkStrategy.PARAGRAPH,
        smart: Annotated[
            bool,
            typer.Option("--smart", help="Pick the strategy from the document's structure"),
        ] = False,
        max_size: Annotated[
            Optional[int],
            typer.Option("--max-size", help="Maximum chunk size in characters"),
        ] = None,
        min_size: Annotated[
            Optional[int],
            typer.Option("--min-size", help="Minimum chunk size in characters"),
        ] = None,
        overlap: Annotated[
            Optional[int],
            typer.Option("--overlap", help="Overlap between fixed-size chunks"),
        ] = None,
        title: Annotated[
            Optional[str],
            typer.Option("--title", "-t", help="Document title (defaults to the file name)"),
        ] = None,
        json_output: Annotated[
            bool,
            typer.Option("--json", "-j", help="Output chunks as JSON"),
        ] = False,
    ) -> None:
        """
        Split a document into retrieval-sized chunks.

        Examples:

            $ querylens chunk innodb.md --smart
            $ querylens chunk notes.txt --strategy fixed --max-size 500 --overlap 50
        """
        text = read_text(doc_file)
        doc_title = title or (doc_file.stem if str(doc_file) != "-" else "stdin")
        options = {
            "strategy": strategy,
            "max_chunk_size": max_size,
            "min_chunk_size": min_size,
            "overlap": overlap,
        }
        options = {k: v for k, v in options.items() if v is not None}

        chunker = DocumentChunker()
        try:
            if smart:
                chunks = chunker.smart_chunk(text, doc_title, options)
            else:
                chunks = chunker.chunk(text, doc_title, options)
        except QueryLensError as e:
            fail(e)

        if json_output:
            console.print_json(json.dumps([c.to_dict() for c in chunks]))
            return

        if not chunks:
            console.print("[yellow]No chunks produced.[/yellow]")
            return

        table = Table(title=f"{len(chunks)} chunk(s) from {doc_title}")
        table.add_column("#", justify="right")
        table.add_column("Title")
        table.add_column("Span", justify="right")
        table.add_column("Preview")
        for c in chunks:
            meta = c.metadata
            preview = c.text[:60].replace("\n", " ")
            table.add_row(
                str(meta.chunk_index),
                meta.title,
                f"{meta.start_char}-{meta.end_char}",
                preview + ("..." if len(c.text) > 60 else ""),
            )
        console.print(table)

    @app.command()
    def docs(
        sql: Annotated[str, typer.Argument(help=SQL_HELP)],
        db_type: Annotated[
            DatabaseType,
            typer.Option("--db-type", "-d", help="Documentation corpus to search"),
        ] = DatabaseType.MYSQL,
        max_docs: Annotated[
            int,
            typer.Option("--max-docs", "-n", help="Maximum documents to return"),
        ] = 3,
        docs_dir: Annotated[
            Optional[Path],
            typer.Option("--docs-dir", help="Directory holding <flavour>-docs.json files"),
        ] = None,
        json_output: Annotated[
            bool,
            typer.Option("--json", "-j", help="Output documents as JSON"),
        ] = False,
    ) -> None:
        """Show the reference documentation most relevant to a query."""
        try:
            retriever = DocumentationRetriever.load(docs_dir)
        except QueryLensError as e:
            fail(e)

        found = retriever.retrieve(read_sql(sql), db_type, max_docs)

        if json_output:
            console.print_json(json.dumps([doc.model_dump(mode="json") for doc in found]))
            return

        if not found:
            console.print("[dim]No relevant documentation found.[/dim]")
            return

        for doc in found:
            console.print(f"[bold]{doc.title}[/bold] [dim]{doc.source}[/dim]")
            console.print(f"   {doc.content}\n")
