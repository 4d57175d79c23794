"""Command-line interface for quickrag.

Commands:
- ingest: Load web pages or files, split them and index the chunks
- split: Show how a source would be split, without indexing
- search: Retrieve the chunks most relevant to a query
- ask: Answer a question from the indexed documents
- sources: List indexed sources
- prompts: List built-in prompts
- reset: Delete the index
- info: Show configuration
"""

import asyncio
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from quickrag.config.loader import get_default_config_path, load_config
from quickrag.config.schema import AppConfig, RetrieverConfig, SearchType, SplitterConfig
from quickrag.core.prompts import PROMPT_HUB, PromptError, list_prompts
from quickrag.core.retrieval import RetrievalError, Retriever
from quickrag.core.splitting import RecursiveCharacterTextSplitter
from quickrag.loaders import LoaderError, load_sources
from quickrag.observability.logging import configure_from_config, configure_logging, get_logger
from quickrag.pipelines.ingestion import IngestionError, IngestionPipeline
from quickrag.pipelines.query import QueryError, QueryPipeline
from quickrag.providers.base import ProviderError
from quickrag.service import create_components
from quickrag.storage.base import StorageError

app = typer.Typer(
    name="quickrag",
    help="Question answering over web pages and files with retrieval-augmented generation",
    add_completion=False,
)

console = Console()
logger = get_logger(__name__)

QUICKRAG_ERRORS = (
    LoaderError,
    ProviderError,
    StorageError,
    PromptError,
    RetrievalError,
    IngestionError,
    QueryError,
)

ConfigOption = typer.Option(None, "--config", "-c", help="Config file path")
ProfileOption = typer.Option(None, "--profile", "-p", help="Config profile to apply")


def _fail(message: str) -> None:
    console.print(f"[red]Error: {message}[/red]")
    raise typer.Exit(1)


def _with_splitter_overrides(
    config: AppConfig,
    chunk_size: Optional[int],
    chunk_overlap: Optional[int],
) -> AppConfig:
    updates = {}
    if chunk_size is not None:
        updates["chunk_size"] = chunk_size
    if chunk_overlap is not None:
        updates["chunk_overlap"] = chunk_overlap
    if updates:
        try:
            config.splitter = SplitterConfig(**{**config.splitter.model_dump(), **updates})
        except ValidationError as e:
            _fail(f"Invalid splitter settings: {e.errors()[0]['msg']}")
    return config


@app.command()
def ingest(
    sources: list[str] = typer.Argument(..., help="URLs, files or directories to index"),
    css_class: Optional[list[str]] = typer.Option(
        None, "--css-class", help="Only keep HTML elements with this class (repeatable)"
    ),
    recursive: bool = typer.Option(False, "--recursive", "-r", help="Recurse into directories"),
    chunk_size: Optional[int] = typer.Option(None, "--chunk-size", help="Maximum chunk length"),
    chunk_overlap: Optional[int] = typer.Option(None, "--chunk-overlap", help="Overlap between chunks"),
    force: bool = typer.Option(False, "--force", "-f", help="Re-index sources even if unchanged"),
    config_file: Optional[Path] = ConfigOption,
    profile: Optional[str] = ProfileOption,
):
    """Index web pages and files."""
    asyncio.run(_ingest_async(sources, css_class, recursive, chunk_size, chunk_overlap, force, config_file, profile))


async def _ingest_async(
    sources: list[str],
    css_class: Optional[list[str]],
    recursive: bool,
    chunk_size: Optional[int],
    chunk_overlap: Optional[int],
    force: bool,
    config_file: Optional[Path],
    profile: Optional[str],
):
    config = _with_splitter_overrides(_load_config(config_file, profile), chunk_size, chunk_overlap)
    if css_class:
        config.loader.css_classes = list(css_class)

    try:
        components = await create_components(config, with_llm=False)
    except QUICKRAG_ERRORS as e:
        _fail(e.message)

    try:
        pipeline = IngestionPipeline(config, components.embedding_provider, components.vector_store)
        with Progress(SpinnerColumn(), TextColumn("{task.description}"), console=console, transient=True) as progress:
            progress.add_task(f"Indexing {len(sources)} source(s)...", total=None)
            report = await pipeline.ingest_sources(sources, force=force, recursive=recursive)
    except QUICKRAG_ERRORS as e:
        _fail(e.message)
    finally:
        await components.close()

    for result in report.results:
        if result.updated:
            label = {"content_changed": "Updated", "forced": "Re-indexed"}.get(result.reason, "Indexed")
            console.print(f"  [green]✓[/green] {label}: {result.source} ({result.chunk_count} chunks)")
        elif result.reason == "content_unchanged":
            console.print(f"  [dim]→[/dim] Skipped (content unchanged): {result.source}")
        else:
            console.print(f"  [yellow]⚠[/yellow] Skipped (no text): {result.source}")
    for source, message in report.failures.items():
        console.print(f"  [red]✗[/red] {source}: {message}")

    console.print()
    console.print(
        f"[green]Indexed {report.documents_updated} document(s), {report.chunks_indexed} chunk(s)[/green]"
    )
    if report.failures:
        console.print(f"[yellow]Errors: {len(report.failures)} source(s)[/yellow]")
        raise typer.Exit(1)


@app.command()
def split(
    source: str = typer.Argument(..., help="URL or file to split"),
    chunk_size: Optional[int] = typer.Option(None, "--chunk-size", help="Maximum chunk length"),
    chunk_overlap: Optional[int] = typer.Option(None, "--chunk-overlap", help="Overlap between chunks"),
    css_class: Optional[list[str]] = typer.Option(None, "--css-class", help="Only keep HTML elements with this class"),
    as_json: bool = typer.Option(False, "--json", help="Print chunks as JSON"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Print full chunk text"),
    config_file: Optional[Path] = ConfigOption,
    profile: Optional[str] = ProfileOption,
):
    """Show how a source is split into chunks."""
    asyncio.run(_split_async(source, chunk_size, chunk_overlap, css_class, as_json, verbose, config_file, profile))


async def _split_async(
    source: str,
    chunk_size: Optional[int],
    chunk_overlap: Optional[int],
    css_class: Optional[list[str]],
    as_json: bool,
    verbose: bool,
    config_file: Optional[Path],
    profile: Optional[str],
):
    config = _with_splitter_overrides(_load_config(config_file, profile), chunk_size, chunk_overlap)
    if css_class:
        config.loader.css_classes = list(css_class)

    try:
        documents = await load_sources([source], config.loader)
    except LoaderError as e:
        _fail(e.message)

    if not documents:
        console.print("[yellow]No text found, no chunks created[/yellow]")
        return

    splitter = RecursiveCharacterTextSplitter.from_config(config.splitter)
    chunks = splitter.split_documents(documents)

    if as_json:
        console.print_json(
            data=[
                {
                    "chunk_index": c.chunk_index,
                    "start_index": c.start_char,
                    "length": len(c.content),
                    "content": c.content,
                }
                for c in chunks
            ]
        )
        return

    document = documents[0]
    console.print(f"[cyan]{document.title or document.source}[/cyan]")
    console.print(f"Characters: {len(document.content)}  Chunks: {len(chunks)}\n")

    table = Table(title="Chunks")
    table.add_column("#", style="cyan", justify="right")
    table.add_column("Start", justify="right")
    table.add_column("Length", justify="right")
    table.add_column("Content")
    for c in chunks:
        text = c.content if verbose else c.content[:80].replace("\n", " ") + ("..." if len(c.content) > 80 else "")
        table.add_row(str(c.chunk_index), str(c.start_char), str(len(c.content)), text)
    console.print(table)


@app.command()
def search(
    query: str = typer.Argument(..., help="Search query"),
    k: Optional[int] = typer.Option(None, "-k", min=1, help="Number of results"),
    config_file: Optional[Path] = ConfigOption,
    profile: Optional[str] = ProfileOption,
):
    """Retrieve the chunks most relevant to a query."""
    asyncio.run(_search_async(query, k, config_file, profile))


async def _search_async(query: str, k: Optional[int], config_file: Optional[Path], profile: Optional[str]):
    config = _load_config(config_file, profile)

    try:
        components = await create_components(config, with_llm=False)
    except QUICKRAG_ERRORS as e:
        _fail(e.message)

    try:
        retriever = Retriever(components.embedding_provider, components.vector_store, config.retriever)
        results = await retriever.retrieve(query, k=k)
    except QUICKRAG_ERRORS as e:
        _fail(e.message)
    finally:
        await components.close()

    if not results:
        console.print("[yellow]No results found[/yellow]")
        return

    console.print(f"\n[green]Found {len(results)} result(s):[/green]\n")
    for i, result in enumerate(results, 1):
        console.print(f"[bold cyan]{i}. Score: {result.score:.4f}[/bold cyan]  {result.chunk.source}")
        console.print(f"   {result.chunk.content[:200]}...", markup=False)
        console.print()


@app.command()
def ask(
    question: str = typer.Argument(..., help="Question to answer"),
    k: Optional[int] = typer.Option(None, "-k", min=1, help="Number of chunks to retrieve"),
    search_type: Optional[SearchType] = typer.Option(None, "--search-type", help="Retrieval strategy"),
    prompt: Optional[str] = typer.Option(None, "--prompt", help="Prompt hub name"),
    stream: bool = typer.Option(True, "--stream/--no-stream", help="Stream the answer as it is generated"),
    show_sources: bool = typer.Option(False, "--sources", help="Show the retrieved sources"),
    config_file: Optional[Path] = ConfigOption,
    profile: Optional[str] = ProfileOption,
):
    """Answer a question from the indexed documents."""
    asyncio.run(_ask_async(question, k, search_type, prompt, stream, show_sources, config_file, profile))


async def _ask_async(
    question: str,
    k: Optional[int],
    search_type: Optional[SearchType],
    prompt: Optional[str],
    stream: bool,
    show_sources: bool,
    config_file: Optional[Path],
    profile: Optional[str],
):
    config = _load_config(config_file, profile)
    if search_type is not None:
        try:
            config.retriever = RetrieverConfig(**{**config.retriever.model_dump(), "search_type": search_type})
        except ValidationError as e:
            _fail(f"Invalid retriever settings: {e.errors()[0]['msg']}")
    if prompt is not None:
        config.prompt.name = prompt
        config.prompt.template_path = None

    try:
        components = await create_components(config)
    except QUICKRAG_ERRORS as e:
        _fail(e.message)

    try:
        pipeline = QueryPipeline(
            config,
            components.embedding_provider,
            components.llm_provider,
            components.vector_store,
        )
        if stream:
            async for delta in pipeline.stream(question, k=k):
                console.print(delta, end="", markup=False, highlight=False, soft_wrap=True)
            console.print()
            sources = await pipeline.search(question, k=k) if show_sources else []
        else:
            result = await pipeline.answer(question, k=k)
            console.print(result.answer, markup=False, highlight=False)
            sources = result.sources
    except QUICKRAG_ERRORS as e:
        _fail(e.message)
    finally:
        await components.close()

    if show_sources and sources:
        console.print("\n[cyan]Sources:[/cyan]")
        for i, source in enumerate(sources, 1):
            title = source.chunk.metadata.get("title") or source.chunk.source
            console.print(f"  {i}. {title} ({source.chunk.source}) score={source.score:.3f}", markup=False)


@app.command()
def sources(
    config_file: Optional[Path] = ConfigOption,
    profile: Optional[str] = ProfileOption,
):
    """List indexed sources and their chunk counts."""
    asyncio.run(_sources_async(config_file, profile))


async def _sources_async(config_file: Optional[Path], profile: Optional[str]):
    config = _load_config(config_file, profile)
    try:
        components = await create_components(config, with_llm=False)
    except QUICKRAG_ERRORS as e:
        _fail(e.message)

    try:
        rows = await components.vector_store.list_sources()
    except StorageError as e:
        _fail(e.message)
    finally:
        await components.close()

    if not rows:
        console.print("[yellow]No sources indexed[/yellow]")
        return

    table = Table(title="Indexed Sources")
    table.add_column("Source", style="cyan")
    table.add_column("Title")
    table.add_column("Chunks", justify="right", style="green")
    for row in rows:
        table.add_row(row["source"], row.get("title") or "", str(row["chunk_count"]))
    console.print(table)


@app.command()
def prompts(
    config_file: Optional[Path] = ConfigOption,
    profile: Optional[str] = ProfileOption,
):
    """List built-in prompts; the configured one is marked with *."""
    config = _load_config(config_file, profile)
    active = None if config.prompt.template_path else config.prompt.name

    table = Table(title="Prompt Hub")
    table.add_column("Name", style="cyan")
    table.add_column("Template")
    for name in list_prompts():
        table.add_row(f"{name} *" if name == active else name, PROMPT_HUB[name])
    console.print(table)
    if config.prompt.template_path:
        console.print(f"Configured template file: {config.prompt.template_path}", markup=False)


@app.command()
def reset(
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
    config_file: Optional[Path] = ConfigOption,
    profile: Optional[str] = ProfileOption,
):
    """Delete every indexed chunk."""
    if not yes and not typer.confirm("Delete all indexed chunks?"):
        console.print("[yellow]Aborted[/yellow]")
        raise typer.Exit(0)
    asyncio.run(_reset_async(config_file, profile))


async def _reset_async(config_file: Optional[Path], profile: Optional[str]):
    config = _load_config(config_file, profile)
    try:
        components = await create_components(config, with_llm=False)
    except QUICKRAG_ERRORS as e:
        _fail(e.message)

    try:
        deleted = await components.vector_store.count()
        await components.vector_store.reset()
    except StorageError as e:
        _fail(e.message)
    finally:
        await components.close()

    console.print(f"[green]Deleted {deleted} chunk(s)[/green]")


@app.command()
def info(
    config_file: Optional[Path] = ConfigOption,
    profile: Optional[str] = ProfileOption,
):
    """Show configuration."""
    config = _load_config(config_file, profile)

    table = Table(title="quickrag Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Data Directory", str(config.data_dir))
    table.add_row("Log Level", config.logging.level.value)
    table.add_row("Embedding Provider", config.embedding.provider.value)
    table.add_row("Embedding Model", config.embedding.model_name)
    table.add_row("LLM Provider", config.llm.provider.value)
    table.add_row("LLM Model", config.llm.model_name)
    table.add_row("Vector Store", config.vector_store.store_type.value)
    table.add_row("Collection", config.vector_store.collection_name)
    table.add_row("Persist Directory", str(config.vector_store.persist_directory))
    table.add_row("Chunk Size / Overlap", f"{config.splitter.chunk_size} / {config.splitter.chunk_overlap}")
    table.add_row("Search Type", config.retriever.search_type.value)
    table.add_row("k", str(config.retriever.k))
    table.add_row("Prompt", str(config.prompt.template_path or config.prompt.name))

    console.print(table)


def _load_config(config_file: Optional[Path], profile: Optional[str] = None) -> AppConfig:
    """Load configuration and setup logging."""
    # Config loading logs before the configured level is known.
    configure_logging(level="WARNING")
    if config_file is None:
        config_file = get_default_config_path()

    try:
        config = load_config(config_file, profile=profile, env_file=Path.cwd() / ".env")
    except (ValidationError, ValueError) as e:
        _fail(f"Invalid configuration: {e}")
    configure_from_config(config.logging)
    return config


if __name__ == "__main__":
    app()
