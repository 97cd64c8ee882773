"""
CLI Main - Typer-based command-line interface.

Usage:
    scout init
    scout import directory.json
    scout index
    scout search "AI developers in Berlin"
    scout projects --sort featured
    scout serve
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

import typer
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from scout.config import ScoutError

if TYPE_CHECKING:
    from scout.adapters import EmbeddingClient, LLMService, RerankClient, SQLiteRepository
    from scout.config import Settings
    from scout.domains.search import HybridSearchEngine

app = typer.Typer(
    name="scout",
    help="Scout - Hybrid search for people and projects",
    add_completion=False,
)
console = Console()

ENTITY_TYPES = ("profile", "project")


@dataclass
class _Services:
    """Objects opened for one command and closed afterwards."""

    repository: SQLiteRepository
    embedder: EmbeddingClient
    llm: LLMService
    rerank: RerankClient | None
    settings: Settings


@asynccontextmanager
async def _open_services(db_path: Path | None = None) -> AsyncIterator[_Services]:
    """Open the repository and provider clients from settings."""
    from scout.adapters import EmbeddingClient, LLMService, RerankClient, SQLiteRepository
    from scout.config import get_settings

    settings = get_settings()
    repository = SQLiteRepository(db_path or settings.db_path)
    await repository.initialize()
    embedder = EmbeddingClient.from_settings(settings)
    llm = LLMService.from_settings(settings)
    rerank = RerankClient.from_settings(settings) if settings.rerank_enabled else None

    try:
        yield _Services(repository, embedder, llm, rerank, settings)
    finally:
        await embedder.close()
        await llm.close()
        if rerank is not None:
            await rerank.close()
        await repository.close()


def _engine(services: _Services) -> HybridSearchEngine:
    from scout.interfaces.api.deps import build_search_engine

    return build_search_engine(
        services.repository, services.embedder, services.llm, services.rerank, services.settings
    )


def _entity_label(entity) -> str:
    if entity.entity_type == "profile":
        return entity.display_name or f"@{entity.handle}"
    return entity.name


def _entity_detail(entity) -> str:
    if entity.entity_type == "profile":
        parts = [entity.headline, entity.location, ", ".join(entity.skills[:5])]
    else:
        parts = [entity.oneliner, f"@{entity.owner_handle}" if entity.owner_handle else ""]
    return " | ".join(p for p in parts if p)


def _results_table(title: str, results) -> Table:
    table = Table(title=title)
    table.add_column("#", style="dim", justify="right")
    table.add_column("Type", style="cyan")
    table.add_column("Name", style="bold")
    table.add_column("Details")
    table.add_column("Score", justify="right", style="green")
    table.add_column("Method", style="magenta")

    for item in results:
        table.add_row(
            str(item.rank),
            item.entity_type,
            _entity_label(item.entity),
            _entity_detail(item.entity),
            f"{item.score:.3f}",
            item.search_method,
        )
    return table


def _run(coro) -> None:
    """Run a command coroutine, turning Scout errors into a clean exit."""
    try:
        asyncio.run(coro)
    except ScoutError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1)


@app.callback()
def _configure(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logs"),
) -> None:
    """Configure logging for every command."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# --- Search ---


@app.command()
def search(
    query: str = typer.Argument("", help="Search query (empty to browse)"),
    types: list[str] = typer.Option(["profile"], "--type", "-t", help="profile and/or project"),
    sort: str = typer.Option("relevance", "--sort", "-s", help="relevance, recent or name"),
    page: int = typer.Option(1, "--page", "-p", help="Page number"),
    limit: int = typer.Option(10, "--limit", "-n", help="Results per page"),
    rerank: bool = typer.Option(True, "--rerank/--no-rerank", help="Use the cross-encoder"),
) -> None:
    """Search profiles and projects."""
    from pydantic import ValidationError

    from scout.domains.search import SearchOptions

    try:
        options = SearchOptions(
            entity_types=tuple(types),
            sort=sort,
            page=page,
            limit=limit,
            enable_reranking=rerank,
        )
    except ValidationError as e:
        console.print(f"[red]Invalid options:[/red] {e.errors()[0]['msg']}")
        raise typer.Exit(2)

    _run(_search_async(query, options))


async def _search_async(query: str, options) -> None:
    """Async search implementation."""
    async with _open_services() as services:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            transient=True,
        ) as progress:
            progress.add_task("Searching...", total=None)
            response = await _engine(services).search(query, options)

    console.print(_results_table(f"Results for: {query or '(browse)'}", response.results))

    parsed = response.parsed_query
    timing = response.timing
    console.print(
        Panel(
            f"[bold]Mode:[/bold] {response.mode.value}   "
            f"[bold]Total:[/bold] {response.total_count}\n"
            f"[bold]Intent:[/bold] {parsed.intent.value} "
            f"(confidence {parsed.confidence:.0%})\n"
            f"[bold]Skills:[/bold] {', '.join(parsed.skills) or '-'}   "
            f"[bold]Locations:[/bold] {', '.join(parsed.locations) or '-'}\n"
            f"[dim]parse {timing.parse:.0f}ms, vector {timing.vector:.0f}ms, "
            f"keyword {timing.keyword:.0f}ms, rerank {timing.reranking:.0f}ms, "
            f"total {timing.total:.0f}ms[/dim]",
            title="Query",
        )
    )


@app.command()
def projects(
    query: str = typer.Argument("", help="Search query (empty to browse)"),
    sort: str = typer.Option(
        "relevance", "--sort", "-s", help="relevance, recent, featured, name or random"
    ),
    page: int = typer.Option(1, "--page", "-p", help="Page number"),
    limit: int = typer.Option(10, "--limit", "-n", help="Results per page"),
) -> None:
    """Search projects."""
    from pydantic import ValidationError

    from scout.domains.search import ProjectSearchOptions

    try:
        options = ProjectSearchOptions(sort=sort, page=page, limit=limit)
    except ValidationError as e:
        console.print(f"[red]Invalid options:[/red] {e.errors()[0]['msg']}")
        raise typer.Exit(2)
    _run(_projects_async(query, options))


async def _projects_async(query: str, options) -> None:
    """Async project search implementation."""
    from scout.domains.search import ProjectSearchEngine

    async with _open_services() as services:
        response = await ProjectSearchEngine(_engine(services)).search_projects(query, options)

    console.print(_results_table(f"Projects: {query or '(browse)'}", response.results))
    console.print(
        f"[dim]{response.total_count} total, mode {response.mode.value}, "
        f"{response.timing.total:.0f}ms[/dim]"
    )


@app.command()
def browse(
    entity_type: str = typer.Argument("profile", help="profile or project"),
    sort: str = typer.Option("recent", "--sort", "-s", help="recent, name (featured, random)"),
    page: int = typer.Option(1, "--page", "-p", help="Page number"),
    limit: int = typer.Option(10, "--limit", "-n", help="Results per page"),
) -> None:
    """List active profiles or projects."""
    from scout.domains.search import SortOrder

    if entity_type not in ENTITY_TYPES:
        console.print(f"[red]Error:[/red] Unknown entity type: {entity_type}")
        raise typer.Exit(2)
    if sort not in {s.value for s in SortOrder}:
        console.print(f"[red]Error:[/red] Unknown sort: {sort}")
        raise typer.Exit(2)
    _run(_browse_async(entity_type, SortOrder(sort), page, limit))


async def _browse_async(entity_type: str, sort, page: int, limit: int) -> None:
    """Async browse implementation."""
    async with _open_services() as services:
        results, total = await _engine(services).browse(
            (entity_type,), sort, limit, (page - 1) * limit
        )

    console.print(_results_table(f"{entity_type.title()}s ({sort.value})", results))
    console.print(f"[dim]{total} active[/dim]")


@app.command()
def stats() -> None:
    """Show embedding coverage."""
    _run(_stats_async())


async def _stats_async() -> None:
    """Async stats implementation."""
    async with _open_services() as services:
        repo = services.repository
        embedding_stats = await _engine(services).get_embedding_stats()
        active = {t: await repo.count_active(t) for t in ENTITY_TYPES}
        logs = await repo.recent_embedding_logs(limit=5)

    table = Table(title=f"Embeddings ({embedding_stats.model_id})")
    table.add_column("Type", style="cyan")
    table.add_column("Active", justify="right")
    table.add_column("Embedded", justify="right", style="green")
    for entity_type in ENTITY_TYPES:
        table.add_row(
            entity_type,
            str(active[entity_type]),
            str(embedding_stats.per_entity_type.get(entity_type, 0)),
        )
    table.add_row("total", str(sum(active.values())), str(embedding_stats.total_embeddings))
    console.print(table)

    for log in logs:
        console.print(
            f"[dim]{log.timestamp:%Y-%m-%d %H:%M:%S}[/dim] {log.action.value:<8} "
            f"{log.entity_type}/{log.entity_id} {log.error or ''}"
        )


# --- Embedding diagnostics ---


@app.command()
def embed(
    texts: list[str] = typer.Argument(..., help="Texts to embed"),
    compare: bool = typer.Option(
        False, "--compare", "-c", help="Rank the remaining texts against the first"
    ),
    top_k: int = typer.Option(5, "--top-k", "-k", help="Maximum matches when comparing"),
) -> None:
    """Embed texts, or compare them by cosine similarity."""
    _run(_embed_async(texts, compare, top_k))


async def _embed_async(texts: list[str], compare: bool, top_k: int) -> None:
    """Async embedding implementation."""
    from scout.domains.embeddings import EmbeddingToolkit

    async with _open_services() as services:
        toolkit = EmbeddingToolkit(
            services.embedder, default_model=services.settings.embedding_model
        )
        if compare and len(texts) > 1:
            matches = await toolkit.find_most_similar(texts[0], texts[1:], top_k=top_k)
            table = Table(title=f"Similarity to: {texts[0]}")
            table.add_column("#", justify="right", style="dim")
            table.add_column("Document")
            table.add_column("Similarity", justify="right", style="green")
            for match in matches:
                table.add_row(str(match.index), match.document, f"{match.similarity:.4f}")
            console.print(table)
            return

        result = await toolkit.generate_embeddings(texts)

    console.print(f"[green]Model:[/green] {result.model}  [green]Shape:[/green] {result.shape}")
    for text, vector in zip(texts, result.embeddings):
        preview = ", ".join(f"{v:.4f}" for v in vector[:6])
        console.print(f"  {text[:40]:<40} [{preview}, ...]")


@app.command()
def rerank(
    query: str = typer.Argument(..., help="Query"),
    documents: list[str] = typer.Argument(..., help="Documents to score"),
    top_k: int = typer.Option(5, "--top-k", "-k", help="Maximum results"),
) -> None:
    """Score documents against a query with the cross-encoder."""
    _run(_rerank_async(query, documents, top_k))


async def _rerank_async(query: str, documents: list[str], top_k: int) -> None:
    """Async rerank implementation."""
    from scout.domains.embeddings import EmbeddingToolkit

    async with _open_services() as services:
        toolkit = EmbeddingToolkit(services.embedder, services.rerank)
        result = await toolkit.rerank_documents(query, documents, top_k=top_k)

    table = Table(title=f"Rerank ({result.model})")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Document")
    table.add_column("Score", justify="right", style="green")
    for item in result.results:
        table.add_row(str(item.index), item.document, f"{item.score:.4f}")
    console.print(table)


# --- Data management ---


@app.command("import")
def import_dump(
    path: Path = typer.Argument(..., help='JSON file with "profiles" and "projects" lists'),
) -> None:
    """Load profiles and projects from a JSON dump."""
    if not path.exists():
        console.print(f"[red]Error:[/red] File not found: {path}")
        raise typer.Exit(1)
    _run(_import_async(path))


async def _import_async(path: Path) -> None:
    """Async import implementation."""
    from pydantic import ValidationError

    from scout.adapters import SQLiteRepository
    from scout.config import get_settings
    from scout.domains.search import Profile, Project

    data = json.loads(path.read_text())
    settings = get_settings()
    repo = SQLiteRepository(settings.db_path)
    await repo.initialize()

    counts = {"profile": 0, "project": 0, "skipped": 0}
    loaders = (
        ("profile", "profiles", Profile, repo.upsert_profile),
        ("project", "projects", Project, repo.upsert_project),
    )
    try:
        for kind, key, model, upsert in loaders:
            for raw in data.get(key, []):
                try:
                    await upsert(model.model_validate(raw))
                except ValidationError as e:
                    counts["skipped"] += 1
                    reason = e.errors()[0]["msg"]
                    console.print(f"[yellow]Skipped {kind} {raw.get('id')}:[/yellow] {reason}")
                    continue
                counts[kind] += 1
    finally:
        await repo.close()

    console.print(
        f"[green]Imported[/green] {counts['profile']} profiles, {counts['project']} projects"
        f" ({counts['skipped']} skipped)"
    )
    console.print("[dim]Run `scout index` to compute embeddings.[/dim]")


@app.command()
def index(
    types: list[str] = typer.Option(list(ENTITY_TYPES), "--type", "-t", help="Types to index"),
    force: bool = typer.Option(False, "--force", "-f", help="Re-embed unchanged content"),
) -> None:
    """Recompute embeddings for changed profiles and projects."""
    unknown = [t for t in types if t not in ENTITY_TYPES]
    if unknown:
        console.print(f"[red]Error:[/red] Unknown entity type: {', '.join(unknown)}")
        raise typer.Exit(2)
    _run(_index_async(types, force))


async def _index_async(types: list[str], force: bool) -> None:
    """Async indexing implementation."""
    from scout.domains.indexing import EmbeddingIndexer

    async with _open_services() as services:
        indexer = EmbeddingIndexer(
            services.repository,
            services.embedder,
            services.settings.embedding_model,
            batch_size=services.settings.embedding_batch_size,
        )
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            transient=True,
        ) as progress:
            progress.add_task("Indexing...", total=None)
            report = await indexer.reindex_all(types, force=force)

    table = Table(title=f"Indexing Summary ({report.model_id})")
    table.add_column("Outcome", style="cyan")
    table.add_column("Count", justify="right", style="green")
    for outcome in ("created", "updated", "unchanged", "deleted", "failed"):
        table.add_row(outcome, str(getattr(report, outcome)))
    console.print(table)
    console.print(f"[dim]{report.elapsed_ms:.0f}ms[/dim]")

    for error in report.errors[:10]:
        console.print(f"[red]![/red] {error}")
    if report.failed:
        raise typer.Exit(1)


@app.command()
def init(
    db_path: Path | None = typer.Option(None, "--db", "-d", help="Database path"),
) -> None:
    """Initialize the Scout database."""
    _run(_init_async(db_path))


async def _init_async(db_path: Path | None) -> None:
    """Async initialization."""
    from scout.adapters import SQLiteRepository
    from scout.config import get_settings

    settings = get_settings()
    path = db_path or Path(settings.db_path)

    repo = SQLiteRepository(path)
    await repo.initialize()
    await repo.close()

    console.print("\n[green]Initialization complete![/green]")
    console.print(f"[dim]Database: {path}[/dim]")


@app.command()
def serve(
    host: str | None = typer.Option(None, "--host", "-h", help="Host to bind"),
    port: int | None = typer.Option(None, "--port", "-p", help="Port to bind"),
    reload: bool = typer.Option(False, "--reload", "-r", help="Enable auto-reload"),
) -> None:
    """Start the API server."""
    import uvicorn

    from scout.config import get_settings

    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port

    console.print("\n[green]Starting Scout API server[/green]")
    console.print(f"[dim]http://{host}:{port}[/dim]\n")

    uvicorn.run(
        "scout.interfaces.api:create_app",
        host=host,
        port=port,
        reload=reload,
        factory=True,
    )


@app.command()
def version() -> None:
    """Show version information."""
    from scout import __version__

    console.print(f"Scout v{__version__}")


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
