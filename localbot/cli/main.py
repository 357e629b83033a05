"""CLI interface for LocalBot using Typer."""

import asyncio
import json
from contextlib import contextmanager
from pathlib import Path
from typing import Annotated, Any, Iterator

import pydantic
import typer
import yaml
from rich.console import Console
from rich.table import Table

from ..chat.answerer import ChatAnswerer
from ..core.config.loader import load_config
from ..core.errors import LocalBotError, ValidationError
from ..core.models.base import validate_identifier
from ..core.models.chat import ChatbotProfile
from ..core.models.knowledge import QAPair
from ..core.storage.qa_store import QAStore
from ..kb.ingestion.backfill import BackfillResult, KnowledgeBaseBackfill
from ..kb.ingestion.embedder import EmbeddingGenerator
from ..kb.ingestion.sync import KnowledgeBaseSync
from ..observability.logger import configure_from_config, get_logger
from ..search.retriever import Retriever

logger = get_logger(__name__)
console = Console()

app = typer.Typer(
    name="localbot",
    help="LocalBot - sync Q&A knowledge bases and query them",
    add_completion=False,
)


class Services:
    """Components wired from one loaded config."""

    def __init__(self, chatbot_id: str | None = None):
        if chatbot_id is not None:
            validate_identifier(chatbot_id, "chatbot_id")
        self.config = load_config(chatbot_id=chatbot_id)
        configure_from_config(self.config)
        base_dir = self.config.get("storage", {}).get("qa_store_dir", "data/qa_pairs")
        self.store = QAStore(base_dir)
        self.embedder = EmbeddingGenerator.from_config(self.config)
        self.sync = KnowledgeBaseSync.from_config(self.config, embedder=self.embedder)
        self.retriever = Retriever.from_config(self.config, embedder=self.embedder)


@contextmanager
def _cli_errors() -> Iterator[None]:
    """Turn LocalBot errors into a red message and exit code 1."""
    try:
        yield
    except LocalBotError as e:
        console.print(f"[red]! {type(e).__name__}:[/red] {e}")
        raise typer.Exit(code=1)


def _run(coro: Any) -> Any:
    """Run a coroutine, turning LocalBot errors into a clean exit."""
    with _cli_errors():
        return asyncio.run(coro)


def _new_pair(**fields: Any) -> QAPair:
    """Build a QAPair from user input, reporting bad fields as ValidationError."""
    try:
        return QAPair(**fields)
    except pydantic.ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ValidationError(f"Invalid Q&A entry ({problems})") from e


def _load_pairs_file(path: Path, chatbot_id: str) -> list[QAPair]:
    """Load a YAML or JSON list of {question, answer[, id]} entries."""
    text = path.read_text(encoding="utf-8")
    try:
        data = json.loads(text) if path.suffix.lower() == ".json" else yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ValidationError(f"{path} is not valid {path.suffix.lstrip('.') or 'YAML'}: {e}") from e

    if isinstance(data, dict):
        data = data.get("pairs", [])
    if not isinstance(data, list):
        raise ValidationError(f"{path} must contain a list of Q&A entries")

    pairs = []
    for position, entry in enumerate(data, start=1):
        if not isinstance(entry, dict):
            raise ValidationError(f"Entry {position} is not a mapping ({path})")
        if entry.get("chatbot_id", chatbot_id) != chatbot_id:
            raise ValidationError(f"Entry {position} belongs to another chatbot ({path})")
        pairs.append(_new_pair(**{**entry, "chatbot_id": chatbot_id}))
    return pairs


def _print_sync_result(result: BackfillResult) -> None:
    table = Table(show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("Chatbot", result.chatbot_id)
    table.add_row("Synced", str(result.synced))
    table.add_row("Failed", f"[{'green' if result.failed == 0 else 'red'}]{result.failed}[/]")
    table.add_row("Total", str(result.total))
    table.add_row("Duration", f"{result.duration_seconds:.2f}s")
    console.print(table)

    for error in result.errors:
        console.print(f"[red]- {error}[/red]")


@app.command()
def add(
    chatbot_id: Annotated[str, typer.Option("--chatbot-id", "-c", help="Chatbot identifier")],
    question: Annotated[str, typer.Option("--question", "-q", help="Question text")],
    answer: Annotated[str, typer.Option("--answer", "-a", help="Answer text")],
    pair_id: Annotated[str | None, typer.Option("--id", help="Pair id (generated if omitted)")] = None,
):
    """Save a Q&A pair, then sync its vector."""
    with _cli_errors():
        services = Services(chatbot_id)
        fields = {"id": pair_id} if pair_id else {}
        pair = services.store.save_pair(_new_pair(chatbot_id=chatbot_id, question=question, answer=answer, **fields))

    record = _run(services.sync.upsert(pair))
    console.print(f"[green]> Synced[/green] {pair.id} ({len(record.embedding)} dims)")


@app.command(name="import")
def import_pairs(
    chatbot_id: Annotated[str, typer.Option("--chatbot-id", "-c", help="Chatbot identifier")],
    pairs_file: Annotated[
        Path,
        typer.Argument(help="YAML or JSON file with a list of Q&A entries", exists=True, dir_okay=False),
    ],
):
    """Import Q&A pairs from a file and sync them in batches."""
    with _cli_errors():
        services = Services(chatbot_id)
        pairs = _load_pairs_file(pairs_file, chatbot_id)

        # Check every id before writing anything
        for pair in pairs:
            owner = services.store.owner_of(pair.id)
            if owner is not None and owner != chatbot_id:
                raise ValidationError(f"Pair id {pair.id!r} already belongs to another chatbot.")
        pairs = [services.store.save_pair(pair) for pair in pairs]

    if not pairs:
        console.print("[yellow]No Q&A entries found[/yellow]")
        return

    backfill = KnowledgeBaseBackfill(services.store, services.sync)
    result = _run(backfill.sync_pairs(chatbot_id, pairs))
    _print_sync_result(result)
    if not result.success:
        raise typer.Exit(code=1)
    console.print(f"[green]> Imported and synced[/green] {result.synced} pairs for {chatbot_id}")


@app.command()
def remove(
    chatbot_id: Annotated[str, typer.Option("--chatbot-id", "-c", help="Chatbot identifier")],
    pair_id: Annotated[str, typer.Argument(help="Pair id to remove")],
):
    """Delete a Q&A pair, then its vector."""
    with _cli_errors():
        services = Services(chatbot_id)
        owner = services.store.owner_of(pair_id)
        if owner != chatbot_id:
            where = "another chatbot" if owner else "no chatbot"
            console.print(f"[red]! Error:[/red] Pair {pair_id} is not stored for {chatbot_id} ({where} owns it)")
            raise typer.Exit(code=1)
        services.store.delete_pair(chatbot_id, pair_id)

    _run(services.sync.delete(pair_id))
    console.print(f"[green]> Removed[/green] {pair_id}")


@app.command()
def sync(
    chatbot_id: Annotated[str, typer.Option("--chatbot-id", "-c", help="Chatbot identifier")],
    batch_size: Annotated[int | None, typer.Option("--batch-size", "-b", help="Pairs per upsert")] = None,
):
    """Backfill every stored pair of a chatbot into the vector index."""
    if batch_size is not None and batch_size <= 0:
        console.print("[red]! Error:[/red] --batch-size must be greater than 0")
        raise typer.Exit(code=1)

    with _cli_errors():
        services = Services(chatbot_id)
        backfill = KnowledgeBaseBackfill(services.store, services.sync, batch_size=batch_size)

    result = _run(backfill.sync_chatbot(chatbot_id))
    _print_sync_result(result)
    if not result.success:
        raise typer.Exit(code=1)


@app.command()
def purge(
    chatbot_id: Annotated[str, typer.Option("--chatbot-id", "-c", help="Chatbot identifier")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation")] = False,
):
    """Delete a chatbot's stored pairs and all of its vectors."""
    with _cli_errors():
        services = Services(chatbot_id)
        pair_ids = services.store.list_pair_ids(chatbot_id)
    if not pair_ids:
        console.print(f"[yellow]No stored pairs for chatbot:[/yellow] {chatbot_id}")
        return

    if not yes:
        typer.confirm(f"Delete {len(pair_ids)} pairs and vectors for {chatbot_id}?", abort=True)

    _run(services.sync.purge_chatbot(chatbot_id, pair_ids))
    services.store.delete_chatbot(chatbot_id)
    console.print(f"[green]> Purged[/green] {len(pair_ids)} pairs for {chatbot_id}")


@app.command()
def search(
    chatbot_id: Annotated[str, typer.Option("--chatbot-id", "-c", help="Chatbot identifier")],
    query: Annotated[str, typer.Argument(help="Question text")],
    top_k: Annotated[int | None, typer.Option("--top-k", "-k", help="Number of matches")] = None,
):
    """Retrieve the best matching Q&A pairs for a question."""
    with _cli_errors():
        services = Services(chatbot_id)
    matches = _run(services.retriever.retrieve(query, chatbot_id, top_k=top_k))

    if not matches:
        console.print("[yellow]No matches found[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Rank", style="dim", width=6)
    table.add_column("Pair ID")
    table.add_column("Score", justify="right")
    table.add_column("Question")
    table.add_column("Answer")

    for idx, match in enumerate(matches, start=1):
        answer = match.answer[:60] + "..." if len(match.answer) > 60 else match.answer
        table.add_row(str(idx), match.id, f"{match.score:.3f}", match.question, answer)

    console.print(table)


@app.command()
def ask(
    chatbot_id: Annotated[str, typer.Option("--chatbot-id", "-c", help="Chatbot identifier")],
    message: Annotated[str, typer.Argument(help="Visitor message")],
    bot_name: Annotated[str, typer.Option("--bot-name", help="Assistant name")] = "Assistant",
    business_name: Annotated[str, typer.Option("--business", help="Business name")] = "our business",
):
    """Answer a visitor message the way the chat widget would."""
    with _cli_errors():
        services = Services(chatbot_id)
        answerer = ChatAnswerer.from_config(services.config, services.retriever)
        profile = ChatbotProfile(chatbot_id=chatbot_id, bot_name=bot_name, business_name=business_name)

    result = _run(answerer.answer(message, profile))

    console.print(f"\n[bold]{profile.bot_name}:[/bold] {result.answer}")
    console.print(f"[dim]source={result.source} confidence={result.confidence:.0f} matches={len(result.matches)}[/dim]")


if __name__ == "__main__":
    app()
