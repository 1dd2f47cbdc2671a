"""CLI commands for serving and chatting with the Atlas assistant."""

import asyncio
import json
import random
import sys
import uuid
from typing import List, Optional

import typer

from atlas_assistant.domain.catalog.action_generator import ActionGenerator
from atlas_assistant.domain.catalog.catalog_index import CatalogIndex
from atlas_assistant.domain.context.memory.continuation_store import InMemoryContinuationStore
from atlas_assistant.domain.context.relevance_selector import RelevanceSelector
from atlas_assistant.domain.errors import AtlasAssistantError
from atlas_assistant.domain.models.chat_state import ChatQuery, ChatTurn
from atlas_assistant.domain.orchestration.core.query_orchestrator import QueryOrchestrator
from atlas_assistant.infrastructure.config.settings import Settings
from atlas_assistant.infrastructure.llm.openrouter_client import OpenRouterClient
from atlas_assistant.infrastructure.observability.logging import setup_logging

APP_HELP = "Atlas assistant: ask questions about the actions in an atlas catalog."

EXAMPLE_QUESTIONS = [
    "What actions are available for user management?",
    "How do I add client credits?",
    "What are the required arguments for account lockdown?",
    "Show me actions related to vehicles",
    "What optional arguments does addLeadV1 have?",
]

app = typer.Typer(help=APP_HELP)


def _load_catalog(settings: Settings, catalog_path: Optional[str]) -> CatalogIndex:
    try:
        return CatalogIndex.load(catalog_path or settings.atlas_path)
    except AtlasAssistantError as error:
        typer.echo(f"Error loading catalog: {error}")
        raise typer.Exit(code=1) from error


def _build_orchestrator(settings: Settings, catalog: CatalogIndex) -> QueryOrchestrator:
    try:
        client = OpenRouterClient.from_settings(settings)
    except AtlasAssistantError as error:
        typer.echo(str(error))
        raise typer.Exit(code=1) from error

    return QueryOrchestrator(
        catalog=catalog,
        completion_service=client,
        continuation_store=InMemoryContinuationStore(),
        selector=RelevanceSelector(
            max_actions=settings.max_context_actions,
            query_match_priority=settings.query_match_priority,
            min_actions=settings.min_context_actions,
            rng=random.Random(settings.selection_seed)
        ),
        core_action_names=settings.core_actions,
        history_window=settings.history_window,
        continuation_ttl=settings.continuation_ttl
    )


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Interface to bind (defaults to HOST)."),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port to listen on (defaults to PORT)."),
) -> None:
    """Run the HTTP chat service."""
    from atlas_assistant.application.api.api_server import main

    settings = Settings.from_env()
    overrides = {}
    if host:
        overrides["host"] = host
    if port:
        overrides["port"] = port
    main(settings.model_copy(update=overrides))


@app.command()
def chat(
    catalog_path: Optional[str] = typer.Option(None, "--catalog", "-c", help="Path to the atlas catalog JSON."),
) -> None:
    """Interactive chat in the terminal; type "continue" to resume a cut-off answer."""
    settings = Settings.from_env()
    setup_logging(log_level="WARNING", log_format="console", stream=sys.stderr)

    catalog = _load_catalog(settings, catalog_path)
    orchestrator = _build_orchestrator(settings, catalog)
    asyncio.run(_chat_loop(orchestrator))


async def _chat_loop(orchestrator: QueryOrchestrator) -> None:
    session_id = str(uuid.uuid4())
    history: List[ChatTurn] = []

    typer.echo(f"Atlas assistant ({len(orchestrator.catalog)} actions loaded)")
    typer.echo('Type "exit" to quit, "help" for examples.\n')

    try:
        while True:
            query = typer.prompt("You", default="", show_default=False).strip()

            if query.lower() == "exit":
                typer.echo("Goodbye!")
                return

            if query.lower() == "help":
                typer.echo("Example questions you can ask:")
                for example in EXAMPLE_QUESTIONS:
                    typer.echo(f"  - {example}")
                typer.echo("")
                continue

            if not query:
                continue

            result = await orchestrator.handle(ChatQuery(
                text=query,
                session_id=session_id,
                conversation_history=list(history)
            ))
            typer.echo(f"\nAssistant: {result.response}\n")

            history.append(ChatTurn(role="user", content=query))
            history.append(ChatTurn(role="assistant", content=result.response))
    finally:
        await orchestrator.completion_service.aclose()


@app.command()
def actions(
    request: List[str] = typer.Argument(None, help="Free-text request, e.g. \"food tampering\"."),
    list_all: bool = typer.Option(False, "--list", help="List every action in the catalog."),
    catalog_path: Optional[str] = typer.Option(None, "--catalog", "-c", help="Path to the atlas catalog JSON."),
) -> None:
    """Generate action payloads for a request without calling the model."""
    settings = Settings.from_env()
    setup_logging(log_level="WARNING", log_format="console", stream=sys.stderr)
    generator = ActionGenerator(_load_catalog(settings, catalog_path))

    if list_all:
        typer.echo(json.dumps(generator.list_actions(), indent=2))
        return

    text = " ".join(request or []).strip()
    if not text:
        typer.echo("Provide a request or use --list.")
        raise typer.Exit(code=2)

    typer.echo(json.dumps({"actions": generator.actions_for_request(text)}, indent=2))


if __name__ == "__main__":
    app()
