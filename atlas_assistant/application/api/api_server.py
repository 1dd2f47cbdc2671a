from typing import Optional
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import asyncio
import random
import sys
import structlog

from atlas_assistant.application.api.route.chat import router as chat_router
from atlas_assistant.domain.catalog.action_generator import ActionGenerator
from atlas_assistant.domain.catalog.catalog_index import CatalogIndex
from atlas_assistant.domain.context.memory.continuation_store import (
    ContinuationStore, InMemoryContinuationStore, run_periodic_sweep
)
from atlas_assistant.domain.context.relevance_selector import RelevanceSelector
from atlas_assistant.domain.errors import AtlasAssistantError, ChatValidationError
from atlas_assistant.domain.orchestration.core.query_orchestrator import QueryOrchestrator
from atlas_assistant.infrastructure.config.settings import Settings
from atlas_assistant.infrastructure.llm.completion_service import CompletionService
from atlas_assistant.infrastructure.llm.openrouter_client import OpenRouterClient
from atlas_assistant.infrastructure.observability.logging import MetricsCollector, setup_logging

logger = structlog.get_logger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    catalog: Optional[CatalogIndex] = None,
    completion_service: Optional[CompletionService] = None,
    continuation_store: Optional[ContinuationStore] = None
) -> FastAPI:
    """Wire the service; catalog and configuration errors propagate to the caller"""

    settings = settings or Settings.from_env()

    # Must fail before the app can accept a single request
    if catalog is None:
        catalog = CatalogIndex.load(settings.atlas_path)
    if completion_service is None:
        completion_service = OpenRouterClient.from_settings(settings)
    if continuation_store is None:
        continuation_store = InMemoryContinuationStore()

    metrics = MetricsCollector()
    metrics.set_gauge("catalog.actions", len(catalog))

    selector = RelevanceSelector(
        max_actions=settings.max_context_actions,
        query_match_priority=settings.query_match_priority,
        min_actions=settings.min_context_actions,
        rng=random.Random(settings.selection_seed)
    )

    orchestrator = QueryOrchestrator(
        catalog=catalog,
        completion_service=completion_service,
        continuation_store=continuation_store,
        selector=selector,
        core_action_names=settings.core_actions,
        history_window=settings.history_window,
        continuation_ttl=settings.continuation_ttl,
        metrics=metrics
    )

    app = FastAPI(title="Atlas Assistant")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    app.state.catalog = catalog
    app.state.completion_service = completion_service
    app.state.continuation_store = continuation_store
    app.state.orchestrator = orchestrator
    app.state.action_generator = ActionGenerator(catalog)
    app.state.metrics = metrics
    app.state.sweep_task = None

    app.include_router(chat_router)

    @app.exception_handler(ChatValidationError)
    async def chat_validation_handler(request: Request, exc: ChatValidationError):
        logger.warning("Rejected request", path=request.url.path, error=str(exc))
        return JSONResponse(status_code=400, content={"error": str(exc)})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        logger.warning("Malformed request body", path=request.url.path, errors=len(exc.errors()))
        return JSONResponse(status_code=400, content={"error": "Invalid request body"})

    @app.on_event("startup")
    async def startup_event():
        """Start the continuation sweeper"""
        app.state.sweep_task = asyncio.create_task(
            run_periodic_sweep(
                continuation_store,
                ttl=settings.continuation_ttl,
                interval=settings.sweep_interval
            )
        )
        logger.info("Atlas assistant started", actions_loaded=len(catalog), model=settings.openrouter_model)

    @app.on_event("shutdown")
    async def shutdown_event():
        """Cleanup on shutdown"""
        task = app.state.sweep_task
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        await completion_service.aclose()
        logger.info("Atlas assistant shutdown")

    return app


def main(settings: Optional[Settings] = None) -> None:
    """Run the HTTP service with uvicorn"""
    import uvicorn

    settings = settings or Settings.from_env()
    setup_logging(log_level=settings.log_level, log_format=settings.log_format)

    try:
        app = create_app(settings)
    except AtlasAssistantError as e:
        logger.error("Startup failed", error=str(e))
        sys.exit(1)

    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
