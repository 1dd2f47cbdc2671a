from typing import Annotated, Optional
from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
import structlog

from atlas_assistant.application.api.schema.messages import (
    ChatRequest, ChatResponse, ErrorResponse, HealthResponse,
    GenerateActionsRequest, GenerateActionsResponse
)
from atlas_assistant.domain.catalog.action_generator import ActionGenerator
from atlas_assistant.domain.catalog.catalog_index import CatalogIndex
from atlas_assistant.domain.errors import ChatValidationError
from atlas_assistant.domain.models.chat_state import ChatQuery
from atlas_assistant.domain.orchestration.core.query_orchestrator import QueryOrchestrator
from atlas_assistant.infrastructure.observability.logging import MetricsCollector

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api")


def get_orchestrator(request: Request) -> QueryOrchestrator:
    return request.app.state.orchestrator


def get_catalog(request: Request) -> CatalogIndex:
    return request.app.state.catalog


def get_action_generator(request: Request) -> ActionGenerator:
    return request.app.state.action_generator


def get_metrics(request: Request) -> MetricsCollector:
    return request.app.state.metrics


def validate_chat_request(body: ChatRequest) -> ChatQuery:
    """Reject empty messages before any selection or service call"""

    if body.message is None or body.message.strip() == "":
        raise ChatValidationError("Message is required")

    return ChatQuery(
        text=body.message,
        session_id=body.session_id or None,
        conversation_history=body.conversation_history,
        is_continuation=body.is_continuation
    )


@router.post(
    "/chat",
    response_model=ChatResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}}
)
async def chat_endpoint(
    body: ChatRequest,
    orchestrator: Annotated[QueryOrchestrator, Depends(get_orchestrator)]
):
    query = validate_chat_request(body)
    logger.info("Received chat request", session_id=query.session_id, history=len(query.conversation_history))

    try:
        result = await orchestrator.handle(query)
    except Exception as e:
        logger.exception("Error processing chat request", error=str(e))
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    return ChatResponse.from_result(result)


@router.get("/health", response_model=HealthResponse)
async def health_check(catalog: Annotated[CatalogIndex, Depends(get_catalog)]):
    """Health check endpoint"""
    return HealthResponse(status="ok", actions_loaded=len(catalog))


@router.get("/metrics")
async def metrics_summary(metrics: Annotated[MetricsCollector, Depends(get_metrics)]):
    return metrics.get_metrics_summary()


@router.get("/actions")
async def list_actions(
    generator: Annotated[ActionGenerator, Depends(get_action_generator)],
    q: Optional[str] = Query(None, description="Filter by name or description")
):
    if not q:
        return {"actions": generator.list_actions()}

    names = {action.name for action in generator.search(q)}
    return {"actions": [summary for summary in generator.list_actions() if summary["type"] in names]}


@router.get("/actions/{name}", responses={404: {"model": ErrorResponse}})
async def get_action(name: str, catalog: Annotated[CatalogIndex, Depends(get_catalog)]):
    action = catalog.find_by_name(name)
    if action is None:
        return JSONResponse(status_code=404, content={"error": f"Unknown action: {name}"})
    return action.model_dump(by_alias=True)


@router.post(
    "/actions/generate",
    response_model=GenerateActionsResponse,
    responses={400: {"model": ErrorResponse}}
)
async def generate_actions(
    body: GenerateActionsRequest,
    generator: Annotated[ActionGenerator, Depends(get_action_generator)]
):
    if body.actions:
        return GenerateActionsResponse(actions=generator.generate(body.action_specs()))

    if not body.request or not body.request.strip():
        raise ChatValidationError("Either 'request' or 'actions' is required")

    return GenerateActionsResponse(actions=generator.actions_for_request(body.request))
