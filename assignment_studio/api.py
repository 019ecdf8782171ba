"""
All API endpoints for Assignment Studio
Handles assignment generation and submission evaluation
"""
import logging

from fastapi import APIRouter, Depends, HTTPException

from assignment_studio.core import config
from assignment_studio.core.assignment_service import generate_assignment
from assignment_studio.core.errors import AssignmentStudioError, ConfigurationError, InvalidRequestError
from assignment_studio.core.evaluation_service import evaluate_submission
from assignment_studio.core.llm_service import CompletionClient, client_from_config
from assignment_studio.core.models import AssignmentKind, EvaluateRequest, GenerateRequest

logger = logging.getLogger(__name__)

router = APIRouter()


def get_completion_client() -> CompletionClient:
    """Dependency providing the LLM client; overridden in tests"""
    return client_from_config()


def _to_http_error(action: str, error: AssignmentStudioError) -> HTTPException:
    """Map a service error onto the response status and a user-facing message"""
    if isinstance(error, (InvalidRequestError, ConfigurationError)):
        detail = error.message
    else:
        detail = f"Failed to {action}: {error.message}. Please try again."
    return HTTPException(status_code=error.status_code, detail=detail)


# ============================================================================
# Service Info Endpoints
# ============================================================================

@router.get("/api/health", tags=["info"])
async def health():
    """Report whether the server is up and the LLM credential is present"""
    return {
        "status": "ok",
        "model": config.TOGETHER_AI_MODEL,
        "apiKeyConfigured": bool(config.TOGETHER_AI_API_KEY),
    }


@router.get("/api/assignment-types", tags=["info"])
async def assignment_types():
    """List the assignment types that can be generated"""
    return {
        "assignmentTypes": AssignmentKind.values(),
        "default": AssignmentKind.CASE_STUDY.value,
    }


# ============================================================================
# Assignment Endpoints
# ============================================================================

@router.post("/api/generate", tags=["assignments"])
async def generate(request: GenerateRequest, client: CompletionClient = Depends(get_completion_client)):
    """Generate an assignment with a grading rubric for a topic

    Request body:
    {
        "query": "supply chain ethics",
        "assignmentType": "case-study"
    }
    """
    try:
        assignment = await generate_assignment(request.query, request.assignment_type, client)
    except AssignmentStudioError as e:
        if e.status_code >= 500:
            logger.error("Error generating assignment: %s: %s", type(e).__name__, e.message)
        raise _to_http_error("generate assignment", e)

    return {
        "success": True,
        "assignment": assignment.model_dump(by_alias=True, exclude_none=True, mode="json"),
        "query": request.query,
        "assignmentType": assignment.type,
    }


@router.post("/api/evaluate", tags=["assignments"])
async def evaluate(request: EvaluateRequest, client: CompletionClient = Depends(get_completion_client)):
    """Grade a submission against the assignment's rubric

    Request body:
    {
        "assignment": {...},
        "submission": {"type": "essay", "text": "..."},
        "assignmentType": "essay"
    }
    """
    try:
        result = await evaluate_submission(
            request.assignment, request.submission, request.assignment_type, client
        )
    except AssignmentStudioError as e:
        if e.status_code >= 500:
            logger.error("Error evaluating submission: %s: %s", type(e).__name__, e.message)
        raise _to_http_error("evaluate submission", e)

    return {
        "success": True,
        "results": result.model_dump(by_alias=True, exclude_none=True, mode="json"),
    }
