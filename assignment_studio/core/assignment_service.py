"""
Assignment generation: topic + kind -> prompt -> LLM -> validated Assignment
"""
import logging
from typing import Any

from pydantic import ValidationError

from assignment_studio.core.config import GENERATION_MAX_TOKENS
from assignment_studio.core.errors import ConfigurationError, InvalidRequestError, SchemaValidationError
from assignment_studio.core.llm_service import MISSING_API_KEY_MESSAGE, CompletionClient, extract_json
from assignment_studio.core.models import Assignment, assignment_adapter, parse_kind
from assignment_studio.core.prompts import build_generation_prompt

logger = logging.getLogger(__name__)


def describe_validation_error(error: ValidationError, limit: int = 3) -> str:
    """Summarize a pydantic error as 'field.path: message; ...'"""
    parts = []
    for item in error.errors()[:limit]:
        location = ".".join(str(part) for part in item["loc"]) or "value"
        parts.append(f"{location}: {item['msg']}")
    remaining = error.error_count() - limit
    if remaining > 0:
        parts.append(f"and {remaining} more")
    return "; ".join(parts)


def parse_generated_assignment(data: Any, kind) -> Assignment:
    """Validate the model's JSON as an assignment of ``kind``"""
    if not isinstance(data, dict):
        raise SchemaValidationError(
            f"Expected a JSON object for the assignment, got {type(data).__name__}"
        )
    try:
        return assignment_adapter.validate_python({**data, "type": kind.value})
    except ValidationError as e:
        logger.warning("Generated %s assignment failed validation: %s", kind.value, e)
        raise SchemaValidationError(
            f"The AI returned an assignment with an unexpected structure ({describe_validation_error(e)})"
        )


async def generate_assignment(topic: Any, kind: Any, client: CompletionClient) -> Assignment:
    """Generate an assignment for ``topic`` of the given kind.

    Input and configuration are checked before any call to the LLM.
    """
    if not isinstance(topic, str) or not topic.strip():
        raise InvalidRequestError("Please provide a search query to generate an assignment.")
    kind = parse_kind(kind)
    if not client.is_configured:
        raise ConfigurationError(MISSING_API_KEY_MESSAGE)

    topic = topic.strip()
    prompt = build_generation_prompt(topic, kind)
    logger.info("Generating %s assignment for topic %r (%d char prompt)", kind.value, topic, len(prompt))

    llm_response = await client.complete(prompt, max_output_tokens=GENERATION_MAX_TOKENS)
    data = extract_json(llm_response)
    assignment = parse_generated_assignment(data, kind)

    logger.info("Generated assignment %r (%s points)", assignment.title, assignment.rubric.total_points)
    return assignment
