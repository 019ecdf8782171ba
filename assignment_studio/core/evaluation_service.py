"""
Submission evaluation: assignment + submission -> grading prompt -> LLM -> EvaluationResult
"""
import logging
import math
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ValidationError

from assignment_studio.core.assignment_service import describe_validation_error
from assignment_studio.core.config import EVALUATION_MAX_TOKENS
from assignment_studio.core.errors import ConfigurationError, InvalidRequestError, SchemaValidationError
from assignment_studio.core.llm_service import MISSING_API_KEY_MESSAGE, CompletionClient, extract_json
from assignment_studio.core.models import (
    AnswerSheetSubmission,
    Assignment,
    AssignmentKind,
    CaseStudySubmission,
    EvaluationResult,
    ModelEvaluation,
    Rubric,
    RubricScore,
    Submission,
    TextSubmission,
    assignment_adapter,
    parse_kind,
    submission_adapter,
)
from assignment_studio.core.prompts import build_evaluation_prompt, round_half_up

logger = logging.getLogger(__name__)

DEFAULT_FEEDBACK = "Evaluation complete."


def _with_kind(value: Any, kind: AssignmentKind, label: str) -> Any:
    """Return ``value`` as data tagged with ``kind``, rejecting a conflicting tag"""
    if isinstance(value, BaseModel):
        value = value.model_dump(by_alias=True)
    if not isinstance(value, dict):
        raise InvalidRequestError(f"{label} must be a JSON object.")
    given = value.get("type")
    if given is not None and given != kind.value:
        raise InvalidRequestError(
            f"{label} type '{given}' does not match assignment type '{kind.value}'."
        )
    return {**value, "type": kind.value}


def parse_submitted_assignment(value: Any, kind: AssignmentKind) -> Assignment:
    try:
        return assignment_adapter.validate_python(_with_kind(value, kind, "Assignment"))
    except ValidationError as e:
        raise InvalidRequestError(
            f"Assignment is not a valid {kind.value} assignment ({describe_validation_error(e)})."
        )


def parse_submission(value: Any, kind: AssignmentKind) -> Submission:
    try:
        return submission_adapter.validate_python(_with_kind(value, kind, "Submission"))
    except ValidationError as e:
        raise InvalidRequestError(
            f"Submission is not a valid {kind.value} submission ({describe_validation_error(e)})."
        )


def check_submission_complete(assignment: Assignment, submission: Submission) -> None:
    """Every question/task must be answered and free text must be non-empty"""
    if isinstance(submission, AnswerSheetSubmission):
        unanswered = [
            q.number for q in assignment.questions
            if not (submission.answers.get(q.number) or "").strip()
        ]
        if unanswered:
            raise InvalidRequestError(
                f"Please answer all questions. You have {len(unanswered)} unanswered question(s)."
            )
    elif isinstance(submission, CaseStudySubmission):
        unanswered = [
            index for index in range(1, len(assignment.tasks) + 1)
            if not (submission.responses.get(index) or "").strip()
        ]
        if unanswered:
            raise InvalidRequestError(
                f"Please respond to all tasks. You have {len(unanswered)} unanswered task(s)."
            )
    elif isinstance(submission, TextSubmission):
        if not submission.text.strip():
            raise InvalidRequestError("Please provide your submission before submitting.")


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value if math.isfinite(value) else None


def _as_text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, dict):
        return "\n".join(f"{key}: {text}" for key, text in value.items())
    if isinstance(value, list):
        return "\n".join(str(item) for item in value)
    return str(value)


def parse_model_evaluation(data: Any) -> ModelEvaluation:
    if not isinstance(data, dict):
        raise SchemaValidationError(
            f"Expected a JSON object for the evaluation, got {type(data).__name__}"
        )
    try:
        return ModelEvaluation.model_validate(data)
    except ValidationError as e:
        logger.warning("Evaluation response failed validation: %s", e)
        raise SchemaValidationError(
            f"The AI returned an evaluation with an unexpected structure ({describe_validation_error(e)})"
        )


def score_evaluation(evaluation: ModelEvaluation, rubric: Rubric) -> EvaluationResult:
    """Sum per-category scores and compute the percentage of the rubric total.

    A category without a numeric score counts as zero.
    """
    category_points: Dict[str, int] = {c.name.strip().lower(): c.points for c in rubric.categories}

    rubric_scores: List[RubricScore] = []
    for item in evaluation.rubric_assessment:
        score = _as_number(item.score)
        if score is None:
            logger.warning("No numeric score for category %r (got %r); counting it as zero", item.category, item.score)
            score = 0
        max_score = _as_number(item.max_score)
        if max_score is None:
            max_score = category_points.get(item.category.strip().lower(), 0)
        rubric_scores.append(RubricScore(
            category=item.category,
            score=score,
            max_score=max_score,
            feedback=item.feedback or "",
        ))

    total_score = sum(item.score for item in rubric_scores)
    max_score = rubric.total_points
    percentage = min(100, max(0, round_half_up(100 * total_score / max_score)))

    return EvaluationResult(
        total_score=total_score,
        max_score=max_score,
        percentage=percentage,
        feedback=_as_text(evaluation.overall_feedback) or DEFAULT_FEEDBACK,
        detailed_feedback=_as_text(evaluation.detailed_feedback),
        rubric_scores=rubric_scores,
    )


async def evaluate_submission(assignment: Any, submission: Any, kind: Any, client: CompletionClient) -> EvaluationResult:
    """Grade ``submission`` against ``assignment`` with the LLM.

    Input and configuration are checked before any call to the LLM.
    """
    if not assignment:
        raise InvalidRequestError("Assignment data is required.")
    if not submission:
        raise InvalidRequestError("Submission data is required.")
    kind = parse_kind(kind)

    assignment = parse_submitted_assignment(assignment, kind)
    submission = parse_submission(submission, kind)
    check_submission_complete(assignment, submission)

    if not client.is_configured:
        raise ConfigurationError(MISSING_API_KEY_MESSAGE)

    prompt = build_evaluation_prompt(assignment, submission, kind)
    logger.info("Evaluating %s submission for %r (%d char prompt)", kind.value, assignment.title, len(prompt))

    llm_response = await client.complete(prompt, max_output_tokens=EVALUATION_MAX_TOKENS)
    evaluation = parse_model_evaluation(extract_json(llm_response))
    result = score_evaluation(evaluation, assignment.rubric)

    logger.info("Evaluation complete: %s/%s (%s%%)", result.total_score, result.max_score, result.percentage)
    return result
