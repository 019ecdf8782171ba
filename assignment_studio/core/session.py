"""
Interaction state for one user working through generate -> submit -> results.

Idle -> Generating -> Displaying <-> Submitting -> Evaluating -> ShowingResults
ShowingResults -> Displaying (back), any state -> Idle (generate new)

A "generate new" while a call is in flight does not cancel the call; its
result is dropped when it arrives.
"""
import logging
from enum import Enum
from typing import Any, Optional

from assignment_studio.core.assignment_service import generate_assignment
from assignment_studio.core.errors import AssignmentStudioError, SessionStateError
from assignment_studio.core.evaluation_service import evaluate_submission
from assignment_studio.core.llm_service import CompletionClient
from assignment_studio.core.models import Assignment, AssignmentKind, EvaluationResult

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    IDLE = "idle"
    GENERATING = "generating"
    DISPLAYING = "displaying"
    SUBMITTING = "submitting"
    EVALUATING = "evaluating"
    SHOWING_RESULTS = "showing-results"


class InteractionSession:
    def __init__(self, client: CompletionClient):
        self.client = client
        self.state = SessionState.IDLE
        self.topic: Optional[str] = None
        self.kind: Optional[AssignmentKind] = None
        self.assignment: Optional[Assignment] = None
        self.result: Optional[EvaluationResult] = None
        self.error: Optional[str] = None
        # Bumped on "generate new"; in-flight calls from an older epoch are dropped
        self._epoch = 0

    def _require(self, action: str, *states: SessionState) -> None:
        if self.state not in states:
            raise SessionStateError(f"Cannot {action} while {self.state.value}")

    async def generate(self, topic: str, kind: Any) -> Optional[Assignment]:
        """Generate an assignment; on failure stay Idle with ``error`` set"""
        self._require("generate an assignment", SessionState.IDLE)
        epoch = self._epoch
        self.state = SessionState.GENERATING
        self.error = None

        try:
            assignment = await generate_assignment(topic, kind, self.client)
        except AssignmentStudioError as e:
            if epoch == self._epoch:
                logger.info("Generation failed: %s", e.message)
                self.state = SessionState.IDLE
                self.error = e.message
            return None
        except Exception:
            if epoch == self._epoch:
                self.state = SessionState.IDLE
            raise

        if epoch != self._epoch:
            logger.info("Dropping generated assignment %r after the user started over", assignment.title)
            return None

        self.topic = topic.strip()
        self.kind = AssignmentKind(assignment.type)
        self.assignment = assignment
        self.state = SessionState.DISPLAYING
        return assignment

    def begin_submission(self) -> None:
        self._require("start a submission", SessionState.DISPLAYING)
        self.error = None
        self.state = SessionState.SUBMITTING

    def cancel_submission(self) -> None:
        self._require("cancel a submission", SessionState.SUBMITTING)
        self.error = None
        self.state = SessionState.DISPLAYING

    async def submit(self, submission: Any) -> Optional[EvaluationResult]:
        """Evaluate a submission; on failure return to Submitting with ``error`` set"""
        self._require("submit", SessionState.SUBMITTING)
        epoch = self._epoch
        self.state = SessionState.EVALUATING
        self.error = None

        try:
            result = await evaluate_submission(self.assignment, submission, self.kind, self.client)
        except AssignmentStudioError as e:
            if epoch == self._epoch:
                logger.info("Evaluation failed: %s", e.message)
                self.state = SessionState.SUBMITTING
                self.error = e.message
            return None
        except Exception:
            if epoch == self._epoch:
                self.state = SessionState.SUBMITTING
            raise

        if epoch != self._epoch:
            logger.info("Dropping evaluation result after the user started over")
            return None

        self.result = result
        self.state = SessionState.SHOWING_RESULTS
        return result

    def back(self) -> None:
        """Leave the results view; the result is discarded"""
        self._require("go back to the assignment", SessionState.SHOWING_RESULTS)
        self.result = None
        self.state = SessionState.DISPLAYING

    def start_new(self) -> None:
        """Drop everything, including any call still in flight"""
        self._epoch += 1
        self.topic = None
        self.kind = None
        self.assignment = None
        self.result = None
        self.error = None
        self.state = SessionState.IDLE
