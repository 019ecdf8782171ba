"""
Pydantic data models for assignments, submissions and evaluation results.

Wire format is camelCase (``answerKey``, ``totalPoints`` ...) to match what the
model is asked to produce; attributes are snake_case.
"""
import logging
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator, model_validator
from pydantic.alias_generators import to_camel

from assignment_studio.core.errors import InvalidRequestError

logger = logging.getLogger(__name__)

OPTION_LETTERS = ("A", "B", "C", "D")


class AssignmentKind(str, Enum):
    """The six assignment/submission shapes"""
    CASE_STUDY = "case-study"
    MULTIPLE_CHOICE = "multiple-choice"
    ESSAY = "essay"
    TEST = "test"
    PRESENTATION = "presentation"
    PROJECT = "project"

    @classmethod
    def values(cls) -> List[str]:
        return [kind.value for kind in cls]


def parse_kind(value: Any) -> AssignmentKind:
    """Map a raw assignment type string onto AssignmentKind or raise InvalidRequestError"""
    if value is None or (isinstance(value, str) and not value.strip()):
        raise InvalidRequestError("Assignment type is required.")
    try:
        return AssignmentKind(value)
    except ValueError:
        raise InvalidRequestError(
            f"Invalid assignment type. Must be one of: {', '.join(AssignmentKind.values())}"
        )


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============================================================================
# Rubric
# ============================================================================

class RubricLevel(CamelModel):
    points: int = Field(ge=0)
    description: str = ""


class RubricLevels(CamelModel):
    exemplary: RubricLevel
    proficient: RubricLevel
    developing: RubricLevel
    beginning: RubricLevel

    def as_list(self) -> List[tuple]:
        return [
            ("Exemplary", self.exemplary),
            ("Proficient", self.proficient),
            ("Developing", self.developing),
            ("Beginning", self.beginning),
        ]


class RubricCategory(CamelModel):
    name: str
    points: int = Field(gt=0)
    levels: RubricLevels

    @model_validator(mode="after")
    def check_level_points(self) -> "RubricCategory":
        points = [level.points for _, level in self.levels.as_list()]
        if points != sorted(points, reverse=True):
            raise ValueError(
                f"Rubric levels for '{self.name}' must not gain points from exemplary to beginning"
            )
        if self.levels.exemplary.points != self.points:
            raise ValueError(
                f"Exemplary level of '{self.name}' must be worth the category's {self.points} points"
            )
        return self


class Rubric(CamelModel):
    categories: List[RubricCategory] = Field(min_length=1)
    total_points: Optional[int] = None

    @model_validator(mode="after")
    def reconcile_total_points(self) -> "Rubric":
        category_total = sum(category.points for category in self.categories)
        if self.total_points != category_total:
            logger.warning(
                "Rubric totalPoints %s does not match category sum %s; using the category sum",
                self.total_points, category_total,
            )
            self.total_points = category_total
        return self


# ============================================================================
# Questions
# ============================================================================

def _normalize_options(options: Dict[str, str]) -> Dict[str, str]:
    normalized = {str(key).strip().upper(): text for key, text in options.items()}
    unknown = sorted(set(normalized) - set(OPTION_LETTERS))
    if unknown:
        raise ValueError(f"Option letters must be A-D, got {', '.join(unknown)}")
    if len(normalized) < 2:
        raise ValueError("A multiple choice question needs at least two options")
    return normalized


def _check_unique_numbers(questions: List[Any]) -> None:
    seen = set()
    for question in questions:
        if question.number in seen:
            raise ValueError(f"Question number {question.number} is used more than once")
        seen.add(question.number)


class ChoiceQuestion(CamelModel):
    number: int = Field(gt=0)
    question: str
    options: Dict[str, str]
    correct_answer: str
    points: int = Field(gt=0)
    explanation: Optional[str] = None

    @field_validator("options")
    @classmethod
    def check_option_letters(cls, value: Dict[str, str]) -> Dict[str, str]:
        return _normalize_options(value)

    @field_validator("correct_answer")
    @classmethod
    def normalize_letter(cls, value: str) -> str:
        return value.strip().upper()

    @model_validator(mode="after")
    def check_correct_answer(self) -> "ChoiceQuestion":
        if self.correct_answer not in self.options:
            raise ValueError(
                f"Question {self.number}: correct answer '{self.correct_answer}' is not one of the options"
            )
        return self


class MixedTestQuestion(CamelModel):
    type: Literal["multiple-choice", "short-answer", "essay"]
    number: int = Field(gt=0)
    question: str
    points: int = Field(gt=0)
    options: Optional[Dict[str, str]] = None
    correct_answer: Optional[str] = None

    @model_validator(mode="after")
    def check_choice_fields(self) -> "MixedTestQuestion":
        if self.type != "multiple-choice":
            return self
        if not self.options:
            raise ValueError(f"Question {self.number}: multiple choice questions need options")
        self.options = _normalize_options(self.options)
        if self.correct_answer is not None:
            self.correct_answer = self.correct_answer.strip().upper()
        return self


# ============================================================================
# Assignments (tagged union on ``type``)
# ============================================================================

class AssignmentBase(CamelModel):
    title: str
    objectives: List[str] = Field(default_factory=list)
    rubric: Rubric


class CaseStudyAssignment(AssignmentBase):
    type: Literal["case-study"] = "case-study"
    scenario: str
    tasks: List[str] = Field(min_length=1)


class MultipleChoiceAssignment(AssignmentBase):
    type: Literal["multiple-choice"] = "multiple-choice"
    instructions: str = ""
    questions: List[ChoiceQuestion] = Field(min_length=1)
    answer_key: Dict[str, str] = Field(default_factory=dict)

    @field_validator("answer_key", mode="before")
    @classmethod
    def stringify_keys(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return {str(number).strip(): str(letter).strip().upper() for number, letter in value.items()}
        return value

    @model_validator(mode="after")
    def reconcile_answer_key(self) -> "MultipleChoiceAssignment":
        _check_unique_numbers(self.questions)
        for question in self.questions:
            self.answer_key.setdefault(str(question.number), question.correct_answer)
        return self


class EssayAssignment(AssignmentBase):
    type: Literal["essay"] = "essay"
    prompt: str
    requirements: List[str] = Field(default_factory=list)


class MixedTestAssignment(AssignmentBase):
    type: Literal["test"] = "test"
    instructions: str = ""
    questions: List[MixedTestQuestion] = Field(min_length=1)
    answer_key: Dict[str, str] = Field(default_factory=dict)

    @field_validator("answer_key", mode="before")
    @classmethod
    def stringify_keys(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return {str(number).strip(): str(answer) for number, answer in value.items()}
        return value

    @model_validator(mode="after")
    def reconcile_answer_key(self) -> "MixedTestAssignment":
        _check_unique_numbers(self.questions)
        for question in self.questions:
            if question.correct_answer:
                self.answer_key.setdefault(str(question.number), question.correct_answer)
        return self


class PresentationAssignment(AssignmentBase):
    type: Literal["presentation"] = "presentation"
    topic: str
    requirements: List[str] = Field(default_factory=list)


class ProjectAssignment(AssignmentBase):
    type: Literal["project"] = "project"
    description: str
    requirements: List[str] = Field(default_factory=list)


Assignment = Annotated[
    Union[
        CaseStudyAssignment,
        MultipleChoiceAssignment,
        EssayAssignment,
        MixedTestAssignment,
        PresentationAssignment,
        ProjectAssignment,
    ],
    Field(discriminator="type"),
]
assignment_adapter = TypeAdapter(Assignment)


# ============================================================================
# Submissions (tagged union on ``type``)
# ============================================================================

class AnswerSheetSubmission(CamelModel):
    """Answers keyed by question number, used by multiple-choice and test"""
    type: Literal["multiple-choice", "test"]
    answers: Dict[int, str]


class CaseStudySubmission(CamelModel):
    """Responses keyed by 1-based task index"""
    type: Literal["case-study"] = "case-study"
    responses: Dict[int, str]


class TextSubmission(CamelModel):
    """Free text, used by essay, presentation and project"""
    type: Literal["essay", "presentation", "project"]
    text: str


Submission = Annotated[
    Union[AnswerSheetSubmission, CaseStudySubmission, TextSubmission],
    Field(discriminator="type"),
]
submission_adapter = TypeAdapter(Submission)


# ============================================================================
# Evaluation
# ============================================================================

Score = Union[int, float]


class QuestionResult(CamelModel):
    number: int
    question: str
    student_answer: Optional[str] = None
    correct_answer: Optional[str] = None
    is_correct: bool
    points: int
    earned_points: int


class ObjectiveScore(CamelModel):
    """Deterministic score of the objectively gradable questions"""
    correct_count: int
    question_count: int
    earned_points: int
    possible_points: int
    results: List[QuestionResult]


class RubricScore(CamelModel):
    category: str
    score: Score
    max_score: Score
    feedback: str = ""


class EvaluationResult(CamelModel):
    total_score: Score
    max_score: Score
    percentage: int = Field(ge=0, le=100)
    feedback: str
    detailed_feedback: Optional[str] = None
    rubric_scores: List[RubricScore]


class RubricAssessmentItem(CamelModel):
    """One per-category entry as returned by the model; scores are not trusted"""
    category: str = ""
    score: Any = None
    max_score: Any = None
    feedback: Optional[str] = None


class ModelEvaluation(CamelModel):
    """Shape the evaluation prompt asks the model to return"""
    overall_feedback: Any = None
    detailed_feedback: Any = None
    rubric_assessment: List[RubricAssessmentItem] = Field(min_length=1)


# ============================================================================
# API request bodies
# ============================================================================

class GenerateRequest(CamelModel):
    """Request body for generating an assignment"""
    query: Optional[str] = None
    assignment_type: Optional[str] = AssignmentKind.CASE_STUDY.value


class EvaluateRequest(CamelModel):
    """Request body for evaluating a submission"""
    assignment: Optional[Dict[str, Any]] = None
    submission: Optional[Dict[str, Any]] = None
    assignment_type: Optional[str] = None
