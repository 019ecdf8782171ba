"""Tests for the assignment, rubric and submission models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from assignment_studio.core.errors import InvalidRequestError
from assignment_studio.core.models import (
    AnswerSheetSubmission,
    AssignmentKind,
    CaseStudyAssignment,
    MultipleChoiceAssignment,
    Rubric,
    TextSubmission,
    assignment_adapter,
    parse_kind,
    submission_adapter,
)

from conftest import make_category, make_rubric


def test_parse_kind_accepts_all_six_kinds():
    assert [parse_kind(value) for value in AssignmentKind.values()] == list(AssignmentKind)


@pytest.mark.parametrize("value", [None, "", "  ", "not-a-real-kind", "Essay", 3])
def test_parse_kind_rejects_unknown_values(value):
    with pytest.raises(InvalidRequestError):
        parse_kind(value)


def test_rubric_keeps_consistent_total():
    rubric = Rubric.model_validate(make_rubric(25, 25))
    assert rubric.total_points == 50


@pytest.mark.parametrize("total", [None, 0, 100])
def test_rubric_recomputes_missing_or_inconsistent_total(total):
    data = make_rubric(20, 30)
    data["totalPoints"] = total
    assert Rubric.model_validate(data).total_points == 50


def test_rubric_without_categories_is_invalid():
    with pytest.raises(ValidationError):
        Rubric.model_validate({"categories": [], "totalPoints": 0})


def test_rubric_levels_must_not_increase():
    category = make_category("Analysis", 25)
    category["levels"]["beginning"]["points"] = 24
    category["levels"]["developing"]["points"] = 5
    with pytest.raises(ValidationError, match="must not gain points"):
        Rubric.model_validate({"categories": [category]})


def test_exemplary_level_must_equal_category_points():
    category = make_category("Analysis", 25)
    category["points"] = 30
    with pytest.raises(ValidationError, match="Exemplary level"):
        Rubric.model_validate({"categories": [category]})


def test_adapter_selects_variant_by_type(case_study_data):
    assignment = assignment_adapter.validate_python({**case_study_data, "type": "case-study"})
    assert isinstance(assignment, CaseStudyAssignment)
    assert len(assignment.tasks) == 4


def test_camel_case_round_trip(multiple_choice_data):
    assignment = assignment_adapter.validate_python({**multiple_choice_data, "type": "multiple-choice"})
    dumped = assignment.model_dump(by_alias=True, exclude_none=True, mode="json")

    assert dumped["answerKey"] == {"1": "A", "2": "B"}
    assert dumped["questions"][0]["correctAnswer"] == "A"
    assert dumped["rubric"]["totalPoints"] == 10
    assert "explanation" not in dumped["questions"][0]


def test_multiple_choice_answer_key_filled_from_questions(multiple_choice_data):
    del multiple_choice_data["answerKey"]
    assignment = MultipleChoiceAssignment.model_validate(multiple_choice_data)
    assert assignment.answer_key == {"1": "A", "2": "B"}


def test_multiple_choice_rejects_duplicate_question_numbers(multiple_choice_data):
    multiple_choice_data["questions"][1]["number"] = 1
    with pytest.raises(ValidationError, match="more than once"):
        MultipleChoiceAssignment.model_validate(multiple_choice_data)


def test_multiple_choice_rejects_unknown_option_letter(multiple_choice_data):
    multiple_choice_data["questions"][0]["options"]["E"] = "Extra"
    with pytest.raises(ValidationError, match="A-D"):
        MultipleChoiceAssignment.model_validate(multiple_choice_data)


def test_multiple_choice_correct_answer_must_be_an_option(multiple_choice_data):
    del multiple_choice_data["questions"][0]["options"]["D"]
    multiple_choice_data["questions"][0]["correctAnswer"] = "d"
    with pytest.raises(ValidationError, match="not one of the options"):
        MultipleChoiceAssignment.model_validate(multiple_choice_data)


def test_mixed_test_choice_question_needs_options(mixed_test_data):
    del mixed_test_data["questions"][0]["options"]
    with pytest.raises(ValidationError, match="need options"):
        assignment_adapter.validate_python({**mixed_test_data, "type": "test"})


def test_submission_answer_keys_become_question_numbers():
    submission = submission_adapter.validate_python({"type": "test", "answers": {"1": "A", "2": "text"}})
    assert isinstance(submission, AnswerSheetSubmission)
    assert submission.answers == {1: "A", 2: "text"}


@pytest.mark.parametrize("kind", ["essay", "presentation", "project"])
def test_text_submission_kinds(kind):
    submission = submission_adapter.validate_python({"type": kind, "text": "My work"})
    assert isinstance(submission, TextSubmission)


def test_submission_with_unknown_type_is_invalid():
    with pytest.raises(ValidationError):
        submission_adapter.validate_python({"type": "poem", "text": "Roses"})
