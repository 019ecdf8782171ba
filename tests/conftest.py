"""Shared fixtures: a recording fake LLM client and sample assignment data."""

from __future__ import annotations

import json
from typing import List, Optional

import pytest


class FakeCompletionClient:
    """Stands in for CompletionClient; records every prompt it receives."""

    def __init__(self, responses: Optional[List[str]] = None, api_key: Optional[str] = "test-key", error: Exception = None):
        self.api_key = api_key
        self.responses = list(responses or [])
        self.error = error
        self.calls = []

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def complete(self, prompt: str, max_output_tokens: int) -> str:
        self.calls.append((prompt, max_output_tokens))
        if self.error is not None:
            raise self.error
        return self.responses.pop(0)


def make_category(name: str, points: int) -> dict:
    return {
        "name": name,
        "points": points,
        "levels": {
            "exemplary": {"points": points, "description": f"Outstanding {name.lower()}"},
            "proficient": {"points": points * 4 // 5, "description": f"Solid {name.lower()}"},
            "developing": {"points": points * 3 // 5, "description": f"Partial {name.lower()}"},
            "beginning": {"points": points * 2 // 5, "description": f"Minimal {name.lower()}"},
        },
    }


def make_rubric(*category_points: int) -> dict:
    names = ["Analysis", "Application", "Communication", "Evidence"]
    categories = [make_category(names[i], points) for i, points in enumerate(category_points)]
    return {"categories": categories, "totalPoints": sum(category_points)}


def fenced(data: dict) -> str:
    return "```json\n" + json.dumps(data, indent=2) + "\n```"


@pytest.fixture
def case_study_data():
    return {
        "title": "Ethics in Global Supply Chains",
        "scenario": "A mid-sized apparel company discovers forced labor at a tier-two supplier.",
        "objectives": [
            "Identify stakeholders affected by sourcing decisions",
            "Apply ethical frameworks to supplier management",
            "Recommend a remediation plan",
        ],
        "tasks": [
            "Map the stakeholders and their interests.",
            "Evaluate the company's options using two ethical frameworks.",
            "Assess the financial impact of each option.",
            "Recommend and justify a course of action.",
        ],
        "rubric": make_rubric(25, 25),
    }


@pytest.fixture
def multiple_choice_data():
    return {
        "title": "Supply Chain Basics Quiz",
        "instructions": "Choose the best answer for each question.",
        "objectives": ["Recall core supply chain terms"],
        "questions": [
            {
                "number": 1,
                "question": "What does 'tier-one supplier' mean?",
                "options": {"A": "A direct supplier", "B": "A raw material miner", "C": "A retailer", "D": "A regulator"},
                "correctAnswer": "A",
                "points": 5,
            },
            {
                "number": 2,
                "question": "Which document lists supplier conduct expectations?",
                "options": {"A": "Invoice", "B": "Supplier code of conduct", "C": "Bill of lading", "D": "Balance sheet"},
                "correctAnswer": "B",
                "points": 5,
            },
        ],
        "answerKey": {"1": "A", "2": "B"},
        "rubric": make_rubric(10),
    }


@pytest.fixture
def mixed_test_data():
    return {
        "title": "Supply Chain Ethics Test",
        "instructions": "Answer every question.",
        "objectives": ["Explain due diligence"],
        "questions": [
            {
                "type": "multiple-choice",
                "number": 1,
                "question": "Which law requires supply chain due diligence in Germany?",
                "options": {"A": "LkSG", "B": "GDPR", "C": "SOX", "D": "FCPA"},
                "correctAnswer": "A",
                "points": 5,
            },
            {"type": "short-answer", "number": 2, "question": "Define traceability.", "points": 10},
            {"type": "essay", "number": 3, "question": "Discuss audit limitations.", "points": 15},
        ],
        "answerKey": {"1": "A", "2": "Tracking goods to their origin.", "3": "Audits are announced and narrow."},
        "rubric": make_rubric(15, 15),
    }


@pytest.fixture
def essay_data():
    return {
        "title": "The Ethics of Cheap Goods",
        "prompt": "Argue whether consumers share responsibility for labor abuses in supply chains.",
        "objectives": ["Construct an argument"],
        "requirements": ["1500-2000 words", "APA citations"],
        "rubric": make_rubric(25, 25),
    }


def evaluation_response(*scores, max_score=25) -> str:
    names = ["Analysis", "Application", "Communication", "Evidence"]
    return fenced({
        "overallFeedback": "Good work overall.",
        "detailedFeedback": "Strong stakeholder analysis; thin financial assessment.",
        "rubricAssessment": [
            {"category": names[i], "score": score, "maxScore": max_score, "feedback": f"Feedback {i + 1}"}
            for i, score in enumerate(scores)
        ],
    })
