"""Tests for the terminal client."""

from __future__ import annotations

import io
import json

import pytest
from typer.testing import CliRunner

from assignment_studio import cli
from assignment_studio.core.models import assignment_adapter

from conftest import FakeCompletionClient, evaluation_response, fenced

runner = CliRunner()


@pytest.fixture(autouse=True)
def keep_root_logging(monkeypatch):
    monkeypatch.setattr(cli, "configure_cli_logging", lambda verbose: None)


def _script(monkeypatch, *lines):
    monkeypatch.setattr("sys.stdin", io.StringIO("".join(f"{line}\n" for line in lines)))


def _install_client(monkeypatch, *responses) -> FakeCompletionClient:
    client = FakeCompletionClient(list(responses))
    monkeypatch.setattr(cli, "client_from_config", lambda: client)
    return client


# ---------------------------------------------------------------------------
# collect_submission
# ---------------------------------------------------------------------------

def test_collects_multiple_choice_answers_reasking_invalid_letters(monkeypatch, multiple_choice_data):
    assignment = assignment_adapter.validate_python({**multiple_choice_data, "type": "multiple-choice"})
    _script(monkeypatch, "E", "A", "B")

    submission = cli.collect_submission(assignment)

    assert submission == {"type": "multiple-choice", "answers": {"1": "A", "2": "B"}}


def test_collects_test_answers_reasking_empty_ones(monkeypatch, mixed_test_data, capsys):
    assignment = assignment_adapter.validate_python({**mixed_test_data, "type": "test"})
    _script(monkeypatch, "A", "", "Tracking goods to their origin.", "Audits miss subcontractors.")

    submission = cli.collect_submission(assignment)

    assert submission["answers"] == {
        "1": "A",
        "2": "Tracking goods to their origin.",
        "3": "Audits miss subcontractors.",
    }
    assert "An answer is required." in capsys.readouterr().out


def test_collects_one_response_per_case_study_task(monkeypatch, case_study_data, capsys):
    assignment = assignment_adapter.validate_python({**case_study_data, "type": "case-study"})
    _script(
        monkeypatch,
        "Workers, buyers,", "and shareholders.", ".",
        ".",
        "Utilitarian and rights-based views.", ".",
        "Remediation costs less than lost contracts.", ".",
        "Fund remediation and audit tier two.", ".",
    )

    submission = cli.collect_submission(assignment)

    assert submission["type"] == "case-study"
    assert submission["responses"] == {
        "1": "Workers, buyers,\nand shareholders.",
        "2": "Utilitarian and rights-based views.",
        "3": "Remediation costs less than lost contracts.",
        "4": "Fund remediation and audit tier two.",
    }
    assert "Please provide your submission before submitting." in capsys.readouterr().out


def test_collects_essay_text_until_end_marker(monkeypatch, essay_data):
    assignment = assignment_adapter.validate_python({**essay_data, "type": "essay"})
    _script(monkeypatch, "Consumers share responsibility.", "", "Prices carry signals.", ".")

    submission = cli.collect_submission(assignment)

    assert submission == {
        "type": "essay",
        "text": "Consumers share responsibility.\n\nPrices carry signals.",
    }


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def test_generate_submit_and_show_results(monkeypatch, essay_data, tmp_path):
    client = _install_client(monkeypatch, fenced(essay_data), evaluation_response(20, 15))
    saved = tmp_path / "essay.json"

    result = runner.invoke(
        cli.app,
        ["generate", "labor rights", "--kind", "essay", "--save", str(saved)],
        input="s\nConsumers share responsibility.\n.\nq\n",
    )

    assert result.exit_code == 0, result.output
    assert "The Ethics of Cheap Goods" in result.output
    assert "35 / 50 points (70%)" in result.output
    assert len(client.calls) == 2
    assert "Consumers share responsibility." in client.calls[1][0]

    written = json.loads(saved.read_text(encoding="utf-8"))
    assert written["type"] == "essay"
    assert written["title"] == "The Ethics of Cheap Goods"
    assert written["rubric"]["totalPoints"] == 50


def test_back_returns_to_assignment_for_another_submission(monkeypatch, essay_data):
    client = _install_client(
        monkeypatch, fenced(essay_data), evaluation_response(20, 15), evaluation_response(25, 25),
    )

    result = runner.invoke(
        cli.app,
        ["generate", "labor rights", "-k", "essay"],
        input="s\nFirst draft.\n.\nb\ns\nSecond draft.\n.\nq\n",
    )

    assert result.exit_code == 0, result.output
    assert "(70%)" in result.output
    assert "(100%)" in result.output
    assert len(client.calls) == 3


def test_failed_new_assignment_asks_again_instead_of_exiting(monkeypatch, essay_data, case_study_data):
    client = _install_client(monkeypatch, fenced(essay_data), "not json", fenced(case_study_data))

    result = runner.invoke(
        cli.app,
        ["generate", "labor rights", "-k", "essay"],
        input="n\ntides\nessay\nsupply chain ethics\ncase-study\nq\n",
    )

    assert result.exit_code == 0, result.output
    assert "couldn't be parsed as JSON" in result.output
    assert "Ethics in Global Supply Chains" in result.output
    assert len(client.calls) == 3
    assert '"supply chain ethics"' in client.calls[2][0]


def test_first_generation_failure_exits_with_error(monkeypatch):
    client = _install_client(monkeypatch)
    client.api_key = None

    result = runner.invoke(cli.app, ["generate", "tides", "-k", "essay"])

    assert result.exit_code == 1
    assert "TOGETHER_AI_API_KEY" in result.output
    assert client.calls == []


def test_kinds_lists_every_assignment_type():
    result = runner.invoke(cli.app, ["kinds"])

    assert result.exit_code == 0
    for kind in ("case-study", "multiple-choice", "essay", "test", "presentation", "project"):
        assert kind in result.output
