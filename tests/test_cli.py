"""Tests for the Typer CLI."""

import pytest
from typer.testing import CliRunner

from duo_ledger.cli import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def ledger_env(tmp_path, monkeypatch):
    """Point the CLI at a temporary database with named parties."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("DATABASE_PATH", str(tmp_path / "cli.db"))
    monkeypatch.setenv("PARTY_A_NAME", "Alice")
    monkeypatch.setenv("PARTY_B_NAME", "Bob")
    monkeypatch.setenv("CURRENCY", "SGD")


def invoke(*args, input=None):
    return runner.invoke(app, list(args), input=input)


def add_groceries():
    return invoke(
        "add", "100", "--payer", "A", "--category", "Groceries",
        "--split-a", "0.7", "--split-b", "0.3",
    )  # fmt: skip


class TestBalanceCommand:
    def test_empty_ledger(self):
        result = invoke("balance")

        assert result.exit_code == 0
        assert "All settled" in result.output

    def test_after_expense(self):
        assert add_groceries().exit_code == 0

        result = invoke("balance", "--detailed")

        assert result.exit_code == 0
        assert "Bob owes Alice SGD 30.00" in result.output
        assert "Balance Summary" in result.output


class TestAddCommand:
    def test_add_reports_row(self):
        result = add_groceries()

        assert result.exit_code == 0
        assert "Recorded #1" in result.output

    def test_bad_payer(self):
        result = invoke("add", "10", "--payer", "Z", "--category", "Food")
        assert result.exit_code != 0

    def test_zero_amount_exits_1(self):
        result = invoke("add", "0", "--payer", "A", "--category", "Food")

        assert result.exit_code == 1
        assert "must be positive" in result.output


class TestPayCommand:
    def test_full_payment(self):
        add_groceries()

        result = invoke("pay", "B", "30")

        assert result.exit_code == 0
        assert "Balance cleared" in result.output

    def test_overpayment_exits_1(self):
        add_groceries()

        result = invoke("pay", "B", "30.01")

        assert result.exit_code == 1
        assert "exceeds outstanding" in result.output


class TestSettleCommand:
    def test_settle_with_yes(self):
        add_groceries()

        result = invoke("settle", "--yes")

        assert result.exit_code == 0
        assert "Marked 1 transactions" in result.output
        assert "No pending" in invoke("pending").output

    def test_settle_declined(self):
        add_groceries()

        result = invoke("settle", input="n\n")

        assert "Settlement cancelled" in result.output
        assert "Bob owes Alice" in invoke("balance").output

    def test_settle_nothing(self):
        result = invoke("settle", "--yes")
        assert "already settled" in result.output

    def test_malformed_watermark_exits_1(self):
        add_groceries()

        result = invoke("settle", "--watermark", "1 OR 1=1")

        assert result.exit_code == 1
        assert "Invalid watermark" in result.output

    def test_revert(self):
        add_groceries()
        invoke("settle", "--yes")

        result = invoke("revert", "1")

        assert result.exit_code == 0
        assert "Reverted 1" in result.output


class TestCorrectionCommands:
    def test_amend_amount(self):
        add_groceries()

        result = invoke("amend", "1", "--amount", "50")

        assert result.exit_code == 0
        assert "Bob owes Alice SGD 15.00" in result.output

    def test_delete_missing_exits_1(self):
        result = invoke("delete", "99", "--yes")

        assert result.exit_code == 1
        assert "not found" in result.output

    def test_oversized_id_exits_1(self):
        result = invoke("delete", "99999999999999999999", "--yes")

        assert result.exit_code == 1
        assert "Invalid transaction id" in result.output


class TestRulesCommands:
    def test_set_and_get(self):
        assert invoke("rules", "set", "Groceries", "0.7", "0.3").exit_code == 0

        result = invoke("rules", "get", "grocery")

        assert "70%" in result.output
        assert "Groceries" in invoke("rules", "list").output

    def test_invalid_rule_exits_1(self):
        result = invoke("rules", "set", "Groceries", "0.5", "0.6")
        assert result.exit_code == 1

    def test_reset(self):
        invoke("rules", "set", "Groceries", "0.7", "0.3")

        result = invoke("rules", "reset", "--yes")

        assert result.exit_code == 0
        assert "No custom rules" in invoke("rules", "list").output
