"""
Tests for the CLI interface.
"""

import os
import shutil
import tempfile
from unittest.mock import patch

import pytest
import yaml
from typer.testing import CliRunner

from financeapp.cli.main import EXIT_CODE_FAIL, EXIT_CODE_PASS, app
from financeapp.core.items import ExpenseKind
from financeapp.core.taxes import TaxRegime
from financeapp.storage.repository import SnapshotRepository

runner = CliRunner()


class TestCLI:
    """Test CLI commands against a temporary database."""

    def setup_method(self):
        """Set up test environment."""
        self.temp_dir = tempfile.mkdtemp()
        self.db_path = os.path.join(self.temp_dir, "test.db")

    def teardown_method(self):
        """Clean up test environment."""
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def invoke(self, *args):
        return runner.invoke(app, ["--db", self.db_path, *args])

    def stored(self):
        return SnapshotRepository(self.db_path).load()

    def test_no_command(self):
        """Test the callback prints a hint without a subcommand."""
        result = self.invoke()
        assert result.exit_code == EXIT_CODE_PASS
        assert "--help" in result.output

    def test_show_default_scenario(self):
        """Test show prints the result statement of the example scenario."""
        result = self.invoke("show")

        assert result.exit_code == EXIT_CODE_PASS
        assert "Operating result" in result.output
        assert "R$ 10,020.10" in result.output
        assert "break-even" in result.output

    def test_show_warns_without_profit(self):
        """Test the no-profit notice on a loss."""
        self.invoke("set", "--draw", "20000")
        result = self.invoke("show")

        assert result.exit_code == EXIT_CODE_PASS
        assert "No positive profit" in result.output

    def test_set_updates_snapshot(self):
        """Test set persists regime and amounts."""
        result = self.invoke("set", "--regime", "revenue_percentage", "--rate", "6", "--revenue", "15000")

        assert result.exit_code == EXIT_CODE_PASS
        inputs = self.stored()
        assert inputs.regime == TaxRegime.REVENUE_PERCENTAGE
        assert inputs.tax_rate == 6
        assert "R$ 9,195.10" in result.output

    def test_rate_is_clamped(self):
        """Test the rate option clamps to 0-100."""
        result = self.invoke("set", "--rate", "150")

        assert result.exit_code == EXIT_CODE_PASS
        assert self.stored().tax_rate == 100

    def test_negative_revenue_rejected_by_option(self):
        """Test negative amounts are refused before reaching the session."""
        result = self.invoke("set", "--revenue", "-5")
        assert result.exit_code != EXIT_CODE_PASS

    def test_large_revenue_displays(self):
        """Test very large amounts are stored and shown without errors."""
        result = self.invoke("set", "--revenue", "1e30")
        assert result.exit_code == EXIT_CODE_PASS
        assert self.stored().revenue == 1e30

        result = self.invoke("show")
        assert result.exit_code == EXIT_CODE_PASS

    def test_infinite_revenue_rejected(self):
        """Test a non-finite amount is refused and nothing is stored."""
        result = self.invoke("set", "--revenue", "inf")

        assert result.exit_code == EXIT_CODE_FAIL
        assert "Rejected" in result.output
        assert self.stored() is None

    def test_allocate(self):
        """Test allocation dials are persisted independently."""
        result = self.invoke("allocate", "--reserve", "40", "--distribution", "60")

        assert result.exit_code == EXIT_CODE_PASS
        allocation = self.stored().allocation
        assert (allocation.reserve, allocation.future_taxes, allocation.distribution) == (40, 5, 60)
        assert "Profit distribution" in result.output

    def test_expense_add(self):
        """Test adding an operating expense."""
        result = self.invoke("expense", "add", "Rent", "500", "--kind", "variable", "--category", "Office")

        assert result.exit_code == EXIT_CODE_PASS
        assert "Added Rent" in result.output
        expense = self.stored().operating_expenses[-1]
        assert (expense.name, expense.amount, expense.kind, expense.category) == (
            "Rent", 500.0, ExpenseKind.VARIABLE, "Office"
        )

    def test_expense_add_rejected(self):
        """Test invalid expenses exit with failure and change nothing."""
        result = self.invoke("expense", "add", "Rent", "0")

        assert result.exit_code == EXIT_CODE_FAIL
        assert "Rejected" in result.output
        assert self.stored() is None

    def test_expense_edit_and_remove(self):
        """Test editing and removing an expense by id."""
        self.invoke("expense", "add", "Rent", "500")
        item_id = self.stored().operating_expenses[-1].id

        result = self.invoke("expense", "edit", item_id, "Office rent", "650", "--kind", "fixed")
        assert result.exit_code == EXIT_CODE_PASS
        assert self.stored().operating_expenses[-1].name == "Office rent"

        result = self.invoke("expense", "remove", item_id)
        assert result.exit_code == EXIT_CODE_PASS
        assert item_id not in [e.id for e in self.stored().operating_expenses]

    def test_expense_edit_keeps_kind_and_category(self):
        """Test editing without --kind or --category keeps the current values."""
        self.invoke("expense", "add", "Ads", "300", "--kind", "variable", "--category", "Marketing")
        item_id = self.stored().operating_expenses[-1].id

        result = self.invoke("expense", "edit", item_id, "Online ads", "350")

        assert result.exit_code == EXIT_CODE_PASS
        expense = self.stored().operating_expenses[-1]
        assert (expense.name, expense.amount, expense.kind, expense.category) == (
            "Online ads", 350.0, ExpenseKind.VARIABLE, "Marketing"
        )

    def test_expense_edit_overrides_kind_and_category(self):
        """Test explicit --kind and --category replace the current values."""
        self.invoke("expense", "add", "Ads", "300", "--kind", "variable", "--category", "Marketing")
        item_id = self.stored().operating_expenses[-1].id

        result = self.invoke("expense", "edit", item_id, "Ads", "300", "--kind", "fixed", "--category", "")

        assert result.exit_code == EXIT_CODE_PASS
        expense = self.stored().operating_expenses[-1]
        assert (expense.kind, expense.category) == (ExpenseKind.FIXED, None)

    def test_expense_edit_unknown_id(self):
        """Test editing an unknown id fails."""
        result = self.invoke("expense", "edit", "missing", "X", "10")
        assert result.exit_code == EXIT_CODE_FAIL

    def test_expense_remove_unknown_id(self):
        """Test removing an unknown id is a no-op."""
        result = self.invoke("expense", "remove", "missing")
        assert result.exit_code == EXIT_CODE_PASS
        assert "No expense" in result.output

    def test_expense_list(self):
        """Test listing shows the totals by kind."""
        result = self.invoke("expense", "list")

        assert result.exit_code == EXIT_CODE_PASS
        assert "Operating expenses" in result.output
        assert "Fixed: R$ 1,544.90" in result.output

    def test_cost_commands(self):
        """Test direct cost add, edit, list and remove."""
        result = self.invoke("cost", "add", "Drone", "250")
        assert result.exit_code == EXIT_CODE_PASS
        item_id = self.stored().direct_costs[-1].id

        result = self.invoke("cost", "edit", item_id, "Drone rental", "300")
        assert result.exit_code == EXIT_CODE_PASS
        assert self.stored().direct_costs[-1].amount == 300

        result = self.invoke("cost", "list")
        assert "Total direct costs: R$ 1,160.00" in result.output

        result = self.invoke("cost", "remove", item_id)
        assert result.exit_code == EXIT_CODE_PASS
        assert len(self.stored().direct_costs) == 2

    def test_cost_add_rejected(self):
        """Test an empty cost name is rejected."""
        result = self.invoke("cost", "add", "", "10")
        assert result.exit_code == EXIT_CODE_FAIL

    def test_export_stdout(self):
        """Test export prints the table."""
        result = self.invoke("export")

        assert result.exit_code == EXIT_CODE_PASS
        assert "name;kind;category;amount" in result.output
        assert "Adobe CC;Fixed;Software;224,9" in result.output

    def test_export_file(self):
        """Test export writes to a file."""
        output = os.path.join(self.temp_dir, "despesas.csv")
        result = self.invoke("export", "--output", output)

        assert result.exit_code == EXIT_CODE_PASS
        with open(output, encoding="utf-8") as f:
            assert f.read().startswith("name;kind;category;amount\n")

    def test_reset(self):
        """Test reset restores the example scenario."""
        self.invoke("set", "--revenue", "1")
        result = self.invoke("reset")

        assert result.exit_code == EXIT_CODE_PASS
        assert self.stored().revenue == 15000

    def test_config_file(self):
        """Test the config file sets the snapshot key and allocation."""
        config_path = os.path.join(self.temp_dir, "financeapp.yaml")
        with open(config_path, "w", encoding="utf-8") as f:
            yaml.dump({
                "storage": {"db_path": self.db_path, "snapshot_key": "studio"},
                "allocation": {"reserve": 50},
            }, f)

        result = runner.invoke(app, ["--config", config_path, "set", "--revenue", "8000"])

        assert result.exit_code == EXIT_CODE_PASS
        inputs = SnapshotRepository(self.db_path).load("studio")
        assert inputs.revenue == 8000
        assert inputs.allocation.reserve == 50

    def test_invalid_config(self):
        """Test a bad config file exits with failure."""
        result = runner.invoke(app, ["--config", os.path.join(self.temp_dir, "missing.yaml"), "show"])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "Error loading configuration" in result.output

    @pytest.mark.parametrize("command", [["show"], ["expense", "list"]])
    def test_malformed_snapshot_falls_back(self, command):
        """Test a malformed snapshot does not break the CLI."""
        SnapshotRepository(self.db_path).save_payload("{broken")
        result = self.invoke(*command)
        assert result.exit_code == EXIT_CODE_PASS

    def test_persist_failure_is_not_fatal(self):
        """Test a failed snapshot write still exits successfully."""
        import sqlite3
        with patch.object(SnapshotRepository, "save", side_effect=sqlite3.OperationalError("readonly")):
            result = self.invoke("set", "--revenue", "1000")
        assert result.exit_code == EXIT_CODE_PASS
