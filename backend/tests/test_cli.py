# Overview: Pytest coverage for the flask CLI command groups.

import pytest

from pastil.models import FinishedProduct, InventoryItem, PaymentMethod
from pastil.services import inventory_service


@pytest.fixture
def runner(app):
    return app.test_cli_runner()


class TestCli:

    def test_seed_demo_is_idempotent(self, runner, db_session):
        first = runner.invoke(args=["system", "seed-demo"])
        assert first.exit_code == 0, first.output
        second = runner.invoke(args=["system", "seed-demo"])
        assert second.exit_code == 0, second.output

        assert db_session.query(PaymentMethod).count() == 2
        assert db_session.query(InventoryItem).count() == 4
        assert db_session.query(FinishedProduct).count() == 3

    def test_inventory_list(self, runner, make_item):
        make_item("Rice", qty=2.5)
        result = runner.invoke(args=["inventory", "list"])
        assert result.exit_code == 0
        assert "Rice" in result.output
        assert "2,500 g" in result.output

    def test_inventory_products(self, runner, pantry):
        result = runner.invoke(args=["inventory", "products"])
        assert result.exit_code == 0
        assert "Pastil" in result.output
        assert "AVAILABLE" in result.output

    def test_next_number(self, runner, make_sale):
        make_sale("24-05-00011")
        result = runner.invoke(args=["sales", "next-number", "--period", "24-05"])
        assert result.exit_code == 0
        assert result.output.strip() == "24-05-00012"

    def test_next_number_bad_period(self, runner, db_session):
        result = runner.invoke(args=["sales", "next-number", "--period", "2024"])
        assert result.exit_code != 0

    def test_sales_list(self, runner, make_sale):
        make_sale("24-05-00001", cancelled=True)
        result = runner.invoke(args=["sales", "list", "--limit", "5"])
        assert result.exit_code == 0
        assert "24-05-00001" in result.output
        assert "CANCELLED" in result.output

    def test_sales_list_empty(self, runner, db_session):
        result = runner.invoke(args=["sales", "list"])
        assert "No sales recorded." in result.output

    def test_reset_db_requires_confirmation(self, runner, make_item):
        make_item("Rice")
        result = runner.invoke(args=["system", "reset-db"], input="n\n")
        assert result.exit_code != 0
        assert len(inventory_service.list_items()) == 1
