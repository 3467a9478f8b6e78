# Overview: Pytest coverage for recipe-derived product cost and availability.

import pytest

from pastil.services import inventory_service, recipe_service
from pastil.services.units import PIECE, WEIGHT


class TestProductCost:

    def test_weight_line_cost_uses_storage_units(self, make_item, make_product):
        beef = make_item("Beef", WEIGHT, qty=5.0, cost_cents=5000)
        product = make_product("Beef Bowl", 3000, [(beef, 200)])
        assert recipe_service.product_cost_cents(product) == 1000

    def test_piece_line_cost(self, make_item, make_product):
        egg = make_item("Egg", PIECE, qty=30, cost_cents=200)
        product = make_product("Egg Pair", 800, [(egg, 2)])
        assert recipe_service.product_cost_cents(product) == 400

    def test_cost_rounded_once_over_all_lines(self, make_item, make_product):
        salt = make_item("Salt", WEIGHT, qty=1.0, cost_cents=1)
        pepper = make_item("Pepper", WEIGHT, qty=1.0, cost_cents=1)
        product = make_product("Seasoning", 100, [(salt, 400), (pepper, 400)])
        # 0.4 + 0.4 cents; rounding per line would give 0
        assert recipe_service.product_cost_cents(product) == 1

    def test_pantry_costs(self, pantry):
        assert recipe_service.product_cost_cents(pantry["pastil"]) == 750 + 1000 + 80 + 200
        assert recipe_service.profit_per_unit_cents(pantry["pastil"]) == 4500 - 2030
        assert recipe_service.product_cost_cents(pantry["extra_rice"]) == 950

    def test_no_lines_costs_nothing(self, make_product):
        assert recipe_service.product_cost_cents(make_product("Empty", 100)) == 0


class TestAvailability:

    def test_no_recipe_lines_is_never_available(self, make_product):
        product = make_product("Empty", 100)
        assert recipe_service.is_available(product) is False
        assert recipe_service.missing_ingredients(product) == []

    def test_covered_recipe_is_available(self, pantry):
        assert recipe_service.is_available(pantry["pastil"])

    def test_exact_stock_is_enough(self, make_item, make_product):
        rice = make_item("Rice", WEIGHT, qty=0.25)
        product = make_product("Rice Cup", 500, [(rice, 250)])
        assert recipe_service.is_available(product)

    def test_short_ingredient_is_reported(self, make_item, make_product):
        rice = make_item("Rice", WEIGHT, qty=0.125)
        leaf = make_item("Leaf", PIECE, qty=5)
        product = make_product("Rice Cup", 500, [(rice, 150), (leaf, 1)])

        assert recipe_service.is_available(product) is False
        missing = recipe_service.missing_ingredients(product)
        assert len(missing) == 1
        assert missing[0]["item_id"] == rice.id
        assert missing[0]["required"] == 150
        assert missing[0]["available"] == pytest.approx(125)
        assert missing[0]["unit"] == "g"

    def test_availability_follows_current_stock(self, pantry):
        inventory_service.set_stock(pantry["leaf"].id, 0)
        products = {p.name: p for p in recipe_service.load_products()}
        assert not recipe_service.is_available(products["Pastil"])
        assert not recipe_service.is_available(products["Extra Rice"])

    def test_requirements_scale_with_quantity(self, pantry):
        needed = recipe_service.requirements(pantry["pastil"], 3)
        assert needed[pantry["rice"].id] == 450
        assert needed[pantry["leaf"].id] == 3

    def test_list_product_availability(self, pantry, make_product):
        make_product("Empty", 100)
        rows = {row["name"]: row for row in recipe_service.list_product_availability()}

        assert rows["Pastil"]["available"] is True
        assert rows["Pastil"]["cost_cents"] == 2030
        assert rows["Pastil"]["ingredient_count"] == 4
        assert rows["Empty"]["available"] is False

    def test_load_products_filters_by_id(self, pantry):
        products = recipe_service.load_products([pantry["extra_rice"].id])
        assert [p.name for p in products] == ["Extra Rice"]
