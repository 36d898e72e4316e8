import json

import pytest

from rebal.categories import (
    AssetClass,
    CategoryTable,
    Security,
    category_table_from_dict,
    default_category_table,
    load_category_table,
)
from rebal.errors import CategoryTableError


def test_default_table_weights_sum_to_100_per_class():
    table = default_category_table()
    for asset_class in AssetClass:
        total = sum(s.weight for s in table.in_class(asset_class))
        assert total == pytest.approx(100.0, abs=1e-3)


def test_default_risk_order_runs_riskiest_to_safest():
    assert default_category_table().risk_order() == ["VWO", "VXUS", "VB", "VO", "VV", "BNDX", "BND", "VTC"]


def test_risk_order_ties_break_by_symbol():
    table = CategoryTable(
        [
            Security("ZZZ", AssetClass.STOCK, 50.0, 1),
            Security("AAA", AssetClass.STOCK, 50.0, 1),
            Security("BBB", AssetClass.BOND, 100.0, 0),
        ]
    )
    assert table.risk_order() == ["BBB", "AAA", "ZZZ"]


def test_weights_not_summing_to_100_are_rejected():
    with pytest.raises(CategoryTableError, match="Stock weights sum to 90"):
        CategoryTable([Security("A", AssetClass.STOCK, 60.0, 1), Security("B", AssetClass.STOCK, 30.0, 2)])


def test_weight_within_tolerance_is_accepted():
    table = CategoryTable([Security("A", AssetClass.STOCK, 33.3334, 1), Security("B", AssetClass.STOCK, 66.6665, 2)])
    assert len(table) == 2


def test_duplicate_symbol_is_rejected():
    with pytest.raises(CategoryTableError, match="duplicate symbol 'A'"):
        CategoryTable([Security("A", AssetClass.STOCK, 50.0, 1), Security("A", AssetClass.STOCK, 50.0, 2)])


def test_negative_weight_is_rejected():
    with pytest.raises(CategoryTableError, match="weight must be a non-negative number"):
        CategoryTable([Security("A", AssetClass.STOCK, 110.0, 1), Security("B", AssetClass.STOCK, -10.0, 2)])


def test_load_category_table_from_json(tmp_path):
    path = tmp_path / "categories.json"
    path.write_text(
        json.dumps(
            {
                "securities": [
                    {"symbol": "VTI", "asset_class": "Stock", "weight": 100, "risk_rank": 1},
                    {"symbol": "BND", "asset_class": "Bond", "weight": 100, "risk_rank": 2, "description": "US bonds"},
                ]
            }
        ),
        encoding="utf-8",
    )
    table = load_category_table(path)

    assert table.symbols == ["BND", "VTI"]
    assert table.get("BND").description == "US bonds"
    assert table.get("VTI").asset_class is AssetClass.STOCK


def test_category_table_from_dict_reports_bad_asset_class():
    with pytest.raises(CategoryTableError, match=r"securities\[0\]\.asset_class: 'Gold' is not valid"):
        category_table_from_dict({"securities": [{"symbol": "GLD", "asset_class": "Gold", "weight": 100, "risk_rank": 1}]})


def test_category_table_from_dict_requires_fields():
    with pytest.raises(CategoryTableError, match=r"securities\[0\]\.risk_rank: missing required field"):
        category_table_from_dict({"securities": [{"symbol": "VTI", "asset_class": "Stock", "weight": 100}]})


def test_category_table_from_dict_requires_securities_array():
    with pytest.raises(CategoryTableError, match="expected object with a 'securities' array"):
        category_table_from_dict([])
