import pytest

from tests.helpers import SAMPLE_PORTFOLIO, clone_portfolio, write_portfolio
from rebal.categories import default_category_table
from rebal.schema import load_portfolio
from rebal.validate import validate_portfolio


def _run_validation(tmp_path, sample_portfolio_dict, mutator, table=None):
    data = clone_portfolio(sample_portfolio_dict)
    mutator(data)
    path = write_portfolio(tmp_path, data)
    portfolio = load_portfolio(path)
    return validate_portfolio(portfolio, table)


def test_sample_portfolio_validates():
    portfolio = load_portfolio(SAMPLE_PORTFOLIO)
    result = validate_portfolio(portfolio, default_category_table())
    assert result.errors == []
    assert result.warnings == []
    assert result.is_valid


@pytest.mark.parametrize(
    ("mutator", "expected_error"),
    [
        (
            lambda d: d["config"].update({"retirement_stock_pct": 101}),
            "config.retirement_stock_pct: must be between 0 and 100",
        ),
        (
            lambda d: d["config"].update({"brokerage_stock_pct": -5}),
            "config.brokerage_stock_pct: must be between 0 and 100",
        ),
        (
            lambda d: d["config"].update({"birth_year": 1850}),
            "config.birth_year: must be >= 1900",
        ),
        (
            lambda d: d["config"].update({"retirement_year": 1955}),
            "config.retirement_year: must be >= config.birth_year",
        ),
        (
            lambda d: d["config"].update({"rmd_start_age": 0}),
            "config.rmd_start_age: must be > 0",
        ),
        (
            lambda d: d["prices"].update({"VB": 0}),
            "prices.VB: must be > 0",
        ),
        (
            lambda d: d["accounts"].append({"kind": "Roth", "cash": 10}),
            "accounts[3].kind: duplicate Roth account",
        ),
        (
            lambda d: d["accounts"][0].update({"cash": -1}),
            "accounts[0].cash: must be >= 0",
        ),
        (
            lambda d: d["accounts"][1].update({"contribution": -100}),
            "accounts[1].contribution: must be >= 0",
        ),
        (
            lambda d: d["accounts"][1].update({"prior_year_end_value": -1}),
            "accounts[1].prior_year_end_value: must be >= 0",
        ),
        (
            lambda d: d["accounts"][2]["holdings"].update({"BND": -3}),
            "accounts[2].holdings.BND: must be >= 0",
        ),
        (
            lambda d: d["accounts"][2]["holdings"].update({"QQQ": 3}),
            "accounts[2].holdings.QQQ: no price in prices",
        ),
        (
            lambda d: d["accounts"][0].update({"merge_with_retirement": True}),
            "accounts[0].merge_with_retirement: only valid for Brokerage accounts",
        ),
    ],
)
def test_validation_errors(tmp_path, sample_portfolio_dict, mutator, expected_error):
    result = _run_validation(tmp_path, sample_portfolio_dict, mutator)
    assert expected_error in result.errors
    assert not result.is_valid


def test_category_table_securities_need_prices(tmp_path, sample_portfolio_dict):
    result = _run_validation(
        tmp_path, sample_portfolio_dict, lambda d: d["prices"].pop("BNDX"), table=default_category_table()
    )
    assert "prices.BNDX: missing price for category table security" in result.errors


@pytest.mark.parametrize(
    ("mutator", "expected_warning"),
    [
        (
            lambda d: d["config"].update({"glide_path": True, "retirement_year": None}),
            "config.glide_path: ignored without config.retirement_year",
        ),
        (
            lambda d: d.update({"accounts": []}),
            "accounts: no accounts to rebalance",
        ),
        (
            lambda d: d["accounts"][0].update({"distributions_taken": 100}),
            "accounts[0].distributions_taken: ignored for Roth accounts",
        ),
        (
            lambda d: d["config"].update({"birth_year": None}),
            "config.birth_year: not set; required minimum distributions are skipped",
        ),
    ],
)
def test_validation_warnings(tmp_path, sample_portfolio_dict, mutator, expected_warning):
    result = _run_validation(tmp_path, sample_portfolio_dict, mutator)
    assert expected_warning in result.warnings
    assert result.is_valid


def test_unknown_holding_warns_it_will_be_sold(tmp_path, sample_portfolio_dict):
    def mutator(data):
        data["prices"]["QQQ"] = 400.0
        data["accounts"][0]["holdings"]["QQQ"] = 2

    result = _run_validation(tmp_path, sample_portfolio_dict, mutator, table=default_category_table())
    assert "holdings.QQQ: not in the category table; the full position will be sold" in result.warnings
    assert result.errors == []


def _all_stock_without_bonds(data):
    data["config"].update({"retirement_stock_pct": 100, "brokerage_stock_pct": 100})
    for symbol in ("BND", "BNDX", "VTC"):
        data["prices"].pop(symbol)
        for account in data["accounts"]:
            account["holdings"].pop(symbol, None)


def test_unfunded_asset_class_needs_no_prices(tmp_path, sample_portfolio_dict):
    result = _run_validation(tmp_path, sample_portfolio_dict, _all_stock_without_bonds, table=default_category_table())
    assert result.errors == []


def test_funded_pool_still_needs_bond_prices(tmp_path, sample_portfolio_dict):
    def mutator(data):
        _all_stock_without_bonds(data)
        data["config"]["brokerage_stock_pct"] = 60

    result = _run_validation(tmp_path, sample_portfolio_dict, mutator, table=default_category_table())
    assert "prices.BND: missing price for category table security" in result.errors
    assert "prices.VTC: missing price for category table security" in result.errors
