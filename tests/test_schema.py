import pytest

from tests.helpers import clone_portfolio, write_portfolio
from rebal.errors import MissingPrice
from rebal.schema import AccountKind, AccountState, MergePolicy, SchemaError, load_portfolio, load_price_sheet


def test_load_portfolio_rejects_non_object_root(tmp_path):
    path = tmp_path / "bad.json"
    path.write_text("[]", encoding="utf-8")

    with pytest.raises(SchemaError, match="portfolio: root must be a JSON object"):
        load_portfolio(path)


def test_load_portfolio_requires_accounts(tmp_path, sample_portfolio_dict):
    data = clone_portfolio(sample_portfolio_dict)
    del data["accounts"]
    path = write_portfolio(tmp_path, data)

    with pytest.raises(SchemaError, match=r"portfolio\.accounts: missing required field"):
        load_portfolio(path)


def test_load_portfolio_requires_account_kind(tmp_path, sample_portfolio_dict):
    data = clone_portfolio(sample_portfolio_dict)
    del data["accounts"][1]["kind"]
    path = write_portfolio(tmp_path, data)

    with pytest.raises(SchemaError, match=r"accounts\[1\]\.kind: missing required field"):
        load_portfolio(path)


def test_load_portfolio_rejects_unknown_account_kind(tmp_path, sample_portfolio_dict):
    data = clone_portfolio(sample_portfolio_dict)
    data["accounts"][0]["kind"] = "HSA"
    path = write_portfolio(tmp_path, data)

    with pytest.raises(SchemaError, match=r"accounts\[0\]\.kind: 'HSA' is not valid"):
        load_portfolio(path)


def test_load_portfolio_rejects_unknown_merge_policy(tmp_path, sample_portfolio_dict):
    data = clone_portfolio(sample_portfolio_dict)
    data["config"]["merge_policy"] = "interleave"
    path = write_portfolio(tmp_path, data)

    with pytest.raises(SchemaError, match=r"config\.merge_policy: 'interleave' is not valid"):
        load_portfolio(path)


def test_load_portfolio_rejects_non_numeric_holding(tmp_path, sample_portfolio_dict):
    data = clone_portfolio(sample_portfolio_dict)
    data["accounts"][2]["holdings"]["VV"] = "25"
    path = write_portfolio(tmp_path, data)

    with pytest.raises(SchemaError, match=r"accounts\[2\]\.holdings\.VV: expected number"):
        load_portfolio(path)


def test_boolean_is_not_a_number(tmp_path, sample_portfolio_dict):
    data = clone_portfolio(sample_portfolio_dict)
    data["accounts"][0]["cash"] = True
    path = write_portfolio(tmp_path, data)

    with pytest.raises(SchemaError, match=r"accounts\[0\]\.cash: expected number"):
        load_portfolio(path)


def test_load_portfolio_parses_sample(tmp_path, sample_portfolio_dict):
    path = write_portfolio(tmp_path, sample_portfolio_dict)
    portfolio = load_portfolio(path)

    assert [a.kind for a in portfolio.accounts] == [AccountKind.ROTH, AccountKind.TRADITIONAL, AccountKind.BROKERAGE]
    assert portfolio.config.merge_policy is MergePolicy.APPEND
    assert portfolio.config.birth_year == 1960
    assert portfolio.account(AccountKind.TRADITIONAL).contribution == 1000.0
    assert portfolio.prices["VWO"] == 40.0


def test_optional_fields_take_defaults(tmp_path):
    path = write_portfolio(tmp_path, {"accounts": [{"kind": "Roth"}], "config": {"rmd_start_age": None}})
    portfolio = load_portfolio(path)

    account = portfolio.accounts[0]
    assert account.cash == 0.0
    assert account.holdings == {}
    assert account.prior_year_end_value is None
    assert portfolio.config.retirement_stock_pct == 90.0
    assert portfolio.config.brokerage_stock_pct == 60.0
    assert portfolio.config.rmd_start_age == 73
    assert portfolio.outside_retirement.stock == 0.0


def test_table_paths_resolve_against_portfolio_file(tmp_path, sample_portfolio_dict):
    data = clone_portfolio(sample_portfolio_dict)
    data["category_table"] = "tables/categories.json"
    data["divisor_table"] = str(tmp_path / "abs.csv")
    path = write_portfolio(tmp_path, data)

    portfolio = load_portfolio(path)

    assert portfolio.category_table == tmp_path / "tables" / "categories.json"
    assert portfolio.divisor_table == tmp_path / "abs.csv"


def test_holdings_value_requires_prices():
    account = AccountState(kind=AccountKind.ROTH, holdings={"VV": 2, "VO": 0}, cash=10.0)
    assert account.current_value({"VV": 100.0}) == 210.0
    with pytest.raises(MissingPrice, match="VV"):
        account.current_value({})


def test_load_price_sheet_requires_object(tmp_path):
    path = write_portfolio(tmp_path, {"VV": 200.0}, filename="cache.json")
    assert load_price_sheet(path) == {"VV": 200.0}

    path.write_text("[200.0]", encoding="utf-8")
    with pytest.raises(SchemaError, match="prices: expected object"):
        load_price_sheet(path)
