import json

import pytest

from tests.helpers import SAMPLE_PORTFOLIO


@pytest.fixture
def sample_portfolio_dict() -> dict:
    return json.loads(SAMPLE_PORTFOLIO.read_text(encoding="utf-8"))
