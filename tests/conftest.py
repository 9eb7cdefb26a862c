import pytest

from tests.helpers import FIXED_TIME


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_TIME
