import pytest

from synthalert.config import get_settings


@pytest.fixture(autouse=True)
def _fresh_settings():
    """Drop the cached Settings so env changes in one test don't leak into the next."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
