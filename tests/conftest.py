"""Shared fixtures for the dbhooks test suite."""

import pytest

from dbhooks.config import set_config
from dbhooks.transactions import Transaction


@pytest.fixture(autouse=True)
def reset_singletons():
    """Give every test a fresh transaction lock and configuration."""
    Transaction.set_lock(None)
    set_config(None)
    yield
    Transaction.set_lock(None)
    set_config(None)
